from .environment_config import (
    EnvironmentConfig,
    DashboardConfig,
    AllModelsConfig,
    LogInsightsConfig,
    AlarmConfig,
    MonitoredModel,
    ModelMonitoringConfig
)
