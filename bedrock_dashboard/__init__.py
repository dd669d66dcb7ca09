from .platform import BedrockCwDashboard, BedrockDashboardStack
from .config import (
    EnvironmentConfig,
    DashboardConfig,
    AllModelsConfig,
    LogInsightsConfig,
    AlarmConfig,
    MonitoredModel,
    ModelMonitoringConfig
)
