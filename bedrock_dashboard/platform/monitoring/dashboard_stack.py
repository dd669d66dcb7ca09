import logging

from aws_cdk import Stack
from constructs import Construct

from bedrock_dashboard.config import DashboardConfig, ModelMonitoringConfig
from bedrock_dashboard.platform.monitoring.bedrock_cw_dashboard_construct import BedrockCwDashboard

logger = logging.getLogger(__name__)


class BedrockDashboardStack(Stack):
    """
    Creates the CloudWatch dashboard for Amazon Bedrock models
    """
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        dashboard_config: DashboardConfig,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.bedrock_dashboard = BedrockCwDashboard(
            self,
            "BedrockDashboardConstruct",
            dashboard_name=dashboard_config.dashboard_name
        )
        self.dashboard = self.bedrock_dashboard.dashboard

        # Overview across all models goes first
        if dashboard_config.all_models.enabled:
            self.bedrock_dashboard.add_all_models_monitoring(
                ModelMonitoringConfig(period=dashboard_config.period),
                dashboard_config.all_models
            )

        # One section per model, with on-demand pricing when prices are known
        for model in dashboard_config.models:
            self.bedrock_dashboard.add_model_monitoring(
                model.display_name,
                model.model_id,
                model.monitoring_config(period=dashboard_config.period)
            )

        logger.info(
            "Dashboard %s configured with %d model section(s)",
            dashboard_config.dashboard_name,
            len(dashboard_config.models)
        )
