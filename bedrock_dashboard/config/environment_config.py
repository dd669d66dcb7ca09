"""
Environment-specific configuration for the Bedrock CloudWatch Dashboard
"""
from dataclasses import dataclass, field
from typing import List, Optional

from aws_cdk import Duration

from .constants import DEFAULT_DASHBOARD_NAME, DEFAULT_PERIOD_MINUTES


@dataclass(frozen=True)
class ModelMonitoringConfig:
    """Options for a single monitoring call"""
    period: Optional[Duration] = None
    # Only applicable to image generation models, the OutputImageCount
    # dimension is "ModelId + ImageSize + BucketedStepSize"
    image_size: Optional[str] = None
    bucketed_step_size: Optional[str] = None
    # On-demand prices per 1K tokens, see https://aws.amazon.com/bedrock/pricing/
    input_token_price: Optional[float] = None
    output_token_price: Optional[float] = None

    def __post_init__(self):
        for name in ("input_token_price", "output_token_price"):
            price = getattr(self, name)
            if price is not None and price < 0:
                raise ValueError(f"{name} must not be negative, got {price}")

    @property
    def resolved_period(self) -> Duration:
        return self.period or Duration.minutes(DEFAULT_PERIOD_MINUTES)

    @property
    def has_pricing(self) -> bool:
        """Cost projection needs both unit prices"""
        return bool(self.input_token_price) and bool(self.output_token_price)

    def output_image_dimension(self, model_id: str) -> str:
        return "".join(
            part for part in (model_id, self.image_size, self.bucketed_step_size) if part
        )


@dataclass
class MonitoredModel:
    """A model that gets its own section on the dashboard"""
    display_name: str
    model_id: str
    input_token_price: Optional[float] = None
    output_token_price: Optional[float] = None
    # Image generation models only
    image_size: Optional[str] = None
    bucketed_step_size: Optional[str] = None

    def __post_init__(self):
        if not self.model_id:
            raise ValueError(f"model_id is required for '{self.display_name}'")

    def monitoring_config(self, period: Optional[Duration] = None) -> ModelMonitoringConfig:
        return ModelMonitoringConfig(
            period=period,
            image_size=self.image_size,
            bucketed_step_size=self.bucketed_step_size,
            input_token_price=self.input_token_price,
            output_token_price=self.output_token_price
        )


@dataclass
class LogInsightsConfig:
    """Log groups and log line tags queried by the Logs Insights widgets"""
    feedback_log_group: str = "bedrock-chatbot-app"
    # Includes the space that follows the tag in log lines
    feedback_tag: str = "[Feedback] "
    payment_log_group: str = "/aws/lambda/bedrock-agent-action-group"
    payment_tag: str = "[PAY]"
    recent_payment_limit: int = 100


@dataclass
class AlarmConfig:
    """Pre-existing alarms shown in the alarm status widget, by name or ARN"""
    alarms: List[str] = field(default_factory=list)


@dataclass
class AllModelsConfig:
    """Settings for the all-models section of the dashboard"""
    enabled: bool = True
    embedding_model_id: str = "amazon.titan-embed-text-v2:0"
    embedding_model_name: str = "Titan Text Embeddings V2"
    chat_model_id: str = "anthropic.claude-3-5-sonnet-20241022-v2:0"
    chat_model_name: str = "Claude 3.5 Sonnet"
    # Requests per minute quota of the chat model
    chat_model_quota_limit: int = 250
    guardrails_enabled: bool = True
    log_insights: LogInsightsConfig = field(default_factory=LogInsightsConfig)
    alarms: AlarmConfig = field(default_factory=AlarmConfig)


@dataclass
class DashboardConfig:
    """Dashboard contents"""
    dashboard_name: str = DEFAULT_DASHBOARD_NAME
    period_minutes: int = DEFAULT_PERIOD_MINUTES
    all_models: AllModelsConfig = field(default_factory=AllModelsConfig)
    models: List[MonitoredModel] = field(default_factory=list)

    def __post_init__(self):
        if self.period_minutes <= 0:
            raise ValueError(f"period_minutes must be positive, got {self.period_minutes}")

    @property
    def period(self) -> Duration:
        return Duration.minutes(self.period_minutes)


@dataclass
class EnvironmentConfig:
    """Complete environment configuration"""
    environment_name: str
    account: Optional[str]
    region: Optional[str]
    dashboard: DashboardConfig

    @classmethod
    def development(cls, account: Optional[str], region: Optional[str]) -> 'EnvironmentConfig':
        """Development environment configuration"""
        return cls(
            environment_name="dev",
            account=account,
            region=region,
            dashboard=DashboardConfig(
                dashboard_name="BedrockChatbotMonitoringDashboard",
                period_minutes=1,
                all_models=AllModelsConfig(
                    embedding_model_id=(
                        f"arn:aws:bedrock:{region}::foundation-model/amazon.titan-embed-text-v2:0"
                        if region else "amazon.titan-embed-text-v2:0"
                    ),
                    alarms=AlarmConfig(alarms=[
                        "Bedrock invocations over threshold",
                        "Action group Lambda errors over threshold",
                        "Claude 3.5 Sonnet V2 invocation cost over threshold"
                    ])
                ),
                models=[
                    MonitoredModel(
                        display_name="Claude 3.5 Sonnet v2",
                        model_id="anthropic.claude-3-5-sonnet-20241022-v2:0",
                        input_token_price=0.003,
                        output_token_price=0.015
                    ),
                    MonitoredModel(
                        display_name="Claude 3.7 Sonnet",
                        model_id="us.anthropic.claude-3-7-sonnet-20250219-v1:0",
                        input_token_price=0.003,
                        output_token_price=0.015
                    )
                ]
            )
        )
