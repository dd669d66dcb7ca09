import logging

from aws_cdk import (
    aws_cloudwatch as cloudwatch,
    ArnFormat,
    Aws,
    CfnOutput,
    Duration,
    Stack
)
from constructs import Construct
from typing import Dict, List, Optional

from bedrock_dashboard.config import AllModelsConfig, ModelMonitoringConfig
from bedrock_dashboard.config.constants import (
    ALL_MODELS_COLOR,
    BEDROCK_NAMESPACE,
    DASHBOARD_WIDTH,
    DEFAULT_DASHBOARD_NAME,
    GUARDRAILS_INVOCATIONS_INTERVENED,
    GUARDRAILS_NAMESPACE,
    GUARDRAILS_OPERATION,
    GUARDRAILS_TEXT_UNIT_COUNT,
    INPUT_TOKEN_COUNT,
    INVOCATION_CLIENT_ERRORS,
    INVOCATION_LATENCY,
    INVOCATION_SERVER_ERRORS,
    INVOCATION_THROTTLES,
    INVOCATIONS,
    LATENCY_CRITICAL_COLOR,
    LATENCY_GAUGE_MAX,
    LATENCY_HIGH_THRESHOLD,
    LATENCY_LOW_THRESHOLD,
    LATENCY_OK_COLOR,
    LATENCY_WARN_COLOR,
    LEGACY_MODEL_INVOCATIONS,
    MODEL_ID_DIMENSION,
    OUTPUT_IMAGE_COUNT,
    OUTPUT_TOKEN_COUNT,
    QUOTA_LIMIT_COLOR,
    TOKEN_PRICE_UNIT
)

logger = logging.getLogger(__name__)


class BedrockCwDashboard(Construct):
    """
    Reusable construct that builds a CloudWatch dashboard for Amazon Bedrock.

    Widgets are only ever appended. Every row handed to the dashboard is also
    recorded in ``widget_rows`` in the same order.
    """
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        existing_dashboard: Optional[cloudwatch.Dashboard] = None,
        dashboard_name: Optional[str] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # dashboard_name is ignored when an existing dashboard is supplied
        self.dashboard = existing_dashboard or cloudwatch.Dashboard(
            self,
            f"BedrockMetricsDashboard{construct_id}",
            dashboard_name=dashboard_name or DEFAULT_DASHBOARD_NAME
        )
        self.widget_rows: List[List[cloudwatch.IWidget]] = []
        self._alarm_count = 0

        self.dashboard_url = (
            f"https://{Aws.REGION}.console.aws.amazon.com/cloudwatch/home"
            f"?region={Aws.REGION}#dashboards:name={self.dashboard.dashboard_name}"
        )

        CfnOutput(
            self,
            f"BedrockMetricsDashboardOutput{construct_id}",
            value=self.dashboard_url,
            description="URL of the Bedrock CloudWatch dashboard"
        )

    def _add_row(self, *widgets: cloudwatch.IWidget) -> None:
        self.dashboard.add_widgets(cloudwatch.Row(*widgets))
        self.widget_rows.append(list(widgets))
        logger.debug("Added row of %d widget(s) to dashboard", len(widgets))

    @staticmethod
    def _metric(
        metric_name: str,
        statistic: str,
        period: Duration,
        dimensions: Optional[Dict[str, str]] = None,
        namespace: str = BEDROCK_NAMESPACE,
        **kwargs
    ) -> cloudwatch.Metric:
        return cloudwatch.Metric(
            namespace=namespace,
            metric_name=metric_name,
            dimensions_map=dimensions,
            statistic=statistic,
            period=period,
            **kwargs
        )

    def add_model_monitoring(
        self,
        model_name: str,
        model_id: str,
        config: Optional[ModelMonitoringConfig] = None
    ) -> None:
        """
        Add a section with metrics for a single Bedrock model id.

        Rows: title, latency (avg/min/max), token counts with an optional
        cost projection, then invocation and error counts.
        """
        config = config or ModelMonitoringConfig()
        period = config.resolved_period
        dimensions = {MODEL_ID_DIMENSION: model_id}

        input_tokens = self._metric(INPUT_TOKEN_COUNT, cloudwatch.Stats.SUM, period, dimensions)
        output_tokens = self._metric(OUTPUT_TOKEN_COUNT, cloudwatch.Stats.SUM, period, dimensions)
        output_images = self._metric(
            OUTPUT_IMAGE_COUNT,
            cloudwatch.Stats.SUM,
            period,
            {MODEL_ID_DIMENSION: config.output_image_dimension(model_id)}
        )
        latency_avg = self._metric(INVOCATION_LATENCY, cloudwatch.Stats.AVERAGE, period, dimensions)
        latency_min = self._metric(INVOCATION_LATENCY, cloudwatch.Stats.MINIMUM, period, dimensions)
        latency_max = self._metric(INVOCATION_LATENCY, cloudwatch.Stats.MAXIMUM, period, dimensions)
        invocations = self._metric(INVOCATIONS, cloudwatch.Stats.SUM, period, dimensions)
        client_errors = self._metric(INVOCATION_CLIENT_ERRORS, cloudwatch.Stats.SUM, period, dimensions)
        server_errors = self._metric(INVOCATION_SERVER_ERRORS, cloudwatch.Stats.SUM, period, dimensions)
        throttles = self._metric(INVOCATION_THROTTLES, cloudwatch.Stats.SUM, period, dimensions)
        legacy_invocations = self._metric(LEGACY_MODEL_INVOCATIONS, cloudwatch.Stats.SUM, period, dimensions)

        logger.info("Adding monitoring for model %s (%s)", model_name, model_id)

        self._add_row(
            cloudwatch.TextWidget(
                markdown=f"# {model_name}",
                width=DASHBOARD_WIDTH
            )
        )

        self._add_row(
            *[
                cloudwatch.SingleValueWidget(
                    title=title,
                    metrics=[metric],
                    set_period_to_time_range=True,
                    width=8
                )
                for title, metric in (
                    ("Average Latency", latency_avg),
                    ("Min Latency", latency_min),
                    ("Max Latency", latency_max)
                )
            ]
        )

        token_widgets: List[cloudwatch.IWidget] = [
            cloudwatch.GraphWidget(
                title="Input and Output Token Counts",
                left=[input_tokens],
                right=[output_tokens],
                period=period,
                width=12,
                height=10
            )
        ]
        if config.has_pricing:
            token_widgets.append(
                self._token_cost_widget(
                    input_tokens,
                    output_tokens,
                    config.input_token_price,
                    config.output_token_price,
                    period
                )
            )
        else:
            logger.debug("No token prices for %s, skipping cost widget", model_id)
        self._add_row(*token_widgets)

        self._add_row(
            *[
                cloudwatch.SingleValueWidget(
                    title=title,
                    metrics=[metric],
                    set_period_to_time_range=True,
                    width=4
                )
                for title, metric in (
                    ("Invocations", invocations),
                    ("Client Errors", client_errors),
                    ("Server Errors", server_errors),
                    ("Throttled invocations", throttles),
                    ("Legacy invocations", legacy_invocations),
                    ("OutputImageCount", output_images)
                )
            ]
        )

    @staticmethod
    def _token_cost_widget(
        input_tokens: cloudwatch.Metric,
        output_tokens: cloudwatch.Metric,
        input_token_price: float,
        output_token_price: float,
        period: Duration
    ) -> cloudwatch.GraphWidget:
        input_cost = f"inputTokens / {TOKEN_PRICE_UNIT} * {input_token_price}"
        output_cost = f"outputTokens / {TOKEN_PRICE_UNIT} * {output_token_price}"

        return cloudwatch.GraphWidget(
            title="Token Cost (USD)",
            left=[
                cloudwatch.MathExpression(
                    expression=input_cost,
                    using_metrics={"inputTokens": input_tokens},
                    label="Input Token Cost",
                    period=period
                ),
                cloudwatch.MathExpression(
                    expression=output_cost,
                    using_metrics={"outputTokens": output_tokens},
                    label="Output Token Cost",
                    period=period
                )
            ],
            left_y_axis=cloudwatch.YAxisProps(
                label="Input and Output",
                show_units=False
            ),
            right=[
                cloudwatch.MathExpression(
                    expression=f"{input_cost} + {output_cost}",
                    using_metrics={
                        "inputTokens": input_tokens,
                        "outputTokens": output_tokens
                    },
                    label="Total Cost",
                    period=period
                )
            ],
            right_y_axis=cloudwatch.YAxisProps(
                label="Total",
                show_units=False
            ),
            width=12,
            height=10
        )

    @staticmethod
    def _latency_gauge(title: str, metric: cloudwatch.Metric, period: Duration) -> cloudwatch.GaugeWidget:
        """Gauge with fixed green/orange/red latency bands"""
        return cloudwatch.GaugeWidget(
            title=title,
            metrics=[metric],
            width=6,
            height=6,
            period=period,
            set_period_to_time_range=True,
            live_data=True,
            left_y_axis=cloudwatch.YAxisProps(min=0, max=LATENCY_GAUGE_MAX),
            legend_position=cloudwatch.LegendPosition.BOTTOM,
            annotations=[
                cloudwatch.HorizontalAnnotation(
                    color=LATENCY_OK_COLOR,
                    label=f"Under {LATENCY_LOW_THRESHOLD // 1000}s",
                    value=LATENCY_LOW_THRESHOLD,
                    fill=cloudwatch.Shading.BELOW
                ),
                cloudwatch.HorizontalAnnotation(
                    color=LATENCY_WARN_COLOR,
                    label=f"{LATENCY_LOW_THRESHOLD // 1000}s to {LATENCY_HIGH_THRESHOLD // 1000}s",
                    value=LATENCY_LOW_THRESHOLD,
                    fill=cloudwatch.Shading.ABOVE
                ),
                cloudwatch.HorizontalAnnotation(
                    color=LATENCY_CRITICAL_COLOR,
                    label=f"Over {LATENCY_HIGH_THRESHOLD // 1000}s",
                    value=LATENCY_HIGH_THRESHOLD,
                    fill=cloudwatch.Shading.ABOVE
                )
            ]
        )

    def _import_alarm(self, alarm: str) -> cloudwatch.IAlarm:
        self._alarm_count += 1
        alarm_arn = alarm if alarm.startswith("arn:") else Stack.of(self).format_arn(
            service="cloudwatch",
            resource="alarm",
            resource_name=alarm,
            arn_format=ArnFormat.COLON_RESOURCE_NAME
        )
        return cloudwatch.Alarm.from_alarm_arn(self, f"Alarm{self._alarm_count}", alarm_arn)

    def add_all_models_monitoring(
        self,
        config: Optional[ModelMonitoringConfig] = None,
        all_models_config: Optional[AllModelsConfig] = None
    ) -> None:
        """
        Add an overview section with metrics across all Bedrock model ids,
        call-outs for the embedding and chat models, application log
        breakdowns and alarm status.
        """
        config = config or ModelMonitoringConfig()
        all_models_config = all_models_config or AllModelsConfig()
        period = config.resolved_period
        log_insights = all_models_config.log_insights

        input_tokens = self._metric(INPUT_TOKEN_COUNT, cloudwatch.Stats.SUM, period)
        output_tokens = self._metric(OUTPUT_TOKEN_COUNT, cloudwatch.Stats.SUM, period)
        latency_avg = self._metric(
            INVOCATION_LATENCY, cloudwatch.Stats.AVERAGE, period, color=ALL_MODELS_COLOR
        )
        latency_min = self._metric(
            INVOCATION_LATENCY, cloudwatch.Stats.MINIMUM, period, color=ALL_MODELS_COLOR
        )
        latency_max = self._metric(
            INVOCATION_LATENCY, cloudwatch.Stats.MAXIMUM, period, color=ALL_MODELS_COLOR
        )
        invocations = self._metric(
            INVOCATIONS, cloudwatch.Stats.SUM, period, color=ALL_MODELS_COLOR, label="Total invocations"
        )
        client_errors = self._metric(
            INVOCATION_CLIENT_ERRORS, cloudwatch.Stats.SUM, period, color=ALL_MODELS_COLOR
        )
        server_errors = self._metric(
            INVOCATION_SERVER_ERRORS, cloudwatch.Stats.SUM, period, color=ALL_MODELS_COLOR
        )
        throttles = self._metric(
            INVOCATION_THROTTLES, cloudwatch.Stats.SUM, period, color=ALL_MODELS_COLOR
        )

        embedding_latency = self._metric(
            INVOCATION_LATENCY,
            cloudwatch.Stats.AVERAGE,
            period,
            {MODEL_ID_DIMENSION: all_models_config.embedding_model_id},
            color=ALL_MODELS_COLOR,
            label="Average invocation latency"
        )
        chat_latency = self._metric(
            INVOCATION_LATENCY,
            cloudwatch.Stats.AVERAGE,
            period,
            {MODEL_ID_DIMENSION: all_models_config.chat_model_id},
            color=ALL_MODELS_COLOR,
            label="Average invocation latency"
        )
        # The quota is per minute so this series is always summed per minute
        chat_invocations_per_minute = self._metric(
            INVOCATIONS,
            cloudwatch.Stats.SUM,
            Duration.minutes(1),
            {MODEL_ID_DIMENSION: all_models_config.chat_model_id},
            color=ALL_MODELS_COLOR,
            label="Invocations per minute"
        )

        logger.info("Adding all-models monitoring")

        self._add_row(
            cloudwatch.TextWidget(
                markdown=(
                    "# Bedrock Monitoring Dashboard\n"
                    "Key monitoring widgets for the chatbot:\n"
                    "* Model invocations\n"
                    "* Latency per model\n"
                    "* Input/output tokens per model\n"
                    "* Cost estimate from token usage\n"
                    "* Errors (client, server and throttling)\n"
                    "* Application logs"
                ),
                width=6,
                height=6
            ),
            self._latency_gauge("Average Latency (All Models)", latency_avg, period),
            self._latency_gauge("Min Latency (All Models)", latency_min, period),
            self._latency_gauge("Max Latency (All Models)", latency_max, period)
        )

        self._add_row(
            cloudwatch.GraphWidget(
                title="Input and Output Tokens (All Models)",
                left=[input_tokens],
                right=[output_tokens],
                period=period,
                width=12
            ),
            cloudwatch.SingleValueWidget(
                title="Invocations (All Models)",
                metrics=[invocations],
                width=4,
                height=4,
                period=period,
                set_period_to_time_range=True
            ),
            cloudwatch.SingleValueWidget(
                title=f"[{all_models_config.embedding_model_name}] Invocation Latency",
                metrics=[embedding_latency],
                width=4,
                height=4,
                period=period,
                set_period_to_time_range=True
            ),
            cloudwatch.SingleValueWidget(
                title=f"[{all_models_config.chat_model_name}] Invocation Latency",
                metrics=[chat_latency],
                width=4,
                height=4,
                period=period,
                set_period_to_time_range=True
            )
        )

        self._add_row(
            *[
                cloudwatch.SingleValueWidget(
                    title=title,
                    metrics=[metric],
                    period=period,
                    set_period_to_time_range=True,
                    width=4
                )
                for title, metric in (
                    ("Client Errors (All Models)", client_errors),
                    ("Server Errors (All Models)", server_errors),
                    ("Throttling Errors (All Models)", throttles)
                )
            ],
            cloudwatch.GraphWidget(
                title=f"[{all_models_config.chat_model_name}] Invocations per Minute",
                period=Duration.minutes(1),
                width=6,
                height=5,
                left=[chat_invocations_per_minute],
                left_annotations=[
                    cloudwatch.HorizontalAnnotation(
                        label="Quota limit",
                        value=all_models_config.chat_model_quota_limit,
                        color=QUOTA_LIMIT_COLOR
                    )
                ]
            ),
            cloudwatch.LogQueryWidget(
                title="Response Feedback",
                log_group_names=[log_insights.feedback_log_group],
                query_lines=tag_breakdown_query(log_insights.feedback_tag, "feedback"),
                view=cloudwatch.LogQueryVisualizationType.PIE,
                width=6,
                height=5
            )
        )

        outcome_widgets: List[cloudwatch.IWidget] = []
        if all_models_config.guardrails_enabled:
            outcome_widgets.extend(self._guardrails_widgets(period))
        outcome_widgets.append(
            cloudwatch.LogQueryWidget(
                title="Payment Success / Failure",
                log_group_names=[log_insights.payment_log_group],
                query_lines=tag_breakdown_query(log_insights.payment_tag, "payment"),
                view=cloudwatch.LogQueryVisualizationType.PIE,
                width=6,
                height=4
            )
        )
        if all_models_config.alarms.alarms:
            outcome_widgets.append(
                cloudwatch.AlarmStatusWidget(
                    title="Alarm Status",
                    alarms=[self._import_alarm(alarm) for alarm in all_models_config.alarms.alarms],
                    width=6,
                    height=4
                )
            )
        else:
            logger.warning("No alarms configured, skipping alarm status widget")
        self._add_row(*outcome_widgets)

        self._add_row(
            cloudwatch.LogQueryWidget(
                title="Payment Logs",
                log_group_names=[log_insights.payment_log_group],
                query_lines=recent_tagged_lines_query(
                    log_insights.payment_tag,
                    "payment",
                    log_insights.recent_payment_limit
                ),
                view=cloudwatch.LogQueryVisualizationType.TABLE,
                width=DASHBOARD_WIDTH
            )
        )

    def _guardrails_widgets(self, period: Duration) -> List[cloudwatch.IWidget]:
        dimensions = {"Operation": GUARDRAILS_OPERATION}
        intervened = self._metric(
            GUARDRAILS_INVOCATIONS_INTERVENED,
            cloudwatch.Stats.SUM,
            period,
            dimensions,
            namespace=GUARDRAILS_NAMESPACE,
            color=cloudwatch.Color.RED
        )
        text_units = self._metric(
            GUARDRAILS_TEXT_UNIT_COUNT,
            cloudwatch.Stats.SUM,
            period,
            dimensions,
            namespace=GUARDRAILS_NAMESPACE,
            color=cloudwatch.Color.ORANGE
        )
        return [
            cloudwatch.SingleValueWidget(
                title="Invocations Intervened by Guardrails",
                metrics=[intervened],
                width=6,
                height=4,
                period=period,
                set_period_to_time_range=True
            ),
            cloudwatch.SingleValueWidget(
                title="Text Units Consumed by Guardrail Policies",
                metrics=[text_units],
                width=6,
                height=4,
                period=period,
                set_period_to_time_range=True
            )
        ]


def tag_breakdown_query(tag: str, field: str) -> List[str]:
    """
    Logs Insights query counting log lines that start with ``tag``,
    grouped by the rest of the line.
    """
    return [
        "fields @timestamp, @message",
        f'filter @message like "{tag}"',
        f'parse @message "{tag}*" as {field}',
        f"stats count() as count by {field}"
    ]


def recent_tagged_lines_query(tag: str, field: str, limit: int) -> List[str]:
    """Logs Insights query listing the latest ``limit`` log lines carrying ``tag``"""
    return [
        f'filter @message like "{tag}"',
        "fields @timestamp",
        f'parse @message "{tag}*" as {field}',
        "fields @logStream, @log",
        "sort @timestamp desc",
        f"limit {limit}"
    ]
