import json

import pytest
from aws_cdk import Duration, assertions, aws_cloudwatch as cloudwatch

from bedrock_dashboard.config import AlarmConfig, AllModelsConfig, LogInsightsConfig, ModelMonitoringConfig
from bedrock_dashboard.platform.monitoring.bedrock_cw_dashboard_construct import (
    BedrockCwDashboard,
    recent_tagged_lines_query,
    tag_breakdown_query
)


def widget_json(stack, widget):
    """Widget JSON with tokens resolved against the hosting stack"""
    return json.dumps(stack.resolve(widget.to_json()))


def widget_title(widget):
    return widget.to_json()[0]["properties"].get("title")


def test_creates_dashboard_and_url_output(stack):
    BedrockCwDashboard(stack, "Test", dashboard_name="MyDashboard")
    template = assertions.Template.from_stack(stack)

    template.resource_count_is("AWS::CloudWatch::Dashboard", 1)
    template.has_resource_properties("AWS::CloudWatch::Dashboard", {
        "DashboardName": "MyDashboard"
    })
    outputs = template.find_outputs("*")
    assert len(outputs) == 1

    # Console URL built from the deployment region and the dashboard name
    template.has_output("*", {
        "Value": {
            "Fn::Join": ["", [
                "https://",
                {"Ref": "AWS::Region"},
                ".console.aws.amazon.com/cloudwatch/home?region=",
                {"Ref": "AWS::Region"},
                "#dashboards:name=",
                {"Ref": assertions.Match.string_like_regexp("BedrockMetricsDashboard")}
            ]]
        }
    })


def test_default_dashboard_name(stack):
    BedrockCwDashboard(stack, "Test")
    template = assertions.Template.from_stack(stack)

    template.has_resource_properties("AWS::CloudWatch::Dashboard", {
        "DashboardName": "BedrockMetricsDashboard"
    })


def test_reuses_existing_dashboard(stack):
    existing = cloudwatch.Dashboard(stack, "Existing", dashboard_name="Existing")
    construct = BedrockCwDashboard(stack, "Test", existing_dashboard=existing, dashboard_name="Ignored")
    template = assertions.Template.from_stack(stack)

    assert construct.dashboard is existing
    template.resource_count_is("AWS::CloudWatch::Dashboard", 1)
    template.has_resource_properties("AWS::CloudWatch::Dashboard", {
        "DashboardName": "Existing"
    })


def test_model_monitoring_rows(stack):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_model_monitoring("Model X", "X")

    rows = construct.widget_rows
    assert len(rows) == 4
    assert [len(row) for row in rows] == [1, 3, 1, 6]

    title, latency, tokens, counters = rows
    assert isinstance(title[0], cloudwatch.TextWidget)
    assert all(isinstance(widget, cloudwatch.SingleValueWidget) for widget in latency)
    assert isinstance(tokens[0], cloudwatch.GraphWidget)
    assert all(isinstance(widget, cloudwatch.SingleValueWidget) for widget in counters)
    assert [widget_title(widget) for widget in latency] == ["Average Latency", "Min Latency", "Max Latency"]


def test_model_monitoring_without_prices_has_no_cost_widget(stack):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_model_monitoring("Model X", "X")

    token_row = construct.widget_rows[2]
    assert len(token_row) == 1
    assert widget_title(token_row[0]) == "Input and Output Token Counts"


def test_model_monitoring_with_prices_adds_cost_widget(stack):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_model_monitoring(
        "Model X",
        "X",
        ModelMonitoringConfig(input_token_price=0.003, output_token_price=0.015)
    )

    token_row = construct.widget_rows[2]
    assert len(token_row) == 2
    cost_widget = token_row[1]
    assert widget_title(cost_widget) == "Token Cost (USD)"

    body = widget_json(stack, cost_widget)
    assert "inputTokens / 1000 * 0.003" in body
    assert "outputTokens / 1000 * 0.015" in body
    assert "inputTokens / 1000 * 0.003 + outputTokens / 1000 * 0.015" in body
    for label in ("Input Token Cost", "Output Token Cost", "Total Cost"):
        assert label in body


@pytest.mark.parametrize("input_price,output_price", [
    (0.003, None),
    (None, 0.015),
    (0, 0.015),
    (0.003, 0)
])
def test_cost_widget_needs_both_prices(stack, input_price, output_price):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_model_monitoring(
        "Model X",
        "X",
        ModelMonitoringConfig(input_token_price=input_price, output_token_price=output_price)
    )

    assert len(construct.widget_rows[2]) == 1


def test_model_monitoring_is_not_deduplicated(stack):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_model_monitoring("Model X", "X")
    first = sum(len(row) for row in construct.widget_rows)
    construct.add_model_monitoring("Model X", "X")
    second = sum(len(row) for row in construct.widget_rows)

    assert len(construct.widget_rows) == 8
    assert second == 2 * first


def test_model_monitoring_default_period_is_one_minute(stack):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_model_monitoring("Model X", "X")

    for row in construct.widget_rows[1:]:
        for widget in row:
            body = widget_json(stack, widget)
            assert '"period": 60' in body
            assert '"period": 300' not in body


def test_model_monitoring_custom_period(stack):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_model_monitoring("Model X", "X", ModelMonitoringConfig(period=Duration.minutes(5)))

    body = widget_json(stack, construct.widget_rows[2][0])
    assert '"period": 60' not in body


def test_model_monitoring_scopes_metrics_to_model_id(stack):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_model_monitoring("Model X", "my-model-id")

    body = widget_json(stack, construct.widget_rows[1][0])
    assert "my-model-id" in body
    assert "InvocationLatency" in body


def test_output_image_dimension(stack):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_model_monitoring(
        "Image Model",
        "stability.sd3",
        ModelMonitoringConfig(image_size="1024x1024", bucketed_step_size="50")
    )

    image_tile = construct.widget_rows[3][5]
    assert widget_title(image_tile) == "OutputImageCount"
    assert "stability.sd31024x102450" in widget_json(stack, image_tile)


def test_all_models_has_three_fixed_gauges(stack):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_all_models_monitoring(ModelMonitoringConfig(period=Duration.minutes(10)))

    gauges = [
        widget
        for row in construct.widget_rows
        for widget in row
        if isinstance(widget, cloudwatch.GaugeWidget)
    ]
    assert len(gauges) == 3
    for gauge in gauges:
        annotations = gauge.to_json()[0]["properties"]["annotations"]["horizontal"]
        assert [annotation["value"] for annotation in annotations] == [5000, 5000, 8000]


def test_all_models_layout(stack):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_all_models_monitoring(
        all_models_config=AllModelsConfig(alarms=AlarmConfig(alarms=["High errors", "High cost"]))
    )

    rows = construct.widget_rows
    assert len(rows) == 5
    assert isinstance(rows[0][0], cloudwatch.TextWidget)
    assert isinstance(rows[-1][0], cloudwatch.LogQueryWidget)

    alarm_widgets = [widget for widget in rows[3] if isinstance(widget, cloudwatch.AlarmStatusWidget)]
    assert len(alarm_widgets) == 1
    body = widget_json(stack, alarm_widgets[0])
    assert "High errors" in body
    assert "High cost" in body


def test_all_models_without_alarms_or_guardrails(stack):
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_all_models_monitoring(all_models_config=AllModelsConfig(guardrails_enabled=False))

    outcome_row = construct.widget_rows[3]
    assert len(outcome_row) == 1
    assert isinstance(outcome_row[0], cloudwatch.LogQueryWidget)


def test_all_models_accepts_alarm_arns(stack):
    arn = "arn:aws:cloudwatch:us-west-2:123456789012:alarm:Existing"
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_all_models_monitoring(
        all_models_config=AllModelsConfig(alarms=AlarmConfig(alarms=[arn]))
    )

    alarm_widget = construct.widget_rows[3][-1]
    assert arn in widget_json(stack, alarm_widget)


def test_all_models_twice_does_not_clash(stack):
    config = AllModelsConfig(alarms=AlarmConfig(alarms=["High errors"]))
    construct = BedrockCwDashboard(stack, "Test")
    construct.add_all_models_monitoring(all_models_config=config)
    construct.add_all_models_monitoring(all_models_config=config)

    assert len(construct.widget_rows) == 10


def test_tag_breakdown_query():
    assert tag_breakdown_query("[PAY]", "payment") == [
        "fields @timestamp, @message",
        'filter @message like "[PAY]"',
        'parse @message "[PAY]*" as payment',
        "stats count() as count by payment"
    ]


def test_recent_tagged_lines_query():
    query = recent_tagged_lines_query("[PAY]", "payment", 100)

    assert query[0] == 'filter @message like "[PAY]"'
    assert "sort @timestamp desc" in query
    assert query[-1] == "limit 100"


def test_feedback_query_parses_after_tag_separator():
    query = tag_breakdown_query(LogInsightsConfig().feedback_tag, "feedback")

    assert query[1] == 'filter @message like "[Feedback] "'
    assert query[2] == 'parse @message "[Feedback] *" as feedback'
