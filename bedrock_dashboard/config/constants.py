"""
Constants used throughout the Bedrock CloudWatch Dashboard
"""

# Dashboard Configuration
DEFAULT_DASHBOARD_NAME = "BedrockMetricsDashboard"
DEFAULT_PERIOD_MINUTES = 1
DASHBOARD_WIDTH = 24

# CloudWatch Namespaces
BEDROCK_NAMESPACE = "AWS/Bedrock"
GUARDRAILS_NAMESPACE = "AWS/Bedrock/Guardrails"

# Bedrock Metric Names
INPUT_TOKEN_COUNT = "InputTokenCount"
OUTPUT_TOKEN_COUNT = "OutputTokenCount"
OUTPUT_IMAGE_COUNT = "OutputImageCount"
INVOCATION_LATENCY = "InvocationLatency"
INVOCATIONS = "Invocations"
INVOCATION_CLIENT_ERRORS = "InvocationClientErrors"
INVOCATION_SERVER_ERRORS = "InvocationServerErrors"
INVOCATION_THROTTLES = "InvocationThrottles"
LEGACY_MODEL_INVOCATIONS = "LegacyModelInvocations"
MODEL_ID_DIMENSION = "ModelId"

# Guardrails Metric Names
GUARDRAILS_INVOCATIONS_INTERVENED = "InvocationsIntervened"
GUARDRAILS_TEXT_UNIT_COUNT = "TextUnitCount"
GUARDRAILS_OPERATION = "ApplyGuardrail"

# Latency gauges (milliseconds)
LATENCY_GAUGE_MAX = 15000
LATENCY_LOW_THRESHOLD = 5000
LATENCY_HIGH_THRESHOLD = 8000

# Colors
ALL_MODELS_COLOR = "#caedfc"
LATENCY_OK_COLOR = "#b2df8d"
LATENCY_WARN_COLOR = "#f89256"
LATENCY_CRITICAL_COLOR = "#fe6e73"
QUOTA_LIMIT_COLOR = "#ff0000"

# Token prices are quoted per this many tokens
TOKEN_PRICE_UNIT = 1000
