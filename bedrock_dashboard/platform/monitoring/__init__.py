from .bedrock_cw_dashboard_construct import BedrockCwDashboard
from .dashboard_stack import BedrockDashboardStack
