from .monitoring import BedrockCwDashboard, BedrockDashboardStack
