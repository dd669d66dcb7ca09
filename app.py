#!/usr/bin/env python3
import dataclasses
import logging
import os

from aws_cdk import App, Environment, Aspects
from cdk_nag import AwsSolutionsChecks

from bedrock_dashboard import BedrockDashboardStack, EnvironmentConfig

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger()

# Initialize the CDK app
app = App()

# Create environment configuration
account = os.getenv('CDK_DEFAULT_ACCOUNT')
region = os.getenv('CDK_DEFAULT_REGION')
cdk_env = Environment(account=account, region=region)

config = EnvironmentConfig.development(account, region)

# Context overrides, e.g. cdk deploy -c dashboard_name=MyDashboard -c period_minutes=5
dashboard_name = app.node.try_get_context("dashboard_name")
period_minutes = app.node.try_get_context("period_minutes")
if dashboard_name:
    config.dashboard = dataclasses.replace(config.dashboard, dashboard_name=dashboard_name)
if period_minutes:
    config.dashboard = dataclasses.replace(config.dashboard, period_minutes=int(period_minutes))

logger.info("Synthesizing %s dashboard for %s/%s", config.environment_name, account, region)

dashboard_stack = BedrockDashboardStack(
    app,
    "BedrockDashboardStack",
    dashboard_config=config.dashboard,
    env=cdk_env
)

# Run cdk-nag checks on everything in the app
Aspects.of(app).add(AwsSolutionsChecks(verbose=True))

# Synthesize the CloudFormation templates
app.synth()
