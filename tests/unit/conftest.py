import os
import pytest
from unittest.mock import patch
from aws_cdk import App, Stack

@pytest.fixture(scope="function", autouse=True)
def mock_environment():
    """Mock AWS environment variables for all tests"""
    with patch.dict(os.environ, {
        "CDK_DEFAULT_ACCOUNT": "123456789012",
        "CDK_DEFAULT_REGION": "us-west-2"
    }):
        yield

@pytest.fixture
def stack():
    """Empty stack to host constructs under test"""
    app = App()
    return Stack(app, "test-stack")
