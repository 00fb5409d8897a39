"""Pytest fixtures for lambdaship tests."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from moto import mock_aws

from lambdaship import ControlPlane, DeploymentRequest

# Pytest hooks for --run-aws flag


def pytest_addoption(parser):
    """Add --run-aws pytest option."""
    parser.addoption(
        "--run-aws",
        action="store_true",
        default=False,
        help="Run tests against real AWS (requires valid credentials)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip AWS tests unless --run-aws flag is provided."""
    if not config.getoption("--run-aws"):
        skip_aws = pytest.mark.skip(reason="Need --run-aws option to run")
        for item in items:
            if "aws" in item.keywords:
                item.add_marker(skip_aws)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    # Unset AWS_ENDPOINT_URL to ensure moto intercepts requests
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)


@pytest.fixture
def mock_control_plane(aws_credentials, monkeypatch):
    """Real boto3 clients backed by moto's simulated IAM/Lambda/API Gateway/STS."""
    # AWSLambdaBasicExecutionRole must exist for attach_role_policy
    monkeypatch.setenv("MOTO_IAM_LOAD_MANAGED_POLICIES", "true")
    with mock_aws():
        yield ControlPlane.connect(region="us-east-1")


@pytest.fixture
def recording_control_plane():
    """Control plane of MagicMock clients that record every call."""
    control_plane = ControlPlane(
        iam=MagicMock(name="iam"),
        lambda_=MagicMock(name="lambda"),
        apigateway=MagicMock(name="apigateway"),
        sts=MagicMock(name="sts"),
        region="us-east-1",
    )
    control_plane.sts.get_caller_identity.return_value = {"Account": "123456789012"}
    return control_plane


@pytest.fixture
def node_project(tmp_path: Path) -> Path:
    """Working directory with a single Node.js handler and no manifest."""
    workdir = tmp_path / "fn"
    workdir.mkdir()
    (workdir / "index.js").write_text(
        "exports.handler = async (event) => ({ statusCode: 200, body: 'ok' });\n"
    )
    return workdir


@pytest.fixture
def empty_project(tmp_path: Path) -> Path:
    """Working directory without any recognized entry point."""
    workdir = tmp_path / "empty"
    workdir.mkdir()
    (workdir / "README.md").write_text("nothing to deploy\n")
    return workdir


@pytest.fixture
def request_fn1() -> DeploymentRequest:
    """The fresh-deploy request used throughout the scenarios."""
    return DeploymentRequest(
        function_name="fn1",
        runtime="nodejs18.x",
        handler="index.handler",
        memory_size=128,
        timeout=30,
        region="us-east-1",
        role_name="lambda-basic-execution",
        expose_http=False,
    )
