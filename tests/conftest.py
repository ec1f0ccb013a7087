import os

import boto3
import pytest
from moto import mock_aws

from nginx_deployer.models import DeploymentRequest, RetryPolicy
from tests.consts import TEST_REGION, TEST_STACK_NAME


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so nothing can reach a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_REGION)
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)


@pytest.fixture
def mocked_aws(aws_credentials):
    with mock_aws():
        yield


@pytest.fixture
def ecr_client(mocked_aws):
    return boto3.client("ecr", region_name=TEST_REGION)


@pytest.fixture
def nginx_conf(tmp_path):
    path = tmp_path / "nginx.conf"
    path.write_text("events {}\nhttp { server { listen 80; } }\n")
    return str(path)


@pytest.fixture
def make_request(nginx_conf):
    """Build a DeploymentRequest with fast retries and a real nginx.conf."""
    def _make(**overrides):
        values = dict(
            regions=(TEST_REGION,),
            stack_name=TEST_STACK_NAME,
            config_path=nginx_conf,
            retry_policy=RetryPolicy(max_attempts=3, delay=0),
        )
        values.update(overrides)
        return DeploymentRequest(**values)
    return _make


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    """Retries in tests never actually sleep."""
    sleeps = []
    monkeypatch.setattr("nginx_deployer.utils.decorators.time.sleep", sleeps.append)
    return sleeps


@pytest.fixture(autouse=True)
def clear_settings_cache():
    from nginx_deployer.settings import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
