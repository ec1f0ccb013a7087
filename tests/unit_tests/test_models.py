import dataclasses
import os

import pytest

from nginx_deployer.exceptions import FatalProvisioningFailure, MissingDependency, PreconditionFailure
from nginx_deployer.models import DeploymentRequest, OperationOutcome, Stage


def test_request_is_immutable(make_request):
    request = make_request()
    with pytest.raises(dataclasses.FrozenInstanceError):
        request.stack_name = "other"


def test_request_normalises_region_list(make_request):
    request = make_request(regions=["us-east-1", "eu-west-1"])
    assert request.regions == ("us-east-1", "eu-west-1")
    assert request.is_multi_region


def test_request_requires_a_region(make_request):
    with pytest.raises(ValueError):
        make_request(regions=())


def test_missing_nginx_config_fails_precondition(make_request, tmp_path):
    request = make_request(config_path=str(tmp_path / "missing.conf"))
    with pytest.raises(PreconditionFailure) as exc_info:
        request.validate_local_files()
    assert exc_info.value.stage == Stage.PRECONDITIONS.value
    assert "missing.conf" in exc_info.value.cause


def test_ssl_requires_cert_and_key(make_request, tmp_path):
    cert = tmp_path / "cert.pem"
    cert.write_text("cert")
    request = make_request(enable_ssl=True, cert_path=str(cert), key_path=str(tmp_path / "key.pem"))

    with pytest.raises(PreconditionFailure) as exc_info:
        request.validate_local_files()
    assert "key.pem" in exc_info.value.cause
    assert "cert.pem" not in exc_info.value.cause


def test_ssl_with_both_files_passes(make_request, tmp_path):
    cert = tmp_path / "cert.pem"
    key = tmp_path / "key.pem"
    cert.write_text("cert")
    key.write_text("key")
    make_request(enable_ssl=True, cert_path=str(cert), key_path=str(key)).validate_local_files()


def test_ssl_paths_ignored_when_ssl_disabled(make_request, tmp_path):
    make_request(cert_path=str(tmp_path / "nope.pem"), key_path=str(tmp_path / "nope.key")).validate_local_files()


@pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="root can read anything")
def test_unreadable_key_fails_precondition(make_request, tmp_path):
    cert = tmp_path / "cert.pem"
    key = tmp_path / "key.pem"
    cert.write_text("cert")
    key.write_text("key")
    key.chmod(0)
    request = make_request(enable_ssl=True, cert_path=str(cert), key_path=str(key))

    with pytest.raises(PreconditionFailure):
        request.validate_local_files()


def test_outcome_truthiness():
    assert OperationOutcome.success("uri")
    assert not OperationOutcome.failure("boom", stage="backup")


def test_error_string_names_stage_and_region():
    error = FatalProvisioningFailure("provision-stack", "Stack ended in ROLLBACK_COMPLETE")
    assert str(error) == "provision-stack: Stack ended in ROLLBACK_COMPLETE"

    error.with_region("eu-west-1")
    assert str(error) == "provision-stack [eu-west-1]: Stack ended in ROLLBACK_COMPLETE"


def test_missing_dependency_lists_every_tool():
    error = MissingDependency(["docker", "aws"])
    assert error.missing == ["docker", "aws"]
    assert "docker, aws" in str(error)
