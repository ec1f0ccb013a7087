import subprocess

import pytest

from nginx_deployer.exceptions import FatalProvisioningFailure, IdempotentConflict, TransientRemoteFailure
from nginx_deployer.models import Stage
from nginx_deployer.orchestration.provisioner import ResourceProvisioner
from tests.consts import TEST_ENDPOINT, TEST_INSTANCE_ID, TEST_REGION, TEST_REPOSITORY_URI
from tests.fixtures.fakes import FakeBuilder, FakeRegistry, FakeStacks, ScriptedCall


@pytest.fixture
def events():
    return []


def _provisioner(request, events, registry=None, builder=None, stacks=None):
    return ResourceProvisioner(
        request, TEST_REGION,
        registry=registry or FakeRegistry(TEST_REGION, events),
        builder=builder or FakeBuilder(TEST_REGION, events),
        stacks=stacks or FakeStacks(TEST_REGION, events),
    )


def test_happy_path_fills_region_context(make_request, events):
    request = make_request(enable_ssl=True)
    stacks = FakeStacks(TEST_REGION, events)

    context = _provisioner(request, events, stacks=stacks).run()

    repository_uri = TEST_REPOSITORY_URI.format(region=TEST_REGION)
    assert context.repository_uri == repository_uri
    assert context.image_uri == f"{repository_uri}:latest"
    assert context.endpoint == TEST_ENDPOINT
    assert context.instance_id == TEST_INSTANCE_ID
    assert stacks.created_with == (request.stack_name, "t2.micro", context.image_uri, True)
    assert [name for name, _ in events] == [
        "create_repository", "get_repository_uri",
        "build", "get_push_credentials", "login", "tag", "push",
        "create_stack", "wait_until_ready", "get_outputs",
    ]


def test_existing_repository_counts_as_success(make_request, events):
    registry = FakeRegistry(TEST_REGION, events, already_exists=True)

    context = _provisioner(make_request(), events, registry=registry).run()

    assert context.repository_uri == registry.uri
    # the conflict is not retried
    assert [name for name, _ in events].count("create_repository") == 1


def test_repository_without_uri_is_fatal(make_request, events):
    registry = FakeRegistry(TEST_REGION, events, uri="")

    with pytest.raises(FatalProvisioningFailure) as exc_info:
        _provisioner(make_request(), events, registry=registry).run()

    assert exc_info.value.stage == Stage.ENSURE_REGISTRY.value
    assert "build" not in [name for name, _ in events]


def test_repository_lookup_is_retried(make_request, events):
    registry = FakeRegistry(TEST_REGION, events, lookup_failures=2)

    context = _provisioner(make_request(), events, registry=registry).run()

    assert registry.lookup.calls == 3
    assert context.repository_uri == registry.uri


def test_build_failure_is_not_retried(make_request, events):
    builder = FakeBuilder(TEST_REGION, events, build_error=subprocess.CalledProcessError(1, ["docker", "build"]))

    with pytest.raises(FatalProvisioningFailure) as exc_info:
        _provisioner(make_request(), events, builder=builder).run()

    assert exc_info.value.stage == Stage.PUBLISH_IMAGE.value
    assert [name for name, _ in events].count("build") == 1
    assert "push" not in [name for name, _ in events]


def test_push_is_retried_with_fresh_credentials(make_request, events):
    registry = FakeRegistry(TEST_REGION, events)
    builder = FakeBuilder(TEST_REGION, events, push_failures=2)

    _provisioner(make_request(), events, registry=registry, builder=builder).run()

    assert builder.push_call.calls == 3
    assert registry.credential_fetches == 3
    assert [c.password for c in builder.logins] == ["token-1", "token-2", "token-3"]


def test_push_exhaustion_escalates(make_request, events):
    builder = FakeBuilder(TEST_REGION, events, push_failures=10)

    with pytest.raises(TransientRemoteFailure) as exc_info:
        _provisioner(make_request(), events, builder=builder).run()

    assert exc_info.value.stage == Stage.PUBLISH_IMAGE.value
    assert builder.push_call.calls == 3
    assert "create_stack" not in [name for name, _ in events]


def test_stack_submission_is_retried(make_request, events):
    stacks = FakeStacks(TEST_REGION, events, create_failures=1)

    _provisioner(make_request(), events, stacks=stacks).run()

    assert stacks.create_call.calls == 2
    assert [name for name, _ in events].count("wait_until_ready") == 1


def test_stack_conflict_after_lost_response_counts_as_submitted(make_request, events):
    conflict = IdempotentConflict(Stage.PROVISION_STACK.value, "Stack nginx-demo already exists", TEST_REGION)
    stacks = FakeStacks(TEST_REGION, events,
                        create_call=ScriptedCall(RuntimeError("read timeout"), conflict))

    context = _provisioner(make_request(), events, stacks=stacks).run()

    assert stacks.create_call.calls == 2
    assert [name for name, _ in events].count("wait_until_ready") == 1
    assert context.endpoint == TEST_ENDPOINT


def test_preexisting_stack_is_fatal_without_retry(make_request, events):
    conflict = IdempotentConflict(Stage.PROVISION_STACK.value, "Stack nginx-demo already exists", TEST_REGION)
    stacks = FakeStacks(TEST_REGION, events, create_call=ScriptedCall(conflict))

    with pytest.raises(FatalProvisioningFailure) as exc_info:
        _provisioner(make_request(), events, stacks=stacks).run()

    assert exc_info.value.stage == Stage.PROVISION_STACK.value
    assert "already exists" in exc_info.value.cause
    assert stacks.create_call.calls == 1
    assert "wait_until_ready" not in [name for name, _ in events]


def test_stack_not_ready_is_fatal(make_request, events):
    stacks = FakeStacks(TEST_REGION, events, final_status="ROLLBACK_COMPLETE")

    with pytest.raises(FatalProvisioningFailure) as exc_info:
        _provisioner(make_request(), events, stacks=stacks).run()

    assert exc_info.value.stage == Stage.PROVISION_STACK.value
    assert "ROLLBACK_COMPLETE" in exc_info.value.cause
    assert [name for name, _ in events].count("create_stack") == 1
    assert "get_outputs" not in [name for name, _ in events]


@pytest.mark.parametrize("outputs,missing", [
    ({"EC2InstanceId": TEST_INSTANCE_ID}, "LoadBalancerDNS"),
    ({"LoadBalancerDNS": TEST_ENDPOINT, "EC2InstanceId": ""}, "EC2InstanceId"),
])
def test_missing_outputs_after_ready_are_fatal(make_request, events, outputs, missing):
    stacks = FakeStacks(TEST_REGION, events, outputs=outputs)

    with pytest.raises(FatalProvisioningFailure) as exc_info:
        _provisioner(make_request(), events, stacks=stacks).run()

    assert exc_info.value.stage == Stage.SURFACE_INFO.value
    assert missing in exc_info.value.cause
