"""Per-region provisioning: registry, image, stack, deployment info."""
import logging
from typing import Optional

from nginx_deployer.aws.stack import ENDPOINT_OUTPUT, INSTANCE_OUTPUT, READY_STATUS
from nginx_deployer.exceptions import (
    FatalProvisioningFailure,
    IdempotentConflict,
    TransientRemoteFailure,
)
from nginx_deployer.models import DeploymentRequest, RegionContext, Stage
from nginx_deployer.orchestration.state import DeploymentTracker
from nginx_deployer.utils.decorators import log_operation, retry_operation

logger = logging.getLogger(__name__)


class ResourceProvisioner:
    """
    Runs the ordered provisioning stages for one region.

    Stages run strictly in order: ensure-registry, publish-image,
    provision-stack, surface-info. Remote calls that can fail transiently
    are retried with the request's retry policy. The image build and the
    stack readiness wait are never retried. Any unrecoverable failure
    raises a ``DeploymentError`` naming the stage, which ends the pass.
    """

    def __init__(self, request: DeploymentRequest, region: str, registry, builder, stacks,
                 tracker: Optional[DeploymentTracker] = None):
        self.request = request
        self.region = region
        self.registry = registry
        self.builder = builder
        self.stacks = stacks
        self.tracker = tracker
        self.current_stage: Optional[Stage] = None

    @property
    def policy(self):
        return self.request.retry_policy

    def _enter(self, stage: Stage) -> None:
        self.current_stage = stage
        if self.tracker:
            self.tracker.start_stage(self.region, stage.value)
        logger.info(f"[{self.region}] {stage.value}")

    def _fatal(self, cause: str) -> FatalProvisioningFailure:
        return FatalProvisioningFailure(self.current_stage.value, cause, self.region)

    def run(self) -> RegionContext:
        context = RegionContext(region=self.region, stack_name=self.request.stack_name)
        self.ensure_registry(context)
        self.publish_image(context)
        self.provision_stack(context)
        self.surface_info(context)
        return context

    @log_operation("Ensure ECR repository")
    def ensure_registry(self, context: RegionContext) -> None:
        self._enter(Stage.ENSURE_REGISTRY)
        repository_name = context.stack_name

        def create_repository():
            try:
                return self.registry.create_repository(repository_name)
            except IdempotentConflict as e:
                logger.info(f"{e.cause}, reusing it")
                return None

        created = retry_operation(create_repository, self.policy, stage=Stage.ENSURE_REGISTRY.value,
                                  description=f"create ECR repository {repository_name}")
        if not created:
            # The lookup below decides whether the repository is usable
            logger.warning(f"Repository creation did not succeed ({created.cause}); looking it up anyway")

        lookup = retry_operation(lambda: self.registry.get_repository_uri(repository_name), self.policy,
                                 stage=Stage.ENSURE_REGISTRY.value,
                                 description=f"describe ECR repository {repository_name}")
        if not lookup:
            raise self._fatal(f"Could not resolve URI of ECR repository {repository_name}: {lookup.cause}")
        if not lookup.value:
            raise self._fatal(f"ECR repository {repository_name} reported no URI")

        context.repository_uri = lookup.value
        logger.info(f"ECR repository ready: {context.repository_uri}")

    @log_operation("Build and push image")
    def publish_image(self, context: RegionContext) -> None:
        self._enter(Stage.PUBLISH_IMAGE)
        local_tag = context.stack_name
        remote_ref = f"{context.repository_uri}:{self.request.image_tag}"

        try:
            self.builder.build(local_tag)
        except Exception as e:
            raise self._fatal(f"Docker build failed: {e}") from e

        def login_and_push():
            # Fresh token on every attempt; ECR tokens expire
            credentials = self.registry.get_push_credentials()
            self.builder.login(credentials)
            self.builder.tag(local_tag, remote_ref)
            self.builder.push(remote_ref)

        pushed = retry_operation(login_and_push, self.policy, stage=Stage.PUBLISH_IMAGE.value,
                                 description=f"push {remote_ref}")
        if not pushed:
            raise TransientRemoteFailure(
                Stage.PUBLISH_IMAGE.value,
                f"Image push failed after {pushed.attempts} attempts: {pushed.cause}",
                self.region,
            ) from pushed.error

        context.image_uri = remote_ref

    @log_operation("Provision CloudFormation stack")
    def provision_stack(self, context: RegionContext) -> None:
        self._enter(Stage.PROVISION_STACK)
        request = self.request

        attempts = []
        conflicts = []

        def submit_stack():
            attempts.append(1)
            try:
                return self.stacks.create_stack(context.stack_name, request.instance_type,
                                                context.image_uri, request.enable_ssl)
            except IdempotentConflict as e:
                if len(attempts) == 1:
                    # Stack predates this run; retrying cannot help
                    conflicts.append(e)
                else:
                    # An earlier attempt reached CloudFormation but its response was lost
                    logger.info(f"{e.cause}, treating the earlier attempt as submitted")
                return None

        submitted = retry_operation(
            submit_stack, self.policy, stage=Stage.PROVISION_STACK.value,
            description=f"create stack {context.stack_name}",
        )
        if conflicts:
            raise self._fatal(
                f"{conflicts[0].cause} before this deployment; choose another stack name"
            ) from conflicts[0]
        if not submitted:
            raise TransientRemoteFailure(
                Stage.PROVISION_STACK.value,
                f"Stack submission failed after {submitted.attempts} attempts: {submitted.cause}",
                self.region,
            ) from submitted.error

        try:
            status = self.stacks.wait_until_ready(context.stack_name, request.stack_timeout_minutes)
        except Exception as e:
            raise self._fatal(f"Waiting for stack {context.stack_name} failed: {e}") from e

        if status != READY_STATUS:
            raise self._fatal(
                f"Stack {context.stack_name} ended in {status}. "
                "Please check the AWS CloudFormation console for details."
            )

    def surface_info(self, context: RegionContext) -> None:
        self._enter(Stage.SURFACE_INFO)
        try:
            outputs = self.stacks.get_outputs(context.stack_name)
        except Exception as e:
            raise self._fatal(f"Failed to fetch deployment details: {e}") from e

        endpoint = outputs.get(ENDPOINT_OUTPUT)
        instance_id = outputs.get(INSTANCE_OUTPUT)
        if not endpoint or not instance_id:
            missing = [key for key, value in ((ENDPOINT_OUTPUT, endpoint), (INSTANCE_OUTPUT, instance_id))
                       if not value]
            raise self._fatal(
                f"Stack {context.stack_name} is ready but missing outputs: {', '.join(missing)}"
            )

        context.endpoint = endpoint
        context.instance_id = instance_id
        logger.info(f"[{self.region}] Stack Name: {context.stack_name}")
        logger.info(f"[{self.region}] EC2 Instance ID: {instance_id}")
        logger.info(f"[{self.region}] Load Balancer DNS: {endpoint}")
