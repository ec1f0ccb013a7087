"""CloudFormation stack provider for the Nginx workload."""
import logging
from pathlib import Path
from typing import Dict, Optional

from botocore.exceptions import ClientError, WaiterError

from nginx_deployer.exceptions import IdempotentConflict
from nginx_deployer.models import Stage

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = Path(__file__).parent.parent / "templates" / "nginx-stack.yaml"
READY_STATUS = "CREATE_COMPLETE"
WAITER_DELAY_SECONDS = 15

ENDPOINT_OUTPUT = "LoadBalancerDNS"
INSTANCE_OUTPUT = "EC2InstanceId"


class CloudFormationStackProvider:
    """Creates the stack, waits for it and reads its outputs."""

    def __init__(self, cloudformation_client, region: str, template_path: Optional[str] = None):
        self.cf_client = cloudformation_client
        self.region = region
        self.template_path = Path(template_path) if template_path else DEFAULT_TEMPLATE

    def load_template(self) -> str:
        with open(self.template_path, 'r') as f:
            return f.read()

    def create_stack(self, stack_name: str, instance_type: str, image_uri: str,
                     enable_ssl: bool) -> str:
        """Submit a create-stack request and return the stack id."""
        try:
            response = self.cf_client.create_stack(
                StackName=stack_name,
                TemplateBody=self.load_template(),
                Parameters=[
                    {'ParameterKey': 'InstanceType', 'ParameterValue': instance_type},
                    {'ParameterKey': 'ECRImageURI', 'ParameterValue': image_uri},
                    {'ParameterKey': 'EnableSSL', 'ParameterValue': 'true' if enable_ssl else 'false'},
                ],
                Capabilities=['CAPABILITY_IAM'],
                Tags=[
                    {'Key': 'ManagedBy', 'Value': 'nginx-deployer'},
                ]
            )
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'AlreadyExistsException':
                raise IdempotentConflict(
                    Stage.PROVISION_STACK.value,
                    f"Stack {stack_name} already exists",
                    self.region,
                ) from e
            raise
        stack_id = response['StackId']
        logger.info(f"Stack CREATE initiated in {self.region}. Stack ID: {stack_id}")
        return stack_id

    def describe_status(self, stack_name: str) -> str:
        response = self.cf_client.describe_stacks(StackName=stack_name)
        return response['Stacks'][0]['StackStatus']

    def wait_until_ready(self, stack_name: str, timeout_minutes: int = 30) -> str:
        """Block until the stack leaves its in-progress state.

        The wait is bounded by ``timeout_minutes``. Returns the last known
        stack status; callers compare it with ``READY_STATUS``.
        """
        max_attempts = max(1, (timeout_minutes * 60) // WAITER_DELAY_SECONDS)
        waiter = self.cf_client.get_waiter('stack_create_complete')
        logger.info(f"Waiting for stack {stack_name} creation to complete (up to {timeout_minutes} min)...")

        try:
            waiter.wait(
                StackName=stack_name,
                WaiterConfig={'Delay': WAITER_DELAY_SECONDS, 'MaxAttempts': max_attempts}
            )
        except WaiterError as e:
            logger.error(f"Stack {stack_name} did not reach {READY_STATUS}: {e}")

        try:
            status = self.describe_status(stack_name)
        except ClientError as e:
            logger.error(f"Could not describe stack {stack_name}: {e}")
            return "UNKNOWN"

        logger.info(f"Stack {stack_name} status: {status}")
        return status

    def get_outputs(self, stack_name: str) -> Dict[str, str]:
        """Get stack outputs as an OutputKey -> OutputValue mapping."""
        response = self.cf_client.describe_stacks(StackName=stack_name)
        stack = response['Stacks'][0]

        outputs = {}
        for output in stack.get('Outputs', []):
            outputs[output['OutputKey']] = output.get('OutputValue', '')
        return outputs
