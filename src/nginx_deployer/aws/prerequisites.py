"""
Pre-flight checks run before any mutating call.

Verifies that the external tools the deployer shells out to are installed
and that AWS credentials resolve to a caller identity. Missing tools are
collected into one report so the operator sees the full list at once.
"""

import logging
import shutil
from typing import Callable, Dict, List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, PartialCredentialsError

from nginx_deployer.exceptions import DeploymentError, MissingDependency, Unauthenticated
from nginx_deployer.models import OperationOutcome, Stage

logger = logging.getLogger(__name__)

DEFAULT_REQUIRED_TOOLS = ("docker",)


class PrerequisiteChecker:
    """Checks local tooling and operator credentials."""

    def __init__(self, sts_client, required_tools: Sequence[str] = DEFAULT_REQUIRED_TOOLS,
                 which: Callable[[str], Optional[str]] = shutil.which):
        """
        Args:
            sts_client: boto3 STS client used for the identity lookup
            required_tools: Executables that must be on PATH
            which: Lookup used to probe for executables
        """
        self.sts_client = sts_client
        self.required_tools = list(required_tools)
        self._which = which

    def find_missing_tools(self) -> List[str]:
        return [tool for tool in self.required_tools if self._which(tool) is None]

    def get_caller_identity(self) -> Dict[str, str]:
        """
        Resolve the current caller's identity using STS.

        Raises:
            Unauthenticated: If no usable credentials are configured
        """
        try:
            identity = self.sts_client.get_caller_identity()
        except (NoCredentialsError, PartialCredentialsError) as e:
            raise Unauthenticated(
                f"AWS credentials not configured ({e}). Run 'aws configure' to set up your credentials."
            ) from e
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise Unauthenticated(f"AWS credentials rejected: {error_code} - {e}") from e
        except BotoCoreError as e:
            raise Unauthenticated(f"Could not reach STS to resolve the caller identity: {e}") from e

        logger.info(f"Authenticated as {identity.get('Arn')} (account {identity.get('Account')})")
        return identity

    def verify(self) -> Dict[str, str]:
        """
        Run every check, raising on the first category that fails.

        Returns:
            The caller identity

        Raises:
            MissingDependency: If any required tool is missing
            Unauthenticated: If credentials do not resolve
        """
        missing = self.find_missing_tools()
        if missing:
            raise MissingDependency(missing)
        return self.get_caller_identity()

    def check(self) -> OperationOutcome:
        """Outcome-returning form of :meth:`verify`."""
        try:
            identity = self.verify()
        except DeploymentError as e:
            logger.error(str(e))
            if isinstance(e, MissingDependency):
                logger.error("Please install the missing prerequisites and try again.")
            return OperationOutcome.failure(e.cause, stage=Stage.PREREQUISITES.value, attempts=1, error=e)
        return OperationOutcome.success(identity, stage=Stage.PREREQUISITES.value)
