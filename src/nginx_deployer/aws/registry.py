"""ECR registry operations."""
import base64
import logging

from botocore.exceptions import ClientError

from nginx_deployer.exceptions import IdempotentConflict, TransientRemoteFailure
from nginx_deployer.models import RegistryCredentials, Stage

logger = logging.getLogger(__name__)


class ECRRegistry:
    """Repository creation, lookup and push credentials for one region."""

    def __init__(self, ecr_client, region: str):
        self.ecr_client = ecr_client
        self.region = region

    def create_repository(self, repository_name: str) -> str:
        """Create an ECR repository.

        Raises:
            IdempotentConflict: If the repository already exists
        """
        try:
            response = self.ecr_client.create_repository(
                repositoryName=repository_name,
                imageScanningConfiguration={'scanOnPush': True},
                tags=[
                    {'Key': 'Project', 'Value': repository_name},
                    {'Key': 'ManagedBy', 'Value': 'nginx-deployer'}
                ]
            )
        except self.ecr_client.exceptions.RepositoryAlreadyExistsException as e:
            raise IdempotentConflict(
                Stage.ENSURE_REGISTRY.value,
                f"ECR repository {repository_name} already exists",
                self.region,
            ) from e

        uri = response['repository']['repositoryUri']
        logger.info(f"Created ECR repository: {uri}")
        return uri

    def get_repository_uri(self, repository_name: str) -> str:
        """Look up the repository URI, returning '' when it is not reported."""
        response = self.ecr_client.describe_repositories(repositoryNames=[repository_name])
        repositories = response.get('repositories', [])
        if not repositories:
            return ''
        return repositories[0].get('repositoryUri', '')

    def get_push_credentials(self) -> RegistryCredentials:
        """Fetch short-lived docker credentials for this region's registry.

        Always calls ECR; the token is never cached.
        """
        try:
            token_response = self.ecr_client.get_authorization_token()
        except ClientError as e:
            raise TransientRemoteFailure(
                Stage.PUBLISH_IMAGE.value, f"Could not obtain ECR authorization token: {e}", self.region
            ) from e

        token_data = token_response['authorizationData'][0]
        token = base64.b64decode(token_data['authorizationToken']).decode('utf-8')
        username, password = token.split(':', 1)
        return RegistryCredentials(
            username=username,
            password=password,
            endpoint=token_data['proxyEndpoint'],
        )
