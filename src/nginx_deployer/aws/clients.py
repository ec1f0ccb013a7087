"""AWS session and client management."""
import logging
from typing import Any, Dict, Optional, Tuple

import boto3

from nginx_deployer.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AWSClientManager:
    """Creates and caches boto3 clients per (service, region).

    One manager is created per deployment run and handed to the components
    that need clients, so no client state outlives the run.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.endpoint_url = self.settings.aws_endpoint_url
        self.profile = self.settings.aws_profile
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[Tuple[str, str], Any] = {}

        logger.debug("Initializing AWSClientManager")
        logger.debug(f"  Profile: {self.profile or 'default chain'}")
        logger.debug(f"  Endpoint: {self.endpoint_url or 'AWS'}")

    @property
    def session(self) -> boto3.Session:
        if self._session is None:
            if self.profile:
                self._session = boto3.Session(profile_name=self.profile)
            else:
                self._session = boto3.Session()
        return self._session

    def get_client(self, service_name: str, region: Optional[str] = None) -> Any:
        """Get or create an AWS service client for a region."""
        region = region or self.settings.aws_region
        key = (service_name, region)
        if key in self._clients:
            return self._clients[key]

        client_kwargs = {'region_name': region}
        if self.endpoint_url:
            client_kwargs['endpoint_url'] = self.endpoint_url

        try:
            client = self.session.client(service_name, **client_kwargs)
        except Exception as e:
            logger.error(f"Error creating {service_name} client in {region}: {str(e)}")
            raise

        self._clients[key] = client
        logger.debug(f"Created {service_name} client for {region}")
        return client

    def clear_clients(self):
        """Clear all cached clients."""
        self._clients.clear()
        logger.debug("Cleared all AWS clients")

    # Convenience accessors for the services the deployer talks to

    def sts(self, region: Optional[str] = None):
        return self.get_client('sts', region)

    def ecr(self, region: Optional[str] = None):
        return self.get_client('ecr', region)

    def cloudformation(self, region: Optional[str] = None):
        return self.get_client('cloudformation', region)

    def ec2(self, region: Optional[str] = None):
        return self.get_client('ec2', region)

    def dlm(self, region: Optional[str] = None):
        return self.get_client('dlm', region)
