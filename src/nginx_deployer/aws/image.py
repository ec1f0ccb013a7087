"""Docker image build and push through the docker CLI."""
import logging
import os
import subprocess
from typing import Dict, List, Optional

from nginx_deployer.models import RegistryCredentials

logger = logging.getLogger(__name__)


class DockerImageBuilder:
    """Thin wrapper over ``docker build/login/tag/push``.

    When ``docker_config_dir`` is set, every command runs with
    ``DOCKER_CONFIG`` pointing at it, so registry logins are written there
    instead of the operator's ~/.docker.
    """

    def __init__(self, build_context: str = ".", dockerfile: str = "Dockerfile",
                 docker_config_dir: Optional[str] = None):
        self.build_context = build_context
        self.dockerfile = dockerfile
        self.docker_config_dir = docker_config_dir

    def _env(self) -> Optional[Dict[str, str]]:
        if not self.docker_config_dir:
            return None
        env = dict(os.environ)
        env['DOCKER_CONFIG'] = self.docker_config_dir
        return env

    def _run(self, args: List[str], input: Optional[bytes] = None,
             cwd: Optional[str] = None) -> subprocess.CompletedProcess:
        logger.debug(f"Running: {' '.join(args)}")
        return subprocess.run(args, input=input, check=True, cwd=cwd, env=self._env())

    def build(self, local_tag: str) -> None:
        """Build the image from the build context."""
        dockerfile_path = os.path.join(self.build_context, self.dockerfile)
        logger.info(f"Building Docker image {local_tag} from {dockerfile_path}")
        self._run(["docker", "build", "-t", local_tag, "-f", dockerfile_path, self.build_context])

    def login(self, credentials: RegistryCredentials) -> None:
        """Log into a registry, passing the password on stdin."""
        logger.info(f"Logging into registry {credentials.endpoint}")
        self._run([
            "docker", "login", "--username", credentials.username, "--password-stdin",
            credentials.endpoint
        ], input=credentials.password.encode())

    def tag(self, local_tag: str, remote_ref: str) -> None:
        self._run(["docker", "tag", local_tag, remote_ref])

    def push(self, remote_ref: str) -> None:
        logger.info(f"Pushing image to {remote_ref}")
        self._run(["docker", "push", remote_ref])
