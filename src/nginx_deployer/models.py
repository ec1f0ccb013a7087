"""Deployment data model: request, per-region context and step outcomes."""
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

from nginx_deployer.exceptions import PreconditionFailure


class Stage(str, Enum):
    """Named deployment stages, in the order they run."""
    PREREQUISITES = "prerequisites"
    PRECONDITIONS = "preconditions"
    ENSURE_REGISTRY = "ensure-registry"
    PUBLISH_IMAGE = "publish-image"
    PROVISION_STACK = "provision-stack"
    SURFACE_INFO = "surface-info"
    BACKUP = "backup"

    def __str__(self) -> str:
        return self.value


class RegionStatus(str, Enum):
    """Lifecycle of a single region pass."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt ceiling and fixed delay between attempts."""
    max_attempts: int = 3
    delay: float = 5.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must not be negative, got {self.delay}")


@dataclass(frozen=True)
class OperationOutcome:
    """Result of one provisioning step."""
    succeeded: bool
    value: Any = None
    stage: Optional[str] = None
    cause: Optional[str] = None
    attempts: int = 0
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: Any = None, stage: Optional[str] = None,
                attempts: int = 1) -> "OperationOutcome":
        return cls(succeeded=True, value=value, stage=stage, attempts=attempts)

    @classmethod
    def failure(cls, cause: str, stage: Optional[str] = None, attempts: int = 0,
                error: Optional[BaseException] = None) -> "OperationOutcome":
        return cls(succeeded=False, stage=stage, cause=cause,
                   attempts=attempts, error=error)

    def __bool__(self) -> bool:
        return self.succeeded


@dataclass(frozen=True)
class DeploymentRequest:
    """Immutable configuration resolved once at startup.

    Built from CLI options layered over ``Settings`` and passed explicitly
    to every component. Nothing mutates it after construction.
    """
    regions: Tuple[str, ...]
    stack_name: str
    instance_type: str = "t2.micro"
    config_path: str = "./nginx.conf"
    enable_ssl: bool = False
    cert_path: str = "./cert.pem"
    key_path: str = "./key.pem"
    enable_backup: bool = False
    backup_volume_id: Optional[str] = None
    backup_retention_count: Optional[int] = None
    log_level: str = "INFO"
    build_context: str = "."
    dockerfile: str = "Dockerfile"
    template_path: Optional[str] = None
    image_tag: str = "latest"
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    stack_timeout_minutes: int = 30

    def __post_init__(self):
        if not self.regions:
            raise ValueError("At least one region is required")
        # Normalise lists passed by callers into a tuple
        object.__setattr__(self, "regions", tuple(self.regions))

    @property
    def is_multi_region(self) -> bool:
        return len(self.regions) > 1

    def validate_local_files(self) -> None:
        """Check local preconditions before any remote call.

        Raises:
            PreconditionFailure: If the Nginx config is missing, or SSL is
                enabled and the certificate or key is missing or unreadable.
        """
        if not os.path.isfile(self.config_path):
            raise PreconditionFailure(f"Nginx configuration file not found: {self.config_path}")

        if self.enable_ssl:
            missing = [
                path for path in (self.cert_path, self.key_path)
                if not (os.path.isfile(path) and os.access(path, os.R_OK))
            ]
            if missing:
                raise PreconditionFailure(
                    "SSL is enabled but certificate or key is missing or unreadable: "
                    + ", ".join(missing)
                )


@dataclass
class RegionContext:
    """Mutable state of one region pass."""
    region: str
    stack_name: str
    status: RegionStatus = RegionStatus.PENDING
    repository_uri: Optional[str] = None
    image_uri: Optional[str] = None
    endpoint: Optional[str] = None
    instance_id: Optional[str] = None


@dataclass(frozen=True)
class RegistryCredentials:
    """Short-lived docker login credentials for a registry endpoint."""
    username: str
    password: str
    endpoint: str

    def __repr__(self) -> str:
        return f"RegistryCredentials(username={self.username!r}, endpoint={self.endpoint!r})"


@dataclass(frozen=True)
class BackupResult:
    volume_id: str
    snapshot_id: str
    policy_id: Optional[str] = None


@dataclass
class DeploymentResult:
    """Summary of a finished run."""
    regions: List[RegionContext] = field(default_factory=list)
    backup: Optional[BackupResult] = None
    backup_error: Optional[str] = None

    @property
    def backup_failed(self) -> bool:
        return self.backup_error is not None
