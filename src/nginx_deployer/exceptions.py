"""Error taxonomy for deployment stages.

Every error carries the stage it was raised from so the CLI can name the
offending stage in its final error line.
"""
from typing import Optional, Sequence


class DeploymentError(Exception):
    """Base class for all deployment failures."""

    def __init__(self, stage: str, cause: str, region: Optional[str] = None):
        self.stage = str(stage)
        self.cause = cause
        self.region = region
        super().__init__(self.__str__())

    def __str__(self) -> str:
        where = f"{self.stage} [{self.region}]" if self.region else self.stage
        return f"{where}: {self.cause}"

    def with_region(self, region: str) -> "DeploymentError":
        """Attach the region the failure happened in."""
        self.region = region
        self.args = (self.__str__(),)
        return self


class MissingDependency(DeploymentError):
    """One or more required external tools are not installed."""

    def __init__(self, missing: Sequence[str], stage: str = "prerequisites"):
        self.missing = list(missing)
        super().__init__(stage, f"Missing prerequisites: {', '.join(self.missing)}")


class Unauthenticated(DeploymentError):
    """Operator credentials could not be resolved."""

    def __init__(self, cause: str, stage: str = "prerequisites"):
        super().__init__(stage, cause)


class PreconditionFailure(DeploymentError):
    """A required local file or option is missing."""

    def __init__(self, cause: str, stage: str = "preconditions"):
        super().__init__(stage, cause)


class TransientRemoteFailure(DeploymentError):
    """A remote call kept failing after the retry budget was spent."""


class IdempotentConflict(DeploymentError):
    """The resource already exists. Callers treat this as success."""


class FatalProvisioningFailure(DeploymentError):
    """A provisioning stage failed in a way retrying cannot fix."""


class BackupFailure(DeploymentError):
    """Snapshot or lifecycle policy registration failed."""

    def __init__(self, cause: str, stage: str = "backup"):
        super().__init__(stage, cause)
