"""Sequential multi-region orchestration."""
import logging
from typing import Callable, List, Optional

from nginx_deployer.exceptions import DeploymentError, FatalProvisioningFailure
from nginx_deployer.models import DeploymentRequest, RegionContext, RegionStatus
from nginx_deployer.orchestration.state import DeploymentTracker

logger = logging.getLogger(__name__)

ProvisionerFactory = Callable[[str, DeploymentTracker], "ResourceProvisioner"]


class RegionOrchestrator:
    """Runs one provisioner pass per requested region, one region at a time.

    The first region that fails stops the run and its error is re-raised.
    Later regions are never started. Regions that already finished are left
    in place; there is no automatic rollback.
    """

    def __init__(self, request: DeploymentRequest, provisioner_factory: ProvisionerFactory,
                 tracker: Optional[DeploymentTracker] = None):
        self.request = request
        self.provisioner_factory = provisioner_factory
        self.tracker = tracker or DeploymentTracker(request.stack_name, list(request.regions))

    def run(self) -> List[RegionContext]:
        completed: List[RegionContext] = []
        total = len(self.request.regions)

        for index, region in enumerate(self.request.regions, start=1):
            logger.info(f"Deploying {self.request.stack_name} to {region} ({index}/{total})")
            self.tracker.start_region(region)
            provisioner = self.provisioner_factory(region, self.tracker)

            try:
                context = provisioner.run()
            except DeploymentError as e:
                if not e.region:
                    e.with_region(region)
                self.tracker.fail_region(region, e.cause)
                raise
            except Exception as e:
                stage = getattr(provisioner, "current_stage", None) or "provision"
                self.tracker.fail_region(region, str(e))
                raise FatalProvisioningFailure(str(stage), f"Unexpected error: {e}", region) from e

            context.status = RegionStatus.DONE
            self.tracker.complete_region(region, {
                "repository_uri": context.repository_uri,
                "image_uri": context.image_uri,
                "endpoint": context.endpoint,
                "instance_id": context.instance_id,
            })
            completed.append(context)

        return completed
