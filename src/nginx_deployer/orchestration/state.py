"""
Deployment progress tracking.
Records per-region status, current stage and timings for the final summary.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from nginx_deployer.models import RegionStatus

logger = logging.getLogger(__name__)


@dataclass
class RegionState:
    """Progress of a single region pass."""
    region: str
    status: str = RegionStatus.PENDING.value
    current_stage: Optional[str] = None
    completed_stages: List[str] = field(default_factory=list)
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    duration_seconds: Optional[float] = None
    resources: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None


class DeploymentTracker:
    """Tracks the state of every requested region in one deployment."""

    def __init__(self, deployment_id: str, regions: List[str]):
        self.deployment_id = deployment_id
        self.started_at = time.time()
        self.regions: Dict[str, RegionState] = {
            region: RegionState(region=region) for region in regions
        }

    def _get(self, region: str) -> RegionState:
        if region not in self.regions:
            raise ValueError(f"Region {region} is not part of deployment {self.deployment_id}")
        return self.regions[region]

    def start_region(self, region: str) -> None:
        state = self._get(region)
        state.status = RegionStatus.IN_PROGRESS.value
        state.started_at = time.time()
        logger.info(f"🚀 Region pass started: {region}")

    def start_stage(self, region: str, stage: str) -> None:
        state = self._get(region)
        if state.current_stage:
            state.completed_stages.append(state.current_stage)
        state.current_stage = stage

    def complete_region(self, region: str, resources: Optional[Dict[str, Any]] = None) -> None:
        state = self._get(region)
        if state.current_stage:
            state.completed_stages.append(state.current_stage)
            state.current_stage = None
        state.status = RegionStatus.DONE.value
        state.completed_at = time.time()
        state.duration_seconds = state.completed_at - (state.started_at or state.completed_at)
        state.resources.update(resources or {})
        logger.info(f"✅ Region pass completed: {region} in {state.duration_seconds:.1f}s")

    def fail_region(self, region: str, error_message: str) -> None:
        state = self._get(region)
        state.status = RegionStatus.FAILED.value
        state.completed_at = time.time()
        state.duration_seconds = state.completed_at - (state.started_at or state.completed_at)
        state.error_message = error_message
        logger.error(f"❌ Region pass failed: {region} at stage {state.current_stage}: {error_message}")

    def status_of(self, region: str) -> str:
        return self._get(region).status

    def summary(self) -> Dict[str, Any]:
        """Get a summary of the deployment."""
        return {
            "deployment_id": self.deployment_id,
            "duration_seconds": time.time() - self.started_at,
            "regions": {
                region: {
                    "status": state.status,
                    "stage": state.current_stage,
                    "completed_stages": list(state.completed_stages),
                    "duration_seconds": state.duration_seconds,
                    "resources": dict(state.resources),
                    "error": state.error_message,
                }
                for region, state in self.regions.items()
            }
        }

    def log_summary(self) -> None:
        for region, state in self.regions.items():
            line = f"  {region}: {state.status}"
            if state.duration_seconds is not None:
                line += f" ({state.duration_seconds:.1f}s)"
            if state.error_message:
                line += f" - {state.error_message}"
            logger.info(line)
