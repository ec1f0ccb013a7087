from nginx_deployer.orchestration.cleanup import CleanupHandler
from nginx_deployer.orchestration.deploy import run_deployment
from nginx_deployer.orchestration.orchestrator import RegionOrchestrator
from nginx_deployer.orchestration.provisioner import ResourceProvisioner

__all__ = ["CleanupHandler", "RegionOrchestrator", "ResourceProvisioner", "run_deployment"]
