"""End-to-end deployment run: preconditions, prerequisites, regions, backup."""
import logging
from typing import Callable, Optional

from nginx_deployer.aws.backup import BackupManager
from nginx_deployer.aws.clients import AWSClientManager
from nginx_deployer.aws.image import DockerImageBuilder
from nginx_deployer.aws.prerequisites import PrerequisiteChecker
from nginx_deployer.aws.registry import ECRRegistry
from nginx_deployer.aws.stack import CloudFormationStackProvider
from nginx_deployer.exceptions import BackupFailure
from nginx_deployer.models import DeploymentRequest, DeploymentResult, RegionContext
from nginx_deployer.orchestration.cleanup import CleanupHandler
from nginx_deployer.orchestration.orchestrator import ProvisionerFactory, RegionOrchestrator
from nginx_deployer.orchestration.provisioner import ResourceProvisioner
from nginx_deployer.orchestration.state import DeploymentTracker
from nginx_deployer.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def make_provisioner_factory(request: DeploymentRequest, clients: AWSClientManager,
                             docker_config_dir: Optional[str] = None) -> ProvisionerFactory:
    """Build the per-region provisioner factory backed by real AWS clients."""
    def factory(region: str, tracker: DeploymentTracker) -> ResourceProvisioner:
        return ResourceProvisioner(
            request,
            region,
            registry=ECRRegistry(clients.ecr(region), region),
            builder=DockerImageBuilder(request.build_context, request.dockerfile, docker_config_dir),
            stacks=CloudFormationStackProvider(clients.cloudformation(region), region,
                                               request.template_path),
            tracker=tracker,
        )
    return factory


def run_backup(request: DeploymentRequest, context: RegionContext,
               backup_manager: BackupManager, settings: Settings) -> DeploymentResult:
    """Back up the primary region's volume; failures are recorded, not raised."""
    result = DeploymentResult()
    try:
        volume_id = request.backup_volume_id or backup_manager.find_root_volume(context.instance_id)
        logger.info(f"Starting backup of volume {volume_id} in {context.region}")
        result.backup = backup_manager.enable_backup(
            volume_id,
            retention_count=request.backup_retention_count,
            role_arn=settings.backup_role_arn,
        )
    except Exception as e:
        failure = e if isinstance(e, BackupFailure) else BackupFailure(f"Unexpected backup error: {e}")
        failure.with_region(context.region)
        logger.error(f"Backup failed ({failure}). The deployment itself succeeded.")
        result.backup_error = str(failure)
    return result


def run_deployment(request: DeploymentRequest,
                   settings: Optional[Settings] = None,
                   clients: Optional[AWSClientManager] = None,
                   checker: Optional[PrerequisiteChecker] = None,
                   provisioner_factory: Optional[ProvisionerFactory] = None,
                   backup_manager_factory: Optional[Callable[[str, str], BackupManager]] = None,
                   ) -> DeploymentResult:
    """
    Run a full deployment for ``request``.

    Local preconditions are checked before anything touches AWS, then the
    prerequisite gate runs, then every region is provisioned in order.
    Backup runs last and only when every region succeeded.

    Args:
        request: Resolved deployment configuration
        settings: Settings instance (cached settings when None)
        clients: Client manager (created from settings when None)
        checker: Prerequisite checker override
        provisioner_factory: ``(region, tracker) -> provisioner`` override
        backup_manager_factory: ``(region, account_id) -> BackupManager`` override

    Returns:
        DeploymentResult with the region contexts and backup outcome

    Raises:
        DeploymentError: On any fatal failure, naming the stage
    """
    settings = settings or get_settings()

    with CleanupHandler() as cleanup:
        request.validate_local_files()

        if clients is None:
            clients = AWSClientManager(settings)
            cleanup.register(clients.clear_clients)
        primary_region = request.regions[0]
        checker = checker or PrerequisiteChecker(clients.sts(primary_region), settings.required_tools)
        identity = checker.verify()

        if provisioner_factory is None:
            docker_config_dir = cleanup.temporary_directory(prefix="nginx-deployer-docker-")
            provisioner_factory = make_provisioner_factory(request, clients, docker_config_dir)

        tracker = DeploymentTracker(request.stack_name, list(request.regions))
        orchestrator = RegionOrchestrator(request, provisioner_factory, tracker)
        try:
            contexts = orchestrator.run()
        finally:
            logger.info("Deployment summary:")
            tracker.log_summary()

        result = DeploymentResult(regions=contexts)

        if request.enable_backup:
            if backup_manager_factory is None:
                def backup_manager_factory(region, account_id):
                    return BackupManager(clients.ec2(region), clients.dlm(region), account_id)
            primary = contexts[0]
            manager = backup_manager_factory(primary.region, identity.get('Account'))
            backup = run_backup(request, primary, manager, settings)
            result.backup = backup.backup
            result.backup_error = backup.backup_error

        return result
