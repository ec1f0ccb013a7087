# cli.py
import sys
from typing import List, Optional, Tuple

import click
from pydantic import ValidationError

from nginx_deployer.aws.regions import select_region_by_latency
from nginx_deployer.exceptions import DeploymentError
from nginx_deployer.logging_config import configure_logging, log
from nginx_deployer.models import DeploymentRequest, DeploymentResult, RetryPolicy
from nginx_deployer.orchestration.deploy import run_deployment
from nginx_deployer.settings import get_settings


LOG_LEVEL_CHOICES = ["debug", "info", "warn", "error"]


def resolve_regions(region: Tuple[str, ...], regions: Optional[str], auto_region: bool,
                    default_region: str, candidates: List[str]) -> Tuple[str, ...]:
    """Merge -r/--region, --regions and --auto-region into an ordered region list."""
    resolved: List[str] = list(region)
    if regions:
        resolved.extend(r.strip() for r in regions.split(",") if r.strip())
    if auto_region:
        if resolved:
            raise click.UsageError("--auto-region cannot be combined with --region/--regions")
        resolved.append(select_region_by_latency(candidates))
    if not resolved:
        resolved.append(default_region)

    # Keep first occurrence order, drop duplicates
    seen = set()
    return tuple(r for r in resolved if not (r in seen or seen.add(r)))


def print_deployment_info(request: DeploymentRequest, result: DeploymentResult) -> None:
    click.secho("\nDeployment Information:", fg="yellow")
    for context in result.regions:
        click.echo(f"Region: {context.region}")
        click.echo(f"Stack Name: {context.stack_name}")
        click.echo(f"EC2 Instance ID: {context.instance_id}")
        click.echo(f"Load Balancer DNS: {context.endpoint}")
        click.echo("Access your Nginx server at: " + click.style(f"http://{context.endpoint}", fg="green"))
        if request.enable_ssl:
            click.echo("For SSL access: " + click.style(f"https://{context.endpoint}", fg="green"))
    if result.backup:
        click.echo(f"Backup snapshot: {result.backup.snapshot_id} (volume {result.backup.volume_id})")
        if result.backup.policy_id:
            click.echo(f"Lifecycle policy: {result.backup.policy_id}")
    if result.backup_failed:
        click.secho(f"Backup failed: {result.backup_error}", fg="red", err=True)


@click.group()
def cli():
    """Deploy Nginx containers to AWS"""
    pass


@cli.command()
@click.option("-r", "--region", multiple=True, help="AWS region (repeatable, default: $AWS_DEFAULT_REGION or us-west-2)")
@click.option("--regions", help="Comma-separated list of regions to deploy to, in order")
@click.option("--auto-region", is_flag=True, default=False, help="Deploy to the lowest-latency candidate region")
@click.option("-t", "--instance-type", help="EC2 instance type (default: t2.micro)")
@click.option("-c", "--config", "config_path", help="Path to Nginx config file (default: ./nginx.conf)")
@click.option("-n", "--name", "stack_name", help="Stack name for this deployment (default: nginx-stack-<timestamp>)")
@click.option("--cert", "cert_path", help="Path to SSL certificate (default: ./cert.pem)")
@click.option("--key", "key_path", help="Path to SSL key (default: ./key.pem)")
@click.option("-s", "--ssl", "enable_ssl", is_flag=True, default=False, help="Enable SSL (requires cert and key paths)")
@click.option("--backup", "enable_backup", is_flag=True, default=False, help="Snapshot the host volume after deployment")
@click.option("--backup-volume-id", help="Volume to snapshot (default: root volume of the primary instance)")
@click.option("--backup-retention", type=click.IntRange(min=1), help="Keep this many daily snapshots via a lifecycle policy")
@click.option("--log-level", type=click.Choice(LOG_LEVEL_CHOICES, case_sensitive=False), help="Minimum log severity")
@click.option("--max-attempts", type=click.IntRange(min=1), help="Attempts per retryable step")
@click.option("--retry-delay", type=click.FloatRange(min=0), help="Seconds between attempts")
@click.option("--build-context", help="Docker build context (default: .)")
@click.option("--dockerfile", help="Dockerfile relative to the build context")
@click.option("--template", "template_path", type=click.Path(exists=True, dir_okay=False), help="CloudFormation template override")
@click.option("--stack-timeout", type=click.IntRange(min=1), help="Minutes to wait for the stack to become ready")
def deploy(region, regions, auto_region, instance_type, config_path, stack_name, cert_path, key_path,
           enable_ssl, enable_backup, backup_volume_id, backup_retention, log_level, max_attempts,
           retry_delay, build_context, dockerfile, template_path, stack_timeout):
    """Build the Nginx image and deploy it to one or more regions"""
    try:
        settings = get_settings()
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e
    configure_logging(log_level or settings.log_level)

    log("info", "Starting AWS Docker Nginx deployment")

    try:
        resolved_regions = resolve_regions(region, regions, auto_region, settings.aws_region,
                                           settings.candidate_regions)
        default_policy = settings.retry_policy
        request = DeploymentRequest(
            regions=resolved_regions,
            stack_name=stack_name or settings.default_stack_name(),
            instance_type=instance_type or settings.instance_type,
            config_path=config_path or settings.config_path,
            enable_ssl=enable_ssl,
            cert_path=cert_path or settings.cert_path,
            key_path=key_path or settings.key_path,
            enable_backup=enable_backup,
            backup_volume_id=backup_volume_id,
            backup_retention_count=backup_retention or settings.backup_retention_count,
            log_level=(log_level or settings.log_level).upper(),
            build_context=build_context or settings.build_context,
            dockerfile=dockerfile or settings.dockerfile,
            template_path=template_path or settings.template_path,
            image_tag=settings.image_tag,
            retry_policy=RetryPolicy(
                max_attempts=max_attempts or default_policy.max_attempts,
                delay=retry_delay if retry_delay is not None else default_policy.delay,
            ),
            stack_timeout_minutes=stack_timeout or settings.stack_timeout_minutes,
        )
        result = run_deployment(request, settings=settings)
    except DeploymentError as e:
        where = f" [{e.region}]" if e.region else ""
        click.secho(f"Deployment failed at stage '{e.stage}'{where}: {e.cause}", fg="red", err=True)
        sys.exit(1)
    except click.ClickException:
        raise
    except KeyboardInterrupt:
        click.secho("Deployment interrupted", fg="red", err=True)
        sys.exit(130)
    except Exception as e:
        click.secho(f"Deployment failed at stage 'deploy': {e}", fg="red", err=True)
        sys.exit(1)

    print_deployment_info(request, result)
    log("info", "Deployment completed successfully!")


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    print(f"  AWS Region: {settings.aws_region}")
    print(f"  AWS Profile: {settings.aws_profile}")
    print(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    print(f"  Instance Type: {settings.instance_type}")
    print(f"  Stack Name Prefix: {settings.stack_name_prefix}")
    print(f"  Nginx Config: {settings.config_path}")
    print(f"  Template: {settings.template_path or 'packaged'}")
    print(f"  Retry Policy: {settings.retry_max_attempts} attempts, {settings.retry_delay_seconds}s delay")
    print(f"  Stack Timeout: {settings.stack_timeout_minutes} min")
    print(f"  Required Tools: {', '.join(settings.required_tools)}")
    print(f"  Log Level: {settings.log_level}")


if __name__ == "__main__":
    cli()
