"""
EBS backups for a deployed Nginx host.

Takes a one-off snapshot of a volume and, optionally, registers a Data
Lifecycle Manager policy that keeps taking daily snapshots.
"""

import logging
from datetime import datetime
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from nginx_deployer.exceptions import BackupFailure
from nginx_deployer.models import BackupResult

logger = logging.getLogger(__name__)

BACKUP_TAG_KEY = "nginx-deployer:backup"
DEFAULT_DLM_ROLE = "AWSDataLifecycleManagerDefaultRole"


class BackupManager:
    """Snapshot and lifecycle-policy operations for one region."""

    def __init__(self, ec2_client, dlm_client=None, account_id: Optional[str] = None):
        self.ec2_client = ec2_client
        self.dlm_client = dlm_client
        self.account_id = account_id

    def find_root_volume(self, instance_id: str) -> str:
        """Return the root EBS volume id of an instance.

        Raises:
            BackupFailure: If the instance or its root volume cannot be found
        """
        try:
            response = self.ec2_client.describe_instances(InstanceIds=[instance_id])
        except (ClientError, BotoCoreError) as e:
            raise BackupFailure(f"Could not describe instance {instance_id}: {e}") from e

        for reservation in response.get('Reservations', []):
            for instance in reservation.get('Instances', []):
                root_device = instance.get('RootDeviceName')
                for mapping in instance.get('BlockDeviceMappings', []):
                    if mapping.get('DeviceName') == root_device and 'Ebs' in mapping:
                        return mapping['Ebs']['VolumeId']

        raise BackupFailure(f"No root EBS volume found for instance {instance_id}")

    def create_snapshot(self, volume_id: str) -> str:
        timestamp = datetime.utcnow().strftime('%Y-%m-%dT%H:%M:%SZ')
        response = self.ec2_client.create_snapshot(
            VolumeId=volume_id,
            Description=f"nginx-deployer backup of {volume_id} at {timestamp}",
            TagSpecifications=[{
                'ResourceType': 'snapshot',
                'Tags': [
                    {'Key': BACKUP_TAG_KEY, 'Value': volume_id},
                    {'Key': 'ManagedBy', 'Value': 'nginx-deployer'},
                ]
            }]
        )
        snapshot_id = response['SnapshotId']
        logger.info(f"Snapshot {snapshot_id} requested for volume {volume_id}")
        return snapshot_id

    def _execution_role_arn(self, role_arn: Optional[str]) -> str:
        if role_arn:
            return role_arn
        if not self.account_id:
            raise BackupFailure("A lifecycle policy needs an execution role ARN or a known account id")
        return f"arn:aws:iam::{self.account_id}:role/{DEFAULT_DLM_ROLE}"

    def create_lifecycle_policy(self, volume_id: str, retention_count: int,
                                role_arn: Optional[str] = None) -> str:
        """Register a daily snapshot policy targeting ``volume_id``."""
        if self.dlm_client is None:
            raise BackupFailure("No DLM client configured for lifecycle policies")

        execution_role = self._execution_role_arn(role_arn)
        self.ec2_client.create_tags(
            Resources=[volume_id],
            Tags=[{'Key': BACKUP_TAG_KEY, 'Value': volume_id}]
        )
        response = self.dlm_client.create_lifecycle_policy(
            ExecutionRoleArn=execution_role,
            Description=f"nginx-deployer daily snapshots of {volume_id}",
            State='ENABLED',
            PolicyDetails={
                'ResourceTypes': ['VOLUME'],
                'TargetTags': [{'Key': BACKUP_TAG_KEY, 'Value': volume_id}],
                'Schedules': [{
                    'Name': 'daily',
                    'CopyTags': True,
                    'CreateRule': {'Interval': 24, 'IntervalUnit': 'HOURS', 'Times': ['03:00']},
                    'RetainRule': {'Count': retention_count},
                }]
            }
        )
        policy_id = response['PolicyId']
        logger.info(f"Lifecycle policy {policy_id} keeps the last {retention_count} daily snapshots")
        return policy_id

    def enable_backup(self, volume_id: str, retention_count: Optional[int] = None,
                      role_arn: Optional[str] = None) -> BackupResult:
        """
        Snapshot ``volume_id`` and optionally register a recurring policy.

        Args:
            volume_id: EBS volume to back up
            retention_count: Snapshots to keep; no policy when None
            role_arn: DLM execution role (default role of the account when None)

        Returns:
            BackupResult with the snapshot and policy ids

        Raises:
            BackupFailure: If either request fails
        """
        try:
            snapshot_id = self.create_snapshot(volume_id)
            policy_id = None
            if retention_count:
                policy_id = self.create_lifecycle_policy(volume_id, retention_count, role_arn)
        except BackupFailure:
            raise
        except (ClientError, BotoCoreError) as e:
            raise BackupFailure(f"Backup of {volume_id} failed: {e}") from e

        return BackupResult(volume_id=volume_id, snapshot_id=snapshot_id, policy_id=policy_id)
