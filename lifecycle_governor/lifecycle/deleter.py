"""AWS resource deletion strategies.

Maps resource kinds to their boto3 deletion and verification calls.
VMs are stopped before they are terminated; disks and databases are
deleted directly.
"""

from __future__ import annotations

import logging
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from lifecycle_governor.aws.client import create_boto_client, translate_client_error
from lifecycle_governor.lifecycle.errors import ConflictError, ProviderError
from lifecycle_governor.lifecycle.executor import DeletionExecutor
from lifecycle_governor.models.resource import Resource, ResourceKind

logger = logging.getLogger(__name__)


class AwsResourceDeleter(DeletionExecutor):
    """AWS resource deletion executor.

    Handles deletion of EC2 instances, EBS volumes and RDS instances using
    the appropriate boto3 API calls, and confirms each deletion with a
    describe call before reporting success.
    """

    # Deletion method mapping: kind -> (service, method, id_field)
    DELETION_METHODS = {
        ResourceKind.VM: ("ec2", "terminate_instances", "InstanceIds"),
        ResourceKind.DISK: ("ec2", "delete_volume", "VolumeId"),
        ResourceKind.DATABASE: ("rds", "delete_db_instance", "DBInstanceIdentifier"),
    }

    # Instance/volume/DB states that mean the deletion is accepted and under way
    GONE_INSTANCE_STATES = {"shutting-down", "terminated"}
    GONE_VOLUME_STATES = {"deleting", "deleted"}
    GONE_DB_STATUSES = {"deleting"}

    def __init__(
        self,
        aws_profile: Optional[str] = None,
        max_retries: int = 3,
        backoff_base: float = 2.0,
        skip_final_snapshot: bool = True,
        stop_timeout_seconds: int = 600,
    ) -> None:
        """Initialize resource deleter.

        Args:
            aws_profile: AWS profile name (optional)
            max_retries: Maximum number of attempts for transient errors (default: 3)
            backoff_base: Seconds before the first retry, doubled each time (default: 2)
            skip_final_snapshot: Skip the final RDS snapshot (default: True)
            stop_timeout_seconds: How long to wait for a VM to stop before terminating
        """
        super().__init__(max_retries=max_retries, backoff_base=backoff_base)
        self.aws_profile = aws_profile
        self.skip_final_snapshot = skip_final_snapshot
        self.stop_timeout_seconds = stop_timeout_seconds

    def _client(self, service: str, resource: Resource):
        return create_boto_client(
            service_name=service,
            region_name=resource.region or None,
            profile_name=self.aws_profile,
        )

    def _attempt_deletion(self, resource: Resource) -> None:
        if resource.kind not in self.DELETION_METHODS:
            raise ProviderError(f"Unsupported resource kind: {resource.kind.value}", code="Unsupported")

        service, method, id_field = self.DELETION_METHODS[resource.kind]
        client = self._client(service, resource)

        try:
            if resource.kind == ResourceKind.VM:
                self._stop_instance(client, resource)

            params = self._build_deletion_params(resource.kind, id_field, resource.name)
            getattr(client, method)(**params)
        except (ClientError, BotoCoreError) as e:
            if isinstance(e, WaiterError):
                raise ConflictError(f"Instance {resource.name} did not stop: {e}", code="WaiterError") from e
            raise translate_client_error(e) from e

        logger.info(f"Deletion requested for {resource.kind.value} {resource.id}")

    def _stop_instance(self, client, resource: Resource) -> None:
        """Stop an instance and wait until it is stopped."""
        client.stop_instances(InstanceIds=[resource.name])
        waiter = client.get_waiter("instance_stopped")
        delay = 15
        waiter.wait(
            InstanceIds=[resource.name],
            WaiterConfig={"Delay": delay, "MaxAttempts": max(1, self.stop_timeout_seconds // delay)},
        )
        logger.debug(f"Instance {resource.name} stopped")

    def _build_deletion_params(self, kind: ResourceKind, id_field: str, name: str) -> dict:
        """Build deletion parameters for the boto3 call."""
        # Plural form indicates list
        if id_field.endswith("s"):
            return {id_field: [name]}

        if kind == ResourceKind.DATABASE:
            params = {
                id_field: name,
                "SkipFinalSnapshot": self.skip_final_snapshot,
                "DeleteAutomatedBackups": True,
            }
            if not self.skip_final_snapshot:
                params["FinalDBSnapshotIdentifier"] = f"{name}-final"
            return params

        return {id_field: name}

    def _verify_deleted(self, resource: Resource) -> bool:
        service = self.DELETION_METHODS[resource.kind][0]
        client = self._client(service, resource)

        try:
            if resource.kind == ResourceKind.VM:
                response = client.describe_instances(InstanceIds=[resource.name])
                states = [
                    instance.get("State", {}).get("Name")
                    for reservation in response.get("Reservations", [])
                    for instance in reservation.get("Instances", [])
                ]
                return not states or all(s in self.GONE_INSTANCE_STATES for s in states)

            if resource.kind == ResourceKind.DISK:
                response = client.describe_volumes(VolumeIds=[resource.name])
                volumes = response.get("Volumes", [])
                return not volumes or all(v.get("State") in self.GONE_VOLUME_STATES for v in volumes)

            response = client.describe_db_instances(DBInstanceIdentifier=resource.name)
            instances = response.get("DBInstances", [])
            return not instances or all(i.get("DBInstanceStatus") in self.GONE_DB_STATUSES for i in instances)
        except (ClientError, BotoCoreError) as e:
            raise translate_client_error(e) from e
