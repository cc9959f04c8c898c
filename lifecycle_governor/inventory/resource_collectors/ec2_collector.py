"""EC2 instance collector."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import List, Optional

from ...models.resource import ObservedState, Resource, ResourceKind
from .base import BaseResourceCollector

# "User initiated (2024-01-01 10:00:00 GMT)"
_TRANSITION_TIME = re.compile(r"\((\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) GMT\)")

# Instances in these states are already on their way out
_SKIPPED_STATES = {"shutting-down", "terminated"}


class Ec2InstanceCollector(BaseResourceCollector):
    """Collector for EC2 instances (resource kind VM)."""

    @property
    def service_name(self) -> str:
        return "ec2"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.VM

    def collect(self) -> List[Resource]:
        """Collect EC2 instances.

        Returns:
            List of VM resources; terminated instances are skipped
        """
        resources = []
        client = self._create_client()

        paginator = client.get_paginator("describe_instances")
        for page in paginator.paginate():
            for reservation in page.get("Reservations", []):
                owner_id = reservation.get("OwnerId", "")
                for instance in reservation.get("Instances", []):
                    state = instance.get("State", {}).get("Name", "unknown")
                    if state in _SKIPPED_STATES:
                        continue

                    instance_id = instance["InstanceId"]
                    tags = {tag["Key"]: tag["Value"] for tag in instance.get("Tags", [])}

                    resources.append(
                        Resource(
                            id=f"arn:aws:ec2:{self.region}:{owner_id}:instance/{instance_id}",
                            kind=ResourceKind.VM,
                            tags=tags,
                            observed_state=ObservedState(
                                status=state,
                                since=parse_transition_time(instance.get("StateTransitionReason", ""))
                                if state == "stopped"
                                else None,
                            ),
                            region=self.region,
                            name=instance_id,
                        )
                    )

        self.logger.debug(f"Collected {len(resources)} EC2 instances in {self.region}")
        return resources


def parse_transition_time(reason: str) -> Optional[datetime]:
    """Extract the timestamp from an EC2 StateTransitionReason string."""
    match = _TRANSITION_TIME.search(reason or "")
    if not match:
        return None
    return datetime.strptime(match.group(1), "%Y-%m-%d %H:%M:%S").replace(tzinfo=timezone.utc)
