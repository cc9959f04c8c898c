"""EBS volume collector."""

from __future__ import annotations

from typing import List

from ...models.resource import ObservedState, Resource, ResourceKind
from .base import BaseResourceCollector


class EbsVolumeCollector(BaseResourceCollector):
    """Collector for EBS volumes (resource kind Disk).

    EC2 does not record when a volume was detached, so an unattached volume
    reports its creation time as the start of its idle period. Owners can set
    an idle_since tag to override it.
    """

    @property
    def service_name(self) -> str:
        return "ec2"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.DISK

    def collect(self) -> List[Resource]:
        resources = []
        client = self._create_client()
        account_id = self._get_account_id()

        paginator = client.get_paginator("describe_volumes")
        for page in paginator.paginate():
            for volume in page.get("Volumes", []):
                if volume.get("State") in ("deleting", "deleted"):
                    continue

                volume_id = volume["VolumeId"]
                tags = {tag["Key"]: tag["Value"] for tag in volume.get("Tags", [])}
                attached = bool(volume.get("Attachments"))

                resources.append(
                    Resource(
                        id=f"arn:aws:ec2:{self.region}:{account_id}:volume/{volume_id}",
                        kind=ResourceKind.DISK,
                        tags=tags,
                        observed_state=ObservedState(
                            status="attached" if attached else "unattached",
                            since=None if attached else volume.get("CreateTime"),
                        ),
                        region=self.region,
                        name=volume_id,
                    )
                )

        self.logger.debug(f"Collected {len(resources)} EBS volumes in {self.region}")
        return resources
