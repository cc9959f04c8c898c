"""AWS inventory adapter composed of per-service collectors."""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional, Type

from botocore.exceptions import BotoCoreError, ClientError

from ..aws.client import translate_client_error
from ..lifecycle.errors import InventoryError
from ..models.resource import Resource
from .base import InventoryAdapter, InventoryFilter
from .resource_collectors import COLLECTORS, BaseResourceCollector, RdsInstanceCollector

logger = logging.getLogger(__name__)


class AwsInventoryAdapter(InventoryAdapter):
    """Lists EC2 instances, EBS volumes and RDS instances across regions.

    Attributes:
        regions: Regions to list
        profile_name: AWS profile name (optional)
        metric_lookback_days: CloudWatch window for database utilization
    """

    def __init__(
        self,
        regions: List[str],
        profile_name: Optional[str] = None,
        metric_lookback_days: int = 30,
        collectors: Optional[List[Type[BaseResourceCollector]]] = None,
    ) -> None:
        if not regions:
            raise ValueError("At least one region is required")
        self.regions = regions
        self.profile_name = profile_name
        self.metric_lookback_days = metric_lookback_days
        self.collectors = collectors or COLLECTORS

    def _build_collector(self, collector_class: Type[BaseResourceCollector], region: str) -> BaseResourceCollector:
        if issubclass(collector_class, RdsInstanceCollector):
            return collector_class(
                region, profile_name=self.profile_name, metric_lookback_days=self.metric_lookback_days
            )
        return collector_class(region, profile_name=self.profile_name)

    def listed_regions(self, resource_filter: Optional[InventoryFilter] = None) -> Optional[FrozenSet[str]]:
        resource_filter = resource_filter or InventoryFilter()
        return frozenset(region for region in self.regions if resource_filter.covers_region(region))

    def list_resources(self, resource_filter: Optional[InventoryFilter] = None) -> List[Resource]:
        resource_filter = resource_filter or InventoryFilter()
        found: Dict[str, Resource] = {}

        regions = [region for region in self.regions if resource_filter.covers_region(region)]
        for region in regions:
            for collector_class in self.collectors:
                collector = self._build_collector(collector_class, region)
                if not resource_filter.covers_kind(collector.kind):
                    continue

                try:
                    resources = collector.collect()
                except (ClientError, BotoCoreError) as e:
                    error = translate_client_error(e)
                    raise InventoryError(
                        f"Failed to list {collector.kind.value} resources in {region}: {error}"
                    ) from e

                for resource in resources:
                    if resource_filter.matches(resource):
                        found[resource.id] = resource

        logger.info(f"Inventory snapshot: {len(found)} resources across {len(regions)} region(s)")
        return [found[resource_id] for resource_id in sorted(found)]
