"""Inventory adapter contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from ..models.resource import Resource, ResourceKind


@dataclass(frozen=True)
class InventoryFilter:
    """Selects which resources a pass governs.

    Attributes:
        kinds: Resource kinds to include (None means every kind)
        required_tags: Tag keys a resource must carry to be included
        regions: Regions to include (None means every region)
    """

    kinds: Optional[FrozenSet[ResourceKind]] = None
    required_tags: Tuple[str, ...] = ()
    regions: Optional[FrozenSet[str]] = None

    def covers_kind(self, kind: ResourceKind) -> bool:
        return self.kinds is None or kind in self.kinds

    def covers_region(self, region: str) -> bool:
        return self.regions is None or region in self.regions

    def matches(self, resource: Resource) -> bool:
        if not self.covers_kind(resource.kind):
            return False
        if not self.covers_region(resource.region):
            return False
        return all(key in resource.tags for key in self.required_tags)

    def covers_record_kind(self, kind: ResourceKind) -> bool:
        """Whether records of this kind are reconciled against the snapshot.

        Tag and region predicates can hide resources that still exist, so
        disappearance is only trusted when neither is set.
        """
        return self.covers_kind(kind) and not self.required_tags and self.regions is None


class InventoryAdapter(ABC):
    """Queries the provider for the current resource set.

    Implementations handle pagination and return a complete snapshot, or raise
    InventoryError. A partial snapshot is never returned: resources missing
    from it are treated as deleted.
    """

    @abstractmethod
    def list_resources(self, resource_filter: Optional[InventoryFilter] = None) -> List[Resource]:
        """List resources matching the filter.

        Args:
            resource_filter: Kind, tag and region predicates (default: everything)

        Returns:
            Resources sorted by id

        Raises:
            InventoryError: If the provider cannot be listed
        """

    def listed_regions(self, resource_filter: Optional[InventoryFilter] = None) -> Optional[FrozenSet[str]]:
        """Regions a list_resources call with this filter actually covers.

        Records of resources in other regions are never reconciled as vanished.
        None means the snapshot is not scoped by region.
        """
        return None
