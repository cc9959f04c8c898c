"""Inventory adapter backed by a YAML snapshot file.

Lets a pipeline export the inventory with its own tooling and hand the
governor a file, and makes offline dry runs possible.

File format:
    resources:
      - id: arn:aws:ec2:us-east-1:123456789012:instance/i-0abc
        kind: VM
        region: us-east-1
        tags: {owner: alice@example.com, expiry_date: "2024-01-01"}
        observed_state: {status: stopped, since: "2023-12-01T00:00:00+00:00"}
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml

from ..lifecycle.errors import InventoryError
from ..models.resource import Resource
from .base import InventoryAdapter, InventoryFilter


class FileInventoryAdapter(InventoryAdapter):
    """Reads the resource snapshot from a YAML file on every call."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def list_resources(self, resource_filter: Optional[InventoryFilter] = None) -> List[Resource]:
        resource_filter = resource_filter or InventoryFilter()

        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise InventoryError(f"Cannot read inventory file {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("resources", []), list):
            raise InventoryError(f"Inventory file {self.path} must contain a 'resources' list")

        resources = {}
        for index, entry in enumerate(data.get("resources", [])):
            try:
                resource = Resource.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                raise InventoryError(f"Invalid resource #{index} in {self.path}: {e}") from e
            if resource.id in resources:
                raise InventoryError(f"Duplicate resource id in {self.path}: {resource.id}")
            resources[resource.id] = resource

        return [resources[rid] for rid in sorted(resources) if resource_filter.matches(resources[rid])]
