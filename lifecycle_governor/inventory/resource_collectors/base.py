"""Base class for resource collectors."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from ...aws.client import create_boto_client
from ...models.resource import Resource, ResourceKind


class BaseResourceCollector(ABC):
    """Abstract base class for per-service collectors.

    Each collector lists one kind of resource in one region. Listing errors
    propagate to the inventory adapter; errors on optional enrichment (tags,
    metrics) are logged and skipped.
    """

    def __init__(self, region: str, profile_name: Optional[str] = None, account_id: Optional[str] = None) -> None:
        self.region = region
        self.profile_name = profile_name
        self._account_id = account_id
        self.logger = logging.getLogger(self.__class__.__module__)

    @property
    @abstractmethod
    def service_name(self) -> str:
        """boto3 service name (e.g. "ec2")."""

    @property
    @abstractmethod
    def kind(self) -> ResourceKind:
        """Resource kind this collector produces."""

    @abstractmethod
    def collect(self) -> List[Resource]:
        """Collect all resources of this kind in the region."""

    def _create_client(self, service_name: Optional[str] = None) -> Any:
        return create_boto_client(
            service_name=service_name or self.service_name,
            region_name=self.region,
            profile_name=self.profile_name,
        )

    def _get_account_id(self) -> str:
        if self._account_id is None:
            sts = self._create_client("sts")
            self._account_id = sts.get_caller_identity()["Account"]
        return self._account_id
