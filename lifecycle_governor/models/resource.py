"""Resource data model representing one inventoried cloud object."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

# Tag keys recognized by the governor
OWNER_TAG = "owner"
ENVIRONMENT_TAG = "environment"
EXPIRY_TAG = "expiry_date"
IDLE_SINCE_TAG = "idle_since"


class ResourceKind(Enum):
    """Kind of cloud resource, used to select idle rules and deletion semantics."""

    VM = "VM"
    DISK = "Disk"
    DATABASE = "Database"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: str) -> "ResourceKind":
        """Parse a kind name case-insensitively ("vm", "Disk", "DATABASE")."""
        for kind in cls:
            if kind.value.lower() == value.strip().lower() or kind.name.lower() == value.strip().lower():
                return kind
        raise ValueError(f"Unknown resource kind: {value}")


@dataclass(frozen=True)
class ObservedState:
    """Provider-reported runtime status of a resource.

    Attributes:
        status: Normalized status string (running, stopped, attached, unattached, available)
        since: When the current status began, if the provider exposes it
        daily_utilization: Per-day utilization values, oldest first (e.g. daily max CPU %)
    """

    status: str = "unknown"
    since: Optional[datetime] = None
    daily_utilization: Tuple[float, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "since": self.since.isoformat() if self.since else None,
            "daily_utilization": list(self.daily_utilization),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ObservedState":
        if not data:
            return cls()
        since = data.get("since")
        return cls(
            status=str(data.get("status", "unknown")),
            since=ensure_utc(parse_timestamp(since)) if since else None,
            daily_utilization=tuple(float(v) for v in data.get("daily_utilization") or []),
        )


@dataclass(frozen=True)
class Resource:
    """One inventoried cloud object.

    Resources are immutable for the duration of a pass; the inventory adapter
    builds a fresh snapshot each pass.

    Attributes:
        id: Stable, globally unique provider identifier (ARN)
        kind: Resource kind
        tags: Resource tags as key-value pairs (may be empty)
        observed_state: Provider-reported runtime status
        region: Provider region the resource lives in
        name: Short provider name (instance ID, volume ID, DB identifier)
    """

    id: str
    kind: ResourceKind
    tags: Dict[str, str] = field(default_factory=dict)
    observed_state: ObservedState = field(default_factory=ObservedState)
    region: str = ""
    name: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Resource id must not be empty")
        # Copy so later mutation of the caller's dict cannot leak into the snapshot
        object.__setattr__(self, "tags", dict(self.tags or {}))
        if not self.name:
            object.__setattr__(self, "name", self.id.split("/")[-1].split(":")[-1])

    @property
    def owner(self) -> Optional[str]:
        owner = self.tags.get(OWNER_TAG, "").strip()
        return owner or None

    @property
    def environment(self) -> Optional[str]:
        return self.tags.get(ENVIRONMENT_TAG) or None

    def to_dict(self) -> Dict[str, Any]:
        """Convert resource to dictionary for serialization."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "region": self.region,
            "tags": dict(self.tags),
            "observed_state": self.observed_state.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Resource":
        """Create resource from dictionary."""
        return cls(
            id=data["id"],
            kind=ResourceKind.parse(data.get("kind", "Other")),
            tags={str(k): str(v) for k, v in (data.get("tags") or {}).items()},
            observed_state=ObservedState.from_dict(data.get("observed_state")),
            region=data.get("region", ""),
            name=data.get("name", ""),
        )


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO date or datetime (string, date or datetime) into a datetime."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def ensure_utc(value: datetime) -> datetime:
    """Return a timezone-aware UTC datetime (naive values are assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
