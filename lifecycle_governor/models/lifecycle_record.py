"""Lifecycle record model.

Persisted per-resource lifecycle state that makes the governor idempotent
across repeated passes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .resource import ResourceKind, ensure_utc, parse_timestamp


class LifecyclePhase(Enum):
    """Lifecycle phase with forward-only transitions."""

    UNSEEN = "unseen"
    WARNED = "warned"
    DELETION_PENDING = "deletion_pending"
    DELETED = "deleted"
    DELETION_FAILED = "deletion_failed"


class DeletionErrorKind(Enum):
    """Why a deletion attempt did not produce a verified deletion."""

    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    PERMISSION_DENIED = "permission_denied"
    UNVERIFIED = "unverified"
    PROVIDER_ERROR = "provider_error"

    @property
    def retryable(self) -> bool:
        """Whether a later pass may retry after this error."""
        return self != DeletionErrorKind.PERMISSION_DENIED


# Allowed transitions: from_phase -> set of to_phases.
# Reverting to UNSEEN happens by removing the record, never through a transition.
ALLOWED_TRANSITIONS = {
    LifecyclePhase.UNSEEN: {LifecyclePhase.WARNED, LifecyclePhase.DELETION_PENDING},
    LifecyclePhase.WARNED: {LifecyclePhase.DELETION_PENDING},
    LifecyclePhase.DELETION_PENDING: {LifecyclePhase.DELETED, LifecyclePhase.DELETION_FAILED},
    LifecyclePhase.DELETION_FAILED: {LifecyclePhase.DELETION_PENDING},
    LifecyclePhase.DELETED: set(),
}


class InvalidTransitionError(ValueError):
    """Raised when a record is moved along a transition the lifecycle does not allow."""


@dataclass
class LifecycleRecord:
    """Lifecycle record entity.

    One record per resource id. The governor is the only writer.

    State transitions:
        unseen → warned → deletion_pending → deleted
        deletion_pending → deletion_failed → deletion_pending (retry)
        unseen → deletion_pending (force-override only)

    Attributes:
        resource_id: Resource identifier (stable provider ID)
        kind: Resource kind at first sighting
        phase: Current lifecycle phase
        first_seen_at: When the governor first saw the resource
        updated_at: Last time the record was written
        warned_at: When the owner warning was delivered
        notified_recipient: Who received the warning
        scheduled_at: When deletion intent was recorded
        deleted_at: When deletion was verified
        attempts: Deletion attempts consumed from the retry budget
        error_kind: Kind of the last deletion failure
        last_error: Message of the last deletion failure
        notify_failures: Consecutive failed warning deliveries
        last_notify_error: Reason of the last failed delivery
        forced: Whether deletion intent bypassed the warning gate
        region: Region the resource lived in at first sighting (empty when unknown)
    """

    resource_id: str
    kind: ResourceKind
    phase: LifecyclePhase
    first_seen_at: datetime
    updated_at: datetime
    warned_at: Optional[datetime] = None
    notified_recipient: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    attempts: int = 0
    error_kind: Optional[DeletionErrorKind] = None
    last_error: Optional[str] = None
    notify_failures: int = 0
    last_notify_error: Optional[str] = None
    forced: bool = False
    region: str = ""

    @classmethod
    def new(cls, resource_id: str, kind: ResourceKind, now: datetime, region: str = "") -> "LifecycleRecord":
        """Create the record for a first sighting."""
        return cls(
            resource_id=resource_id,
            kind=kind,
            phase=LifecyclePhase.UNSEEN,
            first_seen_at=now,
            updated_at=now,
            region=region,
        )

    def _transition(self, to_phase: LifecyclePhase, now: datetime) -> None:
        if to_phase not in ALLOWED_TRANSITIONS[self.phase]:
            raise InvalidTransitionError(
                f"{self.resource_id}: cannot move from {self.phase.value} to {to_phase.value}"
            )
        self.phase = to_phase
        self.updated_at = now

    def mark_warned(self, now: datetime, recipient: str) -> None:
        self._transition(LifecyclePhase.WARNED, now)
        self.warned_at = now
        self.notified_recipient = recipient
        self.notify_failures = 0
        self.last_notify_error = None

    def mark_notify_failed(self, now: datetime, reason: str) -> None:
        """Record a failed warning delivery; the phase does not change."""
        self.notify_failures += 1
        self.last_notify_error = reason
        self.updated_at = now

    def mark_pending(self, now: datetime, forced: bool = False) -> None:
        self._transition(LifecyclePhase.DELETION_PENDING, now)
        self.scheduled_at = now
        self.forced = self.forced or forced

    def mark_deleted(self, now: datetime) -> None:
        self._transition(LifecyclePhase.DELETED, now)
        self.deleted_at = now
        self.error_kind = None
        self.last_error = None

    def mark_failed(self, now: datetime, error_kind: DeletionErrorKind, message: str) -> None:
        self._transition(LifecyclePhase.DELETION_FAILED, now)
        self.attempts += 1
        self.error_kind = error_kind
        self.last_error = message

    def grace_elapsed(self, now: datetime, grace_period_days: int) -> bool:
        """Whether a successful warning was delivered at least the grace period before now."""
        if self.warned_at is None:
            return False
        return (now - self.warned_at).total_seconds() >= grace_period_days * 86400

    def can_retry(self, retry_budget: int) -> bool:
        """Whether a failed deletion may be retried in a later pass."""
        if self.phase != LifecyclePhase.DELETION_FAILED:
            return False
        if self.error_kind is not None and not self.error_kind.retryable:
            return False
        return self.attempts < retry_budget

    def is_terminal(self, retry_budget: int) -> bool:
        """Deleted, or failed with no automatic retry left (needs an operator)."""
        if self.phase == LifecyclePhase.DELETED:
            return True
        return self.phase == LifecyclePhase.DELETION_FAILED and not self.can_retry(retry_budget)

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary for serialization."""
        return {
            "resource_id": self.resource_id,
            "kind": self.kind.value,
            "phase": self.phase.value,
            "first_seen_at": _iso(self.first_seen_at),
            "updated_at": _iso(self.updated_at),
            "warned_at": _iso(self.warned_at),
            "notified_recipient": self.notified_recipient,
            "scheduled_at": _iso(self.scheduled_at),
            "deleted_at": _iso(self.deleted_at),
            "attempts": self.attempts,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "last_error": self.last_error,
            "notify_failures": self.notify_failures,
            "last_notify_error": self.last_notify_error,
            "forced": self.forced,
            "region": self.region,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LifecycleRecord":
        """Create record from dictionary."""
        error_kind = data.get("error_kind")
        return cls(
            resource_id=data["resource_id"],
            kind=ResourceKind.parse(data.get("kind", "Other")),
            phase=LifecyclePhase(data["phase"]),
            first_seen_at=_parse(data["first_seen_at"]),
            updated_at=_parse(data["updated_at"]),
            warned_at=_parse(data.get("warned_at")),
            notified_recipient=data.get("notified_recipient"),
            scheduled_at=_parse(data.get("scheduled_at")),
            deleted_at=_parse(data.get("deleted_at")),
            attempts=int(data.get("attempts", 0)),
            error_kind=DeletionErrorKind(error_kind) if error_kind else None,
            last_error=data.get("last_error"),
            notify_failures=int(data.get("notify_failures", 0)),
            last_notify_error=data.get("last_notify_error"),
            forced=bool(data.get("forced", False)),
            region=data.get("region", ""),
        )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return ensure_utc(parse_timestamp(value))
