"""Pass summary model.

Represents one governor pass with per-resource actions, phase counts and
terminal failures. This is the only artifact a pass emits for schedulers
and alerting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .lifecycle_record import LifecyclePhase


class PassStatus(Enum):
    """Pass execution status."""

    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class ActionType(Enum):
    """What the governor did (or would do, in a dry run) for one resource."""

    NONE = "none"
    TRACKED = "tracked"
    NOTIFIED = "notified"
    NOTIFY_FAILED = "notify_failed"
    SCHEDULED = "scheduled"
    DELETED = "deleted"
    DELETE_FAILED = "delete_failed"
    HELD = "held"
    DEFERRED = "deferred"
    RESET = "reset"
    PRUNED = "pruned"
    ERROR = "error"


@dataclass
class PassAction:
    """Outcome for one resource within a pass.

    Attributes:
        resource_id: Resource identifier
        kind: Resource kind value
        action: What happened
        from_phase: Phase at the start of the pass (None when no record existed)
        to_phase: Phase at the end of the pass (None when the record was removed)
        verdict: Classifier action value, if the resource was classified
        detail: Human-readable detail (reason, error message)
        dry_run: Whether the action was only planned
    """

    resource_id: str
    kind: str
    action: ActionType
    from_phase: Optional[LifecyclePhase] = None
    to_phase: Optional[LifecyclePhase] = None
    verdict: Optional[str] = None
    detail: str = ""
    dry_run: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "kind": self.kind,
            "action": self.action.value,
            "from_phase": self.from_phase.value if self.from_phase else None,
            "to_phase": self.to_phase.value if self.to_phase else None,
            "verdict": self.verdict,
            "detail": self.detail,
            "dry_run": self.dry_run,
        }


@dataclass
class PassSummary:
    """Governor pass entity.

    State transitions:
        running → completed (no per-resource errors)
        running → partial (some resources errored)
        running → timed_out (deadline reached, deletions deferred)
        running → failed (pass-level error; counts are partial)

    Attributes:
        pass_id: Unique identifier for the pass
        started_at: When the pass started (UTC)
        dry_run: Whether the pass only planned actions
        status: Current status
        completed_at: When the pass finished
        actions: One action per resource touched
        terminal_failures: Resource ids that need manual intervention
        errors: Per-resource error messages keyed by resource id
        error: Pass-level failure message
    """

    pass_id: str
    started_at: datetime
    dry_run: bool = False
    status: PassStatus = PassStatus.RUNNING
    completed_at: Optional[datetime] = None
    actions: List[PassAction] = field(default_factory=list)
    terminal_failures: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    def add_action(self, action: PassAction) -> None:
        self.actions.append(action)

    def _count_phase(self, phase: LifecyclePhase) -> int:
        return sum(1 for a in self.actions if a.to_phase == phase)

    def _count_action(self, action_type: ActionType) -> int:
        return sum(1 for a in self.actions if a.action == action_type)

    @property
    def keep_count(self) -> int:
        """Resources still unseen after the pass (kept or not yet warned)."""
        return self._count_phase(LifecyclePhase.UNSEEN)

    @property
    def warned_count(self) -> int:
        return self._count_phase(LifecyclePhase.WARNED)

    @property
    def deletion_pending_count(self) -> int:
        return self._count_phase(LifecyclePhase.DELETION_PENDING)

    @property
    def deleted_count(self) -> int:
        return self._count_phase(LifecyclePhase.DELETED)

    @property
    def failed_count(self) -> int:
        return self._count_phase(LifecyclePhase.DELETION_FAILED)

    @property
    def notifications_sent(self) -> int:
        return self._count_action(ActionType.NOTIFIED)

    @property
    def notification_failures(self) -> int:
        return self._count_action(ActionType.NOTIFY_FAILED)

    @property
    def deletions_attempted(self) -> int:
        return self._count_action(ActionType.DELETED) + self._count_action(ActionType.DELETE_FAILED)

    @property
    def deferred_count(self) -> int:
        return self._count_action(ActionType.DEFERRED)

    @property
    def vanished_count(self) -> int:
        return self._count_action(ActionType.RESET)

    @property
    def pruned_count(self) -> int:
        return self._count_action(ActionType.PRUNED)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def counts(self) -> Dict[str, int]:
        """Counts per resulting phase plus pass-level tallies."""
        return {
            "keep": self.keep_count,
            "warned": self.warned_count,
            "deletion_pending": self.deletion_pending_count,
            "deleted": self.deleted_count,
            "failed": self.failed_count,
            "vanished": self.vanished_count,
            "pruned": self.pruned_count,
            "notifications_sent": self.notifications_sent,
            "notification_failures": self.notification_failures,
            "deletions_attempted": self.deletions_attempted,
            "deferred": self.deferred_count,
        }

    def finish(self, completed_at: datetime) -> None:
        """Set the final status from the collected outcomes (unless already failed)."""
        self.completed_at = completed_at
        if self.status != PassStatus.RUNNING:
            return
        if self.deferred_count:
            self.status = PassStatus.TIMED_OUT
        elif self.errors:
            self.status = PassStatus.PARTIAL
        else:
            self.status = PassStatus.COMPLETED

    def fail(self, message: str, completed_at: datetime) -> None:
        self.status = PassStatus.FAILED
        self.error = message
        self.completed_at = completed_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to dictionary for JSON/YAML output."""
        return {
            "pass_id": self.pass_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "dry_run": self.dry_run,
            "status": self.status.value,
            "counts": self.counts(),
            "terminal_failures": list(self.terminal_failures),
            "errors": dict(self.errors),
            "error": self.error,
            "actions": [a.to_dict() for a in self.actions],
        }
