"""Verdict model - the classifier's policy decision for one resource."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class VerdictAction(Enum):
    """Classifier decision, ordered by severity."""

    KEEP = "keep"
    WARN_PENDING = "warn_pending"
    DELETE_ELIGIBLE = "delete_eligible"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    VerdictAction.KEEP: 0,
    VerdictAction.WARN_PENDING: 1,
    VerdictAction.DELETE_ELIGIBLE: 2,
}


class Trigger(Enum):
    """Rule family that produced a non-keep verdict."""

    EXPIRY = "expiry"
    IDLE = "idle"


@dataclass(frozen=True)
class Verdict:
    """Classifier output for one resource at one point in time.

    Attributes:
        action: keep, warn_pending or delete_eligible
        reason: Human-readable explanation
        days_until_expiry: For warn verdicts, days until the expiry date (expiry trigger)
            or until delete-eligibility (idle-only trigger); negative once past
        eligible_on: Date on which the resource becomes delete-eligible, if known
        triggers: Rule families that fired
    """

    action: VerdictAction
    reason: str = ""
    days_until_expiry: Optional[int] = None
    eligible_on: Optional[date] = None
    triggers: Tuple[Trigger, ...] = ()

    @classmethod
    def keep(cls, reason: str = "No idle or expiry rule matched") -> "Verdict":
        return cls(action=VerdictAction.KEEP, reason=reason)

    @classmethod
    def warn_pending(
        cls,
        days_until_expiry: int,
        reason: str,
        eligible_on: Optional[date] = None,
        triggers: Tuple[Trigger, ...] = (),
    ) -> "Verdict":
        return cls(
            action=VerdictAction.WARN_PENDING,
            reason=reason,
            days_until_expiry=days_until_expiry,
            eligible_on=eligible_on,
            triggers=triggers,
        )

    @classmethod
    def delete_eligible(
        cls,
        reason: str,
        eligible_on: Optional[date] = None,
        triggers: Tuple[Trigger, ...] = (),
        days_until_expiry: Optional[int] = None,
    ) -> "Verdict":
        return cls(
            action=VerdictAction.DELETE_ELIGIBLE,
            reason=reason,
            days_until_expiry=days_until_expiry,
            eligible_on=eligible_on,
            triggers=triggers,
        )

    @property
    def is_keep(self) -> bool:
        return self.action == VerdictAction.KEEP

    @property
    def needs_warning(self) -> bool:
        """True for any verdict that requires the owner to be warned."""
        return self.action != VerdictAction.KEEP

    @property
    def is_delete_eligible(self) -> bool:
        return self.action == VerdictAction.DELETE_ELIGIBLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "reason": self.reason,
            "days_until_expiry": self.days_until_expiry,
            "eligible_on": self.eligible_on.isoformat() if self.eligible_on else None,
            "triggers": [t.value for t in self.triggers],
        }
