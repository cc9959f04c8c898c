"""Lifecycle rule models.

Per-kind idle predicates plus the grace period and protection settings the
classifier evaluates resources against.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .resource import ResourceKind

DEFAULT_GRACE_PERIOD_DAYS = 7
DEFAULT_PROTECTION_TAGS = ["do-not-delete"]


@dataclass(frozen=True)
class IdleRule:
    """Idle predicate for one resource kind.

    A resource is idle when its observed status is one of ``statuses`` or, when
    ``utilization_below`` is set, when its daily utilization stays under the
    threshold. It matches once it has been idle for at least ``days`` days.

    Attributes:
        days: Minimum idle duration in days
        statuses: Observed statuses that count as idle (e.g. "stopped")
        utilization_below: Daily utilization threshold (e.g. max CPU %), optional
    """

    days: int
    statuses: tuple = ()
    utilization_below: Optional[float] = None

    def __post_init__(self) -> None:
        if self.days < 0:
            raise ValueError("Idle rule days must be >= 0")
        if self.utilization_below is not None and self.utilization_below < 0:
            raise ValueError("Idle rule utilization_below must be >= 0")
        object.__setattr__(self, "statuses", tuple(s.lower() for s in self.statuses))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdleRule":
        statuses = data.get("statuses") or []
        if isinstance(statuses, str):
            statuses = [statuses]
        threshold = data.get("utilization_below")
        return cls(
            days=int(data["days"]),
            statuses=tuple(statuses),
            utilization_below=float(threshold) if threshold is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "days": self.days,
            "statuses": list(self.statuses),
            "utilization_below": self.utilization_below,
        }


def default_idle_thresholds() -> Dict[ResourceKind, IdleRule]:
    """Idle rules used when the configuration does not override them."""
    return {
        ResourceKind.VM: IdleRule(days=14, statuses=("stopped",)),
        ResourceKind.DISK: IdleRule(days=14, statuses=("unattached", "available")),
        ResourceKind.DATABASE: IdleRule(days=14, utilization_below=5.0),
    }


@dataclass(frozen=True)
class LifecycleRules:
    """Policy the classifier evaluates every resource against.

    Attributes:
        idle_thresholds: Idle rule per resource kind (kinds without a rule are never idle)
        grace_period_days: Days between warning and delete-eligibility
        protection_tags: Tag keys whose presence always keeps a resource
        protected_environments: Values of the environment tag that always keep a resource
    """

    idle_thresholds: Dict[ResourceKind, IdleRule] = field(default_factory=default_idle_thresholds)
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
    protection_tags: List[str] = field(default_factory=lambda: list(DEFAULT_PROTECTION_TAGS))
    protected_environments: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.grace_period_days < 0:
            raise ValueError("grace_period_days must be >= 0")

    def idle_rule_for(self, kind: ResourceKind) -> Optional[IdleRule]:
        return self.idle_thresholds.get(kind)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LifecycleRules":
        """Build rules from a configuration mapping.

        ``idle_thresholds`` keys are kind names ("VM", "disk", ...); kinds not
        listed keep their default rule unless the mapping sets them to null.
        """
        thresholds = default_idle_thresholds()
        for kind_name, rule_data in (data.get("idle_thresholds") or {}).items():
            kind = ResourceKind.parse(kind_name)
            if rule_data is None:
                thresholds.pop(kind, None)
            else:
                thresholds[kind] = IdleRule.from_dict(rule_data)

        return cls(
            idle_thresholds=thresholds,
            grace_period_days=int(data.get("grace_period_days", DEFAULT_GRACE_PERIOD_DAYS)),
            protection_tags=list(data.get("protection_tags", DEFAULT_PROTECTION_TAGS)),
            protected_environments=[e.lower() for e in data.get("protected_environments", [])],
        )
