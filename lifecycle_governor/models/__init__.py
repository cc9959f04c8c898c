"""Data models for resources, verdicts, lifecycle records and pass summaries."""

from .lifecycle_record import DeletionErrorKind, InvalidTransitionError, LifecyclePhase, LifecycleRecord
from .lifecycle_rules import IdleRule, LifecycleRules
from .pass_summary import ActionType, PassAction, PassStatus, PassSummary
from .resource import ObservedState, Resource, ResourceKind
from .verdict import Trigger, Verdict, VerdictAction

__all__ = [
    "ActionType",
    "DeletionErrorKind",
    "IdleRule",
    "InvalidTransitionError",
    "LifecyclePhase",
    "LifecycleRecord",
    "LifecycleRules",
    "ObservedState",
    "PassAction",
    "PassStatus",
    "PassSummary",
    "Resource",
    "ResourceKind",
    "Trigger",
    "Verdict",
    "VerdictAction",
]
