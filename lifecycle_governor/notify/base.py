"""Notifier gateway contract.

The governor hands owner warnings and operator alerts to a Notifier and only
tracks whether delivery succeeded. Transports never raise into the governor:
every failure comes back as a failed NotificationResult.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class NoticeKind(Enum):
    """Purpose of a notification."""

    WARNING = "warning"
    OPERATOR_ALERT = "operator_alert"


@dataclass(frozen=True)
class ExpiryNotice:
    """What a recipient is told about a resource.

    Attributes:
        kind: Owner warning or operator alert
        resource_kind: Resource kind value (VM, Disk, Database)
        message: Human-readable explanation
        days_until_expiry: Days until expiry (or eligibility), when known
        eligible_on: Date after which the resource may be deleted, when known
        grace_period_days: Configured grace period
        region: Resource region
        used_fallback: Whether the recipient is the fallback owner
        protection_tags: Tag keys that exempt a resource from deletion
    """

    kind: NoticeKind
    resource_kind: str
    message: str
    days_until_expiry: Optional[int] = None
    eligible_on: Optional[date] = None
    grace_period_days: Optional[int] = None
    region: str = ""
    used_fallback: bool = False
    protection_tags: Tuple[str, ...] = ()

    @property
    def subject(self) -> str:
        if self.kind == NoticeKind.OPERATOR_ALERT:
            return f"[lifecycle-governor] Deletion needs attention: {self.resource_kind}"
        return f"[lifecycle-governor] {self.resource_kind} scheduled for deletion"

    def render(self, resource_id: str) -> str:
        """Render the notice as plain text."""
        lines = [self.subject, "", f"Resource: {resource_id}"]
        if self.region:
            lines.append(f"Region: {self.region}")
        lines.append(f"Reason: {self.message}")
        if self.eligible_on is not None:
            lines.append(f"Eligible for deletion on: {self.eligible_on.isoformat()}")
        if self.grace_period_days is not None and self.kind == NoticeKind.WARNING:
            ways_out = ["its expiry_date is extended", "it is used again"]
            if self.protection_tags:
                ways_out.insert(0, "it is tagged " + " or ".join(self.protection_tags))
            lines.append(
                f"The resource will be deleted no earlier than {self.grace_period_days} days after this "
                f"warning unless {', '.join(ways_out[:-1])} or {ways_out[-1]}."
            )
        if self.used_fallback:
            lines.append("You received this because the resource has no owner tag.")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "resource_kind": self.resource_kind,
            "message": self.message,
            "days_until_expiry": self.days_until_expiry,
            "eligible_on": self.eligible_on.isoformat() if self.eligible_on else None,
            "grace_period_days": self.grace_period_days,
            "region": self.region,
            "used_fallback": self.used_fallback,
            "protection_tags": list(self.protection_tags),
        }


@dataclass(frozen=True)
class NotificationResult:
    """Delivery outcome.

    Attributes:
        delivered: True when the transport accepted the message
        reason: Failure reason (empty when delivered)
        message_id: Transport message ID, when provided
    """

    delivered: bool
    reason: str = ""
    message_id: Optional[str] = None

    @classmethod
    def ok(cls, message_id: Optional[str] = None) -> "NotificationResult":
        return cls(delivered=True, message_id=message_id)

    @classmethod
    def failed(cls, reason: str) -> "NotificationResult":
        return cls(delivered=False, reason=reason)


class Notifier(ABC):
    """Abstract base class for notification transports."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Transport name (e.g. "sns")."""

    @abstractmethod
    def notify(self, resource_id: str, recipient: str, notice: ExpiryNotice) -> NotificationResult:
        """Deliver a notice about a resource to a recipient.

        Args:
            resource_id: Resource the notice is about
            recipient: Owner (or fallback owner / operator) address
            notice: What to tell the recipient

        Returns:
            NotificationResult (never raises for transport failures)
        """


class LogNotifier(Notifier):
    """Notifier that writes notices to the log; used for local runs."""

    @property
    def name(self) -> str:
        return "log"

    def notify(self, resource_id: str, recipient: str, notice: ExpiryNotice) -> NotificationResult:
        logger.info(f"Notify {recipient} [{notice.kind.value}] {resource_id}: {notice.message}")
        return NotificationResult.ok()
