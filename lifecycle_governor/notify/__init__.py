"""Notification transports for owner warnings and operator alerts."""

from .base import ExpiryNotice, LogNotifier, NoticeKind, NotificationResult, Notifier

__all__ = ["ExpiryNotice", "LogNotifier", "NoticeKind", "NotificationResult", "Notifier"]
