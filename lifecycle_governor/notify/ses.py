"""Amazon SES email notifier."""

from __future__ import annotations

import logging
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..aws.client import create_boto_client
from .base import ExpiryNotice, NotificationResult, Notifier

logger = logging.getLogger(__name__)


class SesNotifier(Notifier):
    """Sends notices as plain-text email through SES."""

    def __init__(self, sender: str, region: Optional[str] = None, aws_profile: Optional[str] = None) -> None:
        """Initialize SES notifier.

        Args:
            sender: Verified SES sender address
            region: AWS region (optional)
            aws_profile: AWS profile name (optional)
        """
        if "@" not in sender:
            raise ValueError(f"Invalid sender address: {sender}")
        self.sender = sender
        self.region = region
        self.aws_profile = aws_profile
        self._ses = None

    @property
    def name(self) -> str:
        return "ses"

    def _client(self):
        if self._ses is None:
            self._ses = create_boto_client("ses", region_name=self.region, profile_name=self.aws_profile)
        return self._ses

    def notify(self, resource_id: str, recipient: str, notice: ExpiryNotice) -> NotificationResult:
        if "@" not in recipient:
            return NotificationResult.failed(f"Recipient {recipient!r} is not an email address")

        try:
            response = self._client().send_email(
                Source=self.sender,
                Destination={"ToAddresses": [recipient]},
                Message={
                    "Subject": {"Data": notice.subject, "Charset": "UTF-8"},
                    "Body": {"Text": {"Data": notice.render(resource_id), "Charset": "UTF-8"}},
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"SES email for {resource_id} to {recipient} failed: {e}")
            return NotificationResult.failed(str(e))

        return NotificationResult.ok(message_id=response.get("MessageId"))
