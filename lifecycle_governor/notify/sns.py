"""Amazon SNS notifier."""

from __future__ import annotations

import json
import logging
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..aws.client import create_boto_client
from .base import ExpiryNotice, NotificationResult, Notifier

logger = logging.getLogger(__name__)


class SnsNotifier(Notifier):
    """Publishes notices to an SNS topic.

    The recipient travels as a message attribute so subscribers (email
    forwarders, chat webhooks) can route on it with a filter policy.
    """

    def __init__(self, topic_arn: str, region: Optional[str] = None, aws_profile: Optional[str] = None) -> None:
        """Initialize SNS notifier.

        Args:
            topic_arn: Topic to publish to
            region: AWS region (default: taken from the topic ARN)
            aws_profile: AWS profile name (optional)
        """
        if not topic_arn.startswith("arn:"):
            raise ValueError(f"Invalid SNS topic ARN: {topic_arn}")
        self.topic_arn = topic_arn
        self.region = region or topic_arn.split(":")[3]
        self.aws_profile = aws_profile
        self._sns = None

    @property
    def name(self) -> str:
        return "sns"

    def _client(self):
        if self._sns is None:
            self._sns = create_boto_client("sns", region_name=self.region, profile_name=self.aws_profile)
        return self._sns

    def notify(self, resource_id: str, recipient: str, notice: ExpiryNotice) -> NotificationResult:
        payload = {
            "default": notice.render(resource_id),
            "email": notice.render(resource_id),
            "lambda": json.dumps({"resource_id": resource_id, "recipient": recipient, **notice.to_dict()}),
        }
        try:
            response = self._client().publish(
                TopicArn=self.topic_arn,
                Subject=notice.subject[:100],
                Message=json.dumps(payload),
                MessageStructure="json",
                MessageAttributes={
                    "recipient": {"DataType": "String", "StringValue": recipient},
                    "notice_kind": {"DataType": "String", "StringValue": notice.kind.value},
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"SNS publish for {resource_id} to {recipient} failed: {e}")
            return NotificationResult.failed(str(e))

        return NotificationResult.ok(message_id=response.get("MessageId"))
