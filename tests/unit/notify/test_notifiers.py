"""Unit tests for notice rendering and the log, SNS and SES notifiers."""

from __future__ import annotations

import json
from datetime import date
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from lifecycle_governor.notify.base import ExpiryNotice, LogNotifier, NoticeKind
from lifecycle_governor.notify.ses import SesNotifier
from lifecycle_governor.notify.sns import SnsNotifier

TOPIC_ARN = "arn:aws:sns:eu-west-1:123456789012:lifecycle-notices"


def create_notice(**overrides) -> ExpiryNotice:
    values = dict(
        kind=NoticeKind.WARNING,
        resource_kind="VM",
        message="Expired on 2024-01-01",
        days_until_expiry=-9,
        eligible_on=date(2024, 1, 8),
        grace_period_days=7,
        region="us-east-1",
    )
    values.update(overrides)
    return ExpiryNotice(**values)


class TestExpiryNotice:
    """Tests for ExpiryNotice rendering."""

    def test_render_warning(self) -> None:
        """Test warnings name the resource, reason, date and grace period."""
        text = create_notice().render("vm-1")

        assert "Resource: vm-1" in text
        assert "Reason: Expired on 2024-01-01" in text
        assert "2024-01-08" in text
        assert "no earlier than 7 days" in text
        assert "no owner tag" not in text

    def test_render_protection_tags(self) -> None:
        """Test the configured protection tags are named, and omitted when there are none."""
        tagged = create_notice(protection_tags=("keep", "legal-hold")).render("vm-1")
        untagged = create_notice().render("vm-1")

        assert "unless it is tagged keep or legal-hold, its expiry_date is extended or it is used again." in tagged
        assert "tagged" not in untagged
        assert "unless its expiry_date is extended or it is used again." in untagged

    def test_render_fallback_recipient(self) -> None:
        """Test fallback recipients are told why they received the notice."""
        assert "no owner tag" in create_notice(used_fallback=True).render("vm-1")

    def test_operator_alert_subject(self) -> None:
        """Test operator alerts use their own subject and omit the grace text."""
        notice = create_notice(kind=NoticeKind.OPERATOR_ALERT, message="AccessDenied")

        assert "needs attention" in notice.subject
        assert "no earlier than" not in notice.render("vm-1")

    def test_to_dict(self) -> None:
        """Test notice serialization."""
        data = create_notice().to_dict()

        assert data["kind"] == "warning"
        assert data["eligible_on"] == "2024-01-08"


class TestLogNotifier:
    """Tests for LogNotifier."""

    def test_notify_logs_and_succeeds(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test the log transport always delivers."""
        with caplog.at_level("INFO"):
            result = LogNotifier().notify("vm-1", "alice@example.com", create_notice())

        assert result.delivered is True
        assert "alice@example.com" in caplog.text


class TestSnsNotifier:
    """Tests for SnsNotifier."""

    def test_region_from_topic_arn(self) -> None:
        """Test the region defaults to the topic's region."""
        assert SnsNotifier(TOPIC_ARN).region == "eu-west-1"

    def test_invalid_topic_rejected(self) -> None:
        """Test non-ARN topics are rejected."""
        with pytest.raises(ValueError):
            SnsNotifier("lifecycle-notices")

    @patch("lifecycle_governor.notify.sns.create_boto_client")
    def test_publish_with_recipient_attribute(self, mock_create_client: Mock) -> None:
        """Test publishing carries the recipient as a message attribute."""
        mock_client = Mock()
        mock_client.publish.return_value = {"MessageId": "msg-1"}
        mock_create_client.return_value = mock_client

        result = SnsNotifier(TOPIC_ARN, aws_profile="prod").notify("vm-1", "alice@example.com", create_notice())

        assert result.delivered is True
        assert result.message_id == "msg-1"
        kwargs = mock_client.publish.call_args.kwargs
        assert kwargs["TopicArn"] == TOPIC_ARN
        assert kwargs["MessageAttributes"]["recipient"]["StringValue"] == "alice@example.com"
        payload = json.loads(kwargs["Message"])
        assert json.loads(payload["lambda"])["resource_id"] == "vm-1"
        mock_create_client.assert_called_once_with("sns", region_name="eu-west-1", profile_name="prod")

    @patch("lifecycle_governor.notify.sns.create_boto_client")
    def test_publish_failure_is_reported(self, mock_create_client: Mock) -> None:
        """Test transport errors become failed results instead of exceptions."""
        mock_client = Mock()
        mock_client.publish.side_effect = EndpointConnectionError(endpoint_url="https://sns.eu-west-1.amazonaws.com")
        mock_create_client.return_value = mock_client

        result = SnsNotifier(TOPIC_ARN).notify("vm-1", "alice@example.com", create_notice())

        assert result.delivered is False
        assert "sns.eu-west-1" in result.reason


class TestSesNotifier:
    """Tests for SesNotifier."""

    def test_invalid_sender_rejected(self) -> None:
        """Test the sender must be an email address."""
        with pytest.raises(ValueError):
            SesNotifier("lifecycle")

    @patch("lifecycle_governor.notify.ses.create_boto_client")
    def test_send_email(self, mock_create_client: Mock) -> None:
        """Test a warning is sent as a plain-text email."""
        mock_client = Mock()
        mock_client.send_email.return_value = {"MessageId": "ses-1"}
        mock_create_client.return_value = mock_client

        result = SesNotifier("governor@example.com").notify("vm-1", "alice@example.com", create_notice())

        assert result.delivered is True
        kwargs = mock_client.send_email.call_args.kwargs
        assert kwargs["Source"] == "governor@example.com"
        assert kwargs["Destination"] == {"ToAddresses": ["alice@example.com"]}
        assert "Resource: vm-1" in kwargs["Message"]["Body"]["Text"]["Data"]

    @patch("lifecycle_governor.notify.ses.create_boto_client")
    def test_non_email_recipient_fails_without_call(self, mock_create_client: Mock) -> None:
        """Test recipients that are not addresses fail locally."""
        result = SesNotifier("governor@example.com").notify("vm-1", "team-data", create_notice())

        assert result.delivered is False
        mock_create_client.assert_not_called()

    @patch("lifecycle_governor.notify.ses.create_boto_client")
    def test_rejected_message_is_reported(self, mock_create_client: Mock) -> None:
        """Test SES rejections become failed results."""
        mock_client = Mock()
        mock_client.send_email.side_effect = ClientError(
            {"Error": {"Code": "MessageRejected", "Message": "Email address is not verified"}}, "SendEmail"
        )
        mock_create_client.return_value = mock_client

        result = SesNotifier("governor@example.com").notify("vm-1", "alice@example.com", create_notice())

        assert result.delivered is False
        assert "not verified" in result.reason
