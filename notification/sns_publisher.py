"""SNS notifications for newly registered events."""
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from processor.errors import NotificationError
from processor.models import EventRecord, utc_now_iso

logger = logging.getLogger(__name__)

MESSAGE_TYPE = 'EVENT_REGISTERED'
MAX_SUBJECT_LENGTH = 100  # SNS subject limit


class SNSPublisher:
    """Publishes event registration notices to an SNS topic."""

    def __init__(self, topic_arn: Optional[str]):
        """
        Initialize the SNS client.

        Args:
            topic_arn: Target topic; notifications are disabled when empty
        """
        self.topic_arn = topic_arn or ''
        self.client = boto3.client('sns')

        if not self.topic_arn:
            logger.warning(
                "SNS_TOPIC_ARN not configured, notifications will be disabled"
            )

    def publish(self, record: EventRecord) -> None:
        """
        Publish a notification for a newly registered event.

        Args:
            record: Registered EventRecord

        Raises:
            NotificationError: If SNS rejects the message
        """
        if not self.topic_arn:
            logger.warning(
                "SNS topic ARN not configured, skipping notification",
                extra={'record_id': record.id}
            )
            return

        message = self.format_message(record)
        subject = f"New event registered: {record.title}"[:MAX_SUBJECT_LENGTH]

        try:
            response = self.client.publish(
                TopicArn=self.topic_arn,
                Message=json.dumps(message, ensure_ascii=False),
                Subject=subject
            )
        except ClientError as e:
            logger.error(
                f"Failed to send notification for event {record.id}: {e}",
                extra={'topic_arn': self.topic_arn}
            )
            raise NotificationError(
                f"SNS publish failed for event {record.id}: {e}"
            ) from e

        logger.info(
            "Event registration notification sent",
            extra={
                'record_id': record.id,
                'message_id': response.get('MessageId'),
                'topic_arn': self.topic_arn
            }
        )

    def format_message(self, record: EventRecord) -> Dict[str, Any]:
        """Build the JSON notification payload."""
        return {
            'messageType': MESSAGE_TYPE,
            'timestamp': utc_now_iso(),
            'event': {
                'id': record.id,
                'title': record.title,
                'datetime': record.datetime,
                'endDatetime': record.end_datetime,
                'url': record.url,
                'contact': record.contact,
                'status': record.status.value,
                'registeredAt': record.created_at
            },
            'summary': self.create_summary(record)
        }

    def create_summary(self, record: EventRecord) -> str:
        """Build a human-readable summary of the event."""
        lines = [f"New event \"{record.title}\" has been registered."]

        when = _format_datetime(record.datetime)
        if record.end_datetime:
            when += f" - {_format_datetime(record.end_datetime, time_only=True)}"
        lines.append(f"Date: {when}")
        lines.append(f"URL: {record.url}")

        if record.contact:
            lines.append(f"Contact: {record.contact}")

        return '\n'.join(lines)


def _format_datetime(value: str, time_only: bool = False) -> str:
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (AttributeError, ValueError):
        return value
    if time_only:
        return parsed.strftime('%H:%M')
    return parsed.strftime('%Y-%m-%d (%a) %H:%M')
