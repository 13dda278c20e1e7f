"""Unit tests for SNSPublisher."""
import json
from unittest.mock import patch

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from notification.sns_publisher import MAX_SUBJECT_LENGTH, SNSPublisher
from processor.errors import NotificationError
from processor.models import EventRecord, EventStatus


@pytest.fixture
def topic_arn():
    with mock_aws():
        sns = boto3.client('sns', region_name='us-east-1')
        yield sns.create_topic(Name='event-registrations')['TopicArn']


@pytest.fixture
def record():
    return EventRecord(
        id='rec-1',
        title='Hiroshima.py #1',
        url='https://hiroshimapy.connpass.com/event/111/',
        datetime='2024-02-01T19:00:00+09:00',
        end_datetime='2024-02-01T21:00:00+09:00',
        status=EventStatus.PENDING,
        created_at='2024-01-10T00:00:00.000Z',
        updated_at='2024-01-10T00:00:00.000Z',
        catalog_url='https://hiroshimapy.connpass.com/event/111/'
    )


class TestSNSPublisher:
    """Test cases for SNSPublisher class."""

    def test_publish(self, topic_arn, record):
        """Test publishing to a configured topic."""
        publisher = SNSPublisher(topic_arn)

        with patch.object(publisher.client, 'publish', wraps=publisher.client.publish) as publish:
            publisher.publish(record)

        kwargs = publish.call_args.kwargs
        assert kwargs['TopicArn'] == topic_arn
        assert kwargs['Subject'] == 'New event registered: Hiroshima.py #1'
        message = json.loads(kwargs['Message'])
        assert message['messageType'] == 'EVENT_REGISTERED'
        assert message['event']['id'] == 'rec-1'
        assert message['event']['status'] == 'pending'
        assert message['event']['registeredAt'] == '2024-01-10T00:00:00.000Z'
        assert 'https://hiroshimapy.connpass.com/event/111/' in message['summary']

    def test_no_topic_skips(self, record):
        """Test that notifications are disabled without a topic."""
        publisher = SNSPublisher('')

        with patch.object(publisher.client, 'publish') as publish:
            publisher.publish(record)

        publish.assert_not_called()

    def test_client_error_raises_notification_error(self, topic_arn, record):
        publisher = SNSPublisher(topic_arn)
        error = ClientError(
            {'Error': {'Code': 'InternalError', 'Message': 'boom'}},
            'Publish'
        )

        with patch.object(publisher.client, 'publish', side_effect=error):
            with pytest.raises(NotificationError):
                publisher.publish(record)

    def test_subject_is_truncated(self, topic_arn, record):
        record.title = 'x' * 300
        publisher = SNSPublisher(topic_arn)

        with patch.object(publisher.client, 'publish', wraps=publisher.client.publish) as publish:
            publisher.publish(record)

        assert len(publish.call_args.kwargs['Subject']) == MAX_SUBJECT_LENGTH

    def test_summary(self, topic_arn, record):
        record.contact = 'organizer@example.com'
        summary = SNSPublisher(topic_arn).create_summary(record)

        assert 'Hiroshima.py #1' in summary
        assert '2024-02-01 (Thu) 19:00 - 21:00' in summary
        assert 'Contact: organizer@example.com' in summary
