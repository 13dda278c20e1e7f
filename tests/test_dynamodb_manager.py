"""Unit tests for DynamoDB manager."""
from unittest.mock import patch

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from processor.errors import StoreError
from processor.models import (
    CatalogItem,
    EventRecord,
    EventStatus,
    MaterialItem,
    MaterialType,
)
from processor.orchestrator import collect_statistics
from storage.dynamodb_manager import DynamoDBManager

TABLE_NAME = 'test-study-sessions'


@pytest.fixture
def dynamodb_table():
    """Create a mock DynamoDB table for testing."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')

        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {'AttributeName': 'id', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'id', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )

        yield table


@pytest.fixture
def dynamodb_manager(dynamodb_table):
    """Create DynamoDBManager instance with mock table."""
    return DynamoDBManager(TABLE_NAME)


def make_record(record_id, status=EventStatus.APPROVED, catalog_url='default'):
    if catalog_url == 'default':
        catalog_url = f"https://connpass.com/event/{record_id}/"
    return EventRecord(
        id=record_id,
        title=f"Event {record_id}",
        url=catalog_url or f"https://example.com/{record_id}",
        datetime='2024-02-01T19:00:00+09:00',
        end_datetime='2024-02-01T21:00:00+09:00',
        status=status,
        created_at='2024-01-01T00:00:00.000Z',
        updated_at='2024-01-01T00:00:00.000Z',
        catalog_url=catalog_url
    )


@pytest.fixture
def catalog_item():
    return CatalogItem(
        event_id='555',
        title='Hiroshima.py #5',
        url='https://hiroshimapy.connpass.com/event/555/',
        started_at='2024-03-01T19:00:00+09:00',
        ended_at='2024-03-01T21:00:00+09:00',
        description='Python meetup'
    )


def test_query_empty_table(dynamodb_manager):
    """Test query returns empty list for empty table."""
    assert dynamodb_manager.query_approved_with_external_url() == []


def test_query_filters_status_and_connpass_url(dynamodb_manager):
    """Test that only approved records with a connpass URL are returned."""
    dynamodb_manager.upsert(make_record('1'))
    dynamodb_manager.upsert(make_record('2', status=EventStatus.PENDING))
    dynamodb_manager.upsert(make_record('3', status=EventStatus.REJECTED))
    dynamodb_manager.upsert(make_record('4', catalog_url=None))

    records = dynamodb_manager.query_approved_with_external_url()

    assert [record.id for record in records] == ['1']
    assert records[0].catalog_url == 'https://connpass.com/event/1/'
    assert records[0].end_datetime == '2024-02-01T21:00:00+09:00'


def test_upsert_round_trips_materials(dynamodb_manager):
    """Test that materials survive a write and read."""
    record = make_record('1')
    record.materials = [
        MaterialItem(
            id='connpass_1_0',
            title='Slides',
            url='https://speakerdeck.com/user/talk',
            type=MaterialType.SLIDE,
            created_at='2024-02-01T00:00:00Z',
            presenter_nickname='alice',
            original_type='slide'
        )
    ]

    dynamodb_manager.upsert(record)
    stored = dynamodb_manager.query_approved_with_external_url()[0]

    assert stored.materials == record.materials


def test_upsert_replaces_materials(dynamodb_manager):
    """Test that a second upsert replaces rather than merges materials."""
    record = make_record('1')
    record.materials = [
        MaterialItem('m1', 'Old', 'https://a.example/old.pdf', MaterialType.SLIDE, 't'),
        MaterialItem('m2', 'Old 2', 'https://a.example/old2.pdf', MaterialType.SLIDE, 't'),
    ]
    dynamodb_manager.upsert(record)

    record.materials = [
        MaterialItem('m3', 'New', 'https://youtu.be/x', MaterialType.VIDEO, 't')
    ]
    dynamodb_manager.upsert(record)

    stored = dynamodb_manager.query_approved_with_external_url()[0]
    assert [m.id for m in stored.materials] == ['m3']


def test_exists_by_url(dynamodb_manager):
    """Test exact URL matching."""
    dynamodb_manager.upsert(make_record('1'))

    assert dynamodb_manager.exists_by_url('https://connpass.com/event/1/') is True
    assert dynamodb_manager.exists_by_url('https://connpass.com/event/1') is False
    assert dynamodb_manager.exists_by_url('https://connpass.com/event/2/') is False


def test_create_from_catalog_item(dynamodb_manager, dynamodb_table, catalog_item):
    """Test registering a discovered event as pending."""
    record = dynamodb_manager.create_from_catalog_item(catalog_item)

    assert record.status == EventStatus.PENDING
    assert record.url == catalog_item.url
    assert record.catalog_url == catalog_item.url
    assert record.materials == []

    item = dynamodb_table.get_item(Key={'id': record.id})['Item']
    assert item['status'] == 'pending'
    assert item['title'] == 'Hiroshima.py #5'
    assert item['connpassUrl'] == catalog_item.url
    assert dynamodb_manager.exists_by_url(catalog_item.url) is True


def test_created_record_not_eligible_for_sync(dynamodb_manager, catalog_item):
    """Test that pending records are excluded from the sync query."""
    dynamodb_manager.create_from_catalog_item(catalog_item)

    assert dynamodb_manager.query_approved_with_external_url() == []


def test_create_with_invalid_item_raises_store_error(dynamodb_manager, catalog_item):
    catalog_item.url = 'https://example.com/event/1/'

    with pytest.raises(StoreError, match='Invalid connpass event data'):
        dynamodb_manager.create_from_catalog_item(catalog_item)


def test_malformed_items_are_skipped(dynamodb_manager, dynamodb_table):
    """Test that items missing required attributes are ignored."""
    dynamodb_table.put_item(Item={
        'id': 'broken',
        'status': 'approved',
        'connpassUrl': 'https://connpass.com/event/9/'
    })
    dynamodb_manager.upsert(make_record('1'))

    records = dynamodb_manager.query_approved_with_external_url()

    assert [record.id for record in records] == ['1']


def test_client_errors_become_store_errors(dynamodb_manager):
    """Test that DynamoDB failures are raised as StoreError."""
    error = ClientError(
        {'Error': {'Code': 'ProvisionedThroughputExceededException', 'Message': 'slow down'}},
        'Scan'
    )
    with patch.object(dynamodb_manager.table, 'scan', side_effect=error):
        with pytest.raises(StoreError):
            dynamodb_manager.query_approved_with_external_url()
        with pytest.raises(StoreError):
            dynamodb_manager.exists_by_url('https://connpass.com/event/1/')

    with patch.object(dynamodb_manager.table, 'put_item', side_effect=error):
        with pytest.raises(StoreError):
            dynamodb_manager.upsert(make_record('1'))


def test_null_materials_do_not_break_query(dynamodb_manager, dynamodb_table):
    """Test that a record stored with null materials is still eligible."""
    dynamodb_manager.upsert(make_record('1'))
    item = dynamodb_manager._record_to_item(make_record('2'))
    item['materials'] = None
    dynamodb_table.put_item(Item=item)

    records = dynamodb_manager.query_approved_with_external_url()

    assert sorted(record.id for record in records) == ['1', '2']
    assert all(record.materials == [] for record in records)


def test_malformed_material_entries_are_dropped(dynamodb_manager, dynamodb_table):
    """Test that unreadable material entries do not hide the record."""
    item = dynamodb_manager._record_to_item(make_record('1'))
    item['materials'] = [
        {'id': 'legacy', 'url': 'https://example.com/slides.pdf'},
        'not-a-map',
        {
            'id': 'm1',
            'title': 'Slides',
            'url': 'https://speakerdeck.com/user/talk',
            'type': 'slide',
            'createdAt': '2024-02-01T00:00:00Z'
        }
    ]
    dynamodb_table.put_item(Item=item)

    records = dynamodb_manager.query_approved_with_external_url()

    assert [record.id for record in records] == ['1']
    assert [material.id for material in records[0].materials] == ['m1']


def test_statistics_cover_approved_catalog_records(dynamodb_manager, catalog_item):
    """Test that statistics count only approved records with a connpass URL."""
    with_materials = make_record('1')
    with_materials.materials = [
        MaterialItem('m1', 'Slides', 'https://speakerdeck.com/x', MaterialType.SLIDE, 't')
    ]
    with_materials.updated_at = '2024-03-01T00:00:00.000Z'
    dynamodb_manager.upsert(with_materials)
    dynamodb_manager.upsert(make_record('2'))
    dynamodb_manager.upsert(make_record('3', catalog_url=None))
    dynamodb_manager.create_from_catalog_item(catalog_item)

    statistics = collect_statistics(dynamodb_manager)

    assert statistics.total_events == 2
    assert statistics.events_with_materials == 1
    assert statistics.events_without_materials == 1
    assert statistics.last_update_time == '2024-03-01T00:00:00.000Z'
