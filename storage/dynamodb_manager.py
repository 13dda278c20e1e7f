"""DynamoDB manager for event record storage operations."""
import logging
import uuid
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from processor.errors import StoreError
from processor.event_converter import build_pending_record
from processor.models import (
    CatalogItem,
    EventRecord,
    EventStatus,
    MaterialItem,
    utc_now_iso,
)

logger = logging.getLogger(__name__)


class DynamoDBManager:
    """Manager for event records stored in DynamoDB."""

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBManager for table: {table_name}")

    def query_approved_with_external_url(self) -> List[EventRecord]:
        """
        Retrieve approved events that carry a connpass URL.

        Returns:
            List of EventRecord objects in scan order

        Raises:
            StoreError: If the scan fails
        """
        logger.info("Scanning DynamoDB table for approved connpass events")
        items = self._scan(
            Attr('status').eq(EventStatus.APPROVED.value)
            & Attr('connpassUrl').exists()
        )

        records = []
        for item in items:
            record = self._item_to_record(item)
            if record and record.catalog_url:
                records.append(record)

        logger.info(f"Retrieved {len(records)} approved events with connpass URL")
        return records

    def upsert(self, record: EventRecord) -> EventRecord:
        """
        Create or replace an event record.

        Args:
            record: EventRecord to write

        Returns:
            The written EventRecord

        Raises:
            StoreError: If the write fails
        """
        try:
            self.table.put_item(Item=self._record_to_item(record))
        except ClientError as e:
            logger.error(f"Error upserting event record {record.id}: {e}")
            raise StoreError(f"Failed to upsert event {record.id}: {e}") from e

        logger.debug(f"Event record upserted successfully: {record.id}")
        return record

    def exists_by_url(self, url: str) -> bool:
        """
        Check whether a record with exactly this URL exists.

        Args:
            url: Canonical event URL

        Returns:
            True if at least one record has this URL

        Raises:
            StoreError: If the scan fails
        """
        scan_kwargs = {'FilterExpression': Attr('url').eq(url)}
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                if response.get('Items'):
                    return True
                if 'LastEvaluatedKey' not in response:
                    return False
                scan_kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except ClientError as e:
            logger.error(f"Error checking for existing event {url}: {e}")
            raise StoreError(f"Duplicate check failed for {url}: {e}") from e

    def create_from_catalog_item(self, item: CatalogItem) -> EventRecord:
        """
        Register a discovered connpass event as a pending record.

        Args:
            item: CatalogItem from the keyword search

        Returns:
            The created EventRecord

        Raises:
            StoreError: If the item is invalid or the write fails
        """
        try:
            record = build_pending_record(
                item,
                record_id=uuid.uuid4().hex,
                now=utc_now_iso()
            )
        except ValueError as e:
            raise StoreError(f"Invalid connpass event data: {e}") from e

        try:
            self.table.put_item(
                Item=self._record_to_item(record),
                ConditionExpression='attribute_not_exists(id)'
            )
        except ClientError as e:
            logger.error(f"Error creating event record for {item.url}: {e}")
            raise StoreError(f"Failed to create event for {item.url}: {e}") from e

        logger.info(f"Created pending event {record.id} for {record.url}")
        return record

    def _scan(self, filter_expression) -> List[Dict[str, Any]]:
        """
        Scan the table with a filter, following pagination.

        Raises:
            StoreError: If the scan fails
        """
        try:
            response = self.table.scan(FilterExpression=filter_expression)
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    FilterExpression=filter_expression,
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

            return items

        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise StoreError(f"Failed to scan {self.table_name}: {e}") from e

    def _item_to_record(self, item: dict) -> Optional[EventRecord]:
        """
        Convert DynamoDB item to EventRecord object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            EventRecord object or None if conversion fails
        """
        try:
            return EventRecord(
                id=item['id'],
                title=item['title'],
                url=item['url'],
                datetime=item['datetime'],
                end_datetime=item.get('endDatetime'),
                contact=item.get('contact'),
                status=EventStatus(item['status']),
                catalog_url=item.get('connpassUrl'),
                materials=self._materials_from_item(item),
                created_at=item['createdAt'],
                updated_at=item.get('updatedAt', item['createdAt'])
            )
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to convert item to EventRecord: {e}")
            return None

    def _materials_from_item(self, item: dict) -> List[MaterialItem]:
        """Parse stored materials, dropping entries that cannot be read."""
        materials = []
        for material in item.get('materials') or []:
            try:
                materials.append(MaterialItem.from_dict(material))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning(
                    f"Skipping malformed material on event {item.get('id')}: {e}"
                )
        return materials

    def _record_to_item(self, record: EventRecord) -> dict:
        """
        Convert EventRecord object to DynamoDB item.

        Args:
            record: EventRecord object

        Returns:
            DynamoDB item dictionary
        """
        item = {
            'id': record.id,
            'title': record.title,
            'url': record.url,
            'datetime': record.datetime,
            'status': record.status.value,
            'materials': [material.to_dict() for material in record.materials],
            'createdAt': record.created_at,
            'updatedAt': record.updated_at
        }

        # Add optional fields if present
        if record.end_datetime:
            item['endDatetime'] = record.end_datetime
        if record.contact:
            item['contact'] = record.contact
        if record.catalog_url:
            item['connpassUrl'] = record.catalog_url

        return item
