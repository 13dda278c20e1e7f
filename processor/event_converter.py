"""Conversion of discovered connpass events into pending event records."""
import logging
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

from catalog.connpass_client import EVENT_ID_PATTERN
from processor.models import CatalogItem, EventRecord, EventStatus

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200

# Fallbacks tried when the value is not ISO 8601
DATETIME_FORMATS = [
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d %H:%M',
    '%Y/%m/%d %H:%M:%S',
    '%Y/%m/%d %H:%M',
]


def validate_catalog_url(url: Optional[str]) -> bool:
    """
    Check that a URL is an https connpass event URL.

    Args:
        url: URL to validate

    Returns:
        True if the URL is on connpass.com (or a subdomain) and names an event
    """
    if not url:
        return False

    try:
        parsed = urlparse(url)
    except ValueError:
        return False

    if parsed.scheme != 'https':
        return False

    host = (parsed.hostname or '').lower()
    if host != 'connpass.com' and not host.endswith('.connpass.com'):
        return False

    return EVENT_ID_PATTERN.search(parsed.path) is not None


def normalize_datetime(value: str) -> str:
    """
    Normalize a date-time string to ISO 8601.

    Args:
        value: Date-time string, ISO 8601 or one of DATETIME_FORMATS

    Returns:
        ISO 8601 formatted string

    Raises:
        ValueError: If the value cannot be parsed
    """
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).isoformat()
    except ValueError:
        pass

    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).isoformat()
        except ValueError:
            continue

    raise ValueError(f"Invalid date-time: {value}")


def build_pending_record(
    item: CatalogItem,
    record_id: str,
    now: str
) -> EventRecord:
    """
    Build a pending EventRecord from a discovered catalog item.

    Args:
        item: Catalog item returned by the keyword search
        record_id: Identifier for the new record
        now: Creation timestamp (ISO 8601)

    Returns:
        EventRecord with status pending and no materials

    Raises:
        ValueError: If required fields are missing or invalid
    """
    if not item.title or not item.title.strip():
        raise ValueError('Missing required field in connpass event data: title')
    if not item.url:
        raise ValueError('Missing required field in connpass event data: url')
    if not item.started_at:
        raise ValueError(
            'Missing required field in connpass event data: started_at'
        )

    if not validate_catalog_url(item.url):
        raise ValueError(f"Invalid connpass URL: {item.url}")

    start = normalize_datetime(item.started_at)
    end = normalize_datetime(item.ended_at) if item.ended_at else None

    logger.debug(f"Converted connpass event: {item.title}")

    return EventRecord(
        id=record_id,
        title=item.title.strip()[:MAX_TITLE_LENGTH],
        url=item.url,
        datetime=start,
        end_datetime=end,
        status=EventStatus.PENDING,
        catalog_url=item.url,
        materials=[],
        created_at=now,
        updated_at=now
    )
