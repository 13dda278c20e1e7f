"""Data models for the materials batch."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class MaterialType(Enum):
    SLIDE = 'slide'
    DOCUMENT = 'document'
    VIDEO = 'video'
    OTHER = 'other'


class EventStatus(Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class RunStatus(Enum):
    FATAL = 'fatal'
    RAN = 'ran'


@dataclass
class CatalogItem:
    """Event as returned by the connpass search endpoint."""
    event_id: str
    title: str
    url: str
    started_at: Optional[str]
    ended_at: Optional[str]
    description: str


@dataclass
class SearchResult:
    """Result of a keyword search."""
    items: List[CatalogItem]
    total_count: int


@dataclass
class MaterialItem:
    """Presentation material attached to an event."""
    id: str
    title: str
    url: str
    type: MaterialType
    created_at: str
    thumbnail_url: Optional[str] = None
    presenter_nickname: Optional[str] = None
    original_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        item = {
            'id': self.id,
            'title': self.title,
            'url': self.url,
            'type': self.type.value,
            'createdAt': self.created_at
        }
        if self.thumbnail_url:
            item['thumbnailUrl'] = self.thumbnail_url
        if self.presenter_nickname:
            item['presenterNickname'] = self.presenter_nickname
        if self.original_type:
            item['originalType'] = self.original_type
        return item

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MaterialItem':
        return cls(
            id=data['id'],
            title=data['title'],
            url=data['url'],
            type=MaterialType(data.get('type', 'other')),
            created_at=data['createdAt'],
            thumbnail_url=data.get('thumbnailUrl'),
            presenter_nickname=data.get('presenterNickname'),
            original_type=data.get('originalType')
        )


@dataclass
class EventRecord:
    """Stored calendar event."""
    id: str
    title: str
    url: str
    datetime: str
    status: EventStatus
    created_at: str
    updated_at: str
    end_datetime: Optional[str] = None
    contact: Optional[str] = None
    catalog_url: Optional[str] = None
    materials: List[MaterialItem] = field(default_factory=list)


@dataclass
class ItemOutcome:
    """Outcome of syncing the materials of one record."""
    success: bool
    error: Optional[str] = None


@dataclass
class StageOutcome:
    """Aggregate counters of the materials sync stage."""
    processed: int
    succeeded: int
    failed: int
    errors: List[str] = field(default_factory=list)


@dataclass
class DiscoveryItemOutcome:
    """Outcome of handling one discovered catalog item."""
    registered: Optional[EventRecord] = None
    duplicate: bool = False
    errors: List[str] = field(default_factory=list)


@dataclass
class DiscoveryResult:
    """Result of the discovery stage."""
    total_found: int
    new_registrations: int
    duplicates_skipped: int
    errors: List[str] = field(default_factory=list)
    registered_events: List[EventRecord] = field(default_factory=list)

    @classmethod
    def failed(cls, message: str) -> 'DiscoveryResult':
        """All-zero result carrying a single error."""
        return cls(
            total_found=0,
            new_registrations=0,
            duplicates_skipped=0,
            errors=[message],
            registered_events=[]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalFound': self.total_found,
            'newRegistrations': self.new_registrations,
            'duplicatesSkipped': self.duplicates_skipped,
            'errors': list(self.errors),
            'registeredEvents': [
                {'id': event.id, 'title': event.title, 'url': event.url}
                for event in self.registered_events
            ]
        }


@dataclass
class BatchResult:
    """Outcome of one batch run."""
    status: RunStatus
    processed_count: int
    success_count: int
    error_count: int
    errors: Optional[List[str]] = None
    discovery: Optional[DiscoveryResult] = None

    @property
    def failed(self) -> bool:
        """True when the run was fatal or every processed item failed."""
        if self.status is RunStatus.FATAL:
            return True
        return self.processed_count > 0 and self.success_count == 0

    def to_dict(self) -> Dict[str, Any]:
        body = {
            'status': self.status.value,
            'processedCount': self.processed_count,
            'successCount': self.success_count,
            'errorCount': self.error_count
        }
        if self.errors:
            body['errors'] = list(self.errors)
        if self.discovery is not None:
            body['discovery'] = self.discovery.to_dict()
        return body


@dataclass
class BatchStatistics:
    """Material coverage of approved catalog events."""
    total_events: int
    events_with_materials: int
    events_without_materials: int
    last_update_time: Optional[str]
