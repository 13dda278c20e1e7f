"""Rate-limited client for the connpass API v2."""
import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from catalog.material_types import infer_material_type
from catalog.rate_limiter import RateLimiter, shared_rate_limiter
from processor.errors import CatalogError, ErrorKind
from processor.models import CatalogItem, MaterialItem, SearchResult, utc_now_iso

logger = logging.getLogger(__name__)

EVENT_ID_PATTERN = re.compile(r'/event/(\d+)/?')


class ConnpassClient:
    """Client for the connpass event catalog."""

    BASE_URL = "https://connpass.com/api/v2"
    USER_AGENT = "IT-Study-Calendar-Bot/1.0"
    PRESENTATIONS_PAGE_SIZE = 100
    ORDER_BY_START = 2

    def __init__(
        self,
        api_key: str,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        rate_limit_retries: int = 1,
        rate_limit_backoff: float = 10.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the connpass client.

        Args:
            api_key: connpass API key sent as X-API-Key
            rate_limiter: Pacing gate; the process-wide limiter when omitted
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session; module-level requests.get when omitted
            rate_limit_retries: Times a request refused with 429 is reissued
            rate_limit_backoff: Extra seconds to wait before reissuing after 429
            sleep: Function used for the 429 backoff
        """
        self.api_key = api_key
        self.rate_limiter = rate_limiter or shared_rate_limiter()
        self.timeout = timeout
        self.session = session
        self.rate_limit_retries = rate_limit_retries
        self.rate_limit_backoff = rate_limit_backoff
        self._sleep = sleep

    def fetch_materials(self, event_id: str) -> List[MaterialItem]:
        """
        Fetch presentation materials for a connpass event.

        Args:
            event_id: connpass event identifier

        Returns:
            List of MaterialItem objects in the order connpass returns them

        Raises:
            CatalogError: If the request fails
        """
        logger.debug(f"Getting presentations for connpass event: {event_id}")

        data = self._request(
            f"/events/{event_id}/presentations/",
            {'count': self.PRESENTATIONS_PAGE_SIZE}
        )
        presentations = data.get('presentations') or []

        materials = [
            self._to_material(presentation, index)
            for index, presentation in enumerate(presentations)
        ]
        logger.debug(
            f"Converted {len(materials)} presentations for event {event_id}"
        )
        return materials

    def search_by_keyword(self, keyword: str, limit: int = 100) -> SearchResult:
        """
        Search connpass events by keyword, ordered by start date.

        Args:
            keyword: Search keyword
            limit: Maximum number of events to return (default: 100)

        Returns:
            SearchResult with the returned items and total available count

        Raises:
            CatalogError: If the request fails
        """
        logger.debug(f"Searching connpass events with keyword: {keyword}")

        data = self._request('/events/', {
            'keyword': keyword,
            'count': limit,
            'order': self.ORDER_BY_START
        })
        events = data.get('events') or []

        items = [self._to_catalog_item(event) for event in events]
        total_count = int(data.get('results_available') or 0)

        logger.info(
            f"Retrieved {len(items)} events from connpass API "
            f"(total available: {total_count})"
        )
        return SearchResult(items=items, total_count=total_count)

    def validate_credential(self) -> bool:
        """
        Check that the API key is accepted by connpass.

        Returns:
            True if a minimal request succeeds, False on any failure
        """
        logger.debug("Testing connpass API key validity")
        try:
            self._send('/events/', {'count': 1})
        except CatalogError as e:
            logger.error(
                f"connpass API key test failed: {e}",
                extra={'error_kind': e.kind.value}
            )
            return False

        logger.debug("connpass API key is valid")
        return True

    @staticmethod
    def extract_event_id(url: Optional[str]) -> Optional[str]:
        """
        Extract the connpass event ID from an event URL.

        Example: https://connpass.com/event/123456/ -> "123456"

        Args:
            url: connpass event URL

        Returns:
            Event ID string or None if the URL cannot be parsed
        """
        if not url or not isinstance(url, str):
            return None
        match = EVENT_ID_PATTERN.search(url)
        return match.group(1) if match else None

    def _request(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Send a request, reissuing it after a remote 429 up to the retry limit."""
        attempt = 0
        while True:
            try:
                return self._send(endpoint, params)
            except CatalogError as e:
                if (e.kind is not ErrorKind.REMOTE_RATE_LIMIT
                        or attempt >= self.rate_limit_retries):
                    raise
                attempt += 1
                logger.warning(
                    f"connpass API rate limit exceeded, retrying in "
                    f"{self.rate_limit_backoff} seconds "
                    f"(retry {attempt}/{self.rate_limit_retries})"
                )
                self._sleep(self.rate_limit_backoff)

    def _send(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Issue one paced GET request and classify failures.

        Args:
            endpoint: API path below BASE_URL
            params: Query parameters

        Returns:
            Decoded JSON body

        Raises:
            CatalogError: With the ErrorKind matching the failure
        """
        self.rate_limiter.wait()

        url = f"{self.BASE_URL}{endpoint}"
        logger.debug(
            f"Making request to connpass API: {url}",
            extra={'endpoint': endpoint, 'params': params}
        )

        try:
            get = self.session.get if self.session is not None else requests.get
            response = get(
                url,
                params=params,
                headers={
                    'X-API-Key': self.api_key,
                    'Content-Type': 'application/json',
                    'User-Agent': self.USER_AGENT
                },
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"connpass API transport failure on {endpoint}: {e}")
            raise CatalogError(
                f"connpass API request failed: {e}",
                ErrorKind.TRANSPORT
            ) from e

        status = response.status_code
        if status == 401:
            raise CatalogError(
                'connpass API authentication failed: Invalid API key',
                ErrorKind.AUTHENTICATION,
                status_code=status
            )
        if status == 429:
            raise CatalogError(
                'connpass API rate limit exceeded',
                ErrorKind.REMOTE_RATE_LIMIT,
                status_code=status
            )
        if not response.ok:
            logger.error(
                "connpass API request failed with HTTP error",
                extra={'status': status, 'endpoint': endpoint}
            )
            raise CatalogError(
                f"connpass API request failed: {status} {response.reason}",
                ErrorKind.REQUEST_FAILED,
                status_code=status
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CatalogError(
                f"connpass API returned malformed payload: {e}",
                ErrorKind.TRANSPORT,
                status_code=status
            ) from e

        if not isinstance(data, dict):
            raise CatalogError(
                'connpass API returned unexpected payload type',
                ErrorKind.TRANSPORT,
                status_code=status
            )
        return data

    def _to_material(self, presentation: Dict[str, Any], index: int) -> MaterialItem:
        """
        Convert a connpass presentation payload to a MaterialItem.

        Args:
            presentation: Presentation object from the API
            index: Position in the response, used for the generated ID

        Returns:
            MaterialItem object
        """
        url = presentation.get('url') or ''
        original_type = presentation.get('presentation_type')
        presenter = presentation.get('presenter') or {}

        # connpass does not assign IDs to presentations
        material_id = f"connpass_{int(time.time() * 1000)}_{index}"

        return MaterialItem(
            id=material_id,
            title=presentation.get('name') or 'Untitled Presentation',
            url=url,
            type=infer_material_type(url, original_type),
            created_at=presentation.get('created_at') or utc_now_iso(),
            thumbnail_url=presentation.get('thumbnail_url'),
            presenter_nickname=presenter.get('nickname'),
            original_type=original_type
        )

    def _to_catalog_item(self, event: Dict[str, Any]) -> CatalogItem:
        """Convert a connpass event payload to a CatalogItem."""
        event_id = event.get('id', event.get('event_id'))
        return CatalogItem(
            event_id=str(event_id) if event_id is not None else '',
            title=event.get('title') or '',
            url=event.get('url') or event.get('event_url') or '',
            started_at=event.get('started_at'),
            ended_at=event.get('ended_at'),
            description=self._html_to_text(event.get('description'))
        )

    @staticmethod
    def _html_to_text(html: Optional[str]) -> str:
        """Reduce an HTML description to plain text."""
        if not html:
            return ''
        soup = BeautifulSoup(html, 'html.parser')
        return soup.get_text(' ', strip=True)
