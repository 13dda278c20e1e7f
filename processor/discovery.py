"""Discovery stage: finds new connpass events by keyword and registers them."""
import logging
from typing import List

from catalog.connpass_client import ConnpassClient
from processor.errors import CatalogError, ErrorKind
from processor.models import CatalogItem, DiscoveryItemOutcome, DiscoveryResult
from processor.outcomes import fold_discovery_outcomes

logger = logging.getLogger(__name__)

DEFAULT_KEYWORD = '広島'
DEFAULT_MAX_RESULTS = 100


class DiscoveryStage:
    """Searches the catalog, deduplicates by URL, registers and notifies."""

    def __init__(
        self,
        client: ConnpassClient,
        store,
        notifier,
        keyword: str = DEFAULT_KEYWORD,
        max_results: int = DEFAULT_MAX_RESULTS
    ):
        self.client = client
        self.store = store
        self.notifier = notifier
        self.keyword = keyword
        self.max_results = max_results

    def run(self) -> DiscoveryResult:
        """
        Discover and register events matching the keyword.

        A failed search ends the stage with an all-zero result and one error.

        Returns:
            DiscoveryResult with counts, errors and registered records
        """
        logger.info(
            f"Searching connpass events with keyword \"{self.keyword}\""
        )
        try:
            search_result = self.client.search_by_keyword(
                self.keyword,
                self.max_results
            )
        except Exception as e:
            error_msg = self._describe_search_failure(e)
            logger.error(
                error_msg,
                extra={'keyword': self.keyword, 'error_type': type(e).__name__}
            )
            return DiscoveryResult.failed(error_msg)

        items = search_result.items
        total_found = len(items)
        logger.info(f"Found {total_found} events from connpass API")

        outcomes: List[DiscoveryItemOutcome] = []
        for index, item in enumerate(items):
            outcomes.append(self.process_item(item, index + 1))

        result = fold_discovery_outcomes(total_found, outcomes)
        self._log_summary(result)
        return result

    def process_item(self, item: CatalogItem, number: int) -> DiscoveryItemOutcome:
        """
        Deduplicate, register and announce one catalog item.

        Args:
            item: Catalog item from the search
            number: 1-based position of the item, used in messages

        Returns:
            DiscoveryItemOutcome for the item
        """
        logger.debug(
            f"Processing event {number}: \"{item.title}\" (URL: {item.url})"
        )

        try:
            exists = self.store.exists_by_url(item.url)
        except Exception as e:
            error_msg = f"Duplicate check failed for event {number}: {e}"
            logger.error(
                error_msg,
                extra={'url': item.url, 'error_type': type(e).__name__}
            )
            return DiscoveryItemOutcome(errors=[error_msg])

        if exists:
            logger.info(
                f"Event {number} is duplicate, skipping: \"{item.title}\""
            )
            return DiscoveryItemOutcome(duplicate=True)

        try:
            record = self.store.create_from_catalog_item(item)
        except Exception as e:
            error_msg = f"Registration failed for event {number}: {e}"
            logger.error(
                error_msg,
                extra={'url': item.url, 'error_type': type(e).__name__}
            )
            return DiscoveryItemOutcome(errors=[error_msg])

        logger.info(
            f"Successfully registered event {number}: "
            f"\"{record.title}\" (ID: {record.id})"
        )
        outcome = DiscoveryItemOutcome(registered=record)

        try:
            self.notifier.publish(record)
        except Exception as e:
            error_msg = (
                f"Notification failed for event {number} (ID: {record.id}): {e}"
            )
            logger.error(
                error_msg,
                extra={'record_id': record.id, 'error_type': type(e).__name__}
            )
            outcome.errors.append(error_msg)

        return outcome

    def _describe_search_failure(self, error: Exception) -> str:
        if isinstance(error, CatalogError):
            if error.kind is ErrorKind.AUTHENTICATION:
                return 'connpass API authentication failed - check API key'
            if error.kind is ErrorKind.REMOTE_RATE_LIMIT:
                return 'connpass API rate limit exceeded after retry'
            return f"connpass API error: {error.message}"
        return f"Event search failed: {error}"

    def _log_summary(self, result: DiscoveryResult) -> None:
        logger.info(
            f"Summary: Found={result.total_found}, "
            f"New={result.new_registrations}, "
            f"Duplicates={result.duplicates_skipped}, "
            f"Errors={len(result.errors)}"
        )
        for index, event in enumerate(result.registered_events, start=1):
            logger.info(f"  {index}. \"{event.title}\" (ID: {event.id}) - {event.url}")
        for index, error in enumerate(result.errors, start=1):
            logger.warning(f"  {index}. {error}")
