"""Batch orchestrator combining the materials sync and discovery stages."""
import logging
import time
from typing import Callable

from catalog.connpass_client import ConnpassClient
from processor.discovery import DEFAULT_KEYWORD, DEFAULT_MAX_RESULTS, DiscoveryStage
from processor.materials_sync import MaterialsSyncStage
from processor.models import (
    BatchResult,
    BatchStatistics,
    DiscoveryResult,
    RunStatus,
)

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """Runs pre-flight checks, then the sync and discovery stages."""

    def __init__(
        self,
        secrets,
        store,
        notifier,
        client_factory: Callable[[str], ConnpassClient],
        keyword: str = DEFAULT_KEYWORD,
        max_results: int = DEFAULT_MAX_RESULTS,
        item_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the orchestrator.

        Args:
            secrets: Secret provider exposing get_credential()
            store: Event store used by both stages
            notifier: Notification channel exposing publish(record)
            client_factory: Builds a ConnpassClient from an API key
            keyword: Discovery search keyword
            max_results: Discovery result ceiling
            item_delay: Seconds between events in the materials sync stage
            sleep: Function used for the inter-item delay
        """
        self.secrets = secrets
        self.store = store
        self.notifier = notifier
        self.client_factory = client_factory
        self.keyword = keyword
        self.max_results = max_results
        self.item_delay = item_delay
        self._sleep = sleep

    def run(self) -> BatchResult:
        """
        Execute one batch run. Never raises.

        Returns:
            BatchResult; status FATAL when the credential is unavailable or invalid
        """
        logger.info("Retrieving connpass API key")
        try:
            api_key = self.secrets.get_credential()
        except Exception as e:
            return self._fatal(f"Failed to retrieve connpass API key: {e}")

        try:
            client = self.client_factory(api_key)
            valid = client.validate_credential()
        except Exception as e:
            return self._fatal(f"connpass API key validation failed: {e}")
        if not valid:
            return self._fatal('connpass API key is invalid')
        logger.info("connpass API key is valid")

        sync_outcome = MaterialsSyncStage(
            client,
            self.store,
            item_delay=self.item_delay,
            sleep=self._sleep
        ).run()

        logger.info("Starting event discovery process")
        try:
            discovery = DiscoveryStage(
                client,
                self.store,
                self.notifier,
                keyword=self.keyword,
                max_results=self.max_results
            ).run()
        except Exception as e:
            error_msg = f"Event discovery failed: {e}"
            logger.error(
                error_msg,
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            discovery = DiscoveryResult.failed(error_msg)

        result = BatchResult(
            status=RunStatus.RAN,
            processed_count=sync_outcome.processed,
            success_count=sync_outcome.succeeded,
            error_count=sync_outcome.failed,
            errors=sync_outcome.errors or None,
            discovery=discovery
        )

        logger.info(
            "Complete batch update finished",
            extra={
                'processed_count': result.processed_count,
                'success_count': result.success_count,
                'error_count': result.error_count,
                'discovery_total_found': discovery.total_found,
                'discovery_new_registrations': discovery.new_registrations,
                'discovery_duplicates_skipped': discovery.duplicates_skipped,
                'discovery_errors': len(discovery.errors)
            }
        )
        return result

    def _fatal(self, message: str) -> BatchResult:
        logger.error(message)
        return BatchResult(
            status=RunStatus.FATAL,
            processed_count=0,
            success_count=0,
            error_count=0,
            errors=[message],
            discovery=None
        )


def collect_statistics(store) -> BatchStatistics:
    """
    Summarize material coverage of approved connpass events.

    Args:
        store: Event store exposing query_approved_with_external_url()

    Returns:
        BatchStatistics for the current store contents
    """
    records = store.query_approved_with_external_url()

    with_materials = sum(1 for record in records if record.materials)
    update_times = [record.updated_at for record in records if record.updated_at]

    statistics = BatchStatistics(
        total_events=len(records),
        events_with_materials=with_materials,
        events_without_materials=len(records) - with_materials,
        last_update_time=max(update_times) if update_times else None
    )
    logger.info(
        f"Batch statistics: {statistics.total_events} events, "
        f"{statistics.events_with_materials} with materials"
    )
    return statistics
