"""Materials sync stage: refreshes materials of approved connpass events."""
import logging
import time
from dataclasses import replace
from typing import Callable, List

from catalog.connpass_client import ConnpassClient
from processor.models import EventRecord, ItemOutcome, StageOutcome, utc_now_iso
from processor.outcomes import fold_item_outcomes

logger = logging.getLogger(__name__)


class MaterialsSyncStage:
    """Fetches current materials for each approved event and stores them."""

    def __init__(
        self,
        client: ConnpassClient,
        store,
        item_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the stage.

        Args:
            client: connpass client used to fetch materials
            store: Event store providing query_approved_with_external_url and upsert
            item_delay: Seconds to wait between consecutive events (default: 1)
            sleep: Function used for the inter-item delay
        """
        self.client = client
        self.store = store
        self.item_delay = item_delay
        self._sleep = sleep

    def run(self) -> StageOutcome:
        """
        Sync materials for all eligible events. Never raises.

        Returns:
            StageOutcome with per-event counts and error messages
        """
        logger.info("Fetching approved events with connpass URLs")
        try:
            records = self.store.query_approved_with_external_url()
        except Exception as e:
            error_msg = f"Failed to query approved events: {e}"
            logger.error(error_msg, extra={'error_type': type(e).__name__})
            return StageOutcome(processed=0, succeeded=0, failed=0, errors=[error_msg])

        logger.info(f"Found {len(records)} approved events with connpass URLs")

        outcomes: List[ItemOutcome] = []
        for index, record in enumerate(records):
            if index > 0 and self.item_delay > 0:
                logger.debug("Waiting before processing next event")
                self._sleep(self.item_delay)

            logger.info(
                f"Processing event {index + 1}/{len(records)}",
                extra={'event_id': record.id, 'connpass_url': record.catalog_url}
            )
            outcomes.append(self.sync_record(record))

        outcome = fold_item_outcomes(outcomes)
        logger.info(
            f"Materials sync complete: {outcome.processed} processed, "
            f"{outcome.succeeded} succeeded, {outcome.failed} failed"
        )
        return outcome

    def sync_record(self, record: EventRecord) -> ItemOutcome:
        """
        Refresh the materials of a single record.

        Args:
            record: Approved EventRecord with a connpass URL

        Returns:
            ItemOutcome describing success or the failure message
        """
        event_id = ConnpassClient.extract_event_id(record.catalog_url)
        if not event_id:
            error_msg = (
                f"Event {record.id}: Invalid connpass URL format: "
                f"{record.catalog_url}"
            )
            logger.warning(error_msg)
            return ItemOutcome(success=False, error=error_msg)

        try:
            materials = self.client.fetch_materials(event_id)
            logger.info(
                f"Retrieved {len(materials)} materials for event {record.id}"
            )

            updated = replace(
                record,
                materials=materials,
                updated_at=utc_now_iso()
            )
            self.store.upsert(updated)
        except Exception as e:
            error_msg = f"Failed to update materials for event {record.id}: {e}"
            logger.error(
                error_msg,
                extra={
                    'event_id': record.id,
                    'connpass_url': record.catalog_url,
                    'error_type': type(e).__name__
                }
            )
            return ItemOutcome(success=False, error=error_msg)

        logger.info(f"Successfully updated materials for event {record.id}")
        return ItemOutcome(success=True)
