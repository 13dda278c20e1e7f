"""Reducers folding per-item outcomes into stage results."""
from typing import Iterable

from processor.models import (
    DiscoveryItemOutcome,
    DiscoveryResult,
    ItemOutcome,
    StageOutcome,
)


def fold_item_outcomes(outcomes: Iterable[ItemOutcome]) -> StageOutcome:
    """
    Fold materials sync outcomes into a StageOutcome.

    Args:
        outcomes: Per-record outcomes in processing order

    Returns:
        StageOutcome where processed == succeeded + failed
    """
    processed = 0
    succeeded = 0
    errors = []

    for outcome in outcomes:
        processed += 1
        if outcome.success:
            succeeded += 1
        elif outcome.error:
            errors.append(outcome.error)

    return StageOutcome(
        processed=processed,
        succeeded=succeeded,
        failed=processed - succeeded,
        errors=errors
    )


def fold_discovery_outcomes(
    total_found: int,
    outcomes: Iterable[DiscoveryItemOutcome]
) -> DiscoveryResult:
    """
    Fold discovery outcomes into a DiscoveryResult.

    Args:
        total_found: Number of items returned by the search
        outcomes: Per-item outcomes in catalog order

    Returns:
        DiscoveryResult with total_found left as given
    """
    result = DiscoveryResult(
        total_found=total_found,
        new_registrations=0,
        duplicates_skipped=0
    )

    for outcome in outcomes:
        if outcome.duplicate:
            result.duplicates_skipped += 1
        if outcome.registered is not None:
            result.new_registrations += 1
            result.registered_events.append(outcome.registered)
        result.errors.extend(outcome.errors)

    return result
