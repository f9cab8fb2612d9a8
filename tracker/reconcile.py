"""
Merging a fresh scrape batch into the known history of one model.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, Tuple

from .models import (
    DISPLAY_FIELDS,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    ListingRecord,
    ModelRecordSet,
    RawListing,
)
from .utils import clean_optional

logger = logging.getLogger(__name__)


@dataclass
class ReconcileStats:
    new: int = 0
    refreshed: int = 0
    deactivated: int = 0
    dropped: int = 0

    def __str__(self) -> str:
        return (f"new={self.new} refreshed={self.refreshed} "
                f"deactivated={self.deactivated} dropped={self.dropped}")


def reconcile(
    existing: ModelRecordSet,
    fresh_batch: Iterable[RawListing],
    observed_at: datetime,
) -> ModelRecordSet:
    """
    Merge ``fresh_batch`` into ``existing`` and return the new record set.

    Listings in the batch become (or stay) active with ``last_update`` set to
    ``observed_at``; their ``first_seen`` is kept from history. Known links
    missing from the batch are carried forward as inactive and otherwise
    untouched. Listings without a link cannot be matched and are dropped.
    ``existing`` itself is not modified.
    """
    merged, _ = reconcile_with_stats(existing, fresh_batch, observed_at)
    return merged


def reconcile_with_stats(
    existing: ModelRecordSet,
    fresh_batch: Iterable[RawListing],
    observed_at: datetime,
) -> Tuple[ModelRecordSet, ReconcileStats]:
    if observed_at.tzinfo is None:
        # Stored timestamps are UTC, naive ones are read the same way
        observed_at = observed_at.replace(tzinfo=timezone.utc)

    stats = ReconcileStats()
    merged = {}

    for raw in fresh_batch:
        link = clean_optional(raw.link)
        if not link:
            stats.dropped += 1
            continue

        previous = existing.get(link)
        if previous is not None:
            first_seen = previous.first_seen
            if link not in merged:
                stats.refreshed += 1
        else:
            first_seen = observed_at
            if link not in merged:
                stats.new += 1

        last_update = observed_at
        if last_update < first_seen:
            logger.warning(
                "Observation time %s precedes first sighting %s of %s; keeping first sighting",
                observed_at.isoformat(), first_seen.isoformat(), link,
            )
            last_update = first_seen

        fields = {name: clean_optional(getattr(raw, name)) for name in DISPLAY_FIELDS}
        merged[link] = ListingRecord(
            link=link,
            status=STATUS_ACTIVE,
            first_seen=first_seen,
            last_update=last_update,
            **fields,
        )

    for record in existing:
        if record.link in merged:
            continue
        if record.status == STATUS_ACTIVE:
            stats.deactivated += 1
        merged[record.link] = replace(record, status=STATUS_INACTIVE)

    if stats.dropped:
        logger.debug("%s: dropped %d listing(s) without a link", existing.key.label, stats.dropped)

    return ModelRecordSet(key=existing.key, records=merged), stats
