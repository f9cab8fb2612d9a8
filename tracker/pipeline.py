"""
Glue between the scraper, the record store and the report archive.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional, Tuple

from .diff import diff_snapshots
from .models import DiffResult, ModelKey, ModelRecordSet, RawListing, Snapshot
from .reconcile import ReconcileStats, reconcile_with_stats
from .snapshot import build_snapshot
from .store import RecordStore, ReportArchive

logger = logging.getLogger(__name__)


def process_batch(
    store: RecordStore,
    key: ModelKey,
    batch: Iterable[RawListing],
    observed_at: datetime,
) -> Tuple[ModelRecordSet, ReconcileStats]:
    """Load, reconcile and save one model. Write errors propagate."""
    existing = store.load(key)
    merged, stats = reconcile_with_stats(existing, batch, observed_at)
    path = store.save(merged)
    logger.info(">>> %s: %s (%d known, %d active) -> %s",
                key.label, stats, len(merged), len(merged.active()), path)
    return merged, stats


def build_report(
    store: RecordStore,
    archive: ReportArchive,
    enabled: Iterable[ModelKey],
    captured_at: datetime,
) -> Tuple[Snapshot, str]:
    """Snapshot the enabled models and archive it. Returns the snapshot and report name."""
    keys = list(enabled)
    snapshot = build_snapshot(store.load_many(keys), set(keys), captured_at)
    path = archive.write_snapshot(snapshot, captured_at)
    logger.info(">>> Report: %d active listing(s) in %d group(s)",
                snapshot.total, len(snapshot.groups))
    return snapshot, path.name


def compare_latest(archive: ReportArchive) -> Optional[DiffResult]:
    """
    Diff the two newest reports and archive the result.

    Returns None when there is no report at all, a non-comparable result
    when there is only one.
    """
    latest, previous = archive.latest_pair()
    if latest is None:
        logger.info(">>> No reports to compare")
        return None
    if previous is None:
        logger.info(">>> Only one report (%s); no comparison possible", latest.name)
        return DiffResult.not_comparable(latest.name)

    logger.info(">>> Comparing %s -> %s", previous.name, latest.name)
    result = diff_snapshots(previous.snapshot, latest.snapshot, previous.name, latest.name)
    path = archive.write_diff(result)
    if result.entries:
        logger.info(">>> %d new listing(s) saved to %s", len(result), path)
    else:
        logger.info(">>> No new listings between reports")
    return result
