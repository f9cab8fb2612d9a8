"""
Classic Hunt listing tracker package
"""
from .models import (
    DiffResult,
    ListingRecord,
    ModelKey,
    ModelRecordSet,
    RawListing,
    Snapshot,
)
from .reconcile import reconcile
from .snapshot import (
    build_snapshot,
    filter_by_max_price,
    parse_price,
    parse_snapshot,
    render_snapshot,
)
from .diff import diff_snapshots, render_diff
from .store import RecordStore, ReportArchive, RunLock
from .utils import init_logger, now_iso

__version__ = "1.0.0"

__all__ = [
    "DiffResult",
    "ListingRecord",
    "ModelKey",
    "ModelRecordSet",
    "RawListing",
    "Snapshot",
    "reconcile",
    "build_snapshot",
    "filter_by_max_price",
    "parse_price",
    "parse_snapshot",
    "render_snapshot",
    "diff_snapshots",
    "render_diff",
    "RecordStore",
    "ReportArchive",
    "RunLock",
    "init_logger",
    "now_iso"
]
