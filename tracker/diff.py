"""
Comparison of two report snapshots by listing identity.
"""
import logging
import re
from typing import Optional, Set

from .models import DiffResult, Snapshot, SnapshotEntry
from .snapshot import render_entry

logger = logging.getLogger(__name__)

URL_RE = re.compile(r"(https?://\S+)")
DIFF_RULE = "=" * 80


class NotComparableError(ValueError):
    """Raised when a diff without a previous report is asked to be rendered."""


def listing_key(entry: SnapshotEntry) -> Optional[str]:
    """Identity of a report line: the URL-shaped token of its last field."""
    m = URL_RE.search(entry.url or "")
    return m.group(1) if m else None


def snapshot_keys(snapshot: Snapshot) -> Set[str]:
    keys = set()
    for entry in snapshot.entries():
        key = listing_key(entry)
        if key:
            keys.add(key)
    return keys


def diff_snapshots(
    previous: Optional[Snapshot],
    latest: Snapshot,
    previous_name: str = "",
    latest_name: str = "",
) -> DiffResult:
    """
    Entries of ``latest`` whose identity does not occur in ``previous``.

    Order follows ``latest``; a repeated identity is reported once. When
    there is no previous snapshot the result is marked not comparable,
    which is different from an empty result.
    """
    if previous is None:
        return DiffResult.not_comparable(latest_name)

    known = snapshot_keys(previous)
    seen = set()
    new_entries = []
    for entry in latest.entries():
        key = listing_key(entry)
        if key is None:
            logger.debug("Listing line without url ignored in diff: %r", entry.line)
            continue
        if key in known or key in seen:
            continue
        seen.add(key)
        new_entries.append(entry)

    return DiffResult(
        previous_name=previous_name,
        latest_name=latest_name,
        entries=new_entries,
    )


def render_diff(result: DiffResult) -> str:
    if not result.comparable:
        raise NotComparableError(
            f"no previous report to compare {result.latest_name} against"
        )
    if not result.entries:
        return (f"No new listings.\n"
                f"Previous: {result.previous_name}\n"
                f"Latest: {result.latest_name}\n")

    lines = [e.line if e.line is not None else render_entry(e) for e in result.entries]
    return (f"New listings: {len(result.entries)}\n"
            f"Previous: {result.previous_name}\n"
            f"Latest: {result.latest_name}\n"
            f"{DIFF_RULE}\n\n"
            + "\n".join(lines) + "\n")


def diff_urls(text: str) -> Set[str]:
    """Listing urls named in a diff artifact."""
    urls = set()
    for line in text.splitlines():
        if " | " not in line:
            continue
        m = URL_RE.search(line.rsplit(" | ", 1)[-1])
        if m:
            urls.add(m.group(1))
    return urls
