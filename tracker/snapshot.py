"""
Report snapshots: building, text serialization, parsing and price filtering.

The text layout is shared with tools that do not import this package, so
render_snapshot and parse_snapshot are kept strictly symmetric.
"""
import logging
import math
import re
from datetime import datetime
from typing import Collection, Iterable, List, Mapping, Optional

from .models import (
    UNKNOWN,
    ListingRecord,
    ModelKey,
    ModelRecordSet,
    Snapshot,
    SnapshotEntry,
    SnapshotGroup,
)
from .utils import clean_text, format_local_timestamp, parse_local_timestamp

logger = logging.getLogger(__name__)

REPORT_TITLE = "Classic Hunt Report"
FIELD_SEPARATOR = " | "
SEPARATOR_LINE = "=" * 120
MIN_FIELDS = 8

_GROUP_RE = re.compile(r"^--- (.+) ---$")
_SEPARATOR_RE = re.compile(r"^={5,}")
_COUNT_RE = re.compile(r"^Active listings: (\d+)\s*$")


def parse_price(price_text: Optional[str]) -> Optional[int]:
    """
    Numeric price of a display string: every non-digit is dropped.

    "24.000 €" -> 24000. Returns None when no digit is left.
    """
    if not price_text:
        return None
    digits = re.sub(r"[^0-9]", "", price_text)
    if not digits:
        return None
    return int(digits)


def price_sort_key(price_text: Optional[str]) -> float:
    value = parse_price(price_text)
    return math.inf if value is None else value


def _field(value: Optional[str], default: str = UNKNOWN) -> str:
    text = clean_text(value).replace("|", "/")
    return text or default


def entry_from_record(record: ListingRecord) -> SnapshotEntry:
    return SnapshotEntry(
        price=_field(record.price),
        title=_field(record.title),
        year=_field(record.year),
        kilometers=_field(record.kilometers),
        horsepower=_field(record.horsepower),
        fuel=_field(record.fuel),
        gearbox=_field(record.gearbox),
        color=_field(record.color),
        phone=_field(record.phone),
        url=_field(record.link, default=""),
    )


def build_snapshot(
    all_sets: Mapping[ModelKey, ModelRecordSet],
    enabled: Collection[ModelKey],
    captured_at: datetime,
    title: str = REPORT_TITLE,
) -> Snapshot:
    """
    Collect the active records of every enabled model into one snapshot.

    Groups are ordered by model label, entries by ascending price with
    unparsable prices last. Models without active records are left out.
    """
    by_label = {}
    for key, record_set in all_sets.items():
        if key not in enabled:
            continue
        active = record_set.active()
        if not active:
            continue
        by_label.setdefault(key.label, []).extend(active)

    groups = []
    for label in sorted(by_label):
        records = sorted(by_label[label], key=lambda r: price_sort_key(r.price))
        groups.append(SnapshotGroup(label=label, entries=[entry_from_record(r) for r in records]))

    return Snapshot(title=title, captured_at=captured_at, groups=groups)


def render_entry(entry: SnapshotEntry) -> str:
    return FIELD_SEPARATOR.join([
        entry.price, entry.title, entry.year, entry.kilometers, entry.horsepower,
        entry.fuel, entry.gearbox, entry.color, entry.phone, entry.url,
    ])


def render_header(snapshot: Snapshot) -> str:
    stamp = format_local_timestamp(snapshot.captured_at) if snapshot.captured_at else ""
    return f"{snapshot.title} - {stamp}" if stamp else snapshot.title


def render_snapshot(snapshot: Snapshot) -> str:
    lines = [
        render_header(snapshot),
        f"Active listings: {snapshot.total}",
        SEPARATOR_LINE,
        "",
    ]
    for group in snapshot.groups:
        lines.append(f"--- {group.label} ---")
        lines.extend(render_entry(e) for e in group.entries)
    return "\n".join(lines) + "\n"


def parse_entry(line: str) -> Optional[SnapshotEntry]:
    """
    Parse one listing line. 8 fields carry no color/phone, 9 no color,
    10 or more carry both; the url is always last. Returns None for
    lines with too few fields.
    """
    parts = [p.strip() for p in line.split(FIELD_SEPARATOR)]
    if len(parts) < MIN_FIELDS:
        return None

    color = phone = UNKNOWN
    if len(parts) >= 10:
        color, phone = parts[7], parts[8]
    elif len(parts) == 9:
        phone = parts[7]

    return SnapshotEntry(
        price=parts[0],
        title=parts[1],
        year=parts[2],
        kilometers=parts[3],
        horsepower=parts[4],
        fuel=parts[5],
        gearbox=parts[6],
        color=color,
        phone=phone,
        url=parts[-1],
        line=line,
    )


class _ParseState:
    """Accumulator threaded through the line fold of parse_snapshot."""

    def __init__(self):
        self.header_lines: List[str] = []
        self.groups: List[SnapshotGroup] = []
        self.in_body = False
        self.skipped = 0

    @property
    def current(self) -> Optional[SnapshotGroup]:
        return self.groups[-1] if self.groups else None


def _consume(state: _ParseState, line: str) -> _ParseState:
    group_match = _GROUP_RE.match(line)
    if group_match:
        state.groups.append(SnapshotGroup(label=group_match.group(1)))
        state.in_body = True
        return state

    if _SEPARATOR_RE.match(line):
        state.in_body = True
        return state

    if not state.in_body:
        if line.strip():
            state.header_lines.append(line)
        return state

    if state.current is None or not line.strip():
        return state

    entry = parse_entry(line)
    if entry is None:
        state.skipped += 1
        logger.debug("Skipping malformed report line: %r", line)
    else:
        state.current.entries.append(entry)
    return state


def _parse_header(header_lines: Iterable[str]):
    title, captured_at, declared = REPORT_TITLE, None, None
    for line in header_lines:
        count = _COUNT_RE.match(line)
        if count:
            declared = int(count.group(1))
            continue
        if " - " in line:
            head, stamp = line.rsplit(" - ", 1)
            parsed = parse_local_timestamp(stamp)
            if parsed is not None:
                title, captured_at = head, parsed
                continue
        title = line.strip()
    return title, captured_at, declared


def parse_snapshot(text: str) -> Snapshot:
    """Parse report text back into a Snapshot. Malformed lines are skipped."""
    state = _ParseState()
    for line in text.splitlines():
        state = _consume(state, line)

    if state.skipped:
        logger.warning("Skipped %d malformed listing line(s) while parsing report", state.skipped)

    title, captured_at, declared = _parse_header(state.header_lines)
    return Snapshot(
        title=title,
        captured_at=captured_at,
        groups=state.groups,
        declared_total=declared,
    )


def filter_by_max_price(snapshot: Snapshot, max_price: float) -> Snapshot:
    """
    Keep only entries whose parsed price is at most ``max_price``.

    Entries with no parsable price are excluded, emptied groups are
    dropped and the total follows the remaining entries.
    """
    groups = []
    for group in snapshot.groups:
        kept = []
        for entry in group.entries:
            value = parse_price(entry.price)
            if value is not None and value <= max_price:
                kept.append(entry)
        if kept:
            groups.append(SnapshotGroup(label=group.label, entries=kept))
    return Snapshot(title=snapshot.title, captured_at=snapshot.captured_at, groups=groups)


def filter_report_text(text: str, max_price: float) -> str:
    return render_snapshot(filter_by_max_price(parse_snapshot(text), max_price))
