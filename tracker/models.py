"""
Data models for the Classic Hunt listing tracker.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from .utils import format_iso, parse_iso

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE)

# Rendered in place of any unknown display field
UNKNOWN = "N/A"

DISPLAY_FIELDS = (
    "title", "price", "year", "kilometers", "horsepower",
    "fuel", "gearbox", "color", "phone", "image_url",
)

# Persisted name -> attribute name
_PERSISTED_NAMES = {
    "link": "link",
    "title": "title",
    "price": "price",
    "year": "year",
    "kilometers": "kilometers",
    "horsepower": "horsepower",
    "fuel": "fuel",
    "gearbox": "gearbox",
    "color": "color",
    "phone": "phone",
    "imageUrl": "image_url",
}

# Field names written by older state files
_LEGACY_NAMES = {
    "hp": "horsepower",
    "titleImageUrl": "image_url",
}


@dataclass(frozen=True, order=True)
class ModelKey:
    """A tracked (brand, model) search."""

    brand: str
    model: str

    @property
    def label(self) -> str:
        brand = self.brand.strip().lower()
        return f"{brand[:1].upper()}{brand[1:]} {self.model.strip().upper()}"

    @property
    def slug(self) -> str:
        return f"{self.brand.strip().lower()}_{self.model.strip().lower()}"


@dataclass
class RawListing:
    """One row as read from a search results page."""

    link: Optional[str] = None
    title: Optional[str] = None
    price: Optional[str] = None
    year: Optional[str] = None
    kilometers: Optional[str] = None
    horsepower: Optional[str] = None
    fuel: Optional[str] = None
    gearbox: Optional[str] = None
    color: Optional[str] = None
    phone: Optional[str] = None
    image_url: Optional[str] = None


@dataclass
class ListingRecord:
    """
    A listing plus its lifecycle metadata.

    ``link`` is the identity. Display fields are free to drift between
    scrapes; ``None`` marks a field the source did not provide.
    """

    link: str
    status: str
    first_seen: datetime
    last_update: datetime

    title: Optional[str] = None
    price: Optional[str] = None
    year: Optional[str] = None
    kilometers: Optional[str] = None
    horsepower: Optional[str] = None
    fuel: Optional[str] = None
    gearbox: Optional[str] = None
    color: Optional[str] = None
    phone: Optional[str] = None
    image_url: Optional[str] = None

    def __post_init__(self):
        # Naive timestamps are UTC, as in the persisted form
        if self.first_seen.tzinfo is None:
            self.first_seen = self.first_seen.replace(tzinfo=timezone.utc)
        if self.last_update.tzinfo is None:
            self.last_update = self.last_update.replace(tzinfo=timezone.utc)
        if not self.link:
            raise ValueError("listing link must not be empty")
        if self.status not in STATUSES:
            raise ValueError(f"unknown listing status: {self.status!r}")
        if self.first_seen > self.last_update:
            raise ValueError(
                f"first_seen {self.first_seen.isoformat()} is after "
                f"last_update {self.last_update.isoformat()} for {self.link}"
            )

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_dict(self) -> Dict[str, Optional[str]]:
        data = {name: getattr(self, attr) for name, attr in _PERSISTED_NAMES.items()}
        data["status"] = self.status
        data["firstSeen"] = format_iso(self.first_seen)
        data["lastUpdate"] = format_iso(self.last_update)
        return data

    @classmethod
    def from_dict(cls, data: Dict, default_time: Optional[datetime] = None) -> "ListingRecord":
        """
        Build a record from its persisted form, accepting legacy names.

        Damaged entries are repaired rather than rejected: a missing
        timestamp is taken from the other one (or ``default_time``), an
        unknown status becomes inactive and a ``last_update`` before
        ``first_seen`` is raised to it. Only a record without a link or
        without any usable timestamp raises ValueError.
        """
        values = {}
        for name, attr in _LEGACY_NAMES.items():
            if data.get(name) is not None:
                values[attr] = data[name]
        for name, attr in _PERSISTED_NAMES.items():
            if data.get(name) is not None:
                values[attr] = data[name]

        first_raw = data.get("firstSeen") or data.get("first_seen")
        last_raw = data.get("lastUpdate") or data.get("last_update")
        first_seen = parse_iso(first_raw) if first_raw else None
        last_update = parse_iso(last_raw) if last_raw else None
        first_seen = first_seen or last_update or default_time
        last_update = last_update or first_seen
        if first_seen is None:
            raise ValueError(f"record {values.get('link')!r} has no timestamp")
        if last_update < first_seen:
            last_update = first_seen

        status = data.get("status") or STATUS_ACTIVE
        if status not in STATUSES:
            status = STATUS_INACTIVE

        return cls(
            status=status,
            first_seen=first_seen,
            last_update=last_update,
            **values,
        )


@dataclass
class ModelRecordSet:
    """All known records of one model, keyed by link in insertion order."""

    key: ModelKey
    records: Dict[str, ListingRecord] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[ListingRecord]:
        return iter(self.records.values())

    def __contains__(self, link: str) -> bool:
        return link in self.records

    def get(self, link: str) -> Optional[ListingRecord]:
        return self.records.get(link)

    def links(self) -> List[str]:
        return list(self.records)

    def active(self) -> List[ListingRecord]:
        return [r for r in self.records.values() if r.is_active]

    def inactive(self) -> List[ListingRecord]:
        return [r for r in self.records.values() if not r.is_active]

    def to_list(self) -> List[Dict]:
        return [r.to_dict() for r in self.records.values()]

    @classmethod
    def from_records(cls, key: ModelKey, records: List[ListingRecord]) -> "ModelRecordSet":
        return cls(key=key, records={r.link: r for r in records})


@dataclass
class SnapshotEntry:
    """One listing line of a report."""

    price: str = UNKNOWN
    title: str = UNKNOWN
    year: str = UNKNOWN
    kilometers: str = UNKNOWN
    horsepower: str = UNKNOWN
    fuel: str = UNKNOWN
    gearbox: str = UNKNOWN
    color: str = UNKNOWN
    phone: str = UNKNOWN
    url: str = ""
    # The exact text this entry was parsed from, if any
    line: Optional[str] = field(default=None, compare=False, repr=False)


@dataclass
class SnapshotGroup:
    label: str
    entries: List[SnapshotEntry] = field(default_factory=list)


@dataclass
class Snapshot:
    """
    Point-in-time view of all active listings, grouped per model.

    ``captured_at`` may be ``None`` for reports whose header could not be
    read back.
    """

    title: str
    captured_at: Optional[datetime]
    groups: List[SnapshotGroup] = field(default_factory=list)
    # Count stated in the header of a parsed report
    declared_total: Optional[int] = field(default=None, compare=False)

    @property
    def total(self) -> int:
        return sum(len(g.entries) for g in self.groups)

    def entries(self) -> Iterator[SnapshotEntry]:
        for group in self.groups:
            yield from group.entries


@dataclass
class DiffResult:
    """Listings present in the latest report but not in the previous one."""

    previous_name: Optional[str]
    latest_name: str
    entries: List[SnapshotEntry] = field(default_factory=list)
    comparable: bool = True

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    def not_comparable(cls, latest_name: str) -> "DiffResult":
        return cls(previous_name=None, latest_name=latest_name, comparable=False)
