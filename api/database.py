"""
Data access over the tracker's record store and report archive.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from tracker.config import AppConfig, ConfigError, load_config
from tracker.diff import diff_snapshots
from tracker.models import DiffResult, ListingRecord, ModelKey, ModelRecordSet, Snapshot
from tracker.snapshot import parse_price, price_sort_key
from tracker.store import RecordStore, ReportArchive
from tracker.utils import format_iso, now_utc

from .config import config

logger = logging.getLogger(__name__)

def get_app_config() -> AppConfig:
    """Load the tracker configuration the dashboard reads from."""
    try:
        return load_config(config.CONFIG_PATH)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        raise

def new_listing_days(app_config: AppConfig) -> int:
    return app_config.new_listing_days or config.NEW_LISTING_DAYS

def is_new_listing(record: ListingRecord, days: int, now=None) -> bool:
    """Whether a listing was first seen within the recency window."""
    now = now or now_utc()
    return now - record.first_seen <= timedelta(days=days)

def load_record_sets() -> Tuple[AppConfig, Dict[ModelKey, ModelRecordSet]]:
    """Record sets of every enabled model."""
    app_config = get_app_config()
    store = RecordStore(config.OUTPUT_DIR)
    return app_config, store.load_many(app_config.enabled_keys())

def record_to_dict(key: ModelKey, record: ListingRecord, days: int, now=None) -> Dict[str, Any]:
    """Flatten a record for the API models."""
    return {
        'link': record.link,
        'model': key.label,
        'title': record.title,
        'price': record.price,
        'price_value': parse_price(record.price),
        'year': record.year,
        'kilometers': record.kilometers,
        'horsepower': record.horsepower,
        'fuel': record.fuel,
        'gearbox': record.gearbox,
        'color': record.color,
        'phone': record.phone,
        'image_url': record.image_url,
        'status': record.status,
        'first_seen': format_iso(record.first_seen),
        'last_update': format_iso(record.last_update),
        'is_new': is_new_listing(record, days, now),
    }

def matches_filters(item: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    """Apply listing filters to one flattened record."""
    model = filters.get('model')
    if model and item['model'].lower() != model.lower():
        return False

    status = filters.get('status')
    if status and item['status'] != status:
        return False

    q = filters.get('q')
    if q and q.lower() not in (item['title'] or '').lower():
        return False

    max_price = filters.get('max_price')
    if max_price is not None:
        if item['price_value'] is None or item['price_value'] > max_price:
            return False

    return True

def get_listings(filters: Dict[str, Any], limit: int = 50, offset: int = 0) -> Tuple[int, List[Dict]]:
    """Filtered listings sorted by model then price, with the total before paging."""
    app_config, sets = load_record_sets()
    days = new_listing_days(app_config)
    now = now_utc()

    items = []
    for key in sorted(sets, key=lambda k: k.label):
        records = sorted(sets[key], key=lambda r: price_sort_key(r.price))
        for record in records:
            item = record_to_dict(key, record, days, now)
            if matches_filters(item, filters):
                items.append(item)
    return len(items), items[offset:offset + limit]

def get_listing_by_link(link: str) -> Optional[Dict]:
    """Get a single listing by its link."""
    app_config, sets = load_record_sets()
    days = new_listing_days(app_config)
    for key, record_set in sets.items():
        record = record_set.get(link)
        if record is not None:
            return record_to_dict(key, record, days)
    return None

def get_dashboard_groups() -> Tuple[List[Dict], int]:
    """Active listings per enabled model for the HTML page."""
    app_config, sets = load_record_sets()
    days = new_listing_days(app_config)
    now = now_utc()

    groups = []
    for key in sorted(sets, key=lambda k: k.label):
        active = sorted(sets[key].active(), key=lambda r: price_sort_key(r.price))
        groups.append({
            'label': key.label,
            'listings': [record_to_dict(key, r, days, now) for r in active],
        })
    return groups, days

def get_statistics() -> Dict[str, Any]:
    """Get various statistics about the listings."""
    app_config, sets = load_record_sets()
    days = new_listing_days(app_config)
    now = now_utc()

    total = 0
    active = []
    by_model = {}
    for key, record_set in sets.items():
        total += len(record_set)
        model_active = record_set.active()
        by_model[key.label] = len(model_active)
        active.extend(model_active)

    prices = [p for p in (parse_price(r.price) for r in active) if p is not None]
    return {
        'total_listings': total,
        'active_listings': len(active),
        'new_listings': sum(1 for r in active if is_new_listing(r, days, now)),
        'min_price': min(prices) if prices else None,
        'max_price': max(prices) if prices else None,
        'avg_price': sum(prices) / len(prices) if prices else None,
        'by_model': by_model,
    }

def get_latest_report() -> Optional[Tuple[str, Snapshot]]:
    """Name and parsed content of the newest archived report."""
    latest, _ = ReportArchive(config.REPORTS_DIR).latest_pair()
    if latest is None:
        return None
    return latest.name, latest.snapshot

def get_latest_diff() -> Optional[DiffResult]:
    """New listings of the newest report against the one before it."""
    latest, previous = ReportArchive(config.REPORTS_DIR).latest_pair()
    if latest is None:
        return None
    if previous is None:
        return DiffResult.not_comparable(latest.name)
    return diff_snapshots(previous.snapshot, latest.snapshot, previous.name, latest.name)
