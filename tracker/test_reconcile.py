"""
Tests for merging scrape batches into a model's history.
"""
from datetime import datetime, timedelta, timezone

import pytest

from tracker.models import ListingRecord, ModelKey, ModelRecordSet, RawListing
from tracker.reconcile import reconcile, reconcile_with_stats

KEY = ModelKey("audi", "80")
T0 = datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(hours=6)
T2 = T1 + timedelta(hours=6)


def raw(n, price="5.000 €", **kw):
    return RawListing(link=f"https://www.avto.net/Ads/details.asp?id={n}", title=f"Audi 80 #{n}", price=price, **kw)


def record(n, status="active", first_seen=T0, last_update=T0, **kw):
    return ListingRecord(
        link=f"https://www.avto.net/Ads/details.asp?id={n}",
        status=status, first_seen=first_seen, last_update=last_update, **kw,
    )


@pytest.fixture
def existing():
    return ModelRecordSet.from_records(KEY, [record(1, price="9.000 €"), record(2, price="7.000 €")])


def test_worked_example():
    link_a = "https://www.avto.net/Ads/details.asp?id=1"
    link_b = "https://www.avto.net/Ads/details.asp?id=9"
    existing = ModelRecordSet.from_records(KEY, [record(1)])

    result = reconcile(existing, [RawListing(link=link_b, price="5.000 €")], T1)

    a, b = result.get(link_a), result.get(link_b)
    assert (a.status, a.first_seen, a.last_update) == ("inactive", T0, T0)
    assert (b.status, b.first_seen, b.last_update) == ("active", T1, T1)
    assert b.price == "5.000 €"


def test_first_run_on_empty_history():
    result = reconcile(ModelRecordSet(KEY), [raw(1), raw(2)], T0)

    assert len(result) == 2
    assert all(r.status == "active" and r.first_seen == T0 == r.last_update for r in result)


def test_status_correctness(existing):
    result = reconcile(existing, [raw(2), raw(3)], T1)

    assert result.get(raw(1).link).status == "inactive"
    assert result.get(raw(2).link).status == "active"
    assert result.get(raw(3).link).status == "active"


def test_no_deletion(existing):
    for batch in ([], [raw(5)], [raw(1), raw(2)]):
        result = reconcile(existing, batch, T1)
        assert set(existing.links()) <= set(result.links())
        assert len(result) >= len(existing)


def test_first_seen_is_stable_across_runs(existing):
    current = existing
    for hours in range(1, 6):
        current = reconcile(current, [raw(1)], T0 + timedelta(hours=hours))

    rec = current.get(raw(1).link)
    assert rec.first_seen == T0
    assert rec.last_update == T0 + timedelta(hours=5)


def test_display_fields_are_overwritten(existing):
    result = reconcile(existing, [raw(1, price="8.500 €", year="1990")], T1)

    rec = result.get(raw(1).link)
    assert rec.price == "8.500 €"
    assert rec.year == "1990"


def test_inactive_record_is_carried_unchanged(existing):
    result = reconcile(existing, [raw(2)], T1)

    rec = result.get(raw(1).link)
    assert rec.last_update == T0
    assert rec.price == "9.000 €"

    # Still absent: nothing about it moves
    again = reconcile(result, [raw(2)], T2)
    assert again.get(raw(1).link) == rec


def test_inactive_record_reactivates(existing):
    gone = reconcile(existing, [], T1)
    back = reconcile(gone, [raw(1)], T2)

    rec = back.get(raw(1).link)
    assert rec.status == "active"
    assert rec.first_seen == T0
    assert rec.last_update == T2


def test_idempotent_except_last_update(existing):
    batch = [raw(1), raw(3)]
    once = reconcile(existing, batch, T1)
    twice = reconcile(once, batch, T1)

    assert once == twice

    later = reconcile(once, batch, T2)
    for link in once.links():
        before, after = once.get(link), later.get(link)
        assert after.last_update >= before.last_update
        assert (before.status, before.first_seen, before.price) == (after.status, after.first_seen, after.price)


def test_listings_without_link_are_dropped(existing):
    merged, stats = reconcile_with_stats(existing, [RawListing(title="no link"), RawListing(link="  ")], T1)

    assert stats.dropped == 2
    assert len(merged) == len(existing)


def test_missing_fields_are_stored_as_unknown():
    result = reconcile(ModelRecordSet(KEY), [RawListing(link="https://x/1", title="  ")], T0)

    rec = result.get("https://x/1")
    assert rec.title is None
    assert rec.price is None


def test_duplicate_links_in_batch_keep_one_record():
    batch = [raw(1, price="1.000 €"), raw(2), raw(1, price="1.200 €")]
    result = reconcile(ModelRecordSet(KEY), batch, T0)

    assert result.links() == [raw(1).link, raw(2).link]
    assert result.get(raw(1).link).price == "1.200 €"


def test_order_is_fresh_batch_then_history(existing):
    result = reconcile(existing, [raw(3), raw(2)], T1)

    assert result.links() == [raw(3).link, raw(2).link, raw(1).link]


def test_existing_set_is_not_modified(existing):
    snapshot = dict(existing.records)
    reconcile(existing, [raw(2)], T1)

    assert existing.records == snapshot
    assert existing.get(raw(1).link).status == "active"


def test_stats(existing):
    _, stats = reconcile_with_stats(existing, [raw(2), raw(3), RawListing()], T1)

    assert (stats.new, stats.refreshed, stats.deactivated, stats.dropped) == (1, 1, 1, 1)


def test_clock_skew_keeps_first_seen_before_last_update():
    history = ModelRecordSet.from_records(KEY, [record(1, first_seen=T1, last_update=T1)])
    result = reconcile(history, [raw(1)], T0)

    rec = result.get(raw(1).link)
    assert rec.first_seen == T1
    assert rec.last_update == T1


def test_naive_observation_time_against_stored_history(tmp_path):
    from tracker.store import RecordStore

    store = RecordStore(tmp_path)
    store.save(ModelRecordSet.from_records(KEY, [record(1)]))
    existing = store.load(KEY)

    result = reconcile(existing, [raw(1), raw(2)], datetime(2026, 10, 2, 8, 0))

    rec = result.get(raw(1).link)
    assert rec.first_seen == T0
    assert rec.last_update == datetime(2026, 10, 2, 8, 0, tzinfo=timezone.utc)
    assert result.get(raw(2).link).first_seen.tzinfo is not None
