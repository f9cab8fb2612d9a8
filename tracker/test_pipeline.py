"""
End-to-end tests of the scrape-to-diff flow without a browser.
"""
import json
from datetime import datetime, timedelta, timezone

import pytest

from tracker.models import ModelKey, RawListing
from tracker.pipeline import build_report, compare_latest, process_batch
from tracker.store import RecordStore, ReportArchive

AUDI = ModelKey("audi", "80")
BMW = ModelKey("bmw", "e30")
T0 = datetime(2026, 10, 18, 6, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(days=1)


def raw(n, price):
    return RawListing(link=f"https://www.avto.net/Ads/details.asp?id={n}", title=f"Car {n}", price=price)


@pytest.fixture
def store(tmp_path):
    return RecordStore(tmp_path / "output")


@pytest.fixture
def archive(tmp_path):
    return ReportArchive(tmp_path / "reports")


def test_process_batch_persists(store):
    merged, stats = process_batch(store, AUDI, [raw(1, "5.000 €"), raw(2, "6.000 €")], T0)

    assert stats.new == 2
    assert store.load(AUDI) == merged

    merged, stats = process_batch(store, AUDI, [raw(2, "5.800 €")], T1)
    assert (stats.new, stats.refreshed, stats.deactivated) == (0, 1, 1)
    assert store.load(AUDI).get(raw(1, "").link).status == "inactive"


def test_no_reports_to_compare(archive):
    assert compare_latest(archive) is None


def test_full_flow(store, archive):
    process_batch(store, AUDI, [raw(1, "5.000 €")], T0)
    process_batch(store, BMW, [raw(2, "8.000 €")], T0)
    snapshot, name = build_report(store, archive, [AUDI, BMW], T0)

    assert name == "report_2026-10-18T06-00-00.txt"
    assert snapshot.total == 2

    first = compare_latest(archive)
    assert not first.comparable

    process_batch(store, AUDI, [raw(1, "4.900 €"), raw(3, "3.000 €")], T1)
    build_report(store, archive, [AUDI, BMW], T1)

    result = compare_latest(archive)
    assert result.comparable
    assert [e.url for e in result.entries] == [raw(3, "").link]
    assert archive.latest_diff_urls() == {raw(3, "").link}


def test_disabled_model_is_left_out_of_report(store, archive):
    process_batch(store, AUDI, [raw(1, "5.000 €")], T0)
    process_batch(store, BMW, [raw(2, "8.000 €")], T0)

    snapshot, _ = build_report(store, archive, [BMW], T0)
    assert [g.label for g in snapshot.groups] == ["Bmw E30"]


def test_damaged_history_survives_a_batch(store):
    path = store.path_for(AUDI)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps([
        {"link": "https://x/old", "status": "active"},
        {"link": "https://x/kept", "status": "active", "firstSeen": "2026-10-01T08:00:00.000Z"},
    ]), encoding="utf-8")

    process_batch(store, AUDI, [RawListing(link="https://x/new", price="1.000 €")], T1)

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert [r["link"] for r in saved] == ["https://x/new", "https://x/old", "https://x/kept"]
    assert {r["link"]: r["status"] for r in saved}["https://x/old"] == "inactive"
