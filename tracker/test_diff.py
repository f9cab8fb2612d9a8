"""
Tests for the identity-based report diff.
"""
import pytest

from tracker.diff import NotComparableError, diff_snapshots, diff_urls, listing_key, render_diff
from tracker.models import Snapshot, SnapshotEntry, SnapshotGroup
from tracker.snapshot import parse_snapshot, render_entry, render_snapshot

HEADER = "Classic Hunt Report - 19. 10. 2026, 14:05:09\nActive listings: {n}\n" + "=" * 120 + "\n\n"


def entry(n, price="5.000 €"):
    return SnapshotEntry(price=price, title=f"Car {n}", url=f"https://www.avto.net/Ads/details.asp?id={n}")


def snap(*groups):
    return Snapshot(
        title="Classic Hunt Report",
        captured_at=None,
        groups=[SnapshotGroup(label=label, entries=list(entries)) for label, entries in groups],
    )


@pytest.fixture
def base():
    return snap(("Audi 80", [entry(1), entry(2)]), ("Bmw E30", [entry(3)]))


def test_diff_with_itself_is_empty(base):
    result = diff_snapshots(base, base, "a", "a")

    assert result.comparable
    assert result.entries == []


def test_one_appended_listing(base):
    later = snap(("Audi 80", [entry(1), entry(2)]), ("Bmw E30", [entry(3), entry(4)]))
    result = diff_snapshots(base, later, "report_a.txt", "report_b.txt")

    assert [e.url for e in result.entries] == [entry(4).url]


def test_identity_ignores_field_drift(base):
    later = snap(("Audi 80", [entry(1, price="4.000 €"), entry(2)]), ("Bmw E30", [entry(3)]))

    assert diff_snapshots(base, later).entries == []


def test_order_follows_latest_and_duplicates_once(base):
    later = snap(
        ("Audi 80", [entry(7), entry(1), entry(5)]),
        ("Bmw E30", [entry(7), entry(6)]),
    )
    result = diff_snapshots(base, later)

    assert [e.title for e in result.entries] == ["Car 7", "Car 5", "Car 6"]


def test_no_previous_is_not_comparable(base):
    result = diff_snapshots(None, base, latest_name="report_b.txt")

    assert not result.comparable
    assert result.entries == []
    with pytest.raises(NotComparableError):
        render_diff(result)


def test_lines_without_url_are_ignored(base):
    later = snap(("Audi 80", [entry(1), SnapshotEntry(price="1 €", title="no url", url="")]))

    assert diff_snapshots(base, later).entries == []


def test_listing_key_takes_url_token():
    assert listing_key(SnapshotEntry(url="https://x/1")) == "https://x/1"
    assert listing_key(SnapshotEntry(url="see https://x/2")) == "https://x/2"
    assert listing_key(SnapshotEntry(url="N/A")) is None


def test_render_no_new_listings(base):
    text = render_diff(diff_snapshots(base, base, "report_a.txt", "report_b.txt"))

    assert text == "No new listings.\nPrevious: report_a.txt\nLatest: report_b.txt\n"


def test_render_new_listings_uses_raw_lines():
    previous_text = HEADER.format(n=1) + "--- Audi 80 ---\n" + render_entry(entry(1)) + "\n"
    raw_line = "6.000 € | Car 2 | 1990 | 1 km | 1 HP | dizel | ročni | https://www.avto.net/Ads/details.asp?id=2"
    latest_text = HEADER.format(n=2) + "--- Audi 80 ---\n" + render_entry(entry(1)) + "\n" + raw_line + "\n"

    result = diff_snapshots(parse_snapshot(previous_text), parse_snapshot(latest_text),
                            "report_a.txt", "report_b.txt")
    text = render_diff(result)

    assert text == (
        "New listings: 1\n"
        "Previous: report_a.txt\n"
        "Latest: report_b.txt\n"
        + "=" * 80 + "\n\n"
        + raw_line + "\n"
    )


def test_diff_urls_reads_artifact(base):
    later = snap(("Audi 80", [entry(1), entry(8), entry(9)]))
    text = render_diff(diff_snapshots(base, later, "a", "b"))

    assert diff_urls(text) == {entry(8).url, entry(9).url}


def test_diff_through_text_round_trip(base):
    later = snap(("Audi 80", [entry(1), entry(2), entry(10)]), ("Bmw E30", [entry(3)]))
    result = diff_snapshots(parse_snapshot(render_snapshot(base)), parse_snapshot(render_snapshot(later)))

    assert [e.url for e in result.entries] == [entry(10).url]


def test_render_without_names_has_no_placeholder(base):
    later = snap(("Audi 80", [entry(1), entry(11)]))
    text = render_diff(diff_snapshots(base, later))

    assert "None" not in text
    assert text.startswith("New listings: 1\nPrevious: \nLatest: \n")
