"""
Tests for the e-mail digest.
"""
from datetime import datetime

import pytest

import tracker.email_report as email_report
from tracker.config import EmailSettings
from tracker.email_report import compose_digest, long_date, render_picks_html, send_digest
from tracker.models import Snapshot, SnapshotEntry, SnapshotGroup

TODAY = datetime(2026, 10, 19, 8, 0)


@pytest.fixture
def snapshot():
    return Snapshot(
        title="Classic Hunt Report",
        captured_at=datetime(2026, 10, 19, 7, 30, 0),
        groups=[SnapshotGroup(label="Audi 80", entries=[
            SnapshotEntry(price="4.500 €", title="Audi 80 B3", year="1989", kilometers="210.000 km",
                          horsepower="75 HP", fuel="bencin", url="https://x/1"),
            SnapshotEntry(price="6.000 €", title="Audi 80 <B4>", url="https://x/2"),
        ])],
    )


def test_long_date():
    assert long_date(TODAY) == "19. oktober 2026"


def test_compose_digest(snapshot):
    digest = compose_digest(snapshot, {"https://x/2"}, "Prices are stable.", None, TODAY)

    assert digest.subject == "Classic Hunt: 2 listings - 19. oktober 2026"
    assert "Data scraped: 19. 10. 2026, 07:30:00" in digest.text
    assert "Prices are stable." in digest.text
    assert "  [NEW] 6.000 € | Audi 80 <B4>" in digest.text
    assert "  4.500 € | Audi 80 B3 | 1989 | 210.000 km | 75 HP | bencin" in digest.text
    assert "TOP 5 PICKS" not in digest.text

    assert digest.html.count('class="new-listing"') == 1
    assert "Audi 80 &lt;B4&gt;" in digest.html
    assert "Audi 80 <B4>" not in digest.html


def test_compose_digest_without_report():
    digest = compose_digest(None, set(), None, "1. Something", TODAY)

    assert digest.subject == "Classic Hunt: 0 listings - 19. oktober 2026"
    assert "TOP 5 PICKS FOR YOU" in digest.text
    assert "active listings" not in digest.text


def test_render_picks_html_links_the_car_name():
    html = render_picks_html("Picks:\n1. Audi 80 B4 — great shape https://x/1\nhttps://x/2")
    lines = html.split("<br>")

    assert lines[0] == "Picks:"
    assert lines[1] == '1. <a href="https://x/1">Audi 80 B4</a> — great shape'
    assert lines[2] == '<a href="https://x/2"></a>'


class FakeSMTP:
    instances = []

    def __init__(self, host, port):
        self.host, self.port = host, port
        self.calls = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.calls.append("quit")

    def ehlo(self):
        self.calls.append("ehlo")

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def sendmail(self, sender, recipients, message):
        self.calls.append(("sendmail", sender, tuple(recipients)))
        self.message = message


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(email_report.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(email_report.smtplib, "SMTP_SSL", FakeSMTP)
    return FakeSMTP


def test_send_digest_starttls(fake_smtp, snapshot):
    settings = EmailSettings(email="me@example.com", smtp_host="smtp.example.com",
                             smtp_port=587, smtp_user="bot@example.com", smtp_pass="secret")
    send_digest(settings, compose_digest(snapshot, set(), None, None, TODAY))

    server = fake_smtp.instances[0]
    assert (server.host, server.port) == ("smtp.example.com", 587)
    assert server.calls[:3] == ["ehlo", "starttls", ("login", "bot@example.com", "secret")]
    assert ("sendmail", "bot@example.com", ("me@example.com",)) in server.calls
    assert "Classic Hunt" in server.message


def test_send_digest_ssl_without_login(fake_smtp, snapshot):
    settings = EmailSettings(email="me@example.com", smtp_host="smtp.example.com", smtp_port=465)
    send_digest(settings, compose_digest(snapshot, set(), None, None, TODAY))

    server = fake_smtp.instances[0]
    assert "starttls" not in server.calls
    assert server.calls[0] == ("sendmail", "me@example.com", ("me@example.com",))
