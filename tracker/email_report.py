"""
E-mail digest of the newest report, its new listings and the LLM notes.
"""
import logging
import re
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Collection, List, Optional

from .config import EmailSettings
from .models import UNKNOWN, Snapshot, SnapshotEntry
from .utils import format_local_timestamp

logger = logging.getLogger(__name__)

RULE = "=" * 50
_URL_RE = re.compile(r"(https?://\S+)")
_PICK_RE = re.compile(r"^(\d+\.\s*)(.+?)(\s*—\s*.*)$")

MONTHS_SL = (
    "januar", "februar", "marec", "april", "maj", "junij",
    "julij", "avgust", "september", "oktober", "november", "december",
)

STYLE = """
    body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; padding: 20px; background: #f5f5f5; margin: 0; }
    .container { max-width: 700px; margin: 0 auto; background: white; border-radius: 8px; padding: 24px; }
    h1 { color: #333; font-size: 22px; margin: 0 0 4px 0; }
    .date { color: #888; font-size: 14px; margin-bottom: 16px; }
    .llm-box { background: #f0f7ff; border-left: 4px solid #0066ff; padding: 14px 16px; border-radius: 4px; margin-bottom: 24px; font-size: 14px; line-height: 1.6; color: #333; }
    .stats { color: #666; font-size: 14px; margin-bottom: 20px; }
    .group { margin-bottom: 24px; }
    .group-name { font-size: 16px; font-weight: 700; color: #222; padding: 8px 0; border-bottom: 2px solid #0066ff; margin-bottom: 8px; }
    .group-name span { font-weight: 400; color: #888; font-size: 14px; }
    table { width: 100%; border-collapse: collapse; font-size: 13px; }
    th { text-align: left; color: #888; font-weight: 500; font-size: 11px; text-transform: uppercase; padding: 6px 8px; border-bottom: 1px solid #eee; }
    td { padding: 8px; border-bottom: 1px solid #f3f3f3; color: #333; vertical-align: top; }
    .price-cell { font-weight: 600; color: #0066ff; white-space: nowrap; }
    .title-cell a { color: #333; text-decoration: none; }
    .meta { color: #888; font-size: 12px; }
    tr.new-listing td { background: #fffde7; }
    .new-badge { display: inline-block; background: #f9a825; color: #fff; font-size: 10px; font-weight: 700; padding: 1px 5px; border-radius: 3px; margin-right: 4px; }
    .picks-title { font-size: 18px; font-weight: 700; color: #222; margin-top: 30px; padding: 8px 0; border-bottom: 2px solid #e8a000; margin-bottom: 12px; }
    .picks-box { background: #fffbf0; border-left: 4px solid #e8a000; padding: 14px 16px; border-radius: 4px; font-size: 14px; line-height: 1.8; color: #333; white-space: pre-wrap; }
"""


@dataclass
class Digest:
    subject: str
    text: str
    html: str


def long_date(day: datetime) -> str:
    """'19. oktober 2026'."""
    return f"{day.day}. {MONTHS_SL[day.month - 1]} {day.year}"


def entry_details(entry: SnapshotEntry) -> str:
    values = [entry.horsepower, entry.fuel, entry.gearbox, entry.color]
    return " | ".join(v for v in values if v and v != UNKNOWN)


def render_picks_html(picks: str) -> str:
    """Pick lines with the url hidden under the car name."""
    out: List[str] = []
    for line in picks.split("\n"):
        m = _URL_RE.search(line)
        if not m:
            out.append(escape(line))
            continue
        url = m.group(1)
        clean = re.sub(r"\s*—\s*$", "", line.replace(url, "")).rstrip()
        numbered = _PICK_RE.match(clean)
        if numbered:
            out.append(f'{escape(numbered.group(1))}<a href="{escape(url)}">'
                       f'{escape(numbered.group(2))}</a>{escape(numbered.group(3))}')
        else:
            out.append(f'<a href="{escape(url)}">{escape(clean)}</a>')
    return "<br>".join(out)


def _text_body(snapshot: Optional[Snapshot], new_urls: Collection[str],
               summary: Optional[str], picks: Optional[str], date: str, scraped: Optional[str]) -> str:
    text = f"Classic Hunt - {date}\n"
    if scraped:
        text += f"Data scraped: {scraped}\n"
    text += f"{RULE}\n\n"

    if summary:
        text += summary + "\n\n" + f"{RULE}\n\n"

    if snapshot is not None:
        text += f"{snapshot.total} active listings\n\n"
        for group in snapshot.groups:
            text += f"--- {group.label} ({len(group.entries)}) ---\n"
            for e in group.entries:
                badge = "[NEW] " if e.url in new_urls else ""
                text += f"  {badge}{e.price} | {e.title} | {e.year} | {e.kilometers} | {entry_details(e)}\n"
                text += f"  {e.url}\n\n"

    if picks:
        text += f"{RULE}\nTOP 5 PICKS FOR YOU\n{RULE}\n\n{picks}\n\n"
    return text


def _html_body(snapshot: Optional[Snapshot], new_urls: Collection[str],
               summary: Optional[str], picks: Optional[str], date: str, scraped: Optional[str]) -> str:
    parts = [
        "<!DOCTYPE html>\n<html>\n<head>\n  <meta charset=\"utf-8\">\n",
        f"  <style>{STYLE}  </style>\n</head>\n<body>\n  <div class=\"container\">\n",
        "    <h1>Classic Hunt</h1>\n",
        f"    <div class=\"date\">{escape(date)}</div>\n",
    ]
    if scraped:
        parts.append(f"    <div class=\"date\">Data scraped: {escape(scraped)}</div>\n")
    if summary:
        parts.append(f"    <div class=\"llm-box\">{escape(summary).replace(chr(10), '<br>')}</div>\n")

    if snapshot is not None:
        parts.append(f"    <div class=\"stats\"><strong>{snapshot.total}</strong> active listings</div>\n")
        for group in snapshot.groups:
            parts.append(
                f"    <div class=\"group\">\n"
                f"      <div class=\"group-name\">{escape(group.label)} <span>({len(group.entries)})</span></div>\n"
                f"      <table>\n"
                f"        <tr><th>Price</th><th>Car</th><th>Year</th><th>Km</th><th>Details</th></tr>\n"
            )
            for e in group.entries:
                is_new = e.url in new_urls
                badge = '<span class="new-badge">NEW</span>' if is_new else ""
                row_class = ' class="new-listing"' if is_new else ""
                parts.append(
                    f"        <tr{row_class}>\n"
                    f"          <td class=\"price-cell\">{escape(e.price)}</td>\n"
                    f"          <td class=\"title-cell\">{badge}<a href=\"{escape(e.url)}\">{escape(e.title)}</a></td>\n"
                    f"          <td>{escape(e.year)}</td>\n"
                    f"          <td>{escape(e.kilometers)}</td>\n"
                    f"          <td class=\"meta\">{escape(entry_details(e))}</td>\n"
                    f"        </tr>\n"
                )
            parts.append("      </table>\n    </div>\n")

    if picks:
        parts.append("    <div class=\"picks-title\">Top 5 Picks For You</div>\n")
        parts.append(f"    <div class=\"picks-box\">{render_picks_html(picks)}</div>\n")

    parts.append("  </div>\n</body>\n</html>\n")
    return "".join(parts)


def compose_digest(
    snapshot: Optional[Snapshot],
    new_urls: Collection[str],
    summary: Optional[str],
    picks: Optional[str],
    today: datetime,
) -> Digest:
    """Plain-text and HTML bodies of the daily e-mail."""
    date = long_date(today)
    scraped = format_local_timestamp(snapshot.captured_at) if snapshot and snapshot.captured_at else None
    total = snapshot.total if snapshot is not None else 0
    return Digest(
        subject=f"Classic Hunt: {total} listings - {date}",
        text=_text_body(snapshot, new_urls, summary, picks, date, scraped),
        html=_html_body(snapshot, new_urls, summary, picks, date, scraped),
    )


def send_digest(settings: EmailSettings, digest: Digest):
    """Send the digest; SSL on port 465, STARTTLS otherwise."""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = digest.subject
    msg["From"] = settings.smtp_user or settings.email
    msg["To"] = settings.email
    msg.attach(MIMEText(digest.text, "plain", "utf-8"))
    msg.attach(MIMEText(digest.html, "html", "utf-8"))

    logger.info("Sending email to %s via %s:%s", settings.email, settings.smtp_host, settings.smtp_port)
    if settings.smtp_port == 465:
        server = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port)
    else:
        server = smtplib.SMTP(settings.smtp_host, settings.smtp_port)
    with server:
        if settings.smtp_port != 465:
            server.ehlo()
            server.starttls()
        if settings.smtp_user:
            server.login(settings.smtp_user, settings.smtp_pass)
        server.sendmail(msg["From"], [settings.email], msg.as_string())
    logger.info("Email sent")
