"""
Utility functions for logging, timestamps and text clean-up.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional


def init_logger(
    name: str = "tracker",
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_file: Optional[str] = "hunt.log"
) -> logging.Logger:
    """Initialize logger with console and optional file handlers."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    if logger.handlers:
        return logger

    console_level_num = getattr(logging, console_level.upper(), logging.INFO)
    ch = logging.StreamHandler()
    ch.setLevel(console_level_num)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file:  # Create file handler only if log_file is provided
        file_level_num = getattr(logging, file_level.upper(), logging.DEBUG)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level_num)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def now_utc() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return format_iso(now_utc())


def format_iso(ts: datetime) -> str:
    """Format a datetime the way state files store it (UTC, millisecond 'Z' form)."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def parse_iso(text: str) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC."""
    s = text.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    ts = datetime.fromisoformat(s)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def file_timestamp(ts: datetime) -> str:
    """Timestamp safe for filenames, e.g. 2026-10-19T12-00-05 (UTC)."""
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%dT%H-%M-%S")


def format_local_timestamp(ts: datetime) -> str:
    """Render a timestamp in the Slovenian locale layout, e.g. '19. 10. 2026, 14:05:09'."""
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return f"{ts.day}. {ts.month}. {ts.year}, {ts:%H:%M:%S}"


_LOCAL_TS_RE = re.compile(
    r"^(\d{1,2})\.\s*(\d{1,2})\.\s*(\d{4}),?\s+(\d{1,2}):(\d{2})(?::(\d{2}))?$"
)


def parse_local_timestamp(text: str) -> Optional[datetime]:
    """Inverse of format_local_timestamp; returns a naive local datetime or None."""
    m = _LOCAL_TS_RE.match(text.strip())
    if not m:
        return None
    day, month, year, hour, minute, second = m.groups()
    try:
        return datetime(int(year), int(month), int(day),
                        int(hour), int(minute), int(second or 0))
    except ValueError:
        return None


def clean_text(s: Optional[str]) -> str:
    """Clean and normalize text by removing extra whitespace."""
    if not s:
        return ""
    s = re.sub(r"\s+", " ", s)
    return s.strip()


def clean_optional(s: Optional[str]) -> Optional[str]:
    """Like clean_text but keeps absence explicit: empty results become None."""
    cleaned = clean_text(s)
    return cleaned or None
