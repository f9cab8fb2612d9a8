"""
Export utilities for the tracked record sets.
"""
import logging
from datetime import datetime
from typing import Iterable

import pandas as pd

from .models import ModelRecordSet
from .snapshot import parse_price

logger = logging.getLogger(__name__)

COLUMNS = [
    "model", "link", "title", "price", "price_value", "year", "kilometers",
    "horsepower", "fuel", "gearbox", "color", "phone", "image_url",
    "status", "first_seen", "last_update",
]


def records_frame(record_sets: Iterable[ModelRecordSet]) -> pd.DataFrame:
    """One row per record across all given models."""
    rows = []
    for record_set in record_sets:
        for x in record_set:
            rows.append({
                "model": record_set.key.label,
                "link": x.link,
                "title": x.title,
                "price": x.price,
                "price_value": parse_price(x.price),
                "year": x.year,
                "kilometers": x.kilometers,
                "horsepower": x.horsepower,
                "fuel": x.fuel,
                "gearbox": x.gearbox,
                "color": x.color,
                "phone": x.phone,
                "image_url": x.image_url,
                "status": x.status,
                "first_seen": x.first_seen,
                "last_update": x.last_update,
            })
    return pd.DataFrame(rows, columns=COLUMNS)


def export_new_since_run(record_sets: Iterable[ModelRecordSet], run_started: datetime) -> pd.DataFrame:
    """Records first seen at or after the given time, newest first."""
    df = records_frame(record_sets)
    if df.empty:
        return df
    df = df[df["first_seen"] >= run_started]
    return df.sort_values("first_seen", ascending=False).reset_index(drop=True)


def save_output_rows(df: pd.DataFrame, out_path: str) -> int:
    """Save a frame to CSV or Excel file, depending on the suffix."""
    out = df.copy()
    # Excel cannot store timezone-aware datetimes
    for col in ("first_seen", "last_update"):
        if col in out.columns:
            out[col] = out[col].map(lambda ts: ts.isoformat() if hasattr(ts, "isoformat") else ts)

    if out_path.lower().endswith(".xlsx"):
        out.to_excel(out_path, index=False)
    else:
        out.to_csv(out_path, index=False)

    logger.info(">>> Saved %d rows to %s", len(out), out_path)
    return len(out)
