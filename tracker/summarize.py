"""
LLM summaries of the archived reports through a local Ollama server.

Two notes are produced: a comparison of the two newest reports (only when
there are two) and a short list of recommended cars taken from the newest
report restricted to the configured budget.
"""
import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

import requests

from .snapshot import filter_report_text
from .store import ArchivedReport, ReportArchive
from .utils import format_local_timestamp, now_utc

logger = logging.getLogger(__name__)

TRUNCATION_MARK = "\n... [truncated]"
_FILENAME_DATE_RE = re.compile(r"report_(\d{4}-\d{2}-\d{2})T(\d{2})-(\d{2})-(\d{2})\.txt")


class LLMError(RuntimeError):
    """The language model could not be reached or answered with an error."""


@dataclass
class PromptConfig:
    ollama_url: str
    ollama_model: str
    comparison_prompt: str
    recommendation_prompt: str
    max_report_chars: int = 15000
    timeout_seconds: int = 120
    picks_max_price: int = 6000

    @classmethod
    def from_dict(cls, data: dict) -> "PromptConfig":
        missing = [k for k in ("ollamaUrl", "ollamaModel", "comparisonPrompt", "recommendationPrompt")
                   if not data.get(k)]
        if missing:
            raise ValueError(f"prompt config is missing: {', '.join(missing)}")
        return cls(
            ollama_url=data["ollamaUrl"],
            ollama_model=data["ollamaModel"],
            comparison_prompt=data["comparisonPrompt"],
            recommendation_prompt=data["recommendationPrompt"],
            max_report_chars=int(data.get("maxReportChars") or 15000),
            timeout_seconds=int(data.get("timeoutSeconds") or 120),
            picks_max_price=int(data.get("picksMaxPrice") or 6000),
        )


def load_prompt_config(path: str) -> PromptConfig:
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"{path} not found. Create it with ollamaUrl, ollamaModel and prompt templates."
        )
    with open(path, encoding="utf-8") as fh:
        return PromptConfig.from_dict(json.load(fh))


def extract_date_from_filename(filename: str) -> str:
    """'report_2026-10-19T12-00-05.txt' -> '2026-10-19 12:00:05'."""
    m = _FILENAME_DATE_RE.search(filename)
    if m:
        return f"{m.group(1)} {m.group(2)}:{m.group(3)}:{m.group(4)}"
    return filename


def truncate(text: str, max_chars: int) -> str:
    if len(text) > max_chars:
        return text[:max_chars] + TRUNCATION_MARK
    return text


def build_prompt(
    template: str,
    latest: ArchivedReport,
    previous: Optional[ArchivedReport],
    max_chars: int,
) -> str:
    """Fill the report placeholders of a prompt template."""
    result = (template
              .replace("{{LATEST_REPORT}}", truncate(latest.text, max_chars))
              .replace("{{LATEST_DATE}}", extract_date_from_filename(latest.name)))
    if previous is not None:
        result = (result
                  .replace("{{PREVIOUS_REPORT}}", truncate(previous.text, max_chars))
                  .replace("{{PREVIOUS_DATE}}", extract_date_from_filename(previous.name)))
    return result


def call_ollama(prompt: str, config: PromptConfig, session: Optional[requests.Session] = None) -> str:
    """Send a non-streaming generate request and return the response text."""
    http = session or requests
    payload = {"model": config.ollama_model, "prompt": prompt, "stream": False}
    try:
        resp = http.post(config.ollama_url, json=payload, timeout=config.timeout_seconds)
    except requests.exceptions.Timeout as e:
        raise LLMError(f"Ollama request timed out after {config.timeout_seconds} seconds") from e
    except requests.exceptions.ConnectionError as e:
        raise LLMError("Could not connect to Ollama. Is it running? Start it with: ollama serve") from e

    if not resp.ok:
        raise LLMError(f"Ollama returned HTTP {resp.status_code}: {resp.reason}")
    try:
        return resp.json()["response"]
    except (ValueError, KeyError) as e:
        raise LLMError(f"Unexpected Ollama response: {e}") from e


def make_header(title: str, model: str, now: datetime) -> str:
    return f"{title} - {format_local_timestamp(now)}\nModel: {model}\n{'=' * 60}\n\n"


@dataclass
class SummaryPaths:
    summary: Optional[Path]
    picks: Optional[Path]


def generate_summary(
    archive: ReportArchive,
    config: PromptConfig,
    now: Optional[datetime] = None,
    session: Optional[requests.Session] = None,
) -> SummaryPaths:
    """Write the comparison summary and the budget picks for the newest report."""
    now = now or now_utc()
    date_str = now.strftime("%Y-%m-%d")

    latest, previous = archive.latest_pair()
    if latest is None:
        raise FileNotFoundError(f"No reports found in {archive.reports_dir}")

    summary_path = None
    if previous is not None:
        logger.info("Comparing reports: %s -> %s", previous.name, latest.name)
        prompt = build_prompt(config.comparison_prompt, latest, previous, config.max_report_chars)
        logger.info("Calling Ollama (%s) for comparison...", config.ollama_model)
        summary = call_ollama(prompt, config, session)
        summary_path = archive.write_note(
            "summary", date_str, make_header("Classic Hunt LLM Summary", config.ollama_model, now) + summary)
        logger.info("Summary saved to %s", summary_path)
    else:
        logger.info("Only one report found; skipping comparison")

    filtered = ArchivedReport(
        name=latest.name,
        text=filter_report_text(latest.text, config.picks_max_price),
    )
    logger.info("Filtered to %d listing(s) under %d EUR for picks",
                filtered.snapshot.total, config.picks_max_price)
    prompt = build_prompt(config.recommendation_prompt, filtered, None, config.max_report_chars)
    logger.info("Calling Ollama (%s) for picks...", config.ollama_model)
    picks = call_ollama(prompt, config, session)
    picks_path = archive.write_note(
        "picks", date_str, make_header("Classic Hunt Top Picks", config.ollama_model, now) + picks)
    logger.info("Picks saved to %s", picks_path)

    return SummaryPaths(summary=summary_path, picks=picks_path)
