"""
Configuration loading for the tracker.

``config.json`` keeps the camelCase keys of the original tool; paths and
secrets can be overridden from the environment.
"""
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .models import ModelKey

DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_REPORTS_DIR = "reports"
DEFAULT_PROMPT_CONFIG_PATH = "prompt-config.json"


class ConfigError(ValueError):
    """Configuration file missing or invalid."""


@dataclass
class CarSearch:
    """One tracked model and its search bounds."""

    brand: str
    model: str
    enabled: bool = True
    min_price: int = 0
    max_price: int = 999999
    min_year: int = 0
    max_year: int = 2090

    @property
    def key(self) -> ModelKey:
        return ModelKey(self.brand, self.model)


@dataclass
class EmailSettings:
    email: str
    smtp_host: str
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""


@dataclass
class AppConfig:
    cars: List[CarSearch] = field(default_factory=list)
    new_listing_days: int = 3
    email: Optional[EmailSettings] = None
    output_dir: str = DEFAULT_OUTPUT_DIR
    reports_dir: str = DEFAULT_REPORTS_DIR
    prompt_config_path: str = DEFAULT_PROMPT_CONFIG_PATH

    def enabled_searches(self) -> List[CarSearch]:
        return [c for c in self.cars if c.enabled]

    def enabled_keys(self) -> List[ModelKey]:
        return [c.key for c in self.enabled_searches()]

    @property
    def lock_path(self) -> Path:
        return Path(self.output_dir) / ".hunt.lock"


def _int_or(item: dict, name: str, default: int) -> int:
    value = item.get(name)
    return default if value is None else int(value)


def _car_from_dict(item: dict) -> CarSearch:
    if not isinstance(item, dict) or not item.get("brand") or not item.get("model"):
        raise ConfigError(f"Car entry needs brand and model: {item!r}")
    try:
        return CarSearch(
            brand=str(item["brand"]),
            model=str(item["model"]),
            enabled=item.get("enabled") is not False,
            min_price=_int_or(item, "minPrice", 0),
            max_price=_int_or(item, "maxPrice", 999999),
            min_year=_int_or(item, "minYear", 0),
            max_year=_int_or(item, "maxYear", 2090),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid bounds for {item.get('brand')} {item.get('model')}: {e}") from e


def parse_config(data: dict) -> AppConfig:
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a JSON object")
    cars = data.get("cars") or []
    if not isinstance(cars, list):
        raise ConfigError("'cars' must be a list")

    email = None
    if data.get("email") and data.get("smtpHost"):
        email = EmailSettings(
            email=data["email"],
            smtp_host=data["smtpHost"],
            smtp_port=int(data.get("smtpPort") or 587),
            smtp_user=data.get("smtpUser") or "",
            smtp_pass=os.getenv("SMTP_PASS", data.get("smtpPass") or ""),
        )

    return AppConfig(
        cars=[_car_from_dict(c) for c in cars],
        new_listing_days=int(data.get("newListingDays") or 3),
        email=email,
        output_dir=os.getenv("HUNT_OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
        reports_dir=os.getenv("HUNT_REPORTS_DIR", DEFAULT_REPORTS_DIR),
        prompt_config_path=os.getenv("HUNT_PROMPT_CONFIG", DEFAULT_PROMPT_CONFIG_PATH),
    )


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load ``config.json`` (or ``$HUNT_CONFIG``)."""
    path = path or os.getenv("HUNT_CONFIG", DEFAULT_CONFIG_PATH)
    if not os.path.exists(path):
        raise ConfigError(f"Configuration file not found: {path}")
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    return parse_config(data)
