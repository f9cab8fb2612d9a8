"""
Tests for config.json loading.
"""
import json

import pytest

from tracker.config import ConfigError, load_config, parse_config
from tracker.models import ModelKey


def test_parse_cars_and_defaults(monkeypatch):
    monkeypatch.delenv("HUNT_OUTPUT_DIR", raising=False)
    cfg = parse_config({
        "cars": [
            {"brand": "audi", "model": "80", "maxPrice": 8000, "minYear": 1986},
            {"brand": "bmw", "model": "e30", "enabled": False},
        ],
    })

    audi, bmw = cfg.cars
    assert (audi.min_price, audi.max_price, audi.min_year, audi.max_year) == (0, 8000, 1986, 2090)
    assert not bmw.enabled
    assert cfg.enabled_keys() == [ModelKey("audi", "80")]
    assert cfg.new_listing_days == 3
    assert cfg.email is None
    assert cfg.output_dir == "output"


def test_email_settings_and_secret_from_env(monkeypatch):
    monkeypatch.setenv("SMTP_PASS", "from-env")
    cfg = parse_config({
        "cars": [],
        "email": "me@example.com",
        "smtpHost": "smtp.example.com",
        "smtpPort": 465,
        "smtpUser": "me",
        "smtpPass": "from-file",
    })

    assert cfg.email.smtp_port == 465
    assert cfg.email.smtp_pass == "from-env"


def test_environment_overrides_paths(monkeypatch, tmp_path):
    monkeypatch.setenv("HUNT_OUTPUT_DIR", str(tmp_path / "state"))
    cfg = parse_config({"cars": []})

    assert cfg.output_dir == str(tmp_path / "state")
    assert cfg.lock_path == tmp_path / "state" / ".hunt.lock"


@pytest.mark.parametrize("data", [
    [],
    {"cars": {"brand": "audi"}},
    {"cars": [{"brand": "audi"}]},
    {"cars": [{"brand": "audi", "model": "80", "maxPrice": "lots"}]},
])
def test_invalid_config(data):
    with pytest.raises(ConfigError):
        parse_config(data)


def test_load_config(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"cars": [{"brand": "vw", "model": "golf"}], "newListingDays": 5}))
    monkeypatch.setenv("HUNT_CONFIG", str(path))

    cfg = load_config()
    assert cfg.new_listing_days == 5
    assert cfg.cars[0].key.label == "Vw GOLF"


def test_missing_or_broken_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "nope.json"))

    broken = tmp_path / "broken.json"
    broken.write_text("{")
    with pytest.raises(ConfigError):
        load_config(str(broken))
