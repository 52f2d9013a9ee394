"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from staffslots.config import AppConfig
from staffslots.domain.models import MissingScheduleDataPolicy


def test_load_from_yaml(tmp_path):
    """A full config file is parsed with its defaults filled in."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "supabase_url: https://demo.supabase.co/\n"
        "supabase_anon_key: anon\n"
        "missing_schedule_policy: block_booking\n"
        "defaults:\n"
        "  service_duration_minutes: 45\n",
        encoding="utf-8",
    )

    config = AppConfig.load_from_yaml(config_file)

    assert config.supabase_url == "https://demo.supabase.co"
    assert config.get_rest_url() == "https://demo.supabase.co/rest/v1"
    assert config.get_auth_url() == "https://demo.supabase.co/auth/v1"
    assert config.missing_schedule_policy is MissingScheduleDataPolicy.BLOCK_BOOKING
    assert config.defaults.service_duration_minutes == 45
    assert config.slot_interval_minutes == 30
    assert config.calendar_days_ahead == 60


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        AppConfig.load_from_yaml(tmp_path / "absent.yaml")


def test_invalid_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("supabase_url: [unclosed\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML"):
        AppConfig.load_from_yaml(config_file)


def test_root_must_be_mapping(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        AppConfig.load_from_yaml(config_file)


@pytest.mark.parametrize(
    "overrides",
    [
        {"supabase_url": "demo.supabase.co"},
        {"slot_interval_minutes": 0},
        {"calendar_days_ahead": -1},
        {"defaults": {"service_duration_minutes": 0}},
        {"missing_schedule_policy": "maybe"},
    ],
)
def test_invalid_values(overrides):
    """Invalid settings are rejected by validation."""
    data = {"supabase_url": "https://demo.supabase.co", "supabase_anon_key": "anon"}
    data.update(overrides)

    with pytest.raises(ValidationError):
        AppConfig(**data)
