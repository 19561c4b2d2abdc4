"""Unit tests for YAML settings parsing."""

from __future__ import annotations

import pytest

from core.errors import SkorlyConfigError
from core.settings import (
    DEFAULT_PLATFORM_SETTINGS,
    load_settings,
    parse_clock_time,
    parse_settings,
)
from tests.fixture_paths import fixture_path


def test_load_settings_without_path_returns_defaults() -> None:
    """No settings file should mean built-in limits, weights, and schedule."""
    settings = load_settings(None)

    assert (
        settings.platforms["atcoder"].refill_per_second == 1.0
        and settings.platforms["atcoder"].max_attempts == 2
        and settings.platforms["leetcode"].timeout_seconds == 15.0
        and settings.scoring.rating_divisor == 20.0
        and settings.schedule.weekday == "sunday"
        and (settings.schedule.hour, settings.schedule.minute) == (23, 59)
    )


def test_load_settings_merges_overrides_with_defaults() -> None:
    """Overrides should replace only the keys they name."""
    settings = load_settings(str(fixture_path("settings/valid.yaml")))
    codeforces = settings.platforms["codeforces"]

    assert (
        codeforces.capacity == 3
        and codeforces.refill_per_second == 1.5
        and codeforces.timeout_seconds == DEFAULT_PLATFORM_SETTINGS["codeforces"].timeout_seconds
        and settings.platforms["atcoder"].max_attempts == 4
        and settings.scoring.high_threshold == 75.0
        and settings.schedule.weekday == "saturday"
        and (settings.schedule.hour, settings.schedule.minute) == (18, 30)
        and settings.schedule.timezone == "Asia/Kolkata"
    )


def test_load_settings_rejects_unknown_keys() -> None:
    """Typos in platform settings should fail loudly."""
    with pytest.raises(SkorlyConfigError, match="unknown fields burst"):
        load_settings(str(fixture_path("settings/unknown_key.yaml")))


def test_load_settings_rejects_missing_file(tmp_path) -> None:
    """A configured but missing settings file is a config error."""
    with pytest.raises(SkorlyConfigError, match="does not exist"):
        load_settings(str(tmp_path / "absent.yaml"))


def test_parse_settings_requires_version_one() -> None:
    """Settings payloads must declare version 1."""
    with pytest.raises(SkorlyConfigError, match="version"):
        parse_settings({"version": 2})


def test_parse_settings_rejects_inverted_tier_thresholds() -> None:
    """The medium threshold cannot exceed the high threshold."""
    with pytest.raises(SkorlyConfigError, match="medium_threshold"):
        parse_settings({"version": 1, "scoring": {"medium_threshold": 90}})


def test_parse_settings_rejects_non_positive_limits() -> None:
    """Rate limits must be positive numbers."""
    with pytest.raises(SkorlyConfigError, match="positive"):
        parse_settings({"version": 1, "platforms": {"github": {"refill_per_second": 0}}})


def test_parse_clock_time_validates_range() -> None:
    """Clock times should be HH:MM within a day."""
    with pytest.raises(SkorlyConfigError):
        parse_clock_time("24:00")

    assert parse_clock_time("07:05") == (7, 5)
