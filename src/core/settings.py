"""Typed settings-file parsing for platform limits, scoring, and schedule.

This module loads and validates the optional YAML settings file. Every
section falls back to built-in defaults, and unknown keys are rejected so
typos never silently change rate limits or scoring constants.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, cast

from core.constants import (
    DEFAULT_SCHEDULE_TIME,
    DEFAULT_SCHEDULE_TIMEZONE,
    DEFAULT_SCHEDULE_WEEKDAY,
    HIGH_TIER_THRESHOLD,
    MEDIUM_TIER_THRESHOLD,
)
from core.errors import SkorlyConfigError, SkorlyDependencyError

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class PlatformSettings:
    """Rate-limit, timeout, and retry settings for one platform.

    Attributes:
        capacity: Token bucket capacity (burst size).
        refill_per_second: Tokens added per second.
        timeout_seconds: Per-request timeout for one fetch attempt.
        acquire_timeout_seconds: Maximum wait for a rate-limit token.
        max_attempts: Total attempts for transient failures.
        backoff_seconds: Base delay for exponential backoff.
        max_backoff_seconds: Upper bound for one backoff delay.
    """

    capacity: int
    refill_per_second: float
    timeout_seconds: float
    acquire_timeout_seconds: float = 30.0
    max_attempts: int = 3
    backoff_seconds: float = 2.0
    max_backoff_seconds: float = 30.0


@dataclass(frozen=True)
class ScoringWeights:
    """Constants of the capped weighted scoring formula."""

    rating_divisor: float = 20.0
    rating_cap: float = 40.0
    problems_divisor: float = 5.0
    problems_cap: float = 40.0
    contest_multiplier: float = 2.0
    contest_cap: float = 20.0
    high_threshold: float = HIGH_TIER_THRESHOLD
    medium_threshold: float = MEDIUM_TIER_THRESHOLD


@dataclass(frozen=True)
class ScheduleSettings:
    """Weekly roster trigger time in a named time zone."""

    weekday: str = DEFAULT_SCHEDULE_WEEKDAY
    hour: int = 23
    minute: int = 59
    timezone: str = DEFAULT_SCHEDULE_TIMEZONE


DEFAULT_PLATFORM_SETTINGS: Mapping[str, PlatformSettings] = {
    "codeforces": PlatformSettings(
        capacity=5, refill_per_second=5.0, timeout_seconds=10.0, backoff_seconds=2.0
    ),
    "leetcode": PlatformSettings(
        capacity=2, refill_per_second=2.0, timeout_seconds=15.0, backoff_seconds=3.0
    ),
    "atcoder": PlatformSettings(
        capacity=1,
        refill_per_second=1.0,
        timeout_seconds=10.0,
        max_attempts=2,
        backoff_seconds=3.0,
    ),
    "github": PlatformSettings(
        capacity=10, refill_per_second=10.0, timeout_seconds=10.0, backoff_seconds=2.0
    ),
}


@dataclass(frozen=True)
class SkorlySettings:
    """Validated settings root object."""

    platforms: Mapping[str, PlatformSettings] = field(
        default_factory=lambda: dict(DEFAULT_PLATFORM_SETTINGS)
    )
    scoring: ScoringWeights = field(default_factory=ScoringWeights)
    schedule: ScheduleSettings = field(default_factory=ScheduleSettings)


def load_settings(settings_path: str | None) -> SkorlySettings:
    """Load settings from a YAML file, or return defaults when no path is given.

    Args:
        settings_path: Optional path to a YAML settings file.

    Returns:
        Fully validated settings.

    Raises:
        SkorlyDependencyError: If PyYAML is unavailable.
        SkorlyConfigError: If the file is invalid or schema checks fail.
    """
    if settings_path is None:
        return SkorlySettings()
    payload = _load_yaml_payload(settings_path)
    return parse_settings(payload)


def parse_settings(payload: object) -> SkorlySettings:
    """Validate an already-decoded settings payload."""
    root_mapping = _expect_mapping(payload, "settings root")
    _validate_keys(root_mapping, {"version", "platforms", "scoring", "schedule"}, "settings root")
    _parse_version(root_mapping)
    return SkorlySettings(
        platforms=_parse_platforms(root_mapping.get("platforms")),
        scoring=_parse_scoring(root_mapping.get("scoring")),
        schedule=_parse_schedule(root_mapping.get("schedule")),
    )


def _load_yaml_payload(settings_path: str) -> object:
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise SkorlyDependencyError(
            "YAML settings support requires PyYAML. Install with 'pip install pyyaml'."
        ) from error
    settings_file = Path(settings_path).expanduser().resolve()
    if not settings_file.exists():
        raise SkorlyConfigError(
            f"Settings file does not exist at {settings_file}. "
            "Fix SKORLY_SETTINGS_FILE or remove it to use defaults."
        )
    try:
        payload = cast(object, yaml.safe_load(settings_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise SkorlyConfigError(
            f"Failed to read settings at {settings_file}: {error}. Check file permissions."
        ) from error
    except yaml.YAMLError as error:
        raise SkorlyConfigError(
            f"Failed to parse YAML settings at {settings_file}: {error}. Fix YAML syntax."
        ) from error
    if payload is None:
        raise SkorlyConfigError(f"Settings file at {settings_file} is empty. Define 'version'.")
    return payload


def _parse_version(root_mapping: Mapping[str, object]) -> None:
    raw_version = root_mapping.get("version")
    if raw_version != 1:
        raise SkorlyConfigError(
            f"Unsupported settings version {raw_version!r}. Set version: 1."
        )


def _parse_platforms(raw_platforms: object) -> Mapping[str, PlatformSettings]:
    platforms = dict(DEFAULT_PLATFORM_SETTINGS)
    if raw_platforms is None:
        return platforms
    platform_mapping = _expect_mapping(raw_platforms, "platforms")
    for name, raw_value in platform_mapping.items():
        context = f"platforms.{name}"
        values = _expect_mapping(raw_value, context)
        _validate_keys(values, set(PlatformSettings.__dataclass_fields__), context)
        base = platforms.get(name)
        if base is None:
            if "capacity" not in values or "refill_per_second" not in values:
                raise SkorlyConfigError(
                    f"Invalid {context}: new platforms must define capacity and refill_per_second."
                )
            base = PlatformSettings(capacity=1, refill_per_second=1.0, timeout_seconds=10.0)
        overrides: dict[str, object] = {}
        for key, value in values.items():
            if key in ("capacity", "max_attempts"):
                overrides[key] = _positive_int(value, f"{context}.{key}")
            else:
                overrides[key] = _positive_float(value, f"{context}.{key}")
        platforms[name] = replace(base, **overrides)  # type: ignore[arg-type]
    return platforms


def _parse_scoring(raw_scoring: object) -> ScoringWeights:
    if raw_scoring is None:
        return ScoringWeights()
    values = _expect_mapping(raw_scoring, "scoring")
    _validate_keys(values, set(ScoringWeights.__dataclass_fields__), "scoring")
    overrides = {
        key: _positive_float(value, f"scoring.{key}") for key, value in values.items()
    }
    weights = replace(ScoringWeights(), **overrides)
    if weights.medium_threshold > weights.high_threshold:
        raise SkorlyConfigError(
            "Invalid scoring thresholds: medium_threshold must not exceed high_threshold."
        )
    return weights


def _parse_schedule(raw_schedule: object) -> ScheduleSettings:
    if raw_schedule is None:
        return ScheduleSettings()
    values = _expect_mapping(raw_schedule, "schedule")
    _validate_keys(values, {"weekday", "time", "timezone"}, "schedule")
    weekday = str(values.get("weekday", DEFAULT_SCHEDULE_WEEKDAY)).strip().lower()
    if weekday not in WEEKDAYS:
        raise SkorlyConfigError(
            f"Invalid schedule.weekday {weekday!r}. Use one of: {', '.join(WEEKDAYS)}."
        )
    hour, minute = parse_clock_time(str(values.get("time", DEFAULT_SCHEDULE_TIME)))
    timezone_name = str(values.get("timezone", DEFAULT_SCHEDULE_TIMEZONE)).strip()
    return ScheduleSettings(weekday=weekday, hour=hour, minute=minute, timezone=timezone_name)


def parse_clock_time(raw_time: str) -> tuple[int, int]:
    """Parse an HH:MM string into hour and minute."""
    parts = raw_time.strip().split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise SkorlyConfigError(f"Invalid schedule time {raw_time!r}: expected HH:MM.")
    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise SkorlyConfigError(f"Invalid schedule time {raw_time!r}: out of range.")
    return hour, minute


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise SkorlyConfigError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise SkorlyConfigError(
        f"Invalid {context}: expected object mapping, got {type(value).__name__}."
    )


def _validate_keys(mapping: Mapping[str, object], allowed_keys: set[str], context: str) -> None:
    unknown_keys = sorted(set(mapping) - allowed_keys)
    if unknown_keys:
        raise SkorlyConfigError(f"Invalid {context}: unknown fields {', '.join(unknown_keys)}.")


def _positive_int(value: object, context: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise SkorlyConfigError(f"Invalid {context}: expected a positive integer, got {value!r}.")
    return value


def _positive_float(value: object, context: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise SkorlyConfigError(f"Invalid {context}: expected a positive number, got {value!r}.")
    return float(value)
