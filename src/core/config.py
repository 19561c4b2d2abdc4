"""Runtime configuration model for Skorly.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_DATA_ROOT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_BATCH_SIZE,
    DEFAULT_STAGGER_SECONDS,
    DEFAULT_TASK_TIMEOUT_SECONDS,
)
from core.errors import SkorlyConfigError

LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass(frozen=True)
class SkorlyConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for students, batches, and snapshots.
        concurrency: Worker count of the shared student task pool.
        max_batch_size: Largest accepted batch.
        task_timeout_seconds: Wall-clock limit for one student task.
        stagger_seconds: Start offset between consecutive tasks of a batch.
        settings_file: Optional YAML settings path for limits and scoring.
        github_token: Optional GitHub API token.
        log_level: Minimum structured log level.
    """

    data_root: Path
    concurrency: int = DEFAULT_CONCURRENCY
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    task_timeout_seconds: float = DEFAULT_TASK_TIMEOUT_SECONDS
    stagger_seconds: float = DEFAULT_STAGGER_SECONDS
    settings_file: str | None = None
    github_token: str | None = None
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> "SkorlyConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            SkorlyConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("SKORLY_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            concurrency=_parse_positive_int(
                "SKORLY_CONCURRENCY", os.getenv("SKORLY_CONCURRENCY", str(DEFAULT_CONCURRENCY))
            ),
            max_batch_size=_parse_positive_int(
                "SKORLY_MAX_BATCH_SIZE",
                os.getenv("SKORLY_MAX_BATCH_SIZE", str(DEFAULT_MAX_BATCH_SIZE)),
            ),
            task_timeout_seconds=_parse_seconds(
                "SKORLY_TASK_TIMEOUT_SECONDS",
                os.getenv("SKORLY_TASK_TIMEOUT_SECONDS", str(DEFAULT_TASK_TIMEOUT_SECONDS)),
                allow_zero=False,
            ),
            stagger_seconds=_parse_seconds(
                "SKORLY_STAGGER_SECONDS",
                os.getenv("SKORLY_STAGGER_SECONDS", str(DEFAULT_STAGGER_SECONDS)),
                allow_zero=True,
            ),
            settings_file=os.getenv("SKORLY_SETTINGS_FILE") or None,
            github_token=os.getenv("SKORLY_GITHUB_TOKEN") or None,
            log_level=_parse_log_level(os.getenv("SKORLY_LOG_LEVEL", DEFAULT_LOG_LEVEL)),
        )


def _parse_positive_int(variable: str, raw_value: str) -> int:
    """Parse a positive integer environment value.

    Args:
        variable: Environment variable name, used in error messages.
        raw_value: Raw string from environment.

    Returns:
        Parsed integer.

    Raises:
        SkorlyConfigError: If value is not a positive integer.
    """
    try:
        value = int(raw_value)
    except ValueError as error:
        raise SkorlyConfigError(
            f"Invalid {variable} value: expected integer, got '{raw_value}'. "
            f"Set {variable} to a positive number."
        ) from error
    if value < 1:
        raise SkorlyConfigError(
            f"Invalid {variable} value: expected at least 1, got {value}."
        )
    return value


def _parse_seconds(variable: str, raw_value: str, allow_zero: bool) -> float:
    try:
        value = float(raw_value)
    except ValueError as error:
        raise SkorlyConfigError(
            f"Invalid {variable} value: expected seconds, got '{raw_value}'."
        ) from error
    if value < 0 or (value == 0 and not allow_zero):
        raise SkorlyConfigError(
            f"Invalid {variable} value: {value} is out of range. Use a positive number."
        )
    return value


def _parse_log_level(raw_value: str) -> str:
    level = raw_value.strip().lower()
    if level not in LOG_LEVELS:
        raise SkorlyConfigError(
            f"Invalid SKORLY_LOG_LEVEL value '{raw_value}'. Use one of: {', '.join(LOG_LEVELS)}."
        )
    return level
