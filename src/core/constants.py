"""Core constants used across Skorly modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".skorly")
STUDENTS_DIR_NAME = "students"
SNAPSHOTS_DIR_NAME = "snapshots"
SNAPSHOTS_BY_STUDENT_DIR_NAME = "by_student"
SNAPSHOTS_BY_BATCH_DIR_NAME = "by_batch"
BATCHES_DIR_NAME = "batches"
BATCH_INDEX_FILE_NAME = "index.json"
BATCH_STATE_FILE_NAME = "state.json"
BATCH_ERRORS_FILE_NAME = "errors.jsonl"
STORE_LOCK_FILE_NAME = ".lock"
STORE_LOCK_TIMEOUT_SECONDS = 30.0

DEFAULT_CONCURRENCY = 5
DEFAULT_MAX_BATCH_SIZE = 1000
DEFAULT_TASK_TIMEOUT_SECONDS = 60.0
DEFAULT_STAGGER_SECONDS = 0.1
DEFAULT_RECENT_ERROR_LIMIT = 10
DEFAULT_HISTORY_LIMIT = 5
DEFAULT_LOG_LEVEL = "info"
TOP_MOVERS_LIMIT = 5

REG_NO_MIN_LENGTH = 3
REG_NO_MAX_LENGTH = 20
REG_NO_PATTERN = r"^[A-Z0-9]+$"
USERNAME_MAX_LENGTH = 50
USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"

HIGH_TIER_THRESHOLD = 80.0
MEDIUM_TIER_THRESHOLD = 50.0
SCORE_DECIMALS = 2

DEFAULT_SCHEDULE_WEEKDAY = "sunday"
DEFAULT_SCHEDULE_TIME = "23:59"
DEFAULT_SCHEDULE_TIMEZONE = "UTC"

USER_AGENT = "Skorly-Platform-Tracker/1.0"
SUPPORTED_PLATFORMS = ("codeforces", "leetcode", "atcoder", "github")
