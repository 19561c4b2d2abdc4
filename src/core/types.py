"""Shared typed models.

This module defines immutable data models used by the platform clients,
reconciliation engine, stores, and orchestrator to keep interfaces explicit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Mapping

FetchStatus = Literal["success", "failed", "skipped"]
PerformanceTier = Literal["high", "medium", "low"]
Trend = Literal["up", "down", "stable"]
BatchState = Literal["pending", "processing", "completed", "failed", "cancelled"]
BatchTrigger = Literal["upload", "manual", "scheduled"]
ErrorKind = Literal[
    "validation",
    "transient-api",
    "permanent-api",
    "infrastructure",
    "timeout",
    "processing",
]


@dataclass(frozen=True)
class StudentRecord:
    """One student row submitted for ingestion.

    Attributes:
        reg_no: Registration number, the stable student identity.
        name: Display name.
        group: Department or class group.
        cohort: Year or cohort label.
        platforms: Platform name to username mapping; blank means not registered.
    """

    reg_no: str
    name: str
    group: str = ""
    cohort: str = ""
    platforms: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Student:
    """Persisted student profile.

    Attributes:
        reg_no: Upper-cased registration number.
        name: Display name.
        group: Department or class group.
        cohort: Year or cohort label.
        platforms: Registered platform usernames.
        is_active: Whether roster runs include this student.
        created_at: First ingestion timestamp (UTC).
        updated_at: Last upsert timestamp (UTC).
    """

    reg_no: str
    name: str
    group: str
    cohort: str
    platforms: Mapping[str, str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    def to_record(self) -> StudentRecord:
        """Return the submission record for roster re-runs."""
        return StudentRecord(
            reg_no=self.reg_no,
            name=self.name,
            group=self.group,
            cohort=self.cohort,
            platforms=dict(self.platforms),
        )


@dataclass(frozen=True)
class PlatformStats:
    """Uniform statistics produced by every platform adapter.

    Fields a platform cannot supply are zero-valued so downstream
    code never branches on missing keys.
    """

    rating: int = 0
    max_rating: int = 0
    problems_solved: int = 0
    contests_participated: int = 0
    rank: int = 0
    extra: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class PlatformObservation:
    """One platform's result for one student at one point in time."""

    platform: str
    username: str
    fetch_status: FetchStatus
    rating: int = 0
    max_rating: int = 0
    problems_solved: int = 0
    contests_participated: int = 0
    rank: int = 0
    error_detail: str | None = None
    extra: Mapping[str, object] = field(default_factory=dict)

    @classmethod
    def from_stats(
        cls, platform: str, username: str, stats: PlatformStats
    ) -> "PlatformObservation":
        """Build a successful observation from adapter output."""
        return cls(
            platform=platform,
            username=username,
            fetch_status="success",
            rating=stats.rating,
            max_rating=stats.max_rating,
            problems_solved=stats.problems_solved,
            contests_participated=stats.contests_participated,
            rank=stats.rank,
            extra=dict(stats.extra),
        )

    @classmethod
    def skipped(cls, platform: str) -> "PlatformObservation":
        """Build an observation for a platform the student is not registered on."""
        return cls(platform=platform, username="", fetch_status="skipped")

    @classmethod
    def failed(cls, platform: str, username: str, error_detail: str) -> "PlatformObservation":
        """Build a zero-valued observation for a failed fetch."""
        return cls(
            platform=platform,
            username=username,
            fetch_status="failed",
            error_detail=error_detail,
        )


@dataclass(frozen=True)
class PlatformDelta:
    """Metric changes for one platform between two snapshots.

    Attributes:
        rank: Positive when rank improved (lower numeric rank is better).
        is_new: True when the prior snapshot had no successful data for the platform.
    """

    platform: str
    rating: int
    max_rating: int
    problems_solved: int
    contests_participated: int
    rank: int
    is_new: bool


@dataclass(frozen=True)
class WeekInfo:
    """Week number and label shared by every snapshot of one batch."""

    week_number: int
    week_label: str


@dataclass(frozen=True)
class BatchRef:
    """Identity of the batch a snapshot belongs to."""

    batch_id: str
    week: WeekInfo


@dataclass(frozen=True)
class Snapshot:
    """Immutable record of one student's state at one batch/week."""

    student_id: str
    batch_id: str
    week_number: int
    week_label: str
    captured_at: datetime
    observations: tuple[PlatformObservation, ...]
    aggregate_score: float
    performance_tier: PerformanceTier
    active_platform_count: int
    trend: Trend
    previous_score: float | None = None
    deltas: tuple[PlatformDelta, ...] = ()

    @property
    def has_successful_data(self) -> bool:
        """Return whether any platform was fetched successfully."""
        return self.active_platform_count > 0

    def observation_for(self, platform: str) -> PlatformObservation | None:
        """Return the observation recorded for a platform, if any."""
        for observation in self.observations:
            if observation.platform == platform:
                return observation
        return None


@dataclass(frozen=True)
class BatchProgress:
    """Monotonic progress counters; succeeded + failed == processed."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass(frozen=True)
class PlatformFetchCounters:
    """Per-platform fetch outcome counters for one batch."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass(frozen=True)
class ErrorRecord:
    """One append-only entry of a batch error log."""

    kind: ErrorKind
    message: str
    timestamp: datetime
    student_id: str | None = None
    platform: str | None = None


@dataclass(frozen=True)
class IngestionBatch:
    """Lifecycle record of one ingestion run."""

    batch_id: str
    submitted_at: datetime
    total_students: int
    status: BatchState
    week_number: int
    week_label: str
    trigger: BatchTrigger = "upload"
    progress: BatchProgress = field(default_factory=BatchProgress)
    platform_counters: Mapping[str, PlatformFetchCounters] = field(default_factory=dict)
    finished_at: datetime | None = None
    failure_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Return whether the batch reached a final state."""
        return self.status in ("completed", "failed", "cancelled")


@dataclass(frozen=True)
class BatchStatus:
    """Polling view of a batch with a bounded tail of recent errors."""

    batch: IngestionBatch
    percent_complete: float
    recent_errors: tuple[ErrorRecord, ...]


@dataclass(frozen=True)
class StudentScoreChange:
    """Score movement of one student between two compared batches."""

    student_id: str
    current_score: float
    previous_score: float | None
    score_change: float | None
    trend: Trend


@dataclass(frozen=True)
class PlatformSummary:
    """Aggregate platform outcome across one batch's snapshots."""

    platform: str
    total_students: int
    successful_fetches: int
    average_rating: float
    average_problems: float


@dataclass(frozen=True)
class ComparisonSummary:
    """Outcome of comparing two batches joined by student."""

    earlier_batch_id: str
    later_batch_id: str
    total_students: int
    improved: int
    declined: int
    unchanged: int
    changes: tuple[StudentScoreChange, ...]
    tier_distribution: Mapping[str, int]
    average_score_change: float
    top_improvers: tuple[StudentScoreChange, ...]
    top_decliners: tuple[StudentScoreChange, ...]
    platform_summary: tuple[PlatformSummary, ...]


@dataclass(frozen=True)
class StudentProgress:
    """Trend analysis over a student's most recent snapshots."""

    student_id: str
    weeks_analyzed: int
    average_score: float
    overall_trend: Trend
    consistent_improvement: bool
    score_variation: float
    best_week: str | None
    worst_week: str | None
