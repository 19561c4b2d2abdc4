"""Shared JSON serialization for persisted Skorly records.

This module centralizes payload conversion for students, snapshots,
batches, and error records. It is reused by every file-backed store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, cast

from core.errors import SkorlyStoreError
from core.types import (
    BatchProgress,
    BatchState,
    BatchTrigger,
    ErrorKind,
    ErrorRecord,
    FetchStatus,
    IngestionBatch,
    PerformanceTier,
    PlatformDelta,
    PlatformFetchCounters,
    PlatformObservation,
    Snapshot,
    Student,
    Trend,
)


def student_to_payload(student: Student) -> dict[str, object]:
    """Serialize a student profile into a JSON-safe payload."""
    return {
        "reg_no": student.reg_no,
        "name": student.name,
        "group": student.group,
        "cohort": student.cohort,
        "platforms": dict(student.platforms),
        "is_active": student.is_active,
        "created_at": student.created_at.isoformat(),
        "updated_at": student.updated_at.isoformat(),
    }


def student_from_payload(payload: Mapping[str, Any]) -> Student:
    """Deserialize a student profile payload."""
    try:
        return Student(
            reg_no=str(payload["reg_no"]),
            name=str(payload["name"]),
            group=str(payload.get("group", "")),
            cohort=str(payload.get("cohort", "")),
            platforms={
                str(key): str(value) for key, value in dict(payload.get("platforms", {})).items()
            },
            is_active=bool(payload.get("is_active", True)),
            created_at=datetime.fromisoformat(str(payload["created_at"])),
            updated_at=datetime.fromisoformat(str(payload["updated_at"])),
        )
    except KeyError as error:
        raise SkorlyStoreError(
            f"Invalid student payload: missing required field {error.args[0]!r}."
        ) from error


def snapshot_to_payload(snapshot: Snapshot) -> dict[str, object]:
    """Serialize a snapshot into a JSON-safe payload.

    Args:
        snapshot: Snapshot instance.

    Returns:
        Dictionary payload for JSON encoding.
    """
    return {
        "student_id": snapshot.student_id,
        "batch_id": snapshot.batch_id,
        "week_number": snapshot.week_number,
        "week_label": snapshot.week_label,
        "captured_at": snapshot.captured_at.isoformat(),
        "observations": [_observation_to_payload(item) for item in snapshot.observations],
        "aggregate_score": snapshot.aggregate_score,
        "performance_tier": snapshot.performance_tier,
        "active_platform_count": snapshot.active_platform_count,
        "trend": snapshot.trend,
        "previous_score": snapshot.previous_score,
        "deltas": [_delta_to_payload(item) for item in snapshot.deltas],
    }


def snapshot_from_payload(payload: Mapping[str, Any]) -> Snapshot:
    """Deserialize a snapshot payload.

    Args:
        payload: Serialized snapshot payload.

    Returns:
        Parsed Snapshot.

    Raises:
        SkorlyStoreError: If required fields are missing.
    """
    try:
        previous_score = payload.get("previous_score")
        return Snapshot(
            student_id=str(payload["student_id"]),
            batch_id=str(payload["batch_id"]),
            week_number=int(payload["week_number"]),
            week_label=str(payload["week_label"]),
            captured_at=datetime.fromisoformat(str(payload["captured_at"])),
            observations=tuple(
                _observation_from_payload(item) for item in payload.get("observations", [])
            ),
            aggregate_score=float(payload["aggregate_score"]),
            performance_tier=cast(PerformanceTier, str(payload["performance_tier"])),
            active_platform_count=int(payload["active_platform_count"]),
            trend=cast(Trend, str(payload["trend"])),
            previous_score=None if previous_score is None else float(previous_score),
            deltas=tuple(_delta_from_payload(item) for item in payload.get("deltas", [])),
        )
    except KeyError as error:
        raise SkorlyStoreError(
            f"Invalid snapshot payload: missing required field {error.args[0]!r}."
        ) from error


def batch_to_payload(batch: IngestionBatch) -> dict[str, object]:
    """Serialize an ingestion batch lifecycle record."""
    return {
        "batch_id": batch.batch_id,
        "submitted_at": batch.submitted_at.isoformat(),
        "total_students": batch.total_students,
        "status": batch.status,
        "week_number": batch.week_number,
        "week_label": batch.week_label,
        "trigger": batch.trigger,
        "progress": {
            "processed": batch.progress.processed,
            "succeeded": batch.progress.succeeded,
            "failed": batch.progress.failed,
        },
        "platform_counters": {
            platform: {
                "attempted": counters.attempted,
                "succeeded": counters.succeeded,
                "failed": counters.failed,
            }
            for platform, counters in sorted(batch.platform_counters.items())
        },
        "finished_at": batch.finished_at.isoformat() if batch.finished_at else None,
        "failure_reason": batch.failure_reason,
    }


def batch_from_payload(payload: Mapping[str, Any]) -> IngestionBatch:
    """Deserialize an ingestion batch lifecycle record."""
    try:
        progress_payload = dict(payload.get("progress", {}))
        counters_payload = dict(payload.get("platform_counters", {}))
        finished_at = payload.get("finished_at")
        return IngestionBatch(
            batch_id=str(payload["batch_id"]),
            submitted_at=datetime.fromisoformat(str(payload["submitted_at"])),
            total_students=int(payload["total_students"]),
            status=cast(BatchState, str(payload["status"])),
            week_number=int(payload["week_number"]),
            week_label=str(payload["week_label"]),
            trigger=cast(BatchTrigger, str(payload.get("trigger", "upload"))),
            progress=BatchProgress(
                processed=int(progress_payload.get("processed", 0)),
                succeeded=int(progress_payload.get("succeeded", 0)),
                failed=int(progress_payload.get("failed", 0)),
            ),
            platform_counters={
                str(platform): PlatformFetchCounters(
                    attempted=int(values.get("attempted", 0)),
                    succeeded=int(values.get("succeeded", 0)),
                    failed=int(values.get("failed", 0)),
                )
                for platform, values in counters_payload.items()
            },
            finished_at=datetime.fromisoformat(str(finished_at)) if finished_at else None,
            failure_reason=_optional_string(payload.get("failure_reason")),
        )
    except KeyError as error:
        raise SkorlyStoreError(
            f"Invalid batch payload: missing required field {error.args[0]!r}."
        ) from error


def error_record_to_payload(record: ErrorRecord) -> dict[str, object]:
    """Serialize one batch error log entry."""
    return {
        "kind": record.kind,
        "message": record.message,
        "timestamp": record.timestamp.isoformat(),
        "student_id": record.student_id,
        "platform": record.platform,
    }


def error_record_from_payload(payload: Mapping[str, Any]) -> ErrorRecord:
    """Deserialize one batch error log entry."""
    return ErrorRecord(
        kind=cast(ErrorKind, str(payload.get("kind", "processing"))),
        message=str(payload.get("message", "")),
        timestamp=datetime.fromisoformat(str(payload["timestamp"])),
        student_id=_optional_string(payload.get("student_id")),
        platform=_optional_string(payload.get("platform")),
    )


def _observation_to_payload(observation: PlatformObservation) -> dict[str, object]:
    return {
        "platform": observation.platform,
        "username": observation.username,
        "fetch_status": observation.fetch_status,
        "rating": observation.rating,
        "max_rating": observation.max_rating,
        "problems_solved": observation.problems_solved,
        "contests_participated": observation.contests_participated,
        "rank": observation.rank,
        "error_detail": observation.error_detail,
        "extra": dict(observation.extra),
    }


def _observation_from_payload(payload: Mapping[str, Any]) -> PlatformObservation:
    return PlatformObservation(
        platform=str(payload["platform"]),
        username=str(payload.get("username", "")),
        fetch_status=cast(FetchStatus, str(payload["fetch_status"])),
        rating=int(payload.get("rating", 0)),
        max_rating=int(payload.get("max_rating", 0)),
        problems_solved=int(payload.get("problems_solved", 0)),
        contests_participated=int(payload.get("contests_participated", 0)),
        rank=int(payload.get("rank", 0)),
        error_detail=_optional_string(payload.get("error_detail")),
        extra=dict(payload.get("extra", {})),
    )


def _delta_to_payload(delta: PlatformDelta) -> dict[str, object]:
    return {
        "platform": delta.platform,
        "rating": delta.rating,
        "max_rating": delta.max_rating,
        "problems_solved": delta.problems_solved,
        "contests_participated": delta.contests_participated,
        "rank": delta.rank,
        "is_new": delta.is_new,
    }


def _delta_from_payload(payload: Mapping[str, Any]) -> PlatformDelta:
    return PlatformDelta(
        platform=str(payload["platform"]),
        rating=int(payload.get("rating", 0)),
        max_rating=int(payload.get("max_rating", 0)),
        problems_solved=int(payload.get("problems_solved", 0)),
        contests_participated=int(payload.get("contests_participated", 0)),
        rank=int(payload.get("rank", 0)),
        is_new=bool(payload.get("is_new", False)),
    )


def _optional_string(raw_value: object) -> str | None:
    if raw_value is None:
        return None
    return str(raw_value)
