"""Snapshot reconciliation.

This module combines current platform observations with the student's
stored history into a new snapshot. Everything here is a pure function
of its arguments; callers supply the capture timestamp.
"""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Sequence

from core.settings import ScoringWeights
from core.types import BatchRef, PlatformDelta, PlatformObservation, Snapshot, Trend
from scoring.formula import aggregate_score, performance_tier


def reconcile(
    student_id: str,
    batch: BatchRef,
    observations: Sequence[PlatformObservation],
    prior: Snapshot | None,
    captured_at: datetime,
    weights: ScoringWeights,
    baselines: Mapping[str, PlatformObservation] | None = None,
) -> Snapshot:
    """Build the next snapshot of a student.

    Args:
        student_id: Student registration number.
        batch: Batch id and week the snapshot belongs to.
        observations: Current observations, one per platform.
        prior: Most recent stored snapshot with successful data, or None.
        captured_at: Capture timestamp recorded on the snapshot.
        weights: Scoring formula constants.
        baselines: Last successful observation per platform. Defaults to
            the successful observations of ``prior``.

    Returns:
        Fully populated snapshot with score, tier, trend, and deltas.
    """
    ordered = tuple(sorted(observations, key=lambda observation: observation.platform))
    score = aggregate_score(ordered, weights)
    active_count = sum(1 for observation in ordered if observation.fetch_status == "success")
    return Snapshot(
        student_id=student_id,
        batch_id=batch.batch_id,
        week_number=batch.week.week_number,
        week_label=batch.week.week_label,
        captured_at=captured_at,
        observations=ordered,
        aggregate_score=score,
        performance_tier=performance_tier(score, weights),
        active_platform_count=active_count,
        trend=compute_trend(score, active_count > 0, prior),
        previous_score=prior.aggregate_score if prior is not None else None,
        deltas=compute_deltas(ordered, prior, baselines),
    )


def latest_with_data(history: Sequence[Snapshot]) -> Snapshot | None:
    """Return the most recent snapshot holding successful data.

    Args:
        history: Snapshots of one student, most recent first.
    """
    for snapshot in history:
        if snapshot.has_successful_data:
            return snapshot
    return None


def platform_baselines(history: Sequence[Snapshot]) -> dict[str, PlatformObservation]:
    """Map each platform to its most recent successful observation in ``history``."""
    baselines: dict[str, PlatformObservation] = {}
    for snapshot in history:
        for observation in snapshot.observations:
            if observation.fetch_status == "success":
                baselines.setdefault(observation.platform, observation)
    return baselines


def compute_deltas(
    observations: Sequence[PlatformObservation],
    prior: Snapshot | None,
    baselines: Mapping[str, PlatformObservation] | None = None,
) -> tuple[PlatformDelta, ...]:
    """Compute metric deltas for every successful observation.

    A platform without a successful baseline observation is flagged new
    and its delta equals the current values. Rank deltas are positive
    when the numeric rank decreased, and zero when either rank is unknown.
    """
    if baselines is None:
        baselines = platform_baselines([prior] if prior is not None else [])
    deltas: list[PlatformDelta] = []
    for current in observations:
        if current.fetch_status != "success":
            continue
        previous = baselines.get(current.platform)
        if previous is None or previous.fetch_status != "success":
            deltas.append(
                PlatformDelta(
                    platform=current.platform,
                    rating=current.rating,
                    max_rating=current.max_rating,
                    problems_solved=current.problems_solved,
                    contests_participated=current.contests_participated,
                    rank=0,
                    is_new=True,
                )
            )
            continue
        rank_delta = 0
        if previous.rank > 0 and current.rank > 0:
            rank_delta = previous.rank - current.rank
        deltas.append(
            PlatformDelta(
                platform=current.platform,
                rating=current.rating - previous.rating,
                max_rating=current.max_rating - previous.max_rating,
                problems_solved=current.problems_solved - previous.problems_solved,
                contests_participated=(
                    current.contests_participated - previous.contests_participated
                ),
                rank=rank_delta,
                is_new=False,
            )
        )
    return tuple(deltas)


def compute_trend(score: float, has_successful_data: bool, prior: Snapshot | None) -> Trend:
    """Classify score movement against the prior snapshot.

    Without a prior snapshot holding successful data, the first snapshot
    that has any successful platform is ``up`` and anything else is
    ``stable``.
    """
    if prior is None or not prior.has_successful_data:
        return "up" if has_successful_data else "stable"
    if score > prior.aggregate_score:
        return "up"
    if score < prior.aggregate_score:
        return "down"
    return "stable"
