"""Batch-to-batch comparison summaries.

Pure helpers that join two batches' snapshots by student and summarize
score movement, tier distribution, and per-platform outcomes.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from core.constants import SCORE_DECIMALS, TOP_MOVERS_LIMIT
from core.types import (
    ComparisonSummary,
    PlatformSummary,
    Snapshot,
    StudentScoreChange,
    Trend,
)


def build_comparison_summary(
    earlier_batch_id: str,
    later_batch_id: str,
    earlier_snapshots: Iterable[Snapshot],
    later_snapshots: Sequence[Snapshot],
) -> ComparisonSummary:
    """Compare two batches joined by student id.

    Students only present in the later batch count as unchanged with no
    score change. Students only present in the earlier batch are ignored.

    Args:
        earlier_batch_id: Batch treated as the baseline.
        later_batch_id: Batch treated as the current state.
        earlier_snapshots: Snapshots of the baseline batch.
        later_snapshots: Snapshots of the current batch.

    Returns:
        Comparison summary over the later batch's students.
    """
    earlier_by_student = {snapshot.student_id: snapshot for snapshot in earlier_snapshots}
    changes = tuple(
        _score_change(snapshot, earlier_by_student.get(snapshot.student_id))
        for snapshot in sorted(later_snapshots, key=lambda item: item.student_id)
    )
    deltas = [change.score_change for change in changes if change.score_change is not None]
    average_change = round(sum(deltas) / len(deltas), SCORE_DECIMALS) if deltas else 0.0
    improvers = sorted(
        (change for change in changes if change.trend == "up"),
        key=lambda change: (-(change.score_change or 0.0), change.student_id),
    )
    decliners = sorted(
        (change for change in changes if change.trend == "down"),
        key=lambda change: (change.score_change or 0.0, change.student_id),
    )
    return ComparisonSummary(
        earlier_batch_id=earlier_batch_id,
        later_batch_id=later_batch_id,
        total_students=len(changes),
        improved=sum(1 for change in changes if change.trend == "up"),
        declined=sum(1 for change in changes if change.trend == "down"),
        unchanged=sum(1 for change in changes if change.trend == "stable"),
        changes=changes,
        tier_distribution=_tier_distribution(later_snapshots),
        average_score_change=average_change,
        top_improvers=tuple(improvers[:TOP_MOVERS_LIMIT]),
        top_decliners=tuple(decliners[:TOP_MOVERS_LIMIT]),
        platform_summary=_platform_summary(later_snapshots),
    )


def _score_change(current: Snapshot, previous: Snapshot | None) -> StudentScoreChange:
    if previous is None:
        return StudentScoreChange(
            student_id=current.student_id,
            current_score=current.aggregate_score,
            previous_score=None,
            score_change=None,
            trend="stable",
        )
    score_change = round(current.aggregate_score - previous.aggregate_score, SCORE_DECIMALS)
    trend: Trend = "stable"
    if score_change > 0:
        trend = "up"
    elif score_change < 0:
        trend = "down"
    return StudentScoreChange(
        student_id=current.student_id,
        current_score=current.aggregate_score,
        previous_score=previous.aggregate_score,
        score_change=score_change,
        trend=trend,
    )


def _tier_distribution(snapshots: Sequence[Snapshot]) -> dict[str, int]:
    distribution = {"high": 0, "medium": 0, "low": 0}
    for snapshot in snapshots:
        distribution[snapshot.performance_tier] += 1
    return distribution


def _platform_summary(snapshots: Sequence[Snapshot]) -> tuple[PlatformSummary, ...]:
    platforms = sorted(
        {observation.platform for snapshot in snapshots for observation in snapshot.observations}
    )
    summaries: list[PlatformSummary] = []
    for platform in platforms:
        observations = [
            observation
            for snapshot in snapshots
            if (observation := snapshot.observation_for(platform)) is not None
            and observation.fetch_status != "skipped"
        ]
        successes = [item for item in observations if item.fetch_status == "success"]
        summaries.append(
            PlatformSummary(
                platform=platform,
                total_students=len(observations),
                successful_fetches=len(successes),
                average_rating=_mean([item.rating for item in successes]),
                average_problems=_mean([item.problems_solved for item in successes]),
            )
        )
    return tuple(summaries)


def _mean(values: list[int]) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), SCORE_DECIMALS)
