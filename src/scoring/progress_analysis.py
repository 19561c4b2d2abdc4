"""Multi-week progress analysis over a student's snapshot history."""

from __future__ import annotations

from typing import Sequence

from core.constants import SCORE_DECIMALS
from core.types import Snapshot, StudentProgress, Trend

CONSISTENT_IMPROVEMENT_WEEKS = 3


def analyze_progress(student_id: str, snapshots: Sequence[Snapshot]) -> StudentProgress:
    """Summarize score movement across stored weeks.

    Args:
        student_id: Student registration number.
        snapshots: Snapshot history in any order.

    Returns:
        Progress summary; an empty history yields a stable zero summary.
    """
    ordered = sorted(snapshots, key=lambda snapshot: snapshot.week_number)
    if not ordered:
        return StudentProgress(
            student_id=student_id,
            weeks_analyzed=0,
            average_score=0.0,
            overall_trend="stable",
            consistent_improvement=False,
            score_variation=0.0,
            best_week=None,
            worst_week=None,
        )
    scores = [snapshot.aggregate_score for snapshot in ordered]
    best = max(ordered, key=lambda snapshot: snapshot.aggregate_score)
    worst = min(ordered, key=lambda snapshot: snapshot.aggregate_score)
    return StudentProgress(
        student_id=student_id,
        weeks_analyzed=len(ordered),
        average_score=round(sum(scores) / len(scores), SCORE_DECIMALS),
        overall_trend=_overall_trend(scores),
        consistent_improvement=_is_consistent_improvement(scores),
        score_variation=round(max(scores) - min(scores), SCORE_DECIMALS),
        best_week=best.week_label,
        worst_week=worst.week_label,
    )


def _overall_trend(scores: list[float]) -> Trend:
    increases = sum(1 for earlier, later in zip(scores, scores[1:]) if later > earlier)
    decreases = sum(1 for earlier, later in zip(scores, scores[1:]) if later < earlier)
    if increases > decreases:
        return "up"
    if decreases > increases:
        return "down"
    return "stable"


def _is_consistent_improvement(scores: list[float]) -> bool:
    if len(scores) < CONSISTENT_IMPROVEMENT_WEEKS:
        return False
    return all(later > earlier for earlier, later in zip(scores, scores[1:]))
