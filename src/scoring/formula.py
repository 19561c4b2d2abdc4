"""Capped weighted scoring formula and performance tiers."""

from __future__ import annotations

from typing import Iterable

from core.constants import SCORE_DECIMALS
from core.settings import ScoringWeights
from core.types import PerformanceTier, PlatformObservation

MAX_SCORE = 100.0


def platform_score(observation: PlatformObservation, weights: ScoringWeights) -> float:
    """Score one platform observation in the [0, 100] range.

    Args:
        observation: Platform observation to score.
        weights: Formula divisors, multipliers, and per-term caps.

    Returns:
        Sum of the three capped terms, bounded to [0, 100].
    """
    rating_term = min(max(observation.rating, 0) / weights.rating_divisor, weights.rating_cap)
    problems_term = min(
        max(observation.problems_solved, 0) / weights.problems_divisor, weights.problems_cap
    )
    contest_term = min(
        max(observation.contests_participated, 0) * weights.contest_multiplier,
        weights.contest_cap,
    )
    return min(max(rating_term + problems_term + contest_term, 0.0), MAX_SCORE)


def aggregate_score(
    observations: Iterable[PlatformObservation],
    weights: ScoringWeights,
) -> float:
    """Average platform scores over successful observations; 0 when none succeeded."""
    scores = [
        platform_score(observation, weights)
        for observation in observations
        if observation.fetch_status == "success"
    ]
    if not scores:
        return 0.0
    return round(sum(scores) / len(scores), SCORE_DECIMALS)


def performance_tier(score: float, weights: ScoringWeights) -> PerformanceTier:
    """Bucket an aggregate score into a performance tier."""
    if score >= weights.high_threshold:
        return "high"
    if score >= weights.medium_threshold:
        return "medium"
    return "low"
