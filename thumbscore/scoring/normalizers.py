"""
Score Normalization Module
==========================
Shared numeric helpers used by every component scorer.

- clamp / to_score: keep scores inside [0, 100] and round half-up
- weighted_average: weighted sum divided by the weights actually applied
- normalize_around_average: 70-point baseline with a capped bonus/penalty
  relative to a corpus average
"""

import math
from typing import Iterable, Tuple

SCORE_MIN = 0.0
SCORE_MAX = 100.0

# Score assigned to a value that exactly matches the corpus average
AVERAGE_BASELINE = 70.0
MAX_PENALTY = 20.0


def clamp(value: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    """Limit value to [low, high]."""
    return max(low, min(high, value))


def to_score(value: float) -> int:
    """Clamp to [0, 100] then round half-up to an int."""
    return int(math.floor(clamp(value) + 0.5))


def weighted_average(pairs: Iterable[Tuple[float, float]]) -> float:
    """
    Weighted average over (value, weight) pairs.

    Only the pairs passed in contribute to the denominator, so scorers can
    combine a partial set of weights.

    Raises:
        ValueError: If the weights sum to zero or less
    """
    total = 0.0
    weight_sum = 0.0
    for value, weight in pairs:
        total += value * weight
        weight_sum += weight
    if weight_sum <= 0:
        raise ValueError("weighted_average requires a positive weight sum")
    return total / weight_sum


def normalize_around_average(value: float, average: float, max_bonus: float = 20.0) -> float:
    """
    Score a value relative to a corpus average.

    Matching the average scores 70. The relative deviation is scaled by
    max_bonus and capped to [-20, max_bonus]. A zero average has no
    meaningful relative deviation and scores the baseline.
    """
    if average == 0:
        return AVERAGE_BASELINE
    bonus = clamp((value - average) / average * max_bonus, -MAX_PENALTY, max_bonus)
    return clamp(AVERAGE_BASELINE + bonus)
