"""Trend Detection - Pure functions for spotting steady declines.

A metric alerts when its least-squares slope is clearly negative while its
spread stays small, i.e. a steady drift rather than noisy swings.

All functions are pure: same input always produces same output, no side effects.
"""

import math
from typing import Iterable, Optional, Sequence

from .models import LogEntry, TrendResult


MIN_POINTS = 4
SLOPE_THRESHOLD = -0.4
VOLATILITY_THRESHOLD = 2.5

# Evaluation order matters: the first alerting metric wins.
TREND_METRICS: list[tuple[str, str]] = [
    ("Mental Clarity", "clarity_score"),
    ("Immune Risk", "immune_score"),
    ("Physical Output", "physical_score"),
]


def calculate_slope(scores: Sequence[float]) -> float:
    """Least-squares slope of score against its 0-based index.

    Args:
        scores: Time-ordered scores for one metric

    Returns:
        Slope, or 0 for fewer than MIN_POINTS values or a degenerate denominator
    """
    n = len(scores)
    if n < MIN_POINTS:
        return 0.0

    sum_x = sum_y = sum_xy = sum_xx = 0.0
    for i, y in enumerate(scores):
        sum_x += i
        sum_y += y
        sum_xy += i * y
        sum_xx += i * i

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0 or math.isnan(denominator):
        return 0.0

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    return 0.0 if math.isnan(slope) else slope


def calculate_volatility(scores: Sequence[float]) -> float:
    """Population standard deviation (divides by n, not n - 1).

    Returns:
        Standard deviation, or 0 for fewer than 2 values
    """
    n = len(scores)
    if n < 2:
        return 0.0
    mean = sum(scores) / n
    variance = sum((s - mean) ** 2 for s in scores) / n
    return math.sqrt(variance)


def is_alerting(slope: float, volatility: float) -> bool:
    """Significant and stable downward trend."""
    return slope < SLOPE_THRESHOLD and volatility < VOLATILITY_THRESHOLD


def evaluate_trend(metric: str, scores: Iterable[Optional[float]]) -> Optional[TrendResult]:
    """Evaluate one metric, ignoring missing readings.

    Returns:
        TrendResult, or None when fewer than MIN_POINTS readings remain
    """
    values = [s for s in scores if s is not None]
    if len(values) < MIN_POINTS:
        return None

    slope = calculate_slope(values)
    volatility = calculate_volatility(values)
    return TrendResult(
        metric=metric,
        slope=slope,
        volatility=volatility,
        alerting=is_alerting(slope, volatility),
    )


def find_alerting_metric(logs: Sequence[LogEntry]) -> Optional[TrendResult]:
    """Return the first alerting metric for a user's logs.

    Args:
        logs: Logs ordered by created_at ascending

    Returns:
        TrendResult of the first alerting metric in TREND_METRICS order, or None
    """
    if len(logs) < MIN_POINTS:
        return None

    for metric, attr in TREND_METRICS:
        result = evaluate_trend(metric, (getattr(log, attr) for log in logs))
        if result is not None and result.alerting:
            return result
    return None
