"""Score Normalization - Pure functions for shaping model-returned scores.

All functions are pure: same input always produces same output, no side effects.
"""

from typing import Any, Mapping, Optional

from .models import ScoreField, DEFAULT_SCORE, DEFAULT_LABEL, DEFAULT_COLOR


# Rubric the analysis prompt asks the model to follow, lowest band first.
SCORE_BANDS: list[tuple[int, int, str, str]] = [
    (1, 2, "Critical", "#ef4444"),
    (3, 4, "Low", "#f97316"),
    (5, 6, "Moderate", "#eab308"),
    (7, 8, "High", "#22c55e"),
    (9, 10, "Optimal", "#3b82f6"),
]


def ensure_score_field(field: Optional[Mapping[str, Any]]) -> ScoreField:
    """Fill in a possibly partial score object.

    Each of score, label and color_hex falls back to its default on its own,
    so a partial object keeps whatever fields it does have. Values of the
    wrong type (a non-numeric score, a non-string label or color) count as
    missing, so the function never raises.

    Args:
        field: Score object from the model reply, or None

    Returns:
        Fully populated ScoreField
    """
    if not field or not isinstance(field, Mapping):
        return ScoreField()

    score = field.get("score")
    label = field.get("label")
    color_hex = field.get("color_hex")

    # bool is an int subclass but never a score
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        score = DEFAULT_SCORE

    return ScoreField(
        score=score,
        label=label if isinstance(label, str) else DEFAULT_LABEL,
        color_hex=color_hex if isinstance(color_hex, str) else DEFAULT_COLOR,
    )


def score_band(score: float) -> tuple[str, str]:
    """Look up the rubric label and color for a 1-10 score.

    Scores outside 1-10 are clamped to the nearest band.

    Returns:
        Tuple of (label, color_hex)
    """
    rounded = min(max(round(score), 1), 10)
    for low, high, label, color in SCORE_BANDS:
        if low <= rounded <= high:
            return label, color
    return DEFAULT_LABEL, DEFAULT_COLOR
