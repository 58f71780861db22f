"""Goal Activation - Pure planning of the one-active-goal switch.

The shell applies the plan inside a single Firestore transaction, so the
deactivation of other goals and the activation of the target land together.

All functions are pure: same input always produces same output, no side effects.
"""

import re
from datetime import datetime
from typing import Optional, Sequence

from .models import Goal


# Goal types double as Firestore document ids
_GOAL_TYPE_RE = re.compile(r"^[A-Za-z0-9_\-]{1,64}$")


def is_valid_goal_type(goal_type: Optional[str]) -> bool:
    return bool(goal_type) and bool(_GOAL_TYPE_RE.match(goal_type))


def plan_goal_activation(
    existing: Sequence[Goal],
    user_id: str,
    goal_type: str,
    goal_value: int,
    now: datetime,
) -> tuple[list[str], Goal]:
    """Decide which goals to switch off and what the active goal becomes.

    Args:
        existing: All of the user's goals
        user_id: Owner of the goals
        goal_type: Goal type to activate
        goal_value: New target value
        now: Timestamp for updated_at

    Returns:
        Tuple of (goal types to deactivate, goal to store as active)
    """
    to_deactivate = [g.goal_type for g in existing if g.is_active and g.goal_type != goal_type]

    current = next((g for g in existing if g.goal_type == goal_type), None)
    if current is not None:
        goal = current.model_copy(update={"goal_value": goal_value, "is_active": True, "updated_at": now})
    else:
        goal = Goal(
            user_id=user_id,
            goal_type=goal_type,
            goal_value=goal_value,
            is_active=True,
            time_period="weekly",
            created_at=now,
            updated_at=now,
        )
    return to_deactivate, goal
