"""Report Generation - Pure functions for goal progress and weekly reviews.

All functions are pure: same input always produces same output, no side effects.
"""

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from .models import Goal, LogEntry, WeeklySummary
from .streaks import local_date


MIN_REVIEW_LOGS = 3
TOP_TAG_COUNT = 3
DEFAULT_WEEKLY_GOAL = 6


def start_of_week(today: date) -> date:
    """Sunday on or before ``today``."""
    # date.weekday(): Monday=0 ... Sunday=6
    return today - timedelta(days=(today.weekday() + 1) % 7)


def last_week_range(today: date) -> tuple[date, date]:
    """Previous full Sunday-Saturday week.

    Returns:
        Tuple of (start, end), both inclusive
    """
    end = start_of_week(today) - timedelta(days=1)
    return end - timedelta(days=6), end


def count_distinct_days(timestamps: Iterable[datetime], tz_name: str) -> int:
    """Number of distinct local calendar days among the timestamps."""
    return len({local_date(ts, tz_name) for ts in timestamps})


def days_logged_between(
    timestamps: Iterable[datetime], tz_name: str, start: date, end: date
) -> int:
    """Distinct local days with a log inside [start, end]."""
    return len({d for d in (local_date(ts, tz_name) for ts in timestamps) if start <= d <= end})


def top_tags(logs: Iterable[LogEntry], limit: int = TOP_TAG_COUNT) -> list[str]:
    """Most common tags, most frequent first (ties keep first-seen order)."""
    counts = Counter(tag for log in logs for tag in log.tags)
    return [tag for tag, _ in counts.most_common(limit)]


def weekly_summary(logs: Sequence[LogEntry], goal: Optional[Goal]) -> Optional[WeeklySummary]:
    """Summarize a week of logs for the weekly review prompt.

    Missing scores count as 0 in the averages.

    Args:
        logs: The week's logs
        goal: Active goal, if any

    Returns:
        WeeklySummary, or None when there are fewer than MIN_REVIEW_LOGS logs
    """
    if len(logs) < MIN_REVIEW_LOGS:
        return None

    count = len(logs)
    return WeeklySummary(
        log_count=count,
        avg_clarity=round(sum(log.clarity_score or 0 for log in logs) / count, 1),
        avg_immune=round(sum(log.immune_score or 0 for log in logs) / count, 1),
        avg_physical=round(sum(log.physical_score or 0 for log in logs) / count, 1),
        top_tags=top_tags(logs),
        goal_value=goal.goal_value if goal else None,
        goal_met=count >= goal.goal_value if goal else None,
    )
