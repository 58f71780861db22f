"""Streak Calculation - Pure functions for consecutive-day logging streaks.

Streak days are calendar days in the user's own timezone.

All functions are pure: same input always produces same output, no side effects.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import StreakUpdate


logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def resolve_timezone(name: Optional[str]) -> ZoneInfo:
    """Resolve an IANA timezone name, falling back to UTC when unknown."""
    if not name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", name)
        return ZoneInfo("UTC")


def local_date(instant: datetime, tz_name: Optional[str]) -> date:
    """Calendar date of a UTC instant as seen in the given timezone.

    Naive datetimes are taken to be UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(resolve_timezone(tz_name)).date()


def day_difference(today: date, last: date) -> int:
    """Whole days between two calendar dates.

    Both dates are read as UTC midnights and the difference rounded, which
    ignores any offset change between them.
    """
    today_utc = datetime(today.year, today.month, today.day, tzinfo=timezone.utc)
    last_utc = datetime(last.year, last.month, last.day, tzinfo=timezone.utc)
    return round((today_utc - last_utc).total_seconds() / SECONDS_PER_DAY)


def calculate_streak(
    last_log_date: Optional[datetime],
    streak_count: Optional[int],
    now: datetime,
    tz_name: Optional[str] = "UTC",
) -> StreakUpdate:
    """Work out the streak after a new log at ``now``.

    Args:
        last_log_date: UTC instant of the previous log, None for a first log
        streak_count: Current streak (None treated as 0)
        now: UTC instant of the new log
        tz_name: User's IANA timezone

    Returns:
        StreakUpdate with the new count and last_log_date set to ``now``
    """
    current = streak_count or 0

    if last_log_date is None:
        new_count = 1
    else:
        today_local = local_date(now, tz_name)
        last_local = local_date(last_log_date, tz_name)

        if today_local == last_local:
            # Same-day re-log keeps the streak as is
            new_count = current
        elif day_difference(today_local, last_local) == 1:
            new_count = current + 1
        else:
            new_count = 1

    return StreakUpdate(streak_count=new_count, last_log_date=now)
