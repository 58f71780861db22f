"""Chart Aggregation - Pure functions shaping log scores for plotting.

Daily buckets use the UTC date of created_at. This differs from the
user-local days used for streaks and is intentionally left as is.

All functions are pure: same input always produces same output, no side effects.
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from .models import ChartPoint, ChartSeries, LogEntry
from .streaks import local_date, resolve_timezone


def utc_day_key(instant: datetime) -> str:
    """YYYY-MM-DD of the instant in UTC (naive values are taken as UTC)."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc).date().isoformat()


def group_by_day(logs: Iterable[LogEntry]) -> dict[str, list[LogEntry]]:
    """Group logs by UTC calendar day."""
    groups: dict[str, list[LogEntry]] = defaultdict(list)
    for log in logs:
        groups[utc_day_key(log.created_at)].append(log)
    return dict(groups)


def average_logs(day: str, group: Sequence[LogEntry]) -> ChartPoint:
    """Average one day's logs.

    Missing scores count as 0 and still count toward the denominator.
    """
    n = len(group) or 1
    return ChartPoint(
        created_at=day,
        clarity_score=sum(log.clarity_score or 0 for log in group) / n,
        immune_score=sum(log.immune_score or 0 for log in group) / n,
        physical_score=sum(log.physical_score or 0 for log in group) / n,
    )


def aggregate_daily(logs: Iterable[LogEntry]) -> list[ChartPoint]:
    """One averaged point per day present, sorted by date ascending.

    Days without logs are not filled in.
    """
    grouped = group_by_day(logs)
    return [average_logs(day, grouped[day]) for day in sorted(grouped)]


def raw_points(logs: Iterable[LogEntry]) -> list[ChartPoint]:
    """One point per log, missing scores shown as 0."""
    return [
        ChartPoint(
            created_at=log.created_at.isoformat(),
            clarity_score=log.clarity_score or 0,
            immune_score=log.immune_score or 0,
            physical_score=log.physical_score or 0,
        )
        for log in logs
    ]


def build_chart_series(logs: Sequence[LogEntry], range_days: int) -> ChartSeries:
    """Build chart arrays for the requested range.

    A single-day range keeps every log as its own point; longer ranges plot
    daily averages.

    Args:
        logs: Logs ordered by created_at ascending
        range_days: Number of days covered by the chart

    Returns:
        ChartSeries with parallel label and metric arrays
    """
    points = raw_points(logs) if range_days == 1 else aggregate_daily(logs)
    return ChartSeries(
        labels=[p.created_at for p in points],
        clarityData=[p.clarity_score for p in points],
        immuneData=[p.immune_score for p in points],
        physicalData=[p.physical_score for p in points],
    )


def start_of_local_day(tz_name: str, days_back: int, now: datetime) -> datetime:
    """UTC instant of local midnight ``days_back`` days before today.

    Negative ``days_back`` moves forward (-1 is the start of tomorrow).
    The offset is taken for the target day itself so DST changes are respected.
    """
    tz = resolve_timezone(tz_name)
    target = local_date(now, tz_name) - timedelta(days=days_back)
    local_midnight = datetime(target.year, target.month, target.day, tzinfo=tz)
    return local_midnight.astimezone(timezone.utc)


def chart_window(tz_name: str, range_days: int, now: datetime) -> tuple[datetime, datetime]:
    """Half-open window [start of day (today - (range - 1)), start of tomorrow)."""
    start = start_of_local_day(tz_name, range_days - 1, now)
    end = start_of_local_day(tz_name, -1, now)
    return start, end
