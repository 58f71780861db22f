"""Unit tests for chart aggregation - pure functions, no mocks needed."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from src.core.charts import aggregate_daily, build_chart_series, chart_window, utc_day_key
from src.core.models import LogEntry


def log_at(instant, clarity=None, immune=None, physical=None):
    return LogEntry(
        user_id="user-1",
        created_at=instant,
        log="entry",
        clarity_score=clarity,
        immune_score=immune,
        physical_score=physical,
    )


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestUtcDayKey:
    """Tests for utc_day_key."""

    def test_uses_utc_date(self):
        assert utc_day_key(utc(2025, 3, 10, 23, 59)) == "2025-03-10"

    def test_converts_offset_aware_values(self):
        """Offsets are normalized before taking the date."""
        evening_la = datetime(2025, 3, 10, 20, 0, tzinfo=ZoneInfo("America/Los_Angeles"))
        assert utc_day_key(evening_la) == "2025-03-11"


class TestAggregateDaily:
    """Tests for aggregate_daily."""

    def test_empty(self):
        assert aggregate_daily([]) == []

    def test_averages_per_day(self):
        logs = [
            log_at(utc(2025, 3, 10, 8), clarity=6, immune=4, physical=8),
            log_at(utc(2025, 3, 10, 20), clarity=8, immune=6, physical=6),
        ]
        [point] = aggregate_daily(logs)
        assert point.created_at == "2025-03-10"
        assert point.clarity_score == 7
        assert point.immune_score == 5
        assert point.physical_score == 7

    def test_nulls_count_as_zero(self):
        """A missing score adds 0 but still counts toward the average."""
        logs = [
            log_at(utc(2025, 3, 10, 8), clarity=8),
            log_at(utc(2025, 3, 10, 9), clarity=None),
        ]
        [point] = aggregate_daily(logs)
        assert point.clarity_score == 4

    def test_sorted_without_gap_fill(self):
        """Days come out ascending and empty days are not invented."""
        logs = [
            log_at(utc(2025, 3, 12, 8), clarity=5),
            log_at(utc(2025, 3, 10, 8), clarity=7),
        ]
        points = aggregate_daily(logs)
        assert [p.created_at for p in points] == ["2025-03-10", "2025-03-12"]


class TestBuildChartSeries:
    """Tests for build_chart_series."""

    def test_single_day_keeps_raw_points(self):
        logs = [
            log_at(utc(2025, 3, 10, 8), clarity=6, immune=None, physical=3),
            log_at(utc(2025, 3, 10, 20), clarity=8, immune=5, physical=4),
        ]
        series = build_chart_series(logs, 1)
        assert series.labels == [logs[0].created_at.isoformat(), logs[1].created_at.isoformat()]
        assert series.clarityData == [6, 8]
        assert series.immuneData == [0, 5]
        assert series.physicalData == [3, 4]

    def test_longer_range_averages(self):
        logs = [
            log_at(utc(2025, 3, 10, 8), clarity=6, immune=6, physical=6),
            log_at(utc(2025, 3, 10, 20), clarity=8, immune=8, physical=8),
            log_at(utc(2025, 3, 11, 8), clarity=5, immune=5, physical=5),
        ]
        series = build_chart_series(logs, 7)
        assert series.labels == ["2025-03-10", "2025-03-11"]
        assert series.clarityData == [7, 5]


class TestChartWindow:
    """Tests for chart_window."""

    def test_utc_week(self):
        start, end = chart_window("UTC", 7, utc(2025, 3, 10, 15, 30))
        assert start == utc(2025, 3, 4)
        assert end == utc(2025, 3, 11)

    def test_single_day_in_zone(self):
        """Bounds are local midnights expressed in UTC."""
        start, end = chart_window("Asia/Tokyo", 1, utc(2025, 3, 10, 15, 30))
        # 15:30 UTC is 00:30 on March 11 in Tokyo (UTC+9)
        assert start == utc(2025, 3, 10, 15, 0)
        assert end == utc(2025, 3, 11, 15, 0)

    def test_respects_dst_change(self):
        """The day clocks spring forward is 23 hours long."""
        # US DST starts 2025-03-09
        start, end = chart_window("America/New_York", 1, utc(2025, 3, 9, 18, 0))
        assert start == utc(2025, 3, 9, 5, 0)
        assert end == utc(2025, 3, 10, 4, 0)
        assert (end - start).total_seconds() == 23 * 3600
