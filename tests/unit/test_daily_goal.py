"""
Unit tests for the daily scan goal counter.
"""
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from labelscan.services.daily_goal import (
    DailyProgress,
    count_today,
    daily_progress,
    resolve_timezone,
    start_of_today,
)
from tests.factories import make_record

UTC = timezone.utc
NOW = datetime(2024, 5, 10, 15, 30, tzinfo=UTC)


class TestCountToday:
    """Tests for the local-midnight boundary."""

    def test_midnight_is_included(self):
        history = [make_record(timestamp=datetime(2024, 5, 10, 0, 0, tzinfo=UTC))]

        assert count_today(history, now=NOW, tz=UTC) == 1

    def test_before_midnight_is_excluded(self):
        history = [
            make_record(timestamp=datetime(2024, 5, 10, 0, 0, tzinfo=UTC) - timedelta(seconds=1))
        ]

        assert count_today(history, now=NOW, tz=UTC) == 0

    def test_mixed_days(self):
        history = [
            make_record(timestamp=NOW - timedelta(hours=1)),
            make_record(timestamp=NOW - timedelta(hours=10)),
            make_record(timestamp=NOW - timedelta(days=1)),
        ]

        assert count_today(history, now=NOW, tz=UTC) == 2

    def test_uses_local_calendar_day(self):
        """03:00 UTC on the 10th is still the 9th in New York."""
        tz = ZoneInfo("America/New_York")
        now = datetime(2024, 5, 10, 3, 0, tzinfo=UTC)
        history = [make_record(timestamp=datetime(2024, 5, 9, 20, 0, tzinfo=UTC))]

        assert count_today(history, now=now, tz=tz) == 1
        assert count_today(history, now=now, tz=UTC) == 0

    def test_naive_timestamps_are_utc(self):
        history = [make_record(timestamp=datetime(2024, 5, 10, 0, 0))]

        assert count_today(history, now=NOW, tz=UTC) == 1

    def test_start_of_today(self):
        tz = ZoneInfo("Asia/Riyadh")

        midnight = start_of_today(NOW, tz)

        assert midnight == datetime(2024, 5, 10, 0, 0, tzinfo=tz)


class TestDailyProgress:
    """Tests for progress reporting."""

    def test_percent_is_capped(self):
        assert DailyProgress(count=15, goal=10).percent == 100.0
        assert DailyProgress(count=15, goal=10).reached

    def test_partial_progress(self):
        progress = DailyProgress(count=3, goal=10)

        assert progress.percent == pytest.approx(30.0)
        assert not progress.reached

    def test_zero_goal(self):
        assert DailyProgress(count=0, goal=0).percent == 100.0

    def test_default_goal(self):
        history = [make_record(timestamp=NOW)]

        progress = daily_progress(history, now=NOW, tz=UTC)

        assert progress == DailyProgress(count=1, goal=10)


class TestResolveTimezone:
    """Tests for timezone configuration."""

    def test_known_zone(self):
        assert resolve_timezone("Europe/London") == ZoneInfo("Europe/London")

    def test_unknown_zone_falls_back_to_host(self):
        assert resolve_timezone("Mars/Olympus") is None
