"""Tests for calendar period arithmetic."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from rank_forge.core.periods import period_bounds, period_start, previous_period, shift_period
from rank_forge.db.models import RankingPeriod

UTC = timezone.utc


class TestPeriodStart:
    def test_daily_is_midnight(self):
        start = period_start(datetime(2024, 5, 15, 13, 45, tzinfo=UTC), RankingPeriod.DAILY)
        assert start == datetime(2024, 5, 15, tzinfo=UTC)

    def test_weekly_starts_on_sunday(self):
        # 2024-05-15 is a Wednesday
        start = period_start(datetime(2024, 5, 15, 9, tzinfo=UTC), RankingPeriod.WEEKLY)
        assert start == datetime(2024, 5, 12, tzinfo=UTC)
        assert start.weekday() == 6

    def test_weekly_on_a_sunday_is_that_day(self):
        start = period_start(datetime(2024, 5, 12, 23, 59, tzinfo=UTC), RankingPeriod.WEEKLY)
        assert start == datetime(2024, 5, 12, tzinfo=UTC)

    def test_monthly_and_yearly(self):
        moment = datetime(2024, 5, 15, 9, tzinfo=UTC)
        assert period_start(moment, RankingPeriod.MONTHLY) == datetime(2024, 5, 1, tzinfo=UTC)
        assert period_start(moment, RankingPeriod.YEARLY) == datetime(2024, 1, 1, tzinfo=UTC)

    def test_naive_datetime_uses_configured_zone(self):
        tz = ZoneInfo("America/New_York")
        start = period_start(datetime(2024, 5, 15, 1, 30), RankingPeriod.DAILY, tz)
        assert start == datetime(2024, 5, 15, tzinfo=tz)

    def test_aware_datetime_is_converted_to_zone(self):
        tz = ZoneInfo("America/New_York")
        # 02:00 UTC is still the previous day in New York
        start = period_start(datetime(2024, 5, 15, 2, tzinfo=UTC), RankingPeriod.DAILY, tz)
        assert start == datetime(2024, 5, 14, tzinfo=tz)


class TestBounds:
    @pytest.mark.parametrize(
        "period,expected_end",
        [
            (RankingPeriod.DAILY, datetime(2024, 5, 16, tzinfo=UTC)),
            (RankingPeriod.WEEKLY, datetime(2024, 5, 19, tzinfo=UTC)),
            (RankingPeriod.MONTHLY, datetime(2024, 6, 1, tzinfo=UTC)),
            (RankingPeriod.YEARLY, datetime(2025, 1, 1, tzinfo=UTC)),
        ],
    )
    def test_end_is_next_start(self, period, expected_end):
        _, end = period_bounds(datetime(2024, 5, 15, 9, tzinfo=UTC), period)
        assert end == expected_end

    def test_month_shift_crosses_year(self):
        start = datetime(2024, 12, 1, tzinfo=UTC)
        assert shift_period(start, RankingPeriod.MONTHLY, 1) == datetime(2025, 1, 1, tzinfo=UTC)
        assert shift_period(start, RankingPeriod.MONTHLY, -12) == datetime(2023, 12, 1, tzinfo=UTC)

    def test_previous_period(self):
        start = datetime(2024, 3, 1, tzinfo=UTC)
        prev_start, prev_end = previous_period(start, RankingPeriod.MONTHLY)
        assert prev_start == datetime(2024, 2, 1, tzinfo=UTC)
        assert prev_end == start

    def test_daily_shift_keeps_local_midnight_across_dst(self):
        tz = ZoneInfo("Europe/Madrid")
        start = datetime(2024, 3, 30, tzinfo=tz)
        nxt = shift_period(start, RankingPeriod.DAILY, 1)
        assert nxt == datetime(2024, 3, 31, tzinfo=tz)
        assert (nxt.hour, nxt.minute) == (0, 0)
