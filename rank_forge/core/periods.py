"""Calendar period arithmetic for ranking buckets.

All periods are half-open ``[start, end)`` ranges in the configured ranking
timezone. Weeks run Sunday to Saturday.
"""

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

from rank_forge.db.models import RankingPeriod


def _localise(moment: datetime, tz: tzinfo) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def _add_months(moment: datetime, months: int) -> datetime:
    """Shift to the same day in another month; callers only pass day 1."""
    index = moment.month - 1 + months
    return moment.replace(year=moment.year + index // 12, month=index % 12 + 1)


def period_start(moment: datetime, period: RankingPeriod, tz: tzinfo | None = None) -> datetime:
    """Start of the period containing ``moment``."""
    tz = tz or ZoneInfo("UTC")
    local = _localise(moment, tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)

    if period == RankingPeriod.DAILY:
        return midnight
    if period == RankingPeriod.WEEKLY:
        # Python weekdays: Monday=0 ... Sunday=6
        days_since_sunday = (midnight.weekday() + 1) % 7
        return midnight - timedelta(days=days_since_sunday)
    if period == RankingPeriod.MONTHLY:
        return midnight.replace(day=1)
    if period == RankingPeriod.YEARLY:
        return midnight.replace(month=1, day=1)
    raise ValueError(f"Unknown period: {period}")


def shift_period(start: datetime, period: RankingPeriod, count: int) -> datetime:
    """Move a period start by ``count`` whole periods (negative moves back)."""
    # Aware arithmetic on a shared tzinfo is wall-clock, so local midnight survives DST.
    if period == RankingPeriod.DAILY:
        return start + timedelta(days=count)
    if period == RankingPeriod.WEEKLY:
        return start + timedelta(weeks=count)
    if period == RankingPeriod.MONTHLY:
        return _add_months(start, count)
    if period == RankingPeriod.YEARLY:
        return start.replace(year=start.year + count)
    raise ValueError(f"Unknown period: {period}")


def period_bounds(
    moment: datetime, period: RankingPeriod, tz: tzinfo | None = None
) -> tuple[datetime, datetime]:
    """Half-open ``(start, end)`` of the period containing ``moment``."""
    start = period_start(moment, period, tz)
    return start, shift_period(start, period, 1)


def previous_period(start: datetime, period: RankingPeriod) -> tuple[datetime, datetime]:
    """Bounds of the period immediately before the one starting at ``start``."""
    return shift_period(start, period, -1), start
