"""Tests for the background ranking scheduler."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from rank_forge.core.ranking import RankingCalculationResult
from rank_forge.core.scheduler import RankingScheduler
from rank_forge.db.models import RankingPeriod
from tests.conftest import NOW, add_template, add_usage


def _result(period: RankingPeriod) -> RankingCalculationResult:
    return RankingCalculationResult(period=period, period_start=NOW, period_end=NOW, calculated=2)


def _scheduler(engine, publisher=None, periods=None) -> RankingScheduler:
    return RankingScheduler(
        engine=engine,
        periods=periods or [RankingPeriod.DAILY, RankingPeriod.WEEKLY],
        interval_seconds=0.01,
        retention_days=730,
        publisher=publisher,
    )


@pytest.mark.asyncio
async def test_tick_computes_each_period_and_purges():
    engine = MagicMock()
    engine.compute_rankings.side_effect = _result
    engine.cleanup_old_rankings.return_value = 4
    publisher = MagicMock()
    publisher.publish_ranking_computed = AsyncMock(return_value=True)

    results = await _scheduler(engine, publisher).tick()

    assert [r.period for r in results] == [RankingPeriod.DAILY, RankingPeriod.WEEKLY]
    engine.cleanup_old_rankings.assert_called_once_with(730)
    assert publisher.publish_ranking_computed.await_count == 2


@pytest.mark.asyncio
async def test_failing_period_does_not_stop_the_tick():
    engine = MagicMock()

    def compute(period):
        if period == RankingPeriod.DAILY:
            raise ConnectionError("store down")
        return _result(period)

    engine.compute_rankings.side_effect = compute
    engine.cleanup_old_rankings.return_value = 0

    results = await _scheduler(engine).tick()

    assert [r.period for r in results] == [RankingPeriod.WEEKLY]


@pytest.mark.asyncio
async def test_tick_skipped_while_running():
    engine = MagicMock()
    scheduler = _scheduler(engine)
    scheduler._running = True

    assert await scheduler.tick() is None
    engine.compute_rankings.assert_not_called()


@pytest.mark.asyncio
async def test_run_forever_stops_on_cancel():
    engine = MagicMock()
    engine.compute_rankings.side_effect = _result
    engine.cleanup_old_rankings.return_value = 0
    scheduler = _scheduler(engine, periods=[RankingPeriod.DAILY])

    task = asyncio.create_task(scheduler.run_forever())
    await asyncio.sleep(0.1)
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    assert task.done()
    assert engine.compute_rankings.call_count >= 1


@pytest.mark.asyncio
async def test_real_engine_tick(engine, mock_db):
    add_template(mock_db, "t1")
    add_usage(mock_db, "t1", count=3)

    results = await _scheduler(engine, periods=[RankingPeriod.DAILY]).tick()

    assert len(results) == 1
    assert results[0].period == RankingPeriod.DAILY
