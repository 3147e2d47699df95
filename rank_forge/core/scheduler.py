"""Background ranking schedule.

Recomputes the configured periods on a fixed interval and purges rankings
past the retention window. The engine is synchronous, so each run happens in
a worker thread to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio

import structlog

from rank_forge.core.events import EventPublisher
from rank_forge.core.ranking import RankingCalculationResult, RankingEngine
from rank_forge.db.models import RankingPeriod

logger = structlog.get_logger()


class RankingScheduler:
    """Runs ranking recomputation ticks; a tick is skipped while one is in flight."""

    def __init__(
        self,
        engine: RankingEngine,
        periods: list[RankingPeriod],
        interval_seconds: float,
        retention_days: int,
        publisher: EventPublisher | None = None,
    ) -> None:
        self.engine = engine
        self.periods = periods
        self.interval_seconds = interval_seconds
        self.retention_days = retention_days
        self.publisher = publisher
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def tick(self) -> list[RankingCalculationResult] | None:
        """One scheduled run. Returns None if the previous run is still going."""
        if self._running:
            logger.info("scheduler.tick_skipped", reason="previous run in progress")
            return None

        self._running = True
        results: list[RankingCalculationResult] = []
        try:
            for period in self.periods:
                try:
                    result = await asyncio.to_thread(self.engine.compute_rankings, period)
                except Exception as e:
                    logger.warning("scheduler.period_failed", period=period.value, error=str(e))
                    continue
                results.append(result)
                if self.publisher:
                    await self.publisher.publish_ranking_computed(
                        result.model_dump(mode="json", exclude={"errors", "top_template"})
                    )

            purged = await asyncio.to_thread(
                self.engine.cleanup_old_rankings, self.retention_days
            )
            logger.info("scheduler.tick_completed", periods=len(results), purged=purged)
            return results
        finally:
            self._running = False

    async def run_forever(self) -> None:
        """Loop until cancelled. Failures are logged and the loop continues."""
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning("scheduler.tick_error", error=str(e))
