"""Ranking engine — batch recomputation, rank assignment, and ranking queries.

A recompute runs in two phases separated by a barrier:

1. Every active template is aggregated and scored in a bounded thread pool,
   then the candidates are bulk-upserted on their period key.
2. Each (period, period_start, template_type) group is re-read from the store,
   sorted, and given contiguous 1..N rank positions.

Per-template failures are collected into the result instead of aborting the
batch. When a deadline expires, completed candidates are still persisted but
phase 2 is skipped.
"""

from __future__ import annotations

import concurrent.futures
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo

import structlog
from pydantic import BaseModel

from rank_forge.config import get_settings
from rank_forge.core.aggregator import MetricAggregator, TemplateAggregate
from rank_forge.core.errors import AggregationError
from rank_forge.core.periods import period_start as start_of_period
from rank_forge.core.periods import shift_period
from rank_forge.db.catalog import (
    FeedbackStore,
    TemplateCatalog,
    get_catalog,
    get_feedback_store,
)
from rank_forge.db.models import RankingPeriod, RankingRecord, TemplateInfo, TemplateType
from rank_forge.db.ranking_store import RankingStore, get_ranking_store
from rank_forge.db.usage_store import UsageStore, get_usage_store

logger = structlog.get_logger()

TOP_PERFORMER_METRICS: dict[str, Callable[[RankingRecord], float]] = {
    "usage": lambda r: r.usage_count,
    "users": lambda r: r.unique_users,
    "rating": lambda r: r.average_rating,
    "trend": lambda r: r.trend_score,
}


def ranking_order(record: RankingRecord) -> tuple[float, int, int, str]:
    """Sort key: trend desc, usage desc, unique users desc, template id asc."""
    return (-record.trend_score, -record.usage_count, -record.unique_users, record.template_id)


class RankingCalculationResult(BaseModel):
    period: RankingPeriod
    period_start: datetime
    period_end: datetime
    calculated: int = 0
    personal_count: int = 0
    verified_count: int = 0
    skipped: int = 0
    errors: list[AggregationError] = []
    top_template: RankingRecord | None = None
    timed_out: bool = False


class CompetitionAnalysis(BaseModel):
    template_id: str
    template_type: TemplateType
    period: RankingPeriod
    period_start: datetime
    rank: int
    total_competitors: int
    percentile: float
    nearby: list[RankingRecord]


class HistoryPoint(BaseModel):
    period_start: datetime
    rank_position: int
    trend_score: float


class TrendingSummary(BaseModel):
    daily: list[RankingRecord]
    weekly: list[RankingRecord]
    monthly: list[RankingRecord]
    hottest: list[RankingRecord]


class RankingEngine:
    """Computes and serves template rankings."""

    def __init__(
        self,
        catalog: TemplateCatalog,
        usage: UsageStore,
        rankings: RankingStore,
        feedback: FeedbackStore | None = None,
        max_workers: int = 8,
        tz: tzinfo | None = None,
        default_deadline: float | None = None,
    ) -> None:
        self.catalog = catalog
        self.rankings = rankings
        self.aggregator = MetricAggregator(usage, feedback)
        self.max_workers = max_workers
        self.tz = tz or ZoneInfo("UTC")
        self.default_deadline = default_deadline

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def current_start(self, period: RankingPeriod, at: datetime | None = None) -> datetime:
        return start_of_period(at or self._now(), period, self.tz)

    # ------------------------------------------------------------------
    # Batch recomputation
    # ------------------------------------------------------------------

    def _aggregate_all(
        self,
        templates: list[TemplateInfo],
        period: RankingPeriod,
        start: datetime,
        end: datetime,
        deadline: float | None,
    ) -> tuple[list[TemplateAggregate], list[AggregationError], int, bool]:
        candidates: list[TemplateAggregate] = []
        errors: list[AggregationError] = []
        skipped = 0
        timed_out = False
        handled: set[concurrent.futures.Future] = set()

        def collect(future: concurrent.futures.Future) -> None:
            nonlocal skipped
            handled.add(future)
            outcome = future.result()
            if outcome is None:
                skipped += 1
            elif isinstance(outcome, AggregationError):
                errors.append(outcome)
            else:
                candidates.append(outcome)

        executor = concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers)
        futures = [
            executor.submit(self.aggregator.aggregate_template, t, period, start, end)
            for t in templates
        ]
        try:
            for future in concurrent.futures.as_completed(futures, timeout=deadline):
                collect(future)
        except concurrent.futures.TimeoutError:
            timed_out = True
            for future in futures:
                if future not in handled and future.done() and not future.cancelled():
                    collect(future)
            logger.warning(
                "ranking.deadline_exceeded",
                period=period.value,
                completed=len(handled),
                total=len(futures),
            )
        finally:
            executor.shutdown(wait=not timed_out, cancel_futures=True)

        candidates.sort(key=lambda c: ranking_order(c.record))
        errors.sort(key=lambda e: (e.template_type, e.template_id))
        return candidates, errors, skipped, timed_out

    def assign_ranks(
        self, period: RankingPeriod, start: datetime, template_type: TemplateType
    ) -> list[RankingRecord]:
        """Rewrite contiguous rank positions for one period group."""
        group = sorted(self.rankings.query_by_period(period, start, template_type), key=ranking_order)
        ranked = [r.model_copy(update={"rank_position": i}) for i, r in enumerate(group, start=1)]
        self.rankings.write_ranks(ranked)
        return ranked

    def recompute(
        self,
        period: RankingPeriod,
        period_start: datetime,
        template_type: TemplateType | None = None,
        deadline: float | None = None,
    ) -> RankingCalculationResult:
        """Recompute one period for one or both template types."""
        period_end = shift_period(period_start, period, 1)
        types = [template_type] if template_type else list(TemplateType)

        templates: list[TemplateInfo] = []
        for t in types:
            templates.extend(self.catalog.list_active(t))

        candidates, errors, skipped, timed_out = self._aggregate_all(
            templates, period, period_start, period_end, deadline
        )
        self.rankings.bulk_upsert([c.record for c in candidates])

        ranked: list[RankingRecord] = []
        if not timed_out:
            for t in types:
                ranked.extend(self.assign_ranks(period, period_start, t))

        pool = ranked or [c.record for c in candidates]
        result = RankingCalculationResult(
            period=period,
            period_start=period_start,
            period_end=period_end,
            calculated=len(candidates),
            personal_count=sum(
                1 for c in candidates if c.record.template_type == TemplateType.PERSONAL
            ),
            verified_count=sum(
                1 for c in candidates if c.record.template_type == TemplateType.VERIFIED
            ),
            skipped=skipped,
            errors=errors,
            top_template=min(pool, key=ranking_order) if pool else None,
            timed_out=timed_out,
        )
        logger.info(
            "ranking.computed",
            period=period.value,
            period_start=period_start.isoformat(),
            calculated=result.calculated,
            skipped=skipped,
            errors=len(errors),
            timed_out=timed_out,
        )
        return result

    def compute_rankings(
        self,
        period: RankingPeriod,
        at: datetime | None = None,
        deadline: float | None = None,
    ) -> RankingCalculationResult:
        """Recompute the period containing ``at`` (default: now) for both types."""
        start = self.current_start(period, at)
        return self.recompute(
            period, start, deadline=deadline if deadline is not None else self.default_deadline
        )

    def recalculate_periods(
        self,
        periods: Iterable[RankingPeriod],
        days_back: int = 30,
        at: datetime | None = None,
    ) -> list[RankingCalculationResult]:
        """Backfill the periods containing each of the last ``days_back`` days.

        Each distinct period start is computed once. A failing (period, day)
        is logged and skipped.
        """
        anchor = at or self._now()
        periods = list(periods)
        seen: set[tuple[RankingPeriod, datetime]] = set()
        results: list[RankingCalculationResult] = []

        for offset in range(days_back):
            day = anchor - timedelta(days=offset)
            for period in periods:
                start = self.current_start(period, day)
                if (period, start) in seen:
                    continue
                seen.add((period, start))
                try:
                    results.append(self.recompute(period, start))
                except Exception as e:
                    logger.error(
                        "ranking.recalculate_failed",
                        period=period.value,
                        period_start=start.isoformat(),
                        error=str(e),
                    )

        logger.info("ranking.recalculated", days_back=days_back, periods_processed=len(results))
        return results

    def cleanup_old_rankings(self, retention_days: int, at: datetime | None = None) -> int:
        cutoff = (at or self._now()) - timedelta(days=retention_days)
        return self.rankings.delete_older_than(cutoff)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_trending(
        self,
        period: RankingPeriod,
        template_type: TemplateType | None = None,
        limit: int = 10,
        at: datetime | None = None,
    ) -> list[RankingRecord]:
        """Ranked records of the current period, best first. Unranked records are excluded."""
        start = self.current_start(period, at)
        records = [
            r for r in self.rankings.query_by_period(period, start, template_type)
            if r.rank_position > 0
        ]
        records.sort(key=lambda r: (r.rank_position, -r.trend_score, r.template_id))
        return records[:limit]

    def get_trending_summary(self, at: datetime | None = None) -> TrendingSummary:
        """Top 5 per daily/weekly/monthly, plus templates trending in several of them."""
        lists = {
            period: self.get_trending(period, limit=5, at=at)
            for period in (RankingPeriod.DAILY, RankingPeriod.WEEKLY, RankingPeriod.MONTHLY)
        }

        counts: dict[tuple[str, TemplateType], int] = {}
        first_seen: dict[tuple[str, TemplateType], RankingRecord] = {}
        for records in lists.values():
            for r in records:
                key = (r.template_id, r.template_type)
                counts[key] = counts.get(key, 0) + 1
                first_seen.setdefault(key, r)

        repeated = [key for key, count in counts.items() if count > 1]
        # Stable sort keeps first-appearance order among equal counts.
        repeated.sort(key=lambda key: -counts[key])

        return TrendingSummary(
            daily=lists[RankingPeriod.DAILY],
            weekly=lists[RankingPeriod.WEEKLY],
            monthly=lists[RankingPeriod.MONTHLY],
            hottest=[first_seen[key] for key in repeated[:5]],
        )

    def get_top_performers(
        self,
        period: RankingPeriod,
        metric: str = "trend",
        limit: int = 10,
        template_type: TemplateType | None = None,
        at: datetime | None = None,
    ) -> list[RankingRecord]:
        if metric not in TOP_PERFORMER_METRICS:
            raise ValueError(
                f"Unknown metric '{metric}'. Expected one of: {', '.join(TOP_PERFORMER_METRICS)}"
            )
        value = TOP_PERFORMER_METRICS[metric]
        records = self.rankings.query_by_period(period, self.current_start(period, at), template_type)
        records.sort(key=lambda r: (-value(r), ranking_order(r)))
        return records[:limit]

    def get_competition_analysis(
        self,
        template_id: str,
        template_type: TemplateType,
        period: RankingPeriod,
        at: datetime | None = None,
    ) -> CompetitionAnalysis:
        start = self.current_start(period, at)
        group = [
            r for r in self.rankings.query_by_period(period, start, template_type)
            if r.rank_position > 0
        ]
        group.sort(key=lambda r: r.rank_position)
        total = len(group)

        current = next((r for r in group if r.template_id == template_id), None)
        if current is None:
            return CompetitionAnalysis(
                template_id=template_id,
                template_type=template_type,
                period=period,
                period_start=start,
                rank=0,
                total_competitors=total,
                percentile=0.0,
                nearby=[],
            )

        rank = current.rank_position
        return CompetitionAnalysis(
            template_id=template_id,
            template_type=template_type,
            period=period,
            period_start=start,
            rank=rank,
            total_competitors=total,
            percentile=(total - rank + 1) / total * 100,
            nearby=[r for r in group if rank - 2 <= r.rank_position <= rank + 2],
        )

    def get_ranking_history(
        self,
        template_id: str,
        template_type: TemplateType,
        period: RankingPeriod,
        months: int = 6,
        at: datetime | None = None,
    ) -> list[HistoryPoint]:
        """Rank and trend over the last ``months`` months, oldest first."""
        since = shift_period(
            self.current_start(RankingPeriod.MONTHLY, at), RankingPeriod.MONTHLY, -months
        )
        records = self.rankings.find_by_template(template_id, template_type, period, since=since)
        return [
            HistoryPoint(
                period_start=r.period_start,
                rank_position=r.rank_position,
                trend_score=r.trend_score,
            )
            for r in sorted(records, key=lambda r: r.period_start)
        ]


@lru_cache
def get_ranking_engine() -> RankingEngine:
    """Get cached ranking engine instance."""
    settings = get_settings()
    return RankingEngine(
        catalog=get_catalog(),
        usage=get_usage_store(),
        rankings=get_ranking_store(),
        feedback=get_feedback_store(),
        max_workers=settings.ranking_max_workers,
        tz=ZoneInfo(settings.ranking_timezone),
        default_deadline=settings.ranking_deadline_seconds,
    )
