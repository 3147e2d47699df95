"""Metric aggregator — turns a period's usage records into a ranking candidate."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from rank_forge.core.errors import AggregationError
from rank_forge.core.periods import previous_period
from rank_forge.core.scoring import (
    DEFAULT_WEIGHTS,
    TrendWeights,
    growth_rate,
    trend_score,
    velocity_score,
    weighted_score,
)
from rank_forge.db.catalog import FeedbackStore
from rank_forge.db.models import RankingPeriod, RankingRecord, TemplateInfo, TemplateType, UsageRecord

if TYPE_CHECKING:
    from rank_forge.db.usage_store import UsageStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class UsageMetrics:
    usage_count: int = 0
    unique_users: int = 0
    success_rate: float = 0.0
    average_execution_time: float = 0.0


@dataclass(frozen=True)
class TemplateAggregate:
    """A scored candidate for one template in one period, before ranking."""

    record: RankingRecord
    previous_usage_count: int


def aggregate_usage(records: Sequence[UsageRecord]) -> UsageMetrics:
    """Summarise usage records.

    Execution time is averaged over successful records that reported a
    positive duration only.
    """
    if not records:
        return UsageMetrics()

    successes = [r for r in records if r.was_successful]
    timings = [r.execution_time_ms for r in successes if r.execution_time_ms > 0]
    return UsageMetrics(
        usage_count=len(records),
        unique_users=len({r.user_id for r in records}),
        success_rate=len(successes) / len(records) * 100,
        average_execution_time=sum(timings) / len(timings) if timings else 0.0,
    )


class MetricAggregator:
    """Builds per-template ranking candidates from the usage log and feedback."""

    def __init__(
        self,
        usage: UsageStore,
        feedback: FeedbackStore | None = None,
        weights: TrendWeights = DEFAULT_WEIGHTS,
    ) -> None:
        self.usage = usage
        self.feedback = feedback
        self.weights = weights

    def _feedback(self, template: TemplateInfo) -> tuple[float, int, int]:
        """Return (average rating, rating count, favorite count)."""
        if self.feedback is None:
            rating, count, favorites = 0.0, 0, 0
        else:
            rating, count = self.feedback.rating_summary(template.id, template.template_type)
            favorites = self.feedback.favorite_count(template.id, template.template_type)

        # Verified templates carry a curated rating on the catalog row.
        if template.template_type == TemplateType.VERIFIED and count == 0:
            rating, count = template.average_rating, template.rating_count
        return rating, count, favorites

    def aggregate_template(
        self,
        template: TemplateInfo,
        period: RankingPeriod,
        start: datetime,
        end: datetime,
    ) -> TemplateAggregate | AggregationError | None:
        """Score one template for ``[start, end)``.

        Returns None when the template saw no usage, and an AggregationError
        (never raises) when a read or computation fails.
        """
        try:
            records = self.usage.query(template.id, template.template_type, start, end)
            if not records:
                return None

            metrics = aggregate_usage(records)
            rating, rating_count, favorites = self._feedback(template)

            trend = trend_score(
                metrics.usage_count,
                metrics.unique_users,
                metrics.success_rate,
                average_rating=rating,
                favorite_count=favorites,
                average_execution_time=metrics.average_execution_time,
                weights=self.weights,
            )

            prev_start, prev_end = previous_period(start, period)
            previous = len(
                self.usage.query(template.id, template.template_type, prev_start, prev_end)
            )

            record = RankingRecord(
                template_id=template.id,
                template_type=template.template_type,
                period=period,
                period_start=start,
                period_end=end,
                usage_count=metrics.usage_count,
                unique_users=metrics.unique_users,
                success_rate=metrics.success_rate,
                average_execution_time=metrics.average_execution_time,
                trend_score=trend,
                growth_rate=growth_rate(metrics.usage_count, previous),
                average_rating=rating,
                total_ratings=rating_count,
                favorite_count=favorites,
                weighted_score=weighted_score(
                    trend, metrics.usage_count, metrics.unique_users, rating
                ),
                velocity_score=velocity_score([r.usage_timestamp for r in records]),
            )
            return TemplateAggregate(record=record, previous_usage_count=previous)
        except Exception as e:
            logger.warning(
                "ranking.template_failed",
                template_id=template.id,
                template_type=template.template_type.value,
                period=period.value,
                error=str(e),
            )
            return AggregationError(
                template_id=template.id,
                template_type=template.template_type.value,
                message=str(e),
            )
