"""Tests for the metric aggregator."""

from __future__ import annotations

from datetime import timedelta

from rank_forge.core.aggregator import MetricAggregator, TemplateAggregate, aggregate_usage
from rank_forge.core.errors import AggregationError
from rank_forge.core.periods import period_bounds
from rank_forge.db.catalog import FeedbackStore, TemplateCatalog
from rank_forge.db.models import RankingPeriod, TemplateType, UsageRecord
from rank_forge.db.usage_store import UsageStore
from tests.conftest import NOW, add_template, add_usage


def _record(user: str, ok: bool = True, ms: int = 100) -> UsageRecord:
    return UsageRecord(
        template_id="t1",
        template_type=TemplateType.PERSONAL,
        user_id=user,
        usage_timestamp=NOW,
        execution_time_ms=ms,
        was_successful=ok,
    )


class TestAggregateUsage:
    def test_empty(self):
        metrics = aggregate_usage([])
        assert metrics.usage_count == 0
        assert metrics.success_rate == 0.0

    def test_counts_and_rates(self):
        records = [_record("a"), _record("a"), _record("b", ok=False), _record("c")]
        metrics = aggregate_usage(records)
        assert metrics.usage_count == 4
        assert metrics.unique_users == 3
        assert metrics.success_rate == 75.0

    def test_execution_time_ignores_failures_and_zero_durations(self):
        records = [
            _record("a", ms=100),
            _record("b", ms=300),
            _record("c", ms=0),
            _record("d", ok=False, ms=10_000),
        ]
        assert aggregate_usage(records).average_execution_time == 200.0


class TestAggregateTemplate:
    def _aggregator(self, mock_db) -> MetricAggregator:
        return MetricAggregator(UsageStore(mock_db), FeedbackStore(mock_db))

    def _template(self, mock_db, template_id="t1", template_type="personal", **kw):
        add_template(mock_db, template_id, template_type, **kw)
        return TemplateCatalog(mock_db).find_by_id(template_id, TemplateType(template_type))

    def test_thirty_uses_twelve_users(self, mock_db):
        template = self._template(mock_db)
        add_usage(mock_db, "t1", count=30, users=12, successes=27)
        start, end = period_bounds(NOW, RankingPeriod.DAILY)

        result = self._aggregator(mock_db).aggregate_template(
            template, RankingPeriod.DAILY, start, end
        )

        assert isinstance(result, TemplateAggregate)
        record = result.record
        assert record.usage_count == 30
        assert record.unique_users == 12
        assert record.success_rate == 90.0
        assert 0 <= record.trend_score <= 100
        assert record.period_start == start
        assert record.period_end == end

    def test_zero_usage_returns_none(self, mock_db):
        template = self._template(mock_db)
        start, end = period_bounds(NOW, RankingPeriod.DAILY)
        assert self._aggregator(mock_db).aggregate_template(
            template, RankingPeriod.DAILY, start, end
        ) is None

    def test_usage_outside_period_is_ignored(self, mock_db):
        template = self._template(mock_db)
        add_usage(mock_db, "t1", count=5, start=NOW - timedelta(days=3))
        start, end = period_bounds(NOW, RankingPeriod.DAILY)
        assert self._aggregator(mock_db).aggregate_template(
            template, RankingPeriod.DAILY, start, end
        ) is None

    def test_growth_against_previous_day(self, mock_db):
        template = self._template(mock_db)
        add_usage(mock_db, "t1", count=15)
        add_usage(mock_db, "t1", count=10, start=NOW - timedelta(days=1))
        start, end = period_bounds(NOW, RankingPeriod.DAILY)

        result = self._aggregator(mock_db).aggregate_template(
            template, RankingPeriod.DAILY, start, end
        )
        assert result.previous_usage_count == 10
        assert result.record.growth_rate == 50.0

    def test_feedback_is_included(self, mock_db):
        template = self._template(mock_db)
        add_usage(mock_db, "t1", count=3)
        for rating in (4, 5):
            mock_db.insert(
                "template_ratings",
                {"template_id": "t1", "template_type": "personal", "rating": rating},
            )
        mock_db.insert("template_favorites", {"template_id": "t1", "template_type": "personal"})
        start, end = period_bounds(NOW, RankingPeriod.DAILY)

        record = self._aggregator(mock_db).aggregate_template(
            template, RankingPeriod.DAILY, start, end
        ).record
        assert record.average_rating == 4.5
        assert record.total_ratings == 2
        assert record.favorite_count == 1

    def test_verified_falls_back_to_catalog_rating(self, mock_db):
        template = self._template(
            mock_db, "v1", "verified", average_rating=4.0, rating_count=7
        )
        add_usage(mock_db, "v1", count=3, template_type="verified")
        start, end = period_bounds(NOW, RankingPeriod.DAILY)

        record = self._aggregator(mock_db).aggregate_template(
            template, RankingPeriod.DAILY, start, end
        ).record
        assert record.average_rating == 4.0
        assert record.total_ratings == 7

    def test_missing_feedback_store_scores_zero(self, mock_db):
        template = self._template(mock_db)
        add_usage(mock_db, "t1", count=3)
        start, end = period_bounds(NOW, RankingPeriod.DAILY)

        record = MetricAggregator(UsageStore(mock_db)).aggregate_template(
            template, RankingPeriod.DAILY, start, end
        ).record
        assert record.average_rating == 0.0
        assert record.favorite_count == 0

    def test_read_failure_becomes_error_value(self, mock_db):
        class BrokenUsage(UsageStore):
            def query(self, *args, **kwargs):
                raise ConnectionError("usage log unavailable")

        template = self._template(mock_db)
        start, end = period_bounds(NOW, RankingPeriod.DAILY)

        result = MetricAggregator(BrokenUsage(mock_db)).aggregate_template(
            template, RankingPeriod.DAILY, start, end
        )
        assert isinstance(result, AggregationError)
        assert result.template_id == "t1"
        assert "unavailable" in result.message
