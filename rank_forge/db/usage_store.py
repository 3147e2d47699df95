"""Read-only access to the template usage log."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache

from rank_forge.core.aggregator import aggregate_usage
from rank_forge.db.client import SupabaseClient, get_supabase_client, to_iso
from rank_forge.db.models import TemplateType, UsageRecord, UsageStats

TABLE = "template_usage_log"


class UsageStore:
    """Queries usage records by template, type and time range."""

    def __init__(self, db: SupabaseClient) -> None:
        self.db = db

    def query(
        self,
        template_id: str,
        template_type: TemplateType,
        start: datetime,
        end: datetime,
    ) -> list[UsageRecord]:
        """Usage records for a template in the half-open range [start, end)."""
        rows = self.db.select(
            TABLE,
            filters={"template_id": template_id, "template_type": template_type.value},
            gte={"usage_timestamp": to_iso(start)},
            lt={"usage_timestamp": to_iso(end)},
            order_by="usage_timestamp",
        )
        return [UsageRecord(**row) for row in rows]

    def template_stats(self, template_id: str, template_type: TemplateType) -> UsageStats:
        """All-time totals for a template, used by the promotion eligibility gate."""
        rows = self.db.select(
            TABLE,
            filters={"template_id": template_id, "template_type": template_type.value},
        )
        records = [UsageRecord(**row) for row in rows]
        if not records:
            return UsageStats()

        metrics = aggregate_usage(records)
        return UsageStats(
            total_usage=metrics.usage_count,
            unique_users=metrics.unique_users,
            success_rate=metrics.success_rate,
            average_execution_time=metrics.average_execution_time,
            last_used=max(r.usage_timestamp for r in records),
        )


@lru_cache
def get_usage_store() -> UsageStore:
    """Get cached usage store instance."""
    return UsageStore(get_supabase_client())
