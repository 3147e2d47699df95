"""Store layer for per-period template ranking records."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache

import structlog

from rank_forge.db.client import SupabaseClient, get_supabase_client, to_iso
from rank_forge.db.models import RankingPeriod, RankingRecord, TemplateType, dump_row

logger = structlog.get_logger()

TABLE = "template_rankings"
RANKING_KEY = "template_id,template_type,period,period_start"


class RankingStore:
    """Upsertable, period-queryable persistence for ranking records."""

    def __init__(self, db: SupabaseClient) -> None:
        self.db = db

    def bulk_upsert(self, records: list[RankingRecord]) -> int:
        """Insert or overwrite records on their (template, type, period, start) key."""
        if not records:
            return 0
        rows = [dump_row(r) for r in records]
        self.db.upsert(TABLE, rows, on_conflict=RANKING_KEY)
        logger.debug("rankings.upserted", count=len(rows))
        return len(rows)

    def write_ranks(self, records: list[RankingRecord]) -> int:
        """Persist the rank positions carried by already-stored records."""
        return self.bulk_upsert(records)

    def query_by_period(
        self,
        period: RankingPeriod,
        period_start: datetime,
        template_type: TemplateType | None = None,
    ) -> list[RankingRecord]:
        """All records in a period group, optionally restricted to one type."""
        filters = {"period": period.value, "period_start": to_iso(period_start)}
        if template_type:
            filters["template_type"] = template_type.value
        rows = self.db.select(TABLE, filters=filters)
        return [RankingRecord(**row) for row in rows]

    def find_one(
        self,
        template_id: str,
        template_type: TemplateType,
        period: RankingPeriod,
        period_start: datetime,
    ) -> RankingRecord | None:
        rows = self.db.select(
            TABLE,
            filters={
                "template_id": template_id,
                "template_type": template_type.value,
                "period": period.value,
                "period_start": to_iso(period_start),
            },
            limit=1,
        )
        return RankingRecord(**rows[0]) if rows else None

    def find_by_template(
        self,
        template_id: str,
        template_type: TemplateType,
        period: RankingPeriod | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[RankingRecord]:
        """Records for one template, newest period first."""
        filters = {"template_id": template_id, "template_type": template_type.value}
        if period:
            filters["period"] = period.value
        rows = self.db.select(
            TABLE,
            filters=filters,
            gte={"period_start": to_iso(since)} if since else None,
            order_by="period_start",
            ascending=False,
            limit=limit,
        )
        return [RankingRecord(**row) for row in rows]

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete records whose period started before ``cutoff``."""
        deleted = self.db.delete_before(TABLE, "period_start", to_iso(cutoff))
        logger.info("rankings.purged", deleted=deleted, cutoff=to_iso(cutoff))
        return deleted


@lru_cache
def get_ranking_store() -> RankingStore:
    """Get cached ranking store instance."""
    return RankingStore(get_supabase_client())
