"""Store layer for promotion requests."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from rank_forge.core.errors import DuplicateRequestError
from rank_forge.db.client import DuplicateRowError, SupabaseClient, get_supabase_client
from rank_forge.db.models import (
    ACTIVE_PROMOTION_STATUSES,
    PromotionPriority,
    PromotionRequest,
    PromotionStatus,
)

TABLE = "promotion_requests"


class PromotionStore:
    """Persistence for promotion requests. Status changes go through update_status."""

    def __init__(self, db: SupabaseClient) -> None:
        self.db = db

    def create(self, data: dict[str, Any]) -> PromotionRequest:
        """Insert a request. The one-open-request-per-template index is enforced here."""
        try:
            row = self.db.insert(TABLE, data)
        except DuplicateRowError as e:
            template_id = data.get("personal_template_id")
            raise DuplicateRequestError(
                f"An active promotion request already exists for template '{template_id}'"
            ) from e
        return PromotionRequest(**row)

    def find(self, request_id: str) -> PromotionRequest | None:
        rows = self.db.select(TABLE, filters={"id": request_id}, limit=1)
        return PromotionRequest(**rows[0]) if rows else None

    def find_active_for_template(self, personal_template_id: str) -> list[PromotionRequest]:
        """Requests for the template that are still pending or under review."""
        rows = self.db.select(
            TABLE,
            filters={"personal_template_id": personal_template_id},
            in_filters={"status": [s.value for s in ACTIVE_PROMOTION_STATUSES]},
        )
        return [PromotionRequest(**row) for row in rows]

    def update_status(
        self,
        request_id: str,
        new_status: PromotionStatus,
        expected: list[PromotionStatus],
        changes: dict[str, Any] | None = None,
    ) -> PromotionRequest | None:
        """Compare-and-set the status.

        Returns None if the stored status is no longer one of ``expected``.
        """
        data = {**(changes or {}), "status": new_status.value}
        row = self.db.update_where(
            TABLE, request_id, data, column="status", allowed=[s.value for s in expected]
        )
        return PromotionRequest(**row) if row else None

    def update(self, request_id: str, changes: dict[str, Any]) -> PromotionRequest:
        """Update non-status fields (priority, notes)."""
        if "status" in changes:
            raise ValueError("Status changes must go through update_status")
        return PromotionRequest(**self.db.update(TABLE, request_id, changes))

    def list_all(
        self,
        statuses: list[PromotionStatus] | None = None,
        priorities: list[PromotionPriority] | None = None,
    ) -> list[PromotionRequest]:
        in_filters: dict[str, list[Any]] = {}
        if statuses:
            in_filters["status"] = [s.value for s in statuses]
        if priorities:
            in_filters["priority"] = [p.value for p in priorities]
        rows = self.db.select(
            TABLE, in_filters=in_filters or None, order_by="created_at", ascending=False
        )
        return [PromotionRequest(**row) for row in rows]

    def find_pending(self) -> list[PromotionRequest]:
        return self.list_all(statuses=list(ACTIVE_PROMOTION_STATUSES))

    def find_high_priority(self) -> list[PromotionRequest]:
        return self.list_all(
            statuses=list(ACTIVE_PROMOTION_STATUSES),
            priorities=[PromotionPriority.HIGH, PromotionPriority.URGENT],
        )


@lru_cache
def get_promotion_store() -> PromotionStore:
    """Get cached promotion store instance."""
    return PromotionStore(get_supabase_client())
