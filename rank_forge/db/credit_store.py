"""Store layer for author credits."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from rank_forge.db.client import SupabaseClient, get_supabase_client
from rank_forge.db.models import AuthorCredit

TABLE = "author_credits"


class AuthorCreditStore:
    """Persistence for author attribution records."""

    def __init__(self, db: SupabaseClient) -> None:
        self.db = db

    def create(self, data: dict[str, Any]) -> AuthorCredit:
        return AuthorCredit(**self.db.insert(TABLE, data))

    def find(self, credit_id: str) -> AuthorCredit | None:
        rows = self.db.select(TABLE, filters={"id": credit_id}, limit=1)
        return AuthorCredit(**rows[0]) if rows else None

    def find_by_verified_template(
        self, verified_template_id: str, only_visible: bool = False
    ) -> list[AuthorCredit]:
        filters: dict[str, Any] = {"verified_template_id": verified_template_id}
        if only_visible:
            filters["is_visible"] = True
        return [AuthorCredit(**row) for row in self.db.select(TABLE, filters=filters)]

    def find_by_author(self, author_id: str, only_visible: bool = False) -> list[AuthorCredit]:
        filters: dict[str, Any] = {"original_author_id": author_id}
        if only_visible:
            filters["is_visible"] = True
        rows = self.db.select(TABLE, filters=filters, order_by="created_at", ascending=False)
        return [AuthorCredit(**row) for row in rows]

    def update(self, credit_id: str, changes: dict[str, Any]) -> AuthorCredit:
        return AuthorCredit(**self.db.update(TABLE, credit_id, changes))


@lru_cache
def get_credit_store() -> AuthorCreditStore:
    """Get cached author credit store instance."""
    return AuthorCreditStore(get_supabase_client())
