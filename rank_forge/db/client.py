"""Supabase client initialization and helper methods."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

import structlog
from postgrest.exceptions import APIError
from supabase import Client, create_client

from rank_forge.config import get_settings

logger = structlog.get_logger()

UNIQUE_VIOLATION = "23505"
PAGE_SIZE = 1000


class DuplicateRowError(Exception):
    """An insert hit a unique constraint."""


def to_iso(value: datetime) -> str:
    """Serialise a datetime as a fixed-width UTC ISO-8601 string.

    Naive datetimes are taken to be UTC. Fixed width keeps lexical and
    chronological ordering identical.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class SupabaseClient:
    """Wrapper around the Supabase client with convenience methods."""

    def __init__(self, client: Client) -> None:
        self._client = client

    @property
    def client(self) -> Client:
        """Access the raw Supabase client."""
        return self._client

    def insert(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return the created row.

        Raises DuplicateRowError when a unique constraint rejects the row.
        """
        try:
            result = self._client.table(table).insert(data).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateRowError(e.message) from e
            raise
        return result.data[0]

    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
        in_filters: dict[str, list[Any]] | None = None,
        gte: dict[str, Any] | None = None,
        lt: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Select records with optional filters, ranges, ordering, and limit.

        ``gte``/``lt`` map a column to an inclusive lower / exclusive upper bound.
        Results are fetched in pages of ``PAGE_SIZE`` so the server's row cap
        never truncates them, stopping at the first empty page. Pages are ordered
        by ``order_by`` then ``id``.
        """

        def build():
            query = self._client.table(table).select("*")
            for key, value in (filters or {}).items():
                query = query.eq(key, value)
            for key, values in (in_filters or {}).items():
                query = query.in_(key, values)
            for key, value in (gte or {}).items():
                query = query.gte(key, value)
            for key, value in (lt or {}).items():
                query = query.lt(key, value)
            if order_by:
                query = query.order(order_by, desc=not ascending)
            return query.order("id")

        rows: list[dict[str, Any]] = []
        while limit is None or len(rows) < limit:
            want = PAGE_SIZE if limit is None else min(PAGE_SIZE, limit - len(rows))
            page = build().range(len(rows), len(rows) + want - 1).execute().data
            if not page:
                break
            rows.extend(page)
        return rows

    def upsert(
        self, table: str, rows: list[dict[str, Any]], on_conflict: str
    ) -> list[dict[str, Any]]:
        """Insert or overwrite rows keyed by the ``on_conflict`` column list."""
        if not rows:
            return []
        result = self._client.table(table).upsert(rows, on_conflict=on_conflict).execute()
        return result.data

    def update(self, table: str, id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Update a record by ID."""
        result = self._client.table(table).update(data).eq("id", id).execute()
        return result.data[0]

    def update_where(
        self,
        table: str,
        id: str,
        data: dict[str, Any],
        column: str,
        allowed: list[Any],
    ) -> dict[str, Any] | None:
        """Update a record only if ``column`` currently holds one of ``allowed``.

        Runs as a single conditional UPDATE. Returns the updated row, or None when
        the row is missing or its value has moved on.
        """
        result = (
            self._client.table(table)
            .update(data)
            .eq("id", id)
            .in_(column, allowed)
            .execute()
        )
        return result.data[0] if result.data else None

    def delete(self, table: str, id: str) -> None:
        """Delete a record by ID."""
        self._client.table(table).delete().eq("id", id).execute()

    def delete_before(self, table: str, column: str, cutoff: Any) -> int:
        """Delete all records whose ``column`` is strictly before ``cutoff``."""
        result = self._client.table(table).delete().lt(column, cutoff).execute()
        return len(result.data or [])


@lru_cache
def get_supabase_client() -> SupabaseClient:
    """Get cached Supabase client instance."""
    settings = get_settings()
    client = create_client(settings.supabase_url, settings.supabase_key)
    logger.info("supabase.connected", url=settings.supabase_url)
    return SupabaseClient(client)
