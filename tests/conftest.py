"""Test fixtures — mock Supabase client and shared test data."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from rank_forge.core.audit import AuditLogger
from rank_forge.core.credits import AuthorCreditIssuer
from rank_forge.core.promotion import PromotionWorkflow
from rank_forge.core.ranking import RankingEngine
from rank_forge.db.catalog import FeedbackStore, TemplateCatalog
from rank_forge.db.client import DuplicateRowError, SupabaseClient, to_iso
from rank_forge.db.credit_store import AuthorCreditStore
from rank_forge.db.models import Actor, ActorRole
from rank_forge.db.promotion_store import PromotionStore
from rank_forge.db.ranking_store import RankingStore
from rank_forge.db.usage_store import UsageStore

ADMIN = Actor(id="admin-1", role=ActorRole.ADMIN)
USER = Actor(id="user-1", role=ActorRole.USER)
ADMIN_HEADERS = {"X-Actor-Id": "admin-1", "X-Actor-Role": "admin"}
USER_HEADERS = {"X-Actor-Id": "user-1", "X-Actor-Role": "user"}

# A Wednesday, mid-month, so daily/weekly/monthly periods all differ.
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


# Unique keys from migrations/001_unique_keys.sql: table -> (columns, row predicate).
UNIQUE_KEYS: dict[str, tuple[tuple[str, ...], Any]] = {
    "promotion_requests": (
        ("personal_template_id",),
        lambda row: row.get("status") in ("pending", "under_review"),
    ),
    "author_credits": (
        ("verified_template_id", "original_personal_template_id"),
        lambda row: True,
    ),
}


class MockSupabaseClient(SupabaseClient):
    """In-memory mock of the Supabase client for testing."""

    def __init__(self):
        self._tables: dict[str, list[dict[str, Any]]] = {
            "templates": [],
            "template_usage_log": [],
            "template_ratings": [],
            "template_favorites": [],
            "template_rankings": [],
            "promotion_requests": [],
            "author_credits": [],
            "audit_log": [],
        }

    def insert(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        now = to_iso(datetime.now(timezone.utc))
        record = {"id": str(uuid4()), "created_at": now, "updated_at": now, **data}
        self._check_unique(table, record)
        self._tables.setdefault(table, []).append(record)
        return dict(record)

    def _check_unique(self, table: str, record: dict[str, Any]) -> None:
        if table not in UNIQUE_KEYS:
            return
        columns, applies = UNIQUE_KEYS[table]
        if not applies(record):
            return
        for row in self._tables.get(table, []):
            if applies(row) and all(row.get(c) == record.get(c) for c in columns):
                raise DuplicateRowError(f"duplicate key value violates unique constraint on {table}")

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
        rows = self._tables.get(table, [])
        for key, value in (filters or {}).items():
            rows = [r for r in rows if r.get(key) == value]
        for key, values in (in_filters or {}).items():
            rows = [r for r in rows if r.get(key) in values]
        for key, value in (gte or {}).items():
            rows = [r for r in rows if r.get(key) is not None and r[key] >= value]
        for key, value in (lt or {}).items():
            rows = [r for r in rows if r.get(key) is not None and r[key] < value]
        if order_by:
            rows = sorted(rows, key=lambda r: r.get(order_by) or "", reverse=not ascending)
        if limit:
            rows = rows[:limit]
        return [dict(r) for r in rows]

    def upsert(
        self, table: str, rows: list[dict[str, Any]], on_conflict: str
    ) -> list[dict[str, Any]]:
        keys = on_conflict.split(",")
        stored = self._tables.setdefault(table, [])
        out = []
        for row in rows:
            existing = next(
                (r for r in stored if all(r.get(k) == row.get(k) for k in keys)), None
            )
            if existing:
                existing.update(row)
                out.append(dict(existing))
            else:
                out.append(self.insert(table, row))
        return out

    def update(self, table: str, id: str, data: dict[str, Any]) -> dict[str, Any]:
        for row in self._tables.get(table, []):
            if row["id"] == id:
                row.update(data)
                row["updated_at"] = to_iso(datetime.now(timezone.utc))
                return dict(row)
        raise ValueError(f"Row {id} not found in {table}")

    def update_where(
        self,
        table: str,
        id: str,
        data: dict[str, Any],
        column: str,
        allowed: list[Any],
    ) -> dict[str, Any] | None:
        for row in self._tables.get(table, []):
            if row["id"] == id and row.get(column) in allowed:
                row.update(data)
                row["updated_at"] = to_iso(datetime.now(timezone.utc))
                return dict(row)
        return None

    def delete(self, table: str, id: str) -> None:
        self._tables[table] = [r for r in self._tables.get(table, []) if r["id"] != id]

    def delete_before(self, table: str, column: str, cutoff: Any) -> int:
        rows = self._tables.get(table, [])
        kept = [r for r in rows if not (r.get(column) is not None and r[column] < cutoff)]
        self._tables[table] = kept
        return len(rows) - len(kept)

    def reset(self):
        for table in self._tables:
            self._tables[table] = []


def add_template(
    db: MockSupabaseClient,
    template_id: str,
    template_type: str = "personal",
    **overrides: Any,
) -> dict[str, Any]:
    row = {
        "id": template_id,
        "template_type": template_type,
        "name": f"Template {template_id}",
        "author_id": f"author-{template_id}",
        "is_active": True,
        "is_public": True,
        "average_rating": 0.0,
        "rating_count": 0,
        **overrides,
    }
    db._tables["templates"].append(row)
    return row


def add_usage(
    db: MockSupabaseClient,
    template_id: str,
    count: int,
    users: int | None = None,
    successes: int | None = None,
    template_type: str = "personal",
    start: datetime = NOW - timedelta(hours=6),
    spacing: timedelta = timedelta(minutes=1),
    execution_time_ms: int = 500,
) -> None:
    """Log ``count`` uses spread over ``users`` users; the first ``successes`` succeed."""
    users = users or count
    successes = count if successes is None else successes
    for i in range(count):
        db._tables["template_usage_log"].append(
            {
                "id": str(uuid4()),
                "template_id": template_id,
                "template_type": template_type,
                "user_id": f"user-{i % users}",
                "usage_timestamp": to_iso(start + spacing * i),
                "execution_time_ms": execution_time_ms,
                "was_successful": i < successes,
            }
        )


@pytest.fixture
def mock_db() -> MockSupabaseClient:
    """Fresh mock database for each test."""
    return MockSupabaseClient()


@pytest.fixture
def engine(mock_db) -> RankingEngine:
    return RankingEngine(
        catalog=TemplateCatalog(mock_db),
        usage=UsageStore(mock_db),
        rankings=RankingStore(mock_db),
        feedback=FeedbackStore(mock_db),
        max_workers=4,
    )


@pytest.fixture
def audit(mock_db) -> AuditLogger:
    return AuditLogger(mock_db)


@pytest.fixture
def issuer(mock_db, audit) -> AuthorCreditIssuer:
    return AuthorCreditIssuer(AuthorCreditStore(mock_db), audit=audit)


@pytest.fixture
def workflow(mock_db, issuer, audit) -> PromotionWorkflow:
    return PromotionWorkflow(
        store=PromotionStore(mock_db),
        catalog=TemplateCatalog(mock_db),
        usage=UsageStore(mock_db),
        rankings=RankingStore(mock_db),
        credits=issuer,
        audit=audit,
    )


@pytest.fixture
def app(engine, workflow, issuer, audit):
    """FastAPI test app with mocked dependencies."""
    from rank_forge.core.audit import get_audit_logger
    from rank_forge.core.credits import get_credit_issuer
    from rank_forge.core.promotion import get_promotion_workflow
    from rank_forge.core.ranking import get_ranking_engine
    from rank_forge.main import app as _app

    _app.dependency_overrides[get_ranking_engine] = lambda: engine
    _app.dependency_overrides[get_promotion_workflow] = lambda: workflow
    _app.dependency_overrides[get_credit_issuer] = lambda: issuer
    _app.dependency_overrides[get_audit_logger] = lambda: audit

    yield _app

    _app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """HTTP test client."""
    return TestClient(app)
