"""Tests for the audit logger."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from rank_forge.core.audit import AuditLogger
from tests.conftest import ADMIN, MockSupabaseClient


class TestAuditLogger:
    def test_log_records_actor(self):
        audit = AuditLogger(MockSupabaseClient())

        entry = audit.log("promotion.approve", "promotion_request", "req-1", ADMIN, {"to_status": "approved"})

        assert entry.actor == "admin-1"
        assert entry.actor_role == "admin"
        assert entry.details == {"to_status": "approved"}
        assert entry.created_at is not None

    def test_system_actor_by_default(self):
        audit = AuditLogger(MockSupabaseClient())
        entry = audit.log("rankings.purged", "template_rankings")
        assert entry.actor == "system"
        assert entry.actor_role is None

    def test_query_filters(self):
        audit = AuditLogger(MockSupabaseClient())
        audit.log("promotion.created", "promotion_request", "req-1", ADMIN)
        audit.log("promotion.created", "promotion_request", "req-2", ADMIN)
        audit.log("credit.approved", "author_credit", "c1", ADMIN)

        assert len(audit.query(entity_type="promotion_request")) == 2
        assert [e.entity_id for e in audit.query(entity_id="c1")] == ["c1"]
        assert len(audit.query(action="promotion.created", limit=1)) == 1

    def test_query_time_window(self):
        audit = AuditLogger(MockSupabaseClient())
        audit.log("promotion.created", "promotion_request", "req-1", ADMIN)
        now = datetime.now(timezone.utc)

        assert len(audit.query(since=now - timedelta(minutes=5))) == 1
        assert audit.query(since=now + timedelta(minutes=5)) == []
        assert audit.query(until=now - timedelta(minutes=5)) == []
