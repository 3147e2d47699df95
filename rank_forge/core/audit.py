"""Audit trail for promotion and credit mutations."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Any

import structlog
from pydantic import BaseModel

from rank_forge.db.client import SupabaseClient, get_supabase_client, to_iso
from rank_forge.db.models import Actor

logger = structlog.get_logger()

TABLE = "audit_log"


class AuditEntry(BaseModel):
    id: str
    action: str
    entity_type: str
    entity_id: str | None = None
    actor: str
    actor_role: str | None = None
    details: dict[str, Any] = {}
    created_at: datetime | None = None


class AuditLogger:
    """Records who changed what, and answers filtered history queries."""

    def __init__(self, db: SupabaseClient) -> None:
        self.db = db

    def log(
        self,
        action: str,
        entity_type: str,
        entity_id: str | None = None,
        actor: Actor | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry:
        row = self.db.insert(
            TABLE,
            {
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "actor": actor.id if actor else "system",
                "actor_role": actor.role.value if actor else None,
                "details": details or {},
            },
        )
        logger.info("audit.logged", action=action, entity_type=entity_type, entity_id=entity_id)
        return AuditEntry(**row)

    def query(
        self,
        entity_type: str | None = None,
        entity_id: str | None = None,
        actor: str | None = None,
        action: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 50,
    ) -> list[AuditEntry]:
        """Newest entries first."""
        filters: dict[str, Any] = {}
        if entity_type:
            filters["entity_type"] = entity_type
        if entity_id:
            filters["entity_id"] = entity_id
        if actor:
            filters["actor"] = actor
        if action:
            filters["action"] = action

        rows = self.db.select(
            TABLE,
            filters=filters or None,
            gte={"created_at": to_iso(since)} if since else None,
            lt={"created_at": to_iso(until)} if until else None,
            order_by="created_at",
            ascending=False,
            limit=limit,
        )
        return [AuditEntry(**row) for row in rows]


@lru_cache
def get_audit_logger() -> AuditLogger:
    """Get cached audit logger instance."""
    return AuditLogger(get_supabase_client())
