"""Audit log endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from rank_forge.core.audit import AuditEntry, AuditLogger, get_audit_logger

router = APIRouter()


@router.get("/audit", response_model=list[AuditEntry])
async def query_audit_log(
    entity_type: str | None = None,
    entity_id: str | None = None,
    actor: str | None = None,
    action: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int = Query(default=50, le=200),
    audit: AuditLogger = Depends(get_audit_logger),
) -> list[AuditEntry]:
    """Query audit log with filters."""
    return audit.query(
        entity_type=entity_type,
        entity_id=entity_id,
        actor=actor,
        action=action,
        since=since,
        until=until,
        limit=limit,
    )


@router.get("/audit/{entity_type}/{entity_id}", response_model=list[AuditEntry])
async def audit_entity(
    entity_type: str,
    entity_id: str,
    limit: int = Query(default=50, le=200),
    audit: AuditLogger = Depends(get_audit_logger),
) -> list[AuditEntry]:
    """Audit trail for one promotion request or credit."""
    return audit.query(entity_type=entity_type, entity_id=entity_id, limit=limit)
