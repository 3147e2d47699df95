"""Shared request dependencies and domain-error translation."""

from __future__ import annotations

from fastapi import Header, HTTPException

from rank_forge.core.errors import (
    DuplicateRequestError,
    EligibilityError,
    NotFoundError,
    PermissionDeniedError,
    RankForgeError,
    StateTransitionError,
)
from rank_forge.db.models import Actor, ActorRole


def get_actor(
    x_actor_id: str = Header(...),
    x_actor_role: ActorRole = Header(ActorRole.USER),
) -> Actor:
    """Acting identity from request headers. Identity is not verified here."""
    return Actor(id=x_actor_id, role=x_actor_role)


def http_error(exc: RankForgeError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PermissionDeniedError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, EligibilityError):
        return HTTPException(
            status_code=422, detail={"message": str(exc), "criteria": exc.criteria}
        )
    if isinstance(exc, (StateTransitionError, DuplicateRequestError)):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
