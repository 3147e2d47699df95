"""Author credit endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from rank_forge.api.deps import get_actor, http_error
from rank_forge.api.models import CreditApproval, VisibilityUpdate
from rank_forge.core.credits import AuthorCreditIssuer, AuthorStats, get_credit_issuer
from rank_forge.core.errors import RankForgeError
from rank_forge.db.models import Actor, AuthorCredit

router = APIRouter()


@router.get("/template/{verified_template_id}", response_model=list[AuthorCredit])
async def credits_for_template(
    verified_template_id: str,
    include_hidden: bool = False,
    issuer: AuthorCreditIssuer = Depends(get_credit_issuer),
) -> list[AuthorCredit]:
    return issuer.store.find_by_verified_template(
        verified_template_id, only_visible=not include_hidden
    )


@router.get("/author/{author_id}", response_model=list[AuthorCredit])
async def credits_for_author(
    author_id: str,
    include_hidden: bool = False,
    issuer: AuthorCreditIssuer = Depends(get_credit_issuer),
) -> list[AuthorCredit]:
    return issuer.store.find_by_author(author_id, only_visible=not include_hidden)


@router.get("/author/{author_id}/stats", response_model=AuthorStats)
async def author_stats(
    author_id: str,
    issuer: AuthorCreditIssuer = Depends(get_credit_issuer),
) -> AuthorStats:
    return issuer.get_author_stats(author_id)


@router.patch("/{credit_id}/visibility", response_model=AuthorCredit)
async def update_visibility(
    credit_id: str,
    data: VisibilityUpdate,
    actor: Actor = Depends(get_actor),
    issuer: AuthorCreditIssuer = Depends(get_credit_issuer),
) -> AuthorCredit:
    try:
        return issuer.update_visibility(credit_id, data.is_visible, data.visibility, actor)
    except RankForgeError as e:
        raise http_error(e)


@router.post("/{credit_id}/approve", response_model=AuthorCredit)
async def approve_credit(
    credit_id: str,
    data: CreditApproval,
    actor: Actor = Depends(get_actor),
    issuer: AuthorCreditIssuer = Depends(get_credit_issuer),
) -> AuthorCredit:
    try:
        return issuer.approve_credit(credit_id, actor, data.notes)
    except RankForgeError as e:
        raise http_error(e)
