"""Promotion request endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from rank_forge.api.deps import get_actor, http_error
from rank_forge.api.models import PromotionCreate, PromotionImplement, PromotionReview
from rank_forge.core.errors import RankForgeError
from rank_forge.core.events import get_event_publisher
from rank_forge.core.promotion import (
    ImplementationResult,
    PromotionStatistics,
    PromotionWorkflow,
    get_promotion_workflow,
)
from rank_forge.db.models import (
    Actor,
    PromotionPriority,
    PromotionRequest,
    PromotionStatus,
)

router = APIRouter()


def _event_data(request: PromotionRequest) -> dict:
    return {
        "request_id": request.id,
        "personal_template_id": request.personal_template_id,
        "status": request.status.value,
        "quality_score": request.quality_score,
    }


@router.post("", response_model=PromotionRequest, status_code=201)
async def create_promotion(
    data: PromotionCreate,
    actor: Actor = Depends(get_actor),
    workflow: PromotionWorkflow = Depends(get_promotion_workflow),
) -> PromotionRequest:
    """Open a promotion request for a personal template."""
    try:
        request = workflow.create(
            personal_template_id=data.personal_template_id,
            actor=actor,
            reason=data.reason,
            detailed_justification=data.detailed_justification,
            priority=data.priority,
            credit_to_author=data.credit_to_author,
        )
    except RankForgeError as e:
        raise http_error(e)

    await get_event_publisher().publish_promotion_event("created", request.id, _event_data(request))
    return request


@router.get("", response_model=list[PromotionRequest])
async def list_promotions(
    status: PromotionStatus | None = None,
    priority: PromotionPriority | None = None,
    workflow: PromotionWorkflow = Depends(get_promotion_workflow),
) -> list[PromotionRequest]:
    return workflow.list_requests(status, priority)


@router.get("/pending", response_model=list[PromotionRequest])
async def list_pending(
    workflow: PromotionWorkflow = Depends(get_promotion_workflow),
) -> list[PromotionRequest]:
    return workflow.list_pending()


@router.get("/high-priority", response_model=list[PromotionRequest])
async def list_high_priority(
    workflow: PromotionWorkflow = Depends(get_promotion_workflow),
) -> list[PromotionRequest]:
    return workflow.list_high_priority()


@router.get("/stats", response_model=PromotionStatistics)
async def promotion_stats(
    workflow: PromotionWorkflow = Depends(get_promotion_workflow),
) -> PromotionStatistics:
    return workflow.get_statistics()


@router.get("/{request_id}", response_model=PromotionRequest)
async def get_promotion(
    request_id: str,
    workflow: PromotionWorkflow = Depends(get_promotion_workflow),
) -> PromotionRequest:
    try:
        return workflow.get(request_id)
    except RankForgeError as e:
        raise http_error(e)


@router.post("/{request_id}/review", response_model=PromotionRequest)
async def review_promotion(
    request_id: str,
    data: PromotionReview,
    actor: Actor = Depends(get_actor),
    workflow: PromotionWorkflow = Depends(get_promotion_workflow),
) -> PromotionRequest:
    """Approve, reject, or send back a pending request."""
    try:
        request = workflow.review(request_id, actor, data.action, data.comments, data.priority)
    except RankForgeError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await get_event_publisher().publish_promotion_event(
        data.action.value, request.id, _event_data(request)
    )
    return request


@router.post("/{request_id}/implement", response_model=ImplementationResult)
async def implement_promotion(
    request_id: str,
    data: PromotionImplement,
    actor: Actor = Depends(get_actor),
    workflow: PromotionWorkflow = Depends(get_promotion_workflow),
) -> ImplementationResult:
    """Complete an approved promotion and issue the author credit."""
    try:
        result = workflow.implement(
            request_id,
            actor,
            data.verified_template_id,
            data.implementation_notes,
            credit_type=data.credit_type,
        )
    except RankForgeError as e:
        raise http_error(e)

    publisher = get_event_publisher()
    await publisher.publish_promotion_event(
        "implemented",
        result.request.id,
        {**_event_data(result.request), "verified_template_id": data.verified_template_id},
    )
    if result.credit:
        await publisher.publish_credit_issued(
            {
                "credit_id": result.credit.id,
                "author_id": result.credit.original_author_id,
                "points_awarded": result.credit.points_awarded,
                "recognition_level": result.credit.recognition_level,
            },
            result.request.id,
        )
    return result
