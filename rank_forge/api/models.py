"""Pydantic request models for the API.

Responses reuse the row and result models from ``rank_forge.db.models`` and
the core modules directly.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from rank_forge.db.models import (
    CreditType,
    CreditVisibility,
    PromotionPriority,
    RankingPeriod,
    ReviewAction,
)


# --- Rankings ---


class ComputeRankingsRequest(BaseModel):
    """Recompute one period. ``at`` selects the period; defaults to now."""

    period: RankingPeriod
    at: datetime | None = None
    deadline_seconds: float | None = Field(default=None, gt=0)


class RecalculateRequest(BaseModel):
    periods: list[RankingPeriod] = Field(
        default_factory=lambda: [RankingPeriod.DAILY, RankingPeriod.WEEKLY, RankingPeriod.MONTHLY]
    )
    days_back: int = Field(default=30, ge=1, le=365)


# --- Promotions ---


class PromotionCreate(BaseModel):
    personal_template_id: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=500)
    detailed_justification: str | None = None
    priority: PromotionPriority = PromotionPriority.MEDIUM
    credit_to_author: bool = True


class PromotionReview(BaseModel):
    action: ReviewAction
    comments: str = Field(..., min_length=1)
    priority: PromotionPriority | None = None


class PromotionImplement(BaseModel):
    verified_template_id: str = Field(..., min_length=1)
    implementation_notes: str | None = None
    credit_type: CreditType = CreditType.FULL_AUTHOR


# --- Credits ---


class VisibilityUpdate(BaseModel):
    is_visible: bool
    visibility: CreditVisibility | None = None


class CreditApproval(BaseModel):
    notes: str | None = None
