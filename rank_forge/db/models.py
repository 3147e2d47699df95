"""Database models / type definitions.

These mirror the Supabase tables for type safety in Python code. Every store
converts rows into these models at the boundary, so the core never handles
raw dicts.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from rank_forge.db.client import to_iso


class TemplateType(str, Enum):
    """Template families that are ranked separately."""

    PERSONAL = "personal"
    VERIFIED = "verified"


class RankingPeriod(str, Enum):
    """Calendar buckets rankings are computed over."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class PromotionStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"


# A template may hold at most one request in these states.
ACTIVE_PROMOTION_STATUSES = (PromotionStatus.PENDING, PromotionStatus.UNDER_REVIEW)


class PromotionPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"


class CreditType(str, Enum):
    FULL_AUTHOR = "full_author"
    CONTRIBUTOR = "contributor"
    INSPIRATION = "inspiration"
    COLLABORATOR = "collaborator"
    REVIEWER = "reviewer"


class RecognitionLevel(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class CreditVisibility(str, Enum):
    PUBLIC = "public"
    RESTRICTED = "restricted"
    PRIVATE = "private"


class ActorRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


def _serialise(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _serialise(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_serialise(v) for v in value]
    return value


def dump_row(model: BaseModel, exclude: set[str] | None = None) -> dict[str, Any]:
    """Convert a model into a row dict suitable for Supabase."""
    return {k: _serialise(v) for k, v in model.model_dump(exclude=exclude).items()}


class UsageRecord(BaseModel):
    """Row from the template_usage_log table. Never written by this service."""

    model_config = ConfigDict(frozen=True)

    template_id: str
    template_type: TemplateType
    user_id: str
    usage_timestamp: datetime
    execution_time_ms: int = 0
    was_successful: bool = True


class UsageStats(BaseModel):
    """All-time usage totals for one template."""

    total_usage: int = 0
    unique_users: int = 0
    success_rate: float = 0.0
    average_execution_time: float = 0.0
    last_used: datetime | None = None


class RankingRecord(BaseModel):
    """Row from the template_rankings table."""

    template_id: str
    template_type: TemplateType
    period: RankingPeriod
    period_start: datetime
    period_end: datetime
    usage_count: int
    unique_users: int
    success_rate: float
    average_execution_time: float
    rank_position: int = 0
    trend_score: float = 0.0
    growth_rate: float = 0.0
    average_rating: float = 0.0
    total_ratings: int = 0
    favorite_count: int = 0
    weighted_score: float = 0.0
    velocity_score: float = 0.0

    @property
    def key(self) -> tuple[str, TemplateType, RankingPeriod, datetime]:
        return (self.template_id, self.template_type, self.period, self.period_start)


class PromotionMetrics(BaseModel):
    """Metrics snapshot taken when a promotion request is created."""

    total_usage: int
    unique_users: int
    success_rate: float
    average_rating: float = 0.0
    ranking_position: int = 0
    trend_score: float = 0.0
    growth_rate: float = 0.0


class PromotionRequest(BaseModel):
    """Row from the promotion_requests table."""

    id: str
    personal_template_id: str
    requested_by: str
    original_author_id: str
    reason: str
    detailed_justification: str | None = None
    priority: PromotionPriority = PromotionPriority.MEDIUM
    metrics: PromotionMetrics
    quality_score: float = 0.0
    credit_to_author: bool = True
    status: PromotionStatus = PromotionStatus.PENDING
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_comments: str | None = None
    verified_template_id: str | None = None
    implementation_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AuthorCredit(BaseModel):
    """Row from the author_credits table."""

    id: str
    verified_template_id: str
    original_personal_template_id: str
    original_author_id: str
    promotion_request_id: str | None = None
    credit_type: CreditType = CreditType.FULL_AUTHOR
    credit_text: str = ""
    points_awarded: int = 0
    badge_earned: str | None = None
    recognition_level: RecognitionLevel | None = None
    visibility: CreditVisibility = CreditVisibility.PUBLIC
    is_visible: bool = True
    metrics_at_promotion: dict[str, Any] | None = None
    promotion_date: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    approval_notes: str | None = None
    created_at: datetime | None = None


class TemplateInfo(BaseModel):
    """Catalog view of a template, used for eligibility checks only."""

    id: str
    template_type: TemplateType
    name: str
    author_id: str | None = None
    is_active: bool = True
    is_public: bool = False
    average_rating: float = 0.0
    rating_count: int = 0


class Actor(BaseModel):
    """The identity performing an operation. Not a table."""

    id: str
    role: ActorRole = ActorRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN
