"""Promotion workflow — moving high-performing personal templates into the verified catalog.

Request lifecycle::

    pending ──approve──────────► approved ──implement──► implemented
       │  ╲                          ▲
       │   ╲──reject──► rejected     │
       │                             │
       └──request_changes──► under_review ──approve──┘
                                 (reject / request_changes also allowed)

Every status change is a compare-and-set against the status the caller saw,
so two concurrent reviewers cannot both win.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache

import structlog
from pydantic import BaseModel

from rank_forge.config import get_settings
from rank_forge.core.audit import AuditLogger, get_audit_logger
from rank_forge.core.credits import AuthorCreditIssuer, get_credit_issuer
from rank_forge.core.errors import (
    DuplicateRequestError,
    EligibilityError,
    NotFoundError,
    PermissionDeniedError,
    StateTransitionError,
)
from rank_forge.db.catalog import TemplateCatalog, get_catalog
from rank_forge.db.client import to_iso
from rank_forge.db.models import (
    Actor,
    AuthorCredit,
    CreditType,
    PromotionMetrics,
    PromotionPriority,
    PromotionRequest,
    PromotionStatus,
    ReviewAction,
    TemplateType,
    UsageStats,
)
from rank_forge.db.promotion_store import PromotionStore, get_promotion_store
from rank_forge.db.ranking_store import RankingStore, get_ranking_store
from rank_forge.db.usage_store import UsageStore, get_usage_store

logger = structlog.get_logger()

IMPLEMENT = "implement"

TRANSITIONS: dict[tuple[PromotionStatus, str], PromotionStatus] = {
    (PromotionStatus.PENDING, ReviewAction.APPROVE.value): PromotionStatus.APPROVED,
    (PromotionStatus.PENDING, ReviewAction.REJECT.value): PromotionStatus.REJECTED,
    (PromotionStatus.PENDING, ReviewAction.REQUEST_CHANGES.value): PromotionStatus.UNDER_REVIEW,
    (PromotionStatus.UNDER_REVIEW, ReviewAction.APPROVE.value): PromotionStatus.APPROVED,
    (PromotionStatus.UNDER_REVIEW, ReviewAction.REJECT.value): PromotionStatus.REJECTED,
    (PromotionStatus.UNDER_REVIEW, ReviewAction.REQUEST_CHANGES.value): PromotionStatus.UNDER_REVIEW,
    (PromotionStatus.APPROVED, IMPLEMENT): PromotionStatus.IMPLEMENTED,
}


def transition(current: PromotionStatus, action: ReviewAction | str) -> PromotionStatus:
    """Next status for ``action`` taken in ``current``; raises StateTransitionError if illegal."""
    name = action.value if isinstance(action, Enum) else action
    try:
        return TRANSITIONS[(current, name)]
    except KeyError:
        raise StateTransitionError(current.value, name) from None


def quality_score(metrics: PromotionMetrics) -> float:
    """0-10 score: usage 3, users 2.5, success 2.5, trend 2."""
    score = (
        min(metrics.total_usage / 100, 1) * 3
        + min(metrics.unique_users / 25, 1) * 2.5
        + (metrics.success_rate / 100) * 2.5
        + min(metrics.trend_score / 100, 1) * 2
    )
    return round(score, 2)


class ImplementationResult(BaseModel):
    request: PromotionRequest
    credit: AuthorCredit | None = None


class PromotionStatistics(BaseModel):
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    approval_rate: float
    average_processing_hours: float


class PromotionWorkflow:
    """Creates, reviews and implements promotion requests."""

    def __init__(
        self,
        store: PromotionStore,
        catalog: TemplateCatalog,
        usage: UsageStore,
        rankings: RankingStore,
        credits: AuthorCreditIssuer,
        audit: AuditLogger | None = None,
        min_usage: int = 50,
        min_users: int = 10,
        min_success_rate: float = 80.0,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.usage = usage
        self.rankings = rankings
        self.credits = credits
        self.audit = audit
        self.min_usage = min_usage
        self.min_users = min_users
        self.min_success_rate = min_success_rate

    @staticmethod
    def _require_admin(actor: Actor, what: str) -> None:
        if not actor.is_admin:
            raise PermissionDeniedError(f"Only admins can {what}")

    def _audit(self, action: str, request: PromotionRequest, actor: Actor, **details) -> None:
        if self.audit:
            self.audit.log(action, "promotion_request", request.id, actor, details)

    def unmet_criteria(self, stats: UsageStats) -> list[str]:
        """Every eligibility criterion the usage totals fail, in a fixed order."""
        unmet = []
        if stats.total_usage < self.min_usage:
            unmet.append(f"total usage {stats.total_usage} is below the minimum of {self.min_usage}")
        if stats.unique_users < self.min_users:
            unmet.append(
                f"unique users {stats.unique_users} is below the minimum of {self.min_users}"
            )
        if stats.success_rate < self.min_success_rate:
            unmet.append(
                f"success rate {stats.success_rate:.1f}% is below the minimum of "
                f"{self.min_success_rate:g}%"
            )
        return unmet

    def get(self, request_id: str) -> PromotionRequest:
        request = self.store.find(request_id)
        if not request:
            raise NotFoundError(f"Promotion request '{request_id}' not found")
        return request

    def create(
        self,
        personal_template_id: str,
        actor: Actor,
        reason: str,
        detailed_justification: str | None = None,
        priority: PromotionPriority = PromotionPriority.MEDIUM,
        credit_to_author: bool = True,
    ) -> PromotionRequest:
        """Open a promotion request for a personal template."""
        self._require_admin(actor, "create promotion requests")

        template = self.catalog.find_by_id(personal_template_id, TemplateType.PERSONAL)
        if not template:
            raise NotFoundError(f"Personal template '{personal_template_id}' not found")

        problems = []
        if not template.is_active:
            problems.append("template is not active")
        if not template.is_public:
            problems.append("template is not public")
        if not template.author_id:
            problems.append("template has no author")
        if problems:
            raise EligibilityError(problems)

        if self.store.find_active_for_template(personal_template_id):
            raise DuplicateRequestError(
                f"An active promotion request already exists for template '{personal_template_id}'"
            )

        stats = self.usage.template_stats(personal_template_id, TemplateType.PERSONAL)
        unmet = self.unmet_criteria(stats)
        if unmet:
            logger.info(
                "promotion.ineligible", template_id=personal_template_id, criteria=unmet
            )
            raise EligibilityError(unmet)

        latest = self.rankings.find_by_template(
            personal_template_id, TemplateType.PERSONAL, limit=1
        )
        ranking = latest[0] if latest else None
        metrics = PromotionMetrics(
            total_usage=stats.total_usage,
            unique_users=stats.unique_users,
            success_rate=stats.success_rate,
            average_rating=ranking.average_rating if ranking else template.average_rating,
            ranking_position=ranking.rank_position if ranking else 0,
            trend_score=ranking.trend_score if ranking else 0.0,
            growth_rate=ranking.growth_rate if ranking else 0.0,
        )

        request = self.store.create(
            {
                "personal_template_id": personal_template_id,
                "requested_by": actor.id,
                "original_author_id": template.author_id,
                "reason": reason,
                "detailed_justification": detailed_justification,
                "priority": priority.value,
                "metrics": metrics.model_dump(),
                "quality_score": quality_score(metrics),
                "credit_to_author": credit_to_author,
                "status": PromotionStatus.PENDING.value,
            }
        )
        self._audit("promotion.created", request, actor, quality_score=request.quality_score)
        logger.info(
            "promotion.created",
            request_id=request.id,
            template_id=personal_template_id,
            quality_score=request.quality_score,
        )
        return request

    def _apply(
        self,
        request: PromotionRequest,
        action: str,
        changes: dict,
    ) -> PromotionRequest:
        new_status = transition(request.status, action)
        updated = self.store.update_status(
            request.id, new_status, expected=[request.status], changes=changes
        )
        if updated is None:
            # Someone else moved the request on since we read it.
            current = self.store.find(request.id)
            raise StateTransitionError(
                current.status.value if current else request.status.value, action
            )
        return updated

    def review(
        self,
        request_id: str,
        actor: Actor,
        action: ReviewAction,
        comments: str,
        priority: PromotionPriority | None = None,
    ) -> PromotionRequest:
        self._require_admin(actor, "review promotion requests")
        if not comments or not comments.strip():
            raise ValueError("Review comments are required")

        request = self.get(request_id)
        changes = {
            "reviewed_by": actor.id,
            "reviewed_at": to_iso(datetime.now(timezone.utc)),
            "review_comments": comments.strip(),
        }
        if priority:
            changes["priority"] = priority.value

        updated = self._apply(request, action.value, changes)
        self._audit(
            f"promotion.{action.value}",
            updated,
            actor,
            from_status=request.status.value,
            to_status=updated.status.value,
        )
        logger.info(
            "promotion.reviewed",
            request_id=request_id,
            action=action.value,
            status=updated.status.value,
        )
        return updated

    def approve(self, request_id: str, actor: Actor, comments: str) -> PromotionRequest:
        return self.review(request_id, actor, ReviewAction.APPROVE, comments)

    def reject(self, request_id: str, actor: Actor, comments: str) -> PromotionRequest:
        return self.review(request_id, actor, ReviewAction.REJECT, comments)

    def request_changes(self, request_id: str, actor: Actor, comments: str) -> PromotionRequest:
        return self.review(request_id, actor, ReviewAction.REQUEST_CHANGES, comments)

    def implement(
        self,
        request_id: str,
        actor: Actor,
        verified_template_id: str,
        implementation_notes: str | None = None,
        credit_type: CreditType = CreditType.FULL_AUTHOR,
    ) -> ImplementationResult:
        """Mark an approved request implemented and credit the original author.

        The credit is issued before the status moves on, so a failed issue
        leaves the request approved and the whole call can be retried. Issuing
        is idempotent, so a retry never creates a second credit.
        """
        self._require_admin(actor, "implement promotions")
        request = self.get(request_id)
        transition(request.status, IMPLEMENT)

        credit = None
        if request.credit_to_author:
            credit = self.credits.issue(request, verified_template_id, credit_type=credit_type)

        updated = self._apply(
            request,
            IMPLEMENT,
            {
                "verified_template_id": verified_template_id,
                "implementation_notes": implementation_notes,
            },
        )

        self._audit(
            "promotion.implemented",
            updated,
            actor,
            verified_template_id=verified_template_id,
            credit_id=credit.id if credit else None,
        )
        logger.info(
            "promotion.implemented",
            request_id=request_id,
            verified_template_id=verified_template_id,
            credited=credit is not None,
        )
        return ImplementationResult(request=updated, credit=credit)

    def list_requests(
        self,
        status: PromotionStatus | None = None,
        priority: PromotionPriority | None = None,
    ) -> list[PromotionRequest]:
        return self.store.list_all(
            statuses=[status] if status else None,
            priorities=[priority] if priority else None,
        )

    def list_pending(self) -> list[PromotionRequest]:
        return self.store.find_pending()

    def list_high_priority(self) -> list[PromotionRequest]:
        return self.store.find_high_priority()

    def get_statistics(self) -> PromotionStatistics:
        requests = self.store.list_all()

        by_status = {s.value: 0 for s in PromotionStatus}
        by_priority = {p.value: 0 for p in PromotionPriority}
        for r in requests:
            by_status[r.status.value] += 1
            by_priority[r.priority.value] += 1

        accepted = by_status["approved"] + by_status["implemented"]
        decided = accepted + by_status["rejected"]

        durations = [
            (r.reviewed_at - r.created_at).total_seconds() / 3600
            for r in requests
            if r.reviewed_at and r.created_at
        ]
        return PromotionStatistics(
            total=len(requests),
            by_status=by_status,
            by_priority=by_priority,
            approval_rate=round(accepted / decided * 100, 2) if decided else 0.0,
            average_processing_hours=round(sum(durations) / len(durations), 2) if durations else 0.0,
        )


@lru_cache
def get_promotion_workflow() -> PromotionWorkflow:
    """Get cached promotion workflow instance."""
    settings = get_settings()
    return PromotionWorkflow(
        store=get_promotion_store(),
        catalog=get_catalog(),
        usage=get_usage_store(),
        rankings=get_ranking_store(),
        credits=get_credit_issuer(),
        audit=get_audit_logger(),
        min_usage=settings.promotion_min_usage,
        min_users=settings.promotion_min_users,
        min_success_rate=settings.promotion_min_success_rate,
    )
