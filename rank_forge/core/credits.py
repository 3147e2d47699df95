"""Author credit issuer — attribution, points and badges for promoted templates."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

import structlog
from pydantic import BaseModel

from rank_forge.config import get_settings
from rank_forge.core.audit import AuditLogger, get_audit_logger
from rank_forge.core.errors import NotFoundError, PermissionDeniedError
from rank_forge.db.client import DuplicateRowError, to_iso
from rank_forge.db.credit_store import AuthorCreditStore, get_credit_store
from rank_forge.db.models import (
    Actor,
    AuthorCredit,
    CreditType,
    CreditVisibility,
    PromotionRequest,
    RecognitionLevel,
)

logger = structlog.get_logger()

PointsPolicy = Callable[[PromotionRequest], int]

RECOGNITION_ORDER = [
    RecognitionLevel.BRONZE,
    RecognitionLevel.SILVER,
    RecognitionLevel.GOLD,
    RecognitionLevel.PLATINUM,
]


def recognition_level(quality_score: float) -> RecognitionLevel:
    if quality_score >= 9:
        return RecognitionLevel.PLATINUM
    if quality_score >= 7.5:
        return RecognitionLevel.GOLD
    if quality_score >= 6:
        return RecognitionLevel.SILVER
    return RecognitionLevel.BRONZE


def proportional_points_policy(points_per_quality_point: int = 100) -> PointsPolicy:
    """Points proportional to the request's quality score."""

    def policy(request: PromotionRequest) -> int:
        return round(request.quality_score * points_per_quality_point)

    return policy


def metrics_points_policy(request: PromotionRequest) -> int:
    """Points from the metrics snapshot.

    100 for the promotion, one per use (max 200), two per unique user, plus
    bonuses for success rate above 90/95 and trend score above 60/80.
    """
    m = request.metrics
    points = 100 + min(m.total_usage, 200) + m.unique_users * 2

    if m.success_rate > 95:
        points += 50
    elif m.success_rate > 90:
        points += 25

    if m.trend_score > 80:
        points += 100
    elif m.trend_score > 60:
        points += 50
    return points


class AuthorStats(BaseModel):
    author_id: str
    total_credits: int
    visible_credits: int
    credits_by_type: dict[str, int]
    total_points: int
    badges: list[str]
    highest_recognition: RecognitionLevel | None
    recent_activity: int


class AuthorCreditIssuer:
    """Creates and manages author credits."""

    def __init__(
        self,
        store: AuthorCreditStore,
        points_policy: PointsPolicy | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        self.store = store
        self.points_policy = points_policy or proportional_points_policy()
        self.audit = audit

    def find_existing(
        self, verified_template_id: str, personal_template_id: str
    ) -> AuthorCredit | None:
        for credit in self.store.find_by_verified_template(verified_template_id):
            if credit.original_personal_template_id == personal_template_id:
                return credit
        return None

    def issue(
        self,
        request: PromotionRequest,
        verified_template_id: str,
        author_name: str | None = None,
        credit_type: CreditType = CreditType.FULL_AUTHOR,
    ) -> AuthorCredit:
        """Issue the credit for an implemented promotion.

        Issuing twice for the same (verified, personal) template pair returns
        the credit created the first time.
        """
        existing = self.find_existing(verified_template_id, request.personal_template_id)
        if existing:
            logger.info(
                "credit.already_issued",
                credit_id=existing.id,
                verified_template_id=verified_template_id,
            )
            return existing

        level = recognition_level(request.quality_score)
        try:
            credit = self.store.create(
                {
                    "verified_template_id": verified_template_id,
                    "original_personal_template_id": request.personal_template_id,
                    "original_author_id": request.original_author_id,
                    "promotion_request_id": request.id,
                    "credit_type": credit_type.value,
                    "credit_text": (
                        f"Originally created by {author_name or request.original_author_id}"
                    ),
                    "points_awarded": self.points_policy(request),
                    "badge_earned": f"{level.value}_author",
                    "recognition_level": level.value,
                    "visibility": CreditVisibility.PUBLIC.value,
                    "is_visible": True,
                    "metrics_at_promotion": request.metrics.model_dump(),
                    "promotion_date": to_iso(datetime.now(timezone.utc)),
                }
            )
        except DuplicateRowError:
            # A concurrent issue for the same pair won the insert.
            winner = self.find_existing(verified_template_id, request.personal_template_id)
            if winner is None:
                raise
            return winner

        logger.info(
            "credit.issued",
            credit_id=credit.id,
            author_id=credit.original_author_id,
            points=credit.points_awarded,
            level=level.value,
        )
        return credit

    def _get(self, credit_id: str) -> AuthorCredit:
        credit = self.store.find(credit_id)
        if not credit:
            raise NotFoundError(f"Author credit '{credit_id}' not found")
        return credit

    def update_visibility(
        self,
        credit_id: str,
        is_visible: bool,
        visibility: CreditVisibility | None = None,
        actor: Actor | None = None,
    ) -> AuthorCredit:
        """Show or hide a credit. Allowed for admins and the credited author."""
        credit = self._get(credit_id)
        if actor and not actor.is_admin and actor.id != credit.original_author_id:
            raise PermissionDeniedError("Only admins or the credited author can change visibility")

        changes: dict[str, Any] = {"is_visible": is_visible}
        if visibility:
            changes["visibility"] = visibility.value
        updated = self.store.update(credit_id, changes)
        if self.audit:
            self.audit.log("credit.visibility_changed", "author_credit", credit_id, actor, changes)
        return updated

    def approve_credit(self, credit_id: str, actor: Actor, notes: str | None = None) -> AuthorCredit:
        if not actor.is_admin:
            raise PermissionDeniedError("Only admins can approve author credits")
        self._get(credit_id)
        updated = self.store.update(
            credit_id,
            {
                "approved_by": actor.id,
                "approved_at": to_iso(datetime.now(timezone.utc)),
                "approval_notes": notes,
                "is_visible": True,
            },
        )
        if self.audit:
            self.audit.log("credit.approved", "author_credit", credit_id, actor, {"notes": notes})
        return updated

    def get_author_stats(self, author_id: str, now: datetime | None = None) -> AuthorStats:
        credits = self.store.find_by_author(author_id)
        now = now or datetime.now(timezone.utc)
        month_ago = now - timedelta(days=30)

        by_type: dict[str, int] = {}
        for c in credits:
            by_type[c.credit_type.value] = by_type.get(c.credit_type.value, 0) + 1

        badges: list[str] = []
        for c in credits:
            if c.badge_earned and c.badge_earned not in badges:
                badges.append(c.badge_earned)

        levels = [c.recognition_level for c in credits if c.recognition_level]
        return AuthorStats(
            author_id=author_id,
            total_credits=len(credits),
            visible_credits=sum(1 for c in credits if c.is_visible),
            credits_by_type=by_type,
            total_points=sum(c.points_awarded for c in credits),
            badges=badges,
            highest_recognition=max(levels, key=RECOGNITION_ORDER.index) if levels else None,
            recent_activity=sum(
                1 for c in credits if c.created_at and c.created_at >= month_ago
            ),
        )


@lru_cache
def get_credit_issuer() -> AuthorCreditIssuer:
    """Get cached author credit issuer instance."""
    settings = get_settings()
    return AuthorCreditIssuer(
        get_credit_store(),
        points_policy=proportional_points_policy(settings.credit_points_per_quality_point),
        audit=get_audit_logger(),
    )
