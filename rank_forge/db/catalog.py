"""Template catalog and user-feedback lookups.

Both are owned by other services; this module only reads them.
"""

from __future__ import annotations

from functools import lru_cache

from rank_forge.db.client import SupabaseClient, get_supabase_client
from rank_forge.db.models import TemplateInfo, TemplateType


class TemplateCatalog:
    """Read access to personal and verified template metadata."""

    TABLE = "templates"

    def __init__(self, db: SupabaseClient) -> None:
        self.db = db

    def find_by_id(self, template_id: str, template_type: TemplateType) -> TemplateInfo | None:
        rows = self.db.select(
            self.TABLE,
            filters={"id": template_id, "template_type": template_type.value},
            limit=1,
        )
        return TemplateInfo(**rows[0]) if rows else None

    def list_active(self, template_type: TemplateType) -> list[TemplateInfo]:
        """Active templates of a type, in a stable id order."""
        rows = self.db.select(
            self.TABLE,
            filters={"template_type": template_type.value, "is_active": True},
            order_by="id",
        )
        return [TemplateInfo(**row) for row in rows]


class FeedbackStore:
    """Ratings and favorites aggregated per template."""

    RATINGS_TABLE = "template_ratings"
    FAVORITES_TABLE = "template_favorites"

    def __init__(self, db: SupabaseClient) -> None:
        self.db = db

    def rating_summary(self, template_id: str, template_type: TemplateType) -> tuple[float, int]:
        """Return (average rating 0-5, number of ratings)."""
        rows = self.db.select(
            self.RATINGS_TABLE,
            filters={"template_id": template_id, "template_type": template_type.value},
        )
        ratings = [float(r["rating"]) for r in rows if r.get("rating") is not None]
        if not ratings:
            return 0.0, 0
        return sum(ratings) / len(ratings), len(ratings)

    def favorite_count(self, template_id: str, template_type: TemplateType) -> int:
        rows = self.db.select(
            self.FAVORITES_TABLE,
            filters={"template_id": template_id, "template_type": template_type.value},
        )
        return len(rows)


@lru_cache
def get_catalog() -> TemplateCatalog:
    """Get cached template catalog instance."""
    return TemplateCatalog(get_supabase_client())


@lru_cache
def get_feedback_store() -> FeedbackStore:
    """Get cached feedback store instance."""
    return FeedbackStore(get_supabase_client())
