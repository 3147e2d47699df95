"""API client for the RankForge REST API."""

from __future__ import annotations

from typing import Any

import httpx


class RankClient:
    """HTTP client wrapping the RankForge API endpoints."""

    def __init__(
        self,
        base_url: str = "http://localhost:8400",
        actor_id: str | None = None,
        actor_role: str = "user",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {}
        if actor_id:
            headers["X-Actor-Id"] = actor_id
            headers["X-Actor-Role"] = actor_role
        self._client = httpx.Client(base_url=f"{self.base_url}/api/v1", headers=headers, timeout=120)

    def _handle(self, resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail", resp.text)
            except ValueError:
                detail = resp.text
            raise RuntimeError(f"API error ({resp.status_code}): {detail}")
        return resp.json()

    # --- Rankings ---

    def compute_rankings(self, period: str, deadline_seconds: float | None = None) -> dict:
        data: dict[str, Any] = {"period": period}
        if deadline_seconds is not None:
            data["deadline_seconds"] = deadline_seconds
        return self._handle(self._client.post("/rankings/compute", json=data))

    def recalculate(self, periods: list[str], days_back: int) -> list[dict]:
        return self._handle(
            self._client.post(
                "/rankings/recalculate", json={"periods": periods, "days_back": days_back}
            )
        )

    def trending(self, **params: Any) -> list[dict]:
        return self._handle(self._client.get("/rankings/trending", params=params))

    def trending_summary(self) -> dict:
        return self._handle(self._client.get("/rankings/trending/summary"))

    def top_performers(self, **params: Any) -> list[dict]:
        return self._handle(self._client.get("/rankings/top", params=params))

    def competition(self, template_type: str, template_id: str, period: str) -> dict:
        return self._handle(
            self._client.get(
                f"/rankings/{template_type}/{template_id}/competition", params={"period": period}
            )
        )

    def history(self, template_type: str, template_id: str, period: str, months: int) -> list[dict]:
        return self._handle(
            self._client.get(
                f"/rankings/{template_type}/{template_id}/history",
                params={"period": period, "months": months},
            )
        )

    # --- Promotions ---

    def list_promotions(self, **params: Any) -> list[dict]:
        return self._handle(self._client.get("/promotions", params=params))

    def pending_promotions(self) -> list[dict]:
        return self._handle(self._client.get("/promotions/pending"))

    def promotion_stats(self) -> dict:
        return self._handle(self._client.get("/promotions/stats"))

    def get_promotion(self, request_id: str) -> dict:
        return self._handle(self._client.get(f"/promotions/{request_id}"))

    def create_promotion(self, data: dict) -> dict:
        return self._handle(self._client.post("/promotions", json=data))

    def review_promotion(self, request_id: str, data: dict) -> dict:
        return self._handle(self._client.post(f"/promotions/{request_id}/review", json=data))

    def implement_promotion(self, request_id: str, data: dict) -> dict:
        return self._handle(self._client.post(f"/promotions/{request_id}/implement", json=data))

    # --- Credits ---

    def author_credits(self, author_id: str) -> list[dict]:
        return self._handle(self._client.get(f"/credits/author/{author_id}"))

    def author_stats(self, author_id: str) -> dict:
        return self._handle(self._client.get(f"/credits/author/{author_id}/stats"))

    def set_credit_visibility(self, credit_id: str, data: dict) -> dict:
        return self._handle(self._client.patch(f"/credits/{credit_id}/visibility", json=data))

    # --- Audit ---

    def audit_query(self, **params: Any) -> list[dict]:
        return self._handle(self._client.get("/audit", params=params))
