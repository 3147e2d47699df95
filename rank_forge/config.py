"""Application configuration — reads from environment variables and Docker Swarm secrets."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


def _read_secret(name: str) -> str | None:
    """Read a Docker Swarm secret from /run/secrets/."""
    secret_path = Path(f"/run/secrets/{name}")
    if secret_path.exists():
        return secret_path.read_text().strip()
    return None


class Settings(BaseSettings):
    """Application settings with env var and secret support."""

    supabase_url: str = ""
    supabase_key: str = ""
    nats_url: str = "nats://localhost:4222"
    port: int = 8400
    log_level: str = "INFO"

    # Ranking batch
    ranking_timezone: str = "UTC"
    ranking_max_workers: int = 8
    ranking_deadline_seconds: float | None = None
    ranking_interval_seconds: int = 3600
    ranking_periods: list[str] = ["daily", "weekly", "monthly"]
    ranking_retention_days: int = 730
    scheduler_enabled: bool = False

    # Promotion gate
    promotion_min_usage: int = 50
    promotion_min_users: int = 10
    promotion_min_success_rate: float = 80.0

    # Author credits
    credit_points_per_quality_point: int = 100

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Override with Docker Swarm secrets if available
        if secret := _read_secret("supabase_url"):
            self.supabase_url = secret
        if secret := _read_secret("supabase_key"):
            self.supabase_key = secret
        if secret := _read_secret("nats_url"):
            self.nats_url = secret


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
