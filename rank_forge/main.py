"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rank_forge.api.router import api_router
from rank_forge.config import get_settings
from rank_forge.core.events import get_event_publisher
from rank_forge.core.ranking import get_ranking_engine
from rank_forge.core.scheduler import RankingScheduler
from rank_forge.db.client import get_supabase_client
from rank_forge.db.models import RankingPeriod
from rank_forge.utils.logging import setup_logging

logger = structlog.get_logger()

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("rankforge.starting", port=settings.port)

    get_supabase_client()

    publisher = get_event_publisher()
    await publisher.connect()

    scheduler_task = None
    if settings.scheduler_enabled:
        scheduler = RankingScheduler(
            engine=get_ranking_engine(),
            periods=[RankingPeriod(p) for p in settings.ranking_periods],
            interval_seconds=settings.ranking_interval_seconds,
            retention_days=settings.ranking_retention_days,
            publisher=publisher,
        )
        scheduler_task = asyncio.create_task(scheduler.run_forever())
        logger.info(
            "rankforge.scheduler_started",
            periods=settings.ranking_periods,
            interval_seconds=settings.ranking_interval_seconds,
        )

    yield

    if scheduler_task:
        scheduler_task.cancel()
        try:
            await scheduler_task
        except asyncio.CancelledError:
            pass

    await publisher.disconnect()
    logger.info("rankforge.shutdown")


app = FastAPI(
    title="RankForge",
    description="Template usage rankings and promotion workflow",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Service info endpoint."""
    return {"service": "rankforge", "version": VERSION}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "service": "rankforge", "version": VERSION}
