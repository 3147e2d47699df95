"""Ranking computation and query endpoints."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query

from rank_forge.api.models import ComputeRankingsRequest, RecalculateRequest
from rank_forge.core.events import get_event_publisher
from rank_forge.core.ranking import (
    CompetitionAnalysis,
    HistoryPoint,
    RankingCalculationResult,
    RankingEngine,
    TrendingSummary,
    get_ranking_engine,
)
from rank_forge.db.models import RankingPeriod, RankingRecord, TemplateType

router = APIRouter()


@router.post("/compute", response_model=RankingCalculationResult)
async def compute_rankings(
    data: ComputeRankingsRequest,
    engine: RankingEngine = Depends(get_ranking_engine),
) -> RankingCalculationResult:
    """Recompute rankings for the period containing ``at``."""
    result = await asyncio.to_thread(
        engine.compute_rankings, data.period, data.at, data.deadline_seconds
    )
    await get_event_publisher().publish_ranking_computed(
        result.model_dump(mode="json", exclude={"errors", "top_template"})
    )
    return result


@router.post("/recalculate", response_model=list[RankingCalculationResult])
async def recalculate_rankings(
    data: RecalculateRequest,
    engine: RankingEngine = Depends(get_ranking_engine),
) -> list[RankingCalculationResult]:
    """Backfill rankings over the last ``days_back`` days."""
    return await asyncio.to_thread(engine.recalculate_periods, data.periods, data.days_back)


@router.get("/trending", response_model=list[RankingRecord])
async def trending(
    period: RankingPeriod = RankingPeriod.WEEKLY,
    template_type: TemplateType | None = None,
    limit: int = Query(default=10, ge=1, le=100),
    engine: RankingEngine = Depends(get_ranking_engine),
) -> list[RankingRecord]:
    return engine.get_trending(period, template_type, limit)


@router.get("/trending/summary", response_model=TrendingSummary)
async def trending_summary(
    engine: RankingEngine = Depends(get_ranking_engine),
) -> TrendingSummary:
    """Top five per period plus templates trending in more than one."""
    return engine.get_trending_summary()


@router.get("/top", response_model=list[RankingRecord])
async def top_performers(
    period: RankingPeriod = RankingPeriod.MONTHLY,
    metric: str = "trend",
    template_type: TemplateType | None = None,
    limit: int = Query(default=10, ge=1, le=100),
    engine: RankingEngine = Depends(get_ranking_engine),
) -> list[RankingRecord]:
    try:
        return engine.get_top_performers(period, metric, limit, template_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{template_type}/{template_id}/competition", response_model=CompetitionAnalysis)
async def competition(
    template_type: TemplateType,
    template_id: str,
    period: RankingPeriod = RankingPeriod.WEEKLY,
    engine: RankingEngine = Depends(get_ranking_engine),
) -> CompetitionAnalysis:
    return engine.get_competition_analysis(template_id, template_type, period)


@router.get("/{template_type}/{template_id}/history", response_model=list[HistoryPoint])
async def history(
    template_type: TemplateType,
    template_id: str,
    period: RankingPeriod = RankingPeriod.WEEKLY,
    months: int = Query(default=6, ge=1, le=24),
    engine: RankingEngine = Depends(get_ranking_engine),
) -> list[HistoryPoint]:
    return engine.get_ranking_history(template_id, template_type, period, months)
