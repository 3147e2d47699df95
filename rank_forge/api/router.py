"""Main API router — aggregates all endpoint modules."""

from fastapi import APIRouter

from rank_forge.api.audit import router as audit_router
from rank_forge.api.credits import router as credits_router
from rank_forge.api.promotions import router as promotions_router
from rank_forge.api.rankings import router as rankings_router

api_router = APIRouter()

api_router.include_router(rankings_router, prefix="/rankings", tags=["rankings"])
api_router.include_router(promotions_router, prefix="/promotions", tags=["promotions"])
api_router.include_router(credits_router, prefix="/credits", tags=["credits"])
api_router.include_router(audit_router, tags=["audit"])
