"""API v1 router aggregation."""

from fastapi import APIRouter

from .health import router as health_router
from .policies import router as policies_router
from .rating import router as rating_router

router = APIRouter(prefix="/api/v1")

router.include_router(policies_router, prefix="/policies", tags=["policies"])
router.include_router(rating_router, prefix="/rating", tags=["rating"])

__all__ = ["health_router", "router"]
