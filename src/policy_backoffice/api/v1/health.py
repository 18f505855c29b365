"""Health check endpoint reporting database and Redis reachability."""

import time

from beartype import beartype
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, Field

from ... import __version__
from ...core.cache import Cache
from ...core.database import Database
from ..dependencies import get_db, get_redis_cache

router = APIRouter()


class HealthStatus(BaseModel):
    """Individual component health status."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    status: str = Field(..., pattern=r"^(healthy|unhealthy)$")
    response_time_ms: float | None = Field(
        default=None, ge=0, description="Response time in milliseconds"
    )


class HealthResponse(BaseModel):
    """Overall health status response."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    status: str = Field(..., pattern=r"^(healthy|degraded)$")
    version: str = Field(...)
    components: dict[str, HealthStatus] = Field(default_factory=dict)


def _component(healthy: bool, started: float) -> HealthStatus:
    return HealthStatus(
        status="healthy" if healthy else "unhealthy",
        response_time_ms=round((time.perf_counter() - started) * 1000, 2),
    )


@router.get("/health")
@beartype
async def health_check(
    response: Response,
    db: Database = Depends(get_db),
    cache: Cache = Depends(get_redis_cache),
) -> HealthResponse:
    """Report whether the database and Redis are reachable.

    The database is required; an unreachable database answers 503.
    """
    started = time.perf_counter()
    database = _component(await db.health_check(), started)

    started = time.perf_counter()
    redis = _component(await cache.health_check(), started)

    healthy = database.status == "healthy"
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if healthy and redis.status == "healthy" else "degraded",
        version=__version__,
        components={"database": database, "redis": redis},
    )
