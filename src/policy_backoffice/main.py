"""Policy back-office application module."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from beartype import beartype
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.v1 import health_router
from .api.v1 import router as v1_router
from .core.cache import get_cache
from .core.config import get_settings
from .core.database import close_database, get_database
from .core.logging_utils import configure_logging, get_logger, level_from_name

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the database pool and Redis client for the app's lifetime."""
    settings = get_settings()
    logger.info("Starting %s in %s mode", settings.app_name, settings.api_env)

    db = get_database()
    await db.connect()

    cache = get_cache()
    await cache.connect()

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_database()
    await cache.disconnect()


@beartype
def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level), force=True)

    app = FastAPI(
        title=settings.app_name,
        description="Motor insurance back-office: premium rating and policy lifecycle",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router, tags=["health"])
    app.include_router(v1_router)

    return app


@beartype
def main() -> None:
    """Run the main application entry point."""
    settings = get_settings()

    uvicorn.run(
        "policy_backoffice.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
