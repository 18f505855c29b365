# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""FastAPI dependencies wiring the services onto the shared pools.

Endpoints depend on the service builders below; tests replace them through
``app.dependency_overrides``.
"""

from fastapi import Depends

from ..core.cache import Cache, get_cache
from ..core.config import Settings, get_settings
from ..core.database import Database, get_database
from ..services.policy_service import PolicyService
from ..services.rating.rate_tables import RatingTableStore
from ..services.rating.rating_engine import PremiumRatingEngine
from ..services.rating.validation import RatingValidationService
from ..services.registry import RegistryService


def get_db() -> Database:
    """Provide the process-wide database handle."""
    return get_database()


def get_redis_cache() -> Cache:
    """Provide the process-wide cache handle."""
    return get_cache()


def get_rating_store(
    db: Database = Depends(get_db),
    cache: Cache = Depends(get_redis_cache),
    settings: Settings = Depends(get_settings),
) -> RatingTableStore:
    """Provide a rating table store, memoized when enabled in settings."""
    return RatingTableStore(
        db,
        cache if settings.rating_cache_enabled else None,
        settings.rating_cache_ttl_seconds,
    )


def get_rating_engine(
    store: RatingTableStore = Depends(get_rating_store),
) -> PremiumRatingEngine:
    """Provide the premium rating engine with production pricing tables."""
    return PremiumRatingEngine(store)


def get_registry(db: Database = Depends(get_db)) -> RegistryService:
    """Provide client and vehicle resolution."""
    return RegistryService(db)


def get_rating_validation_service(
    store: RatingTableStore = Depends(get_rating_store),
    engine: PremiumRatingEngine = Depends(get_rating_engine),
) -> RatingValidationService:
    """Provide rating diagnostics."""
    return RatingValidationService(store, engine)


def get_policy_service(
    db: Database = Depends(get_db),
    registry: RegistryService = Depends(get_registry),
    engine: PremiumRatingEngine = Depends(get_rating_engine),
    settings: Settings = Depends(get_settings),
) -> PolicyService:
    """Provide the policy lifecycle service."""
    return PolicyService(db, registry, engine, settings=settings)
