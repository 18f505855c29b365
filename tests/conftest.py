"""Test configuration and shared fixtures for the policy back-office.

Collaborators are replaced with ``MagicMock``/``AsyncMock`` doubles; rating
tables are served from an in-memory mapping keyed by (category, factor key).
"""

from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import fakeredis
import pytest

from policy_backoffice.core.cache import Cache
from policy_backoffice.core.config import Settings, clear_settings_cache
from policy_backoffice.core.database import Database
from policy_backoffice.models.rating import InsuranceCategory, VehicleAttributes

TODAY = date(2025, 6, 15)


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    """Never leak a cached Settings instance between tests."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def today() -> date:
    """Fixed 'today' used by injected clocks."""
    return TODAY


@pytest.fixture
def clock(today: date) -> Any:
    """Clock returning the fixed test day."""
    return lambda: today


@pytest.fixture
def settings() -> Settings:
    """Settings with a small policy-number attempt limit."""
    return Settings(policy_number_max_attempts=3)


@pytest.fixture
def mock_db() -> MagicMock:
    """Database double; ``transaction()`` yields the same double."""
    db = MagicMock(spec=Database)
    db.fetchval = AsyncMock(return_value=None)
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="UPDATE 0")

    @asynccontextmanager
    async def transaction() -> AsyncIterator[MagicMock]:
        yield db

    db.transaction = MagicMock(side_effect=transaction)
    return db


@pytest.fixture
def mock_cache() -> MagicMock:
    """Create mock cache for testing."""
    cache = MagicMock(spec=Cache)
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock(return_value=True)
    cache.delete = AsyncMock(return_value=True)
    cache.clear_pattern = AsyncMock(return_value=0)
    return cache


@pytest.fixture
def fake_redis_cache() -> Cache:
    """Cache backed by an in-process fake Redis."""
    return Cache(fakeredis.FakeAsyncRedis(decode_responses=True))


@pytest.fixture
def vehicle() -> VehicleAttributes:
    """Three-year-old mid-range car: VEHICLE_AGE_3, ENGINE_MEDIUM, POWER_MEDIUM."""
    return VehicleAttributes(
        vehicle_id=uuid4(),
        engine_capacity=1400,
        power=110,
        first_registration_date=date(2022, 3, 1),
        make="Skoda",
        model="Octavia",
        registration_number="WA12345",
    )


@pytest.fixture
def oc_table() -> dict[tuple[InsuranceCategory, str], Decimal]:
    """OC entries valid on the test day; POWER_MEDIUM is absent."""
    return {
        (InsuranceCategory.OC, "VEHICLE_AGE_3"): Decimal("1.0"),
        (InsuranceCategory.OC, "ENGINE_MEDIUM"): Decimal("1.2"),
        (InsuranceCategory.OC, "OC_STANDARD"): Decimal("1.0"),
    }
