"""HTTP surface tests against the real application with overridden services."""

from collections.abc import AsyncGenerator
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from policy_backoffice.api.dependencies import (
    get_db,
    get_policy_service,
    get_rating_engine,
    get_rating_store,
    get_rating_validation_service,
    get_redis_cache,
    get_registry,
)
from policy_backoffice.core.cache import Cache
from policy_backoffice.core.database import Database
from policy_backoffice.core.errors import ServiceError
from policy_backoffice.core.result_types import Err, Ok
from policy_backoffice.main import create_app
from policy_backoffice.models.policy import Policy
from policy_backoffice.models.rating import (
    InsuranceCategory,
    RatingFactor,
    RatingValidationResult,
)
from policy_backoffice.services.policy_service import PolicyService
from policy_backoffice.services.rating.rating_engine import PremiumRatingEngine
from policy_backoffice.services.rating.validation import RatingValidationService
from policy_backoffice.services.registry import RegistryService
from tests.fixtures.test_data import make_store, policy_row

VEHICLE_JSON = {
    "engine_capacity": 1400,
    "power": 110,
    "first_registration_date": "2022-03-01",
}


def _policy(**overrides) -> Policy:
    row = policy_row(**overrides)
    return Policy(**row)


@pytest.fixture
def policy_service() -> MagicMock:
    service = MagicMock(spec=PolicyService)
    for name in (
        "create",
        "update",
        "cancel",
        "get",
        "get_by_number",
        "list_by_client",
        "list_by_vehicle",
        "list_by_status",
        "list_by_category",
        "search_by_client_name",
        "list_currently_active",
        "list_expiring_within",
        "premium_breakdown",
    ):
        setattr(service, name, AsyncMock())
    return service


@pytest.fixture
def registry() -> MagicMock:
    registry = MagicMock(spec=RegistryService)
    registry.resolve_vehicle = AsyncMock()
    registry.resolve_client = AsyncMock()
    return registry


@pytest.fixture
def health_db() -> MagicMock:
    db = MagicMock(spec=Database)
    db.health_check = AsyncMock(return_value=True)
    return db


@pytest.fixture
def health_cache() -> MagicMock:
    cache = MagicMock(spec=Cache)
    cache.health_check = AsyncMock(return_value=True)
    return cache


@pytest.fixture
def app(
    policy_service: MagicMock,
    registry: MagicMock,
    health_db: MagicMock,
    health_cache: MagicMock,
    oc_table: dict,
) -> FastAPI:
    """Application whose services are test doubles; no pools are opened."""
    app = create_app()
    store = make_store(oc_table)
    engine = PremiumRatingEngine(store)

    app.dependency_overrides[get_db] = lambda: health_db
    app.dependency_overrides[get_redis_cache] = lambda: health_cache
    app.dependency_overrides[get_policy_service] = lambda: policy_service
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_rating_store] = lambda: store
    app.dependency_overrides[get_rating_engine] = lambda: engine
    app.dependency_overrides[get_rating_validation_service] = (
        lambda: RatingValidationService(store, engine, clock=lambda: date(2025, 6, 15))
    )
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["database"]["status"] == "healthy"
        assert data["components"]["redis"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_redis_down_is_degraded(
        self, client: AsyncClient, health_cache: MagicMock
    ) -> None:
        health_cache.health_check.return_value = False

        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_database_down_is_unavailable(
        self, client: AsyncClient, health_db: MagicMock
    ) -> None:
        health_db.health_check.return_value = False

        response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["components"]["database"]["status"] == "unhealthy"


class TestPolicyEndpoints:
    """Status mapping and payload handling of the policy routes."""

    @pytest.mark.asyncio
    async def test_create_returns_201(
        self, client: AsyncClient, policy_service: MagicMock
    ) -> None:
        policy = _policy()
        policy_service.create.return_value = Ok(policy)

        response = await client.post(
            "/api/v1/policies/",
            json={
                "client_id": str(policy.client_id),
                "vehicle_id": str(policy.vehicle_id),
                "category": "OC",
                "start_date": "2025-06-15",
                "end_date": "2026-06-14",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["policy_number"] == "OC-1A2B3C4D"
        assert Decimal(data["premium"]) == Decimal("960.00")
        payload = policy_service.create.await_args.args[0]
        assert payload.category == InsuranceCategory.OC
        assert payload.adjustment == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_create_validation_error_is_400(
        self, client: AsyncClient, policy_service: MagicMock
    ) -> None:
        policy_service.create.return_value = Err(
            ServiceError.validation("End date is required", "end_date")
        )

        response = await client.post(
            "/api/v1/policies/",
            json={
                "client_id": str(uuid4()),
                "vehicle_id": str(uuid4()),
                "category": "AC",
                "start_date": "2025-06-15",
            },
        )

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "End date is required"
        assert data["error_code"] == "VALIDATION"
        assert data["details"]["field"] == "end_date"

    @pytest.mark.asyncio
    async def test_malformed_payload_is_422(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/policies/", json={"category": "XYZ", "client_id": "nope"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_not_found_is_404(
        self, client: AsyncClient, policy_service: MagicMock
    ) -> None:
        policy_id = uuid4()
        policy_service.get.return_value = Err(ServiceError.not_found("Policy", policy_id))

        response = await client.get(f"/api/v1/policies/{policy_id}")

        assert response.status_code == 404
        assert response.json()["error"] == f"Policy not found with ID: {policy_id}"

    @pytest.mark.asyncio
    async def test_cancel_conflict_is_409(
        self, client: AsyncClient, policy_service: MagicMock
    ) -> None:
        policy_service.cancel.return_value = Err(
            ServiceError.state_conflict("Policy is already canceled")
        )

        response = await client.post(f"/api/v1/policies/{uuid4()}/cancel")

        assert response.status_code == 409
        assert response.json()["error_code"] == "STATE_CONFLICT"

    @pytest.mark.asyncio
    async def test_update_calculation_error_is_500(
        self, client: AsyncClient, policy_service: MagicMock
    ) -> None:
        policy_service.update.return_value = Err(
            ServiceError.calculation("OC", "connection reset")
        )

        response = await client.put(
            f"/api/v1/policies/{uuid4()}", json={"adjustment": "25.00"}
        )

        assert response.status_code == 500
        assert response.json()["details"]["context"] == {"category": "OC"}
        changes = policy_service.update.await_args.args[1]
        assert changes.adjustment == Decimal("25.00")
        assert changes.start_date is None

    @pytest.mark.asyncio
    async def test_update_rejects_status_changes(self, client: AsyncClient) -> None:
        response = await client.put(
            f"/api/v1/policies/{uuid4()}", json={"status": "CANCELED"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_by_number(
        self, client: AsyncClient, policy_service: MagicMock
    ) -> None:
        policy_service.get_by_number.return_value = Ok(_policy())

        response = await client.get("/api/v1/policies/by-number/OC-1A2B3C4D")

        assert response.status_code == 200
        policy_service.get_by_number.assert_awaited_once_with("OC-1A2B3C4D")

    @pytest.mark.asyncio
    async def test_list_by_status(
        self, client: AsyncClient, policy_service: MagicMock
    ) -> None:
        policy_service.list_by_status.return_value = [_policy(), _policy()]

        response = await client.get("/api/v1/policies/", params={"status": "ACTIVE"})

        assert response.status_code == 200
        assert response.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_list_by_client_name(
        self, client: AsyncClient, policy_service: MagicMock
    ) -> None:
        policy_service.search_by_client_name.return_value = []

        response = await client.get(
            "/api/v1/policies/", params={"client_name": "nowak"}
        )

        assert response.json() == {"items": [], "total": 0}
        policy_service.search_by_client_name.assert_awaited_once_with("nowak")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params", [{}, {"status": "ACTIVE", "category": "OC"}]
    )
    async def test_list_requires_exactly_one_filter(
        self, client: AsyncClient, policy_service: MagicMock, params: dict
    ) -> None:
        response = await client.get("/api/v1/policies/", params=params)

        assert response.status_code == 400
        policy_service.list_by_status.assert_not_awaited()
        policy_service.list_by_category.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_active_and_expiring(
        self, client: AsyncClient, policy_service: MagicMock
    ) -> None:
        policy_service.list_currently_active.return_value = [_policy()]
        policy_service.list_expiring_within.return_value = Ok([])

        active = await client.get("/api/v1/policies/active")
        expiring = await client.get("/api/v1/policies/expiring", params={"days": 14})

        assert active.json()["total"] == 1
        assert expiring.json()["total"] == 0
        policy_service.list_expiring_within.assert_awaited_once_with(14)

    @pytest.mark.asyncio
    async def test_negative_expiry_window_is_400(
        self, client: AsyncClient, policy_service: MagicMock
    ) -> None:
        policy_service.list_expiring_within.return_value = Err(
            ServiceError.validation("Days must be non-negative", "days")
        )

        response = await client.get("/api/v1/policies/expiring", params={"days": -1})

        assert response.status_code == 400


class TestRatingEndpoints:
    """Quotes and diagnostics."""

    @pytest.mark.asyncio
    async def test_quote_inline_vehicle(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/rating/quote",
            json={
                "category": "OC",
                "effective_date": "2025-06-15",
                "vehicle": VEHICLE_JSON,
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["final_premium"]) == Decimal("960.00")
        assert Decimal(data["factors"]["POWER"]) == Decimal("1")
        assert data["factor_keys"]["ENGINE_CAPACITY"] == "ENGINE_MEDIUM"

    @pytest.mark.asyncio
    async def test_quote_unknown_vehicle_is_404(
        self, client: AsyncClient, registry: MagicMock
    ) -> None:
        vehicle_id = uuid4()
        registry.resolve_vehicle.return_value = Err(
            ServiceError.not_found("Vehicle", vehicle_id)
        )

        response = await client.post(
            "/api/v1/rating/quote",
            json={
                "category": "AC",
                "effective_date": "2025-06-15",
                "vehicle_id": str(vehicle_id),
            },
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_quote_needs_exactly_one_vehicle_source(
        self, client: AsyncClient
    ) -> None:
        response = await client.post(
            "/api/v1/rating/quote",
            json={"category": "OC", "effective_date": "2025-06-15"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_factors(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/rating/missing-factors",
            json={
                "category": "OC",
                "effective_date": "2025-06-15",
                "vehicle": VEHICLE_JSON,
            },
        )

        assert response.status_code == 200
        data = response.json()
        # factors_for_date of the store double reports an empty table
        assert set(data["missing_factors"]) == {
            "VEHICLE_AGE_3",
            "ENGINE_MEDIUM",
            "POWER_MEDIUM",
            "OC_STANDARD",
        }
        assert data["can_calculate"] is False

    @pytest.mark.asyncio
    async def test_validate_scenario(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/rating/validate",
            json={
                "category": "OC",
                "effective_date": "2025-06-15",
                "vehicle": VEHICLE_JSON,
            },
        )

        assert response.status_code == 200
        result = RatingValidationResult(**response.json())
        assert not result.valid
        assert len(result.errors) == 4

    @pytest.mark.asyncio
    async def test_list_factors(self, client: AsyncClient, app: FastAPI) -> None:
        store = app.dependency_overrides[get_rating_store]()
        store.factors_for_date.return_value = [
            RatingFactor(
                id=1,
                category=InsuranceCategory.OC,
                factor_key="ENGINE_MEDIUM",
                multiplier=Decimal("1.2"),
                valid_from=date(2025, 1, 1),
            )
        ]

        response = await client.get(
            "/api/v1/rating/factors", params={"category": "OC", "as_of": "2025-06-15"}
        )

        assert response.status_code == 200
        assert [f["factor_key"] for f in response.json()] == ["ENGINE_MEDIUM"]
        store.factors_for_date.assert_awaited_once_with(
            InsuranceCategory.OC, date(2025, 6, 15)
        )

    @pytest.mark.asyncio
    async def test_validate_factor(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/rating/factors/validate",
            json={
                "category": "OC",
                "factor_key": "ENGINE_SMALL",
                "multiplier": "9.5",
                "valid_from": "2025-01-01",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is False
        assert "exceeds maximum" in data["errors"][0]

    @pytest.mark.asyncio
    async def test_invalidate_cache(self, client: AsyncClient, app: FastAPI) -> None:
        store = app.dependency_overrides[get_rating_store]()
        store.invalidate.return_value = 3

        response = await client.delete("/api/v1/rating/factors/cache")

        assert response.status_code == 200
        assert response.json() == {"cleared": 3}
        store.invalidate.assert_awaited_once_with()
