"""Premium quotes, rating table views and rating diagnostics."""

from datetime import date
from typing import Union
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Depends, Query, Response
from pydantic import Field, model_validator

from ...core.errors import ServiceError
from ...core.result_types import Err, Ok, Result
from ...models.base import BaseModelConfig
from ...models.rating import (
    InsuranceCategory,
    PremiumBreakdown,
    RatingFactor,
    RatingValidationResult,
    VehicleAttributes,
)
from ...services.rating.rate_tables import RatingTableStore
from ...services.rating.rating_engine import PremiumRatingEngine
from ...services.rating.validation import RatingValidationService
from ...services.registry import RegistryService
from ..dependencies import (
    get_rating_engine,
    get_rating_store,
    get_rating_validation_service,
    get_registry,
)
from ..response_patterns import ErrorResponse, handle_result

router = APIRouter()


@beartype
class RatingRequest(BaseModelConfig):
    """A rating scenario: category, vehicle and effective date.

    The vehicle is given either inline or as a registry reference.
    """

    category: InsuranceCategory = Field(...)
    effective_date: date = Field(...)
    vehicle_id: UUID | None = Field(default=None)
    vehicle: VehicleAttributes | None = Field(default=None)

    @model_validator(mode="after")
    @beartype
    def validate_vehicle_source(self) -> "RatingRequest":
        """Exactly one of ``vehicle_id`` and ``vehicle`` must be given."""
        if (self.vehicle_id is None) == (self.vehicle is None):
            raise ValueError("Provide either vehicle_id or vehicle")
        return self


@beartype
class MissingFactorsResponse(BaseModelConfig):
    """Rating keys without a rating entry on the effective date."""

    missing_factors: list[str] = Field(default_factory=list)
    can_calculate: bool = Field(...)


@beartype
class CacheInvalidationResponse(BaseModelConfig):
    """Number of memoized rating lookups dropped."""

    cleared: int = Field(..., ge=0)


async def _resolve_vehicle(
    request: RatingRequest, registry: RegistryService
) -> Result[VehicleAttributes, ServiceError]:
    if request.vehicle is not None:
        return Ok(request.vehicle)
    assert request.vehicle_id is not None
    return await registry.resolve_vehicle(request.vehicle_id)


@router.post("/quote")
@beartype
async def quote_premium(
    request: RatingRequest,
    response: Response,
    engine: PremiumRatingEngine = Depends(get_rating_engine),
    registry: RegistryService = Depends(get_registry),
) -> Union[PremiumBreakdown, ErrorResponse]:
    """Price a scenario without creating a policy."""
    vehicle_result = await _resolve_vehicle(request, registry)
    if isinstance(vehicle_result, Err):
        return handle_result(vehicle_result, response)

    result = await engine.calculate_premium_breakdown(
        request.category, vehicle_result.value, request.effective_date
    )
    return handle_result(result, response)


@router.get("/factors")
@beartype
async def list_rating_factors(
    category: InsuranceCategory,
    as_of: date | None = Query(default=None),
    store: RatingTableStore = Depends(get_rating_store),
) -> list[RatingFactor]:
    """Rating entries of ``category`` valid on ``as_of`` (today by default)."""
    if as_of is None:
        return await store.current_factors(category, date.today())
    return await store.factors_for_date(category, as_of)


@router.post("/validate")
@beartype
async def validate_scenario(
    request: RatingRequest,
    response: Response,
    validator: RatingValidationService = Depends(get_rating_validation_service),
    registry: RegistryService = Depends(get_registry),
) -> Union[RatingValidationResult, ErrorResponse]:
    """Diagnose a rating scenario."""
    vehicle_result = await _resolve_vehicle(request, registry)
    if isinstance(vehicle_result, Err):
        return handle_result(vehicle_result, response)

    result = await validator.validate_rating_factors(
        request.category, vehicle_result.value, request.effective_date
    )
    return handle_result(Ok(result), response)


@router.post("/missing-factors")
@beartype
async def missing_factors(
    request: RatingRequest,
    response: Response,
    validator: RatingValidationService = Depends(get_rating_validation_service),
    registry: RegistryService = Depends(get_registry),
) -> Union[MissingFactorsResponse, ErrorResponse]:
    """List rating keys a scenario needs but the tables lack."""
    vehicle_result = await _resolve_vehicle(request, registry)
    if isinstance(vehicle_result, Err):
        return handle_result(vehicle_result, response)

    vehicle = vehicle_result.value
    missing = await validator.missing_rating_factors(
        request.category, vehicle, request.effective_date
    )
    can_calculate = await validator.can_calculate_premium(
        request.category, vehicle, request.effective_date
    )
    return handle_result(
        Ok(MissingFactorsResponse(missing_factors=missing, can_calculate=can_calculate)),
        response,
    )


@router.post("/factors/validate")
@beartype
async def validate_rating_factor(
    factor: RatingFactor,
    validator: RatingValidationService = Depends(get_rating_validation_service),
) -> RatingValidationResult:
    """Check a rating entry against the table conventions."""
    return await validator.validate_rating_factor(factor)


@router.delete("/factors/cache")
@beartype
async def invalidate_rating_cache(
    store: RatingTableStore = Depends(get_rating_store),
) -> CacheInvalidationResponse:
    """Forget memoized lookups once the rating tables have been changed."""
    return CacheInvalidationResponse(cleared=await store.invalidate())
