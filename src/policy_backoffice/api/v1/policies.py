"""Policy lifecycle endpoints."""

from typing import Union
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.errors import ServiceError
from ...core.result_types import Err, Ok
from ...models.policy import Policy, PolicyCreate, PolicyStatus, PolicyUpdate
from ...models.rating import InsuranceCategory, PremiumBreakdown
from ...services.policy_service import PolicyService
from ..dependencies import get_policy_service
from ..response_patterns import ErrorResponse, handle_result

router = APIRouter()


class PolicyListResponse(BaseModel):
    """Response model for policy list endpoints."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    items: list[Policy] = Field(..., description="List of policies")
    total: int = Field(..., ge=0, description="Number of policies returned")


def _list_response(policies: list[Policy]) -> PolicyListResponse:
    return PolicyListResponse(items=policies, total=len(policies))


@router.post("/", status_code=status.HTTP_201_CREATED)
@beartype
async def create_policy(
    payload: PolicyCreate,
    response: Response,
    service: PolicyService = Depends(get_policy_service),
) -> Union[Policy, ErrorResponse]:
    """Create a policy; the premium and policy number are assigned here."""
    result = await service.create(payload)
    return handle_result(result, response, status.HTTP_201_CREATED)


@router.get("/")
@beartype
async def list_policies(
    response: Response,
    client_id: UUID | None = Query(default=None),
    vehicle_id: UUID | None = Query(default=None),
    status_filter: PolicyStatus | None = Query(default=None, alias="status"),
    category: InsuranceCategory | None = Query(default=None),
    client_name: str | None = Query(default=None, max_length=200),
    service: PolicyService = Depends(get_policy_service),
) -> Union[PolicyListResponse, ErrorResponse]:
    """List policies matching exactly one filter."""
    filters = {
        "client_id": client_id,
        "vehicle_id": vehicle_id,
        "status": status_filter,
        "category": category,
        "client_name": client_name,
    }
    given = [name for name, value in filters.items() if value is not None]
    if len(given) != 1:
        error = ServiceError.validation(
            "Exactly one filter is required: " + ", ".join(filters)
        )
        return handle_result(Err(error), response)

    if client_id is not None:
        policies = await service.list_by_client(client_id)
    elif vehicle_id is not None:
        policies = await service.list_by_vehicle(vehicle_id)
    elif status_filter is not None:
        policies = await service.list_by_status(status_filter)
    elif category is not None:
        policies = await service.list_by_category(category)
    else:
        policies = await service.search_by_client_name(client_name or "")

    return handle_result(Ok(_list_response(policies)), response)


@router.get("/active")
@beartype
async def list_active_policies(
    response: Response,
    service: PolicyService = Depends(get_policy_service),
) -> Union[PolicyListResponse, ErrorResponse]:
    """List ACTIVE policies in force today."""
    policies = await service.list_currently_active()
    return handle_result(Ok(_list_response(policies)), response)


@router.get("/expiring")
@beartype
async def list_expiring_policies(
    response: Response,
    days: int = Query(default=30),
    service: PolicyService = Depends(get_policy_service),
) -> Union[PolicyListResponse, ErrorResponse]:
    """List ACTIVE policies ending within ``days``."""
    result = await service.list_expiring_within(days)
    return handle_result(result.map(_list_response), response)


@router.get("/by-number/{policy_number}")
@beartype
async def get_policy_by_number(
    policy_number: str,
    response: Response,
    service: PolicyService = Depends(get_policy_service),
) -> Union[Policy, ErrorResponse]:
    """Get a policy by its business number."""
    result = await service.get_by_number(policy_number)
    return handle_result(result, response)


@router.get("/{policy_id}")
@beartype
async def get_policy(
    policy_id: UUID,
    response: Response,
    service: PolicyService = Depends(get_policy_service),
) -> Union[Policy, ErrorResponse]:
    """Get a policy by id."""
    result = await service.get(policy_id)
    return handle_result(result, response)


@router.put("/{policy_id}")
@beartype
async def update_policy(
    policy_id: UUID,
    payload: PolicyUpdate,
    response: Response,
    service: PolicyService = Depends(get_policy_service),
) -> Union[Policy, ErrorResponse]:
    """Update dates, adjustment and details; the premium is recalculated."""
    result = await service.update(policy_id, payload)
    return handle_result(result, response)


@router.post("/{policy_id}/cancel")
@beartype
async def cancel_policy(
    policy_id: UUID,
    response: Response,
    service: PolicyService = Depends(get_policy_service),
) -> Union[Policy, ErrorResponse]:
    """Cancel an active, unexpired policy."""
    result = await service.cancel(policy_id)
    return handle_result(result, response)


@router.get("/{policy_id}/premium-breakdown")
@beartype
async def get_premium_breakdown(
    policy_id: UUID,
    response: Response,
    service: PolicyService = Depends(get_policy_service),
) -> Union[PremiumBreakdown, ErrorResponse]:
    """Show how the premium of a stored policy is built up."""
    result = await service.premium_breakdown(policy_id)
    return handle_result(result, response)
