"""Policy domain models with strict validation and business rules.

This module defines the stored policy record, the creation and update
payloads accepted by the lifecycle manager, and the category-specific
coverage details.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from beartype import beartype
from pydantic import Field, model_validator

from .base import BaseModelConfig, IdentifiableModel
from .rating import InsuranceCategory


class PolicyStatus(str, Enum):
    """Stored policy states.

    Expiry is not a stored state; it is derived from ``end_date``.
    """

    ACTIVE = "ACTIVE"
    CANCELED = "CANCELED"


class ACVariant(str, Enum):
    """Coverage variants offered for AC insurance."""

    STANDARD = "STANDARD"
    MAXIMUM = "MAXIMUM"


@beartype
class CategoryDetails(BaseModelConfig):
    """Category-specific coverage fields.

    OC uses ``guaranteed_sum`` and ``coverage_area``; AC uses ``ac_variant``,
    ``sum_insured``, ``coverage_scope``, ``deductible`` and ``workshop_type``;
    NNW uses ``sum_insured`` and ``covered_persons``.
    """

    guaranteed_sum: Decimal | None = Field(default=None, ge=Decimal("0"))
    coverage_area: str | None = Field(default=None, max_length=500)
    ac_variant: ACVariant | None = Field(default=None)
    sum_insured: Decimal | None = Field(default=None, ge=Decimal("0"))
    coverage_scope: str | None = Field(default=None, max_length=2000)
    deductible: Decimal | None = Field(default=None, ge=Decimal("0"))
    workshop_type: str | None = Field(default=None, max_length=50)
    covered_persons: str | None = Field(default=None, max_length=2000)

    @beartype
    def is_complete_for(self, category: InsuranceCategory) -> bool:
        """Check that the fields required by ``category`` are present."""
        if category == InsuranceCategory.OC:
            return self.guaranteed_sum is not None and bool(self.coverage_area)
        if category == InsuranceCategory.AC:
            return (
                self.ac_variant is not None
                and self.sum_insured is not None
                and bool(self.coverage_scope)
            )
        return self.sum_insured is not None and bool(self.covered_persons)

    @beartype
    def merged_with(self, other: "CategoryDetails | None") -> "CategoryDetails":
        """Overlay the fields explicitly set on ``other``."""
        if other is None:
            return self
        return self.model_copy(update=other.model_dump(exclude_none=True))

    @beartype
    def to_json(self) -> dict[str, Any]:
        """Serialise for the JSONB column."""
        return self.model_dump(mode="json", exclude_none=True)


@beartype
class PolicyCreate(BaseModelConfig):
    """Payload for creating a new policy.

    Dates are optional at the type level so that missing values surface as
    service validation errors rather than schema errors.
    """

    client_id: UUID = Field(..., description="Reference to the policy holder")
    vehicle_id: UUID = Field(..., description="Reference to the insured vehicle")
    category: InsuranceCategory = Field(..., description="Insurance category")
    start_date: date | None = Field(default=None, description="Coverage start")
    end_date: date | None = Field(default=None, description="Coverage end")
    adjustment: Decimal = Field(
        default=Decimal("0.00"),
        decimal_places=2,
        max_digits=10,
        description="Signed discount (negative) or surcharge (positive)",
    )
    details: CategoryDetails = Field(default_factory=CategoryDetails)


@beartype
class PolicyUpdate(BaseModelConfig):
    """Payload for updating an existing policy.

    ``policy_number``, ``issue_date`` and ``status`` are not part of the
    payload; they cannot change through an update.
    """

    start_date: date | None = Field(default=None, description="New coverage start")
    end_date: date | None = Field(default=None, description="New coverage end")
    adjustment: Decimal | None = Field(
        default=None,
        decimal_places=2,
        max_digits=10,
        description="New discount/surcharge; None resets it to zero",
    )
    details: CategoryDetails | None = Field(
        default=None, description="Category fields to overlay on the stored ones"
    )


@beartype
class Policy(IdentifiableModel):
    """Stored policy record."""

    policy_number: str = Field(..., min_length=1, max_length=50)
    issue_date: date = Field(..., description="Date the policy was issued")
    start_date: date = Field(..., description="Date when coverage begins")
    end_date: date = Field(..., description="Date when coverage ends")
    status: PolicyStatus = Field(..., description="Stored lifecycle status")
    category: InsuranceCategory = Field(..., description="Insurance category")
    premium: Decimal = Field(
        ...,
        ge=Decimal("0"),
        decimal_places=2,
        max_digits=10,
        description="System-computed premium",
    )
    adjustment: Decimal = Field(
        default=Decimal("0.00"), decimal_places=2, max_digits=10
    )
    client_id: UUID = Field(..., description="Reference to the policy holder")
    vehicle_id: UUID = Field(..., description="Reference to the insured vehicle")
    details: CategoryDetails = Field(default_factory=CategoryDetails)

    @model_validator(mode="after")
    @beartype
    def validate_dates(self) -> "Policy":
        """Ensure issue <= start <= end."""
        if self.start_date > self.end_date:
            raise ValueError("Start date must be before end date")
        if self.issue_date > self.start_date:
            raise ValueError("Start date cannot be before the issue date")
        return self

    @property
    def total_payable(self) -> Decimal:
        """Premium plus the signed discount/surcharge."""
        return self.premium + self.adjustment

    @property
    def coverage_days(self) -> int:
        """Coverage duration in days."""
        return (self.end_date - self.start_date).days

    @property
    def is_canceled(self) -> bool:
        """Check if the policy has been canceled."""
        return self.status == PolicyStatus.CANCELED

    @property
    def description(self) -> str:
        """Category and policy number for display purposes."""
        return f"{self.category.value} Policy {self.policy_number}"

    @beartype
    def is_expired(self, today: date) -> bool:
        """A policy is expired once ``today`` is past its end date."""
        return today > self.end_date

    @beartype
    def is_currently_active(self, today: date) -> bool:
        """ACTIVE and ``today`` within [start_date, end_date]."""
        return (
            self.status == PolicyStatus.ACTIVE
            and self.start_date <= today <= self.end_date
        )
