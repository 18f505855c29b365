# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Rating domain models: categories, rating factors and vehicle attributes."""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from beartype import beartype
from pydantic import Field, field_validator, model_validator

from .base import BaseModelConfig


class InsuranceCategory(str, Enum):
    """Insurance products offered by the back-office."""

    OC = "OC"  # Obligatory third-party liability
    AC = "AC"  # Autocasco, comprehensive vehicle coverage
    NNW = "NNW"  # Personal accident coverage


@beartype
class RatingFactor(BaseModelConfig):
    """Temporally valid multiplier for a (category, factor key) pair."""

    id: int | None = Field(default=None, description="Store identifier")
    category: InsuranceCategory = Field(..., description="Insurance category")
    factor_key: str = Field(
        ..., min_length=1, max_length=100, description="Rating factor key"
    )
    multiplier: Decimal = Field(
        ..., gt=Decimal("0"), max_digits=9, description="Positive multiplier"
    )
    valid_from: date = Field(..., description="First day of validity (inclusive)")
    valid_to: date | None = Field(
        default=None, description="Last day of validity (inclusive), open when None"
    )

    @model_validator(mode="after")
    @beartype
    def validate_window(self) -> "RatingFactor":
        """Ensure the validity window is not inverted."""
        if self.valid_to is not None and self.valid_from > self.valid_to:
            raise ValueError("Valid from date must be before valid to date")
        return self

    @beartype
    def is_valid_for(self, as_of: date) -> bool:
        """Check whether ``as_of`` falls inside the validity window."""
        if as_of < self.valid_from:
            return False
        return self.valid_to is None or as_of <= self.valid_to

    @beartype
    def is_expired(self, today: date) -> bool:
        """Check whether the entry has been retired before ``today``."""
        return self.valid_to is not None and today > self.valid_to

    @beartype
    def is_future_effective(self, today: date) -> bool:
        """Check whether the entry only becomes effective after ``today``."""
        return today < self.valid_from

    @beartype
    def applies_to(self, category: InsuranceCategory) -> bool:
        """Check whether the entry prices ``category``."""
        return self.category == category

    @property
    def description(self) -> str:
        """Human readable summary."""
        return f"{self.category.value} - {self.factor_key} (x{self.multiplier})"


@beartype
class VehicleAttributes(BaseModelConfig):
    """Technical vehicle data used to derive rating keys."""

    vehicle_id: UUID | None = Field(default=None, description="Registry identifier")
    engine_capacity: int = Field(..., gt=0, description="Displacement in cc")
    power: int = Field(..., gt=0, description="Engine power in HP")
    first_registration_date: date = Field(..., description="First registration")
    make: str | None = Field(default=None, max_length=50)
    model: str | None = Field(default=None, max_length=50)
    registration_number: str | None = Field(default=None, max_length=20)

    @beartype
    def age_in_years(self, as_of: date) -> int:
        """Full years elapsed between first registration and ``as_of``."""
        start = self.first_registration_date
        years = as_of.year - start.year
        if (as_of.month, as_of.day) < (start.month, start.day):
            years -= 1
        return years


@beartype
class ClientSummary(BaseModelConfig):
    """Client reference resolved through the registry."""

    client_id: UUID = Field(..., description="Registry identifier")
    full_name: str = Field(..., min_length=1, max_length=200)


@beartype
class PremiumBreakdown(BaseModelConfig):
    """Transparent view of a premium calculation."""

    category: InsuranceCategory = Field(...)
    effective_date: date = Field(...)
    base_premium: Decimal = Field(..., ge=Decimal("0"))
    factors: dict[str, Decimal] = Field(
        default_factory=dict, description="Named factor to applied multiplier"
    )
    factor_keys: dict[str, str] = Field(
        default_factory=dict, description="Named factor to rating key looked up"
    )
    final_premium: Decimal = Field(..., ge=Decimal("0"), decimal_places=2)

    @field_validator("factors")
    @classmethod
    @beartype
    def validate_factors(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        """Multipliers must be positive."""
        for name, multiplier in v.items():
            if multiplier <= 0:
                raise ValueError(f"Multiplier for {name} must be positive")
        return v


@beartype
class RatingValidationResult(BaseModelConfig):
    """Outcome of a rating-data diagnostic."""

    valid: bool = Field(...)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        """Whether any warning was raised."""
        return bool(self.warnings)
