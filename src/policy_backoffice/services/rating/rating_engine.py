# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Premium rating engine.

A premium is the category base premium multiplied by one multiplier per
derived rating key, rounded half-up to cents. Keys without a rating entry
valid on the effective date contribute the neutral multiplier 1.
"""

from datetime import date
from decimal import Decimal

from beartype import beartype
from pydantic import Field, field_validator

from ...core.errors import ServiceError
from ...core.logging_utils import get_logger
from ...core.result_types import Err, Ok, Result
from ...models.base import BaseModelConfig, to_cents
from ...models.rating import InsuranceCategory, PremiumBreakdown, VehicleAttributes
from .rate_tables import RatingTableStore

logger = get_logger(__name__)

NEUTRAL_MULTIPLIER = Decimal("1")

VEHICLE_AGE = "VEHICLE_AGE"
ENGINE_CAPACITY = "ENGINE_CAPACITY"
POWER = "POWER"


@beartype
class RatingConfig(BaseModelConfig):
    """Pricing tables driving key derivation and base premiums.

    Threshold lists are ``(inclusive upper bound, bucket)`` pairs in ascending
    order; values above the last bound fall into the ``*_overflow`` bucket.
    """

    base_premiums: dict[InsuranceCategory, Decimal] = Field(
        default_factory=lambda: {
            InsuranceCategory.OC: Decimal("800.00"),
            InsuranceCategory.AC: Decimal("1200.00"),
            InsuranceCategory.NNW: Decimal("300.00"),
        }
    )
    default_base_premium: Decimal = Field(default=Decimal("500.00"), gt=Decimal("0"))
    max_vehicle_age_bucket: int = Field(default=10, ge=0)
    engine_thresholds: list[tuple[int, str]] = Field(
        default_factory=lambda: [(1000, "SMALL"), (1600, "MEDIUM"), (2000, "LARGE")]
    )
    engine_overflow: str = Field(default="XLARGE", min_length=1)
    power_thresholds: list[tuple[int, str]] = Field(
        default_factory=lambda: [(75, "LOW"), (150, "MEDIUM"), (250, "HIGH")]
    )
    power_overflow: str = Field(default="VERY_HIGH", min_length=1)
    category_keys: dict[InsuranceCategory, str] = Field(
        default_factory=lambda: {
            InsuranceCategory.OC: "OC_STANDARD",
            InsuranceCategory.AC: "AC_COMPREHENSIVE",
            InsuranceCategory.NNW: "NNW_STANDARD",
        }
    )

    @field_validator("base_premiums")
    @classmethod
    @beartype
    def validate_base_premiums(
        cls, v: dict[InsuranceCategory, Decimal]
    ) -> dict[InsuranceCategory, Decimal]:
        """Base premiums must be positive."""
        for category, premium in v.items():
            if premium <= 0:
                raise ValueError(f"Base premium for {category.value} must be positive")
        return v

    @field_validator("engine_thresholds", "power_thresholds")
    @classmethod
    @beartype
    def validate_thresholds(cls, v: list[tuple[int, str]]) -> list[tuple[int, str]]:
        """Bounds must be strictly ascending."""
        bounds = [bound for bound, _ in v]
        if bounds != sorted(set(bounds)):
            raise ValueError("Threshold bounds must be strictly ascending")
        return v

    @beartype
    def base_premium_for(self, category: InsuranceCategory) -> Decimal:
        """Base premium for ``category``, falling back to the default."""
        return self.base_premiums.get(category, self.default_base_premium)

    @beartype
    def engine_bucket(self, engine_capacity: int) -> str:
        """Bucket name for an engine capacity in cc."""
        return _bucket(engine_capacity, self.engine_thresholds, self.engine_overflow)

    @beartype
    def power_bucket(self, power: int) -> str:
        """Bucket name for engine power in HP."""
        return _bucket(power, self.power_thresholds, self.power_overflow)

    @beartype
    def category_key(self, category: InsuranceCategory) -> str:
        """Category-specific rating key."""
        return self.category_keys.get(category, f"{category.value}_STANDARD")


def _bucket(value: int, thresholds: list[tuple[int, str]], overflow: str) -> str:
    for upper, name in thresholds:
        if value <= upper:
            return name
    return overflow


class PremiumRatingEngine:
    """Compute premiums from vehicle attributes and temporal rating tables."""

    def __init__(
        self, store: RatingTableStore, config: RatingConfig | None = None
    ) -> None:
        """Initialize the engine.

        Args:
            store: Rating table lookups.
            config: Pricing tables; production defaults when omitted.
        """
        self._store = store
        self._config = config or RatingConfig()

    @property
    def config(self) -> RatingConfig:
        return self._config

    @beartype
    def derive_factor_keys(
        self,
        category: InsuranceCategory,
        vehicle: VehicleAttributes,
        effective_date: date,
    ) -> dict[str, str]:
        """Map each named factor to the rating key it is looked up under."""
        age = vehicle.age_in_years(effective_date)
        age_bucket = min(max(age, 0), self._config.max_vehicle_age_bucket)
        return {
            VEHICLE_AGE: f"VEHICLE_AGE_{age_bucket}",
            ENGINE_CAPACITY: f"ENGINE_{self._config.engine_bucket(vehicle.engine_capacity)}",
            POWER: f"POWER_{self._config.power_bucket(vehicle.power)}",
            f"{category.value}_COVERAGE": self._config.category_key(category),
        }

    @beartype
    async def calculate_premium(
        self,
        category: InsuranceCategory | None,
        vehicle: VehicleAttributes | None,
        effective_date: date | None,
    ) -> Result[Decimal, ServiceError]:
        """Calculate the rounded premium for a vehicle in ``category``."""
        breakdown = await self.calculate_premium_breakdown(
            category, vehicle, effective_date
        )
        return breakdown.map(lambda b: b.final_premium)

    @beartype
    async def calculate_premium_breakdown(
        self,
        category: InsuranceCategory | None,
        vehicle: VehicleAttributes | None,
        effective_date: date | None,
    ) -> Result[PremiumBreakdown, ServiceError]:
        """Calculate the premium along with every multiplier applied."""
        invalid = self._validate_parameters(category, vehicle, effective_date)
        if invalid is not None:
            return Err(invalid)
        assert category is not None
        assert vehicle is not None
        assert effective_date is not None

        try:
            base_premium = self._config.base_premium_for(category)
            factor_keys = self.derive_factor_keys(category, vehicle, effective_date)

            factors: dict[str, Decimal] = {}
            for name, key in factor_keys.items():
                multiplier = await self._store.lookup(category, key, effective_date)
                factors[name] = (
                    multiplier if multiplier is not None else NEUTRAL_MULTIPLIER
                )

            premium = base_premium
            for multiplier in factors.values():
                premium *= multiplier

            breakdown = PremiumBreakdown(
                category=category,
                effective_date=effective_date,
                base_premium=base_premium,
                factors=factors,
                factor_keys=factor_keys,
                final_premium=to_cents(premium),
            )
        except Exception as e:
            logger.exception(
                "Premium calculation failed for %s on %s", category.value, effective_date
            )
            return Err(ServiceError.calculation(category.value, str(e)))

        logger.debug(
            "Priced %s on %s at %s", category.value, effective_date, breakdown.final_premium
        )
        return Ok(breakdown)

    @staticmethod
    def _validate_parameters(
        category: InsuranceCategory | None,
        vehicle: VehicleAttributes | None,
        effective_date: date | None,
    ) -> ServiceError | None:
        if category is None:
            return ServiceError.validation(
                "Insurance category cannot be null", "category"
            )
        if vehicle is None:
            return ServiceError.validation("Vehicle cannot be null", "vehicle")
        if effective_date is None:
            return ServiceError.validation(
                "Effective date cannot be null", "effective_date"
            )
        return None
