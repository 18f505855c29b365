# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Diagnostics over rating scenarios and rating table entries.

Nothing here blocks pricing; the engine prices any scenario. These checks
report whether the rating data behind a scenario is complete and whether a
rating entry follows the table conventions.
"""

from collections import Counter
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import Final

from beartype import beartype

from ...core.logging_utils import get_logger
from ...models.rating import (
    InsuranceCategory,
    RatingFactor,
    RatingValidationResult,
    VehicleAttributes,
)
from .rate_tables import RatingTableStore
from .rating_engine import PremiumRatingEngine

logger = get_logger(__name__)

MIN_MULTIPLIER: Final = Decimal("0.1000")
MAX_MULTIPLIER: Final = Decimal("5.0000")
MAX_VEHICLE_AGE_FOR_AC: Final = 15
MIN_ENGINE_CAPACITY: Final = 50
MAX_ENGINE_CAPACITY: Final = 8000
MIN_POWER: Final = 10
MAX_POWER: Final = 1000
VERY_OLD_VEHICLE_YEARS: Final = 50

STANDARD_KEY_PREFIXES: Final = (
    "VEHICLE_AGE_",
    "ENGINE_",
    "POWER_",
    "REGION_",
    "SEASONAL_",
    "OC_",
    "AC_",
    "NNW_",
    "HISTORICAL_",
    "FUTURE_",
)

# Key prefixes that belong to another category.
_FOREIGN_PREFIXES: Final = {
    InsuranceCategory.OC: ("AC_",),
    InsuranceCategory.AC: ("OC_",),
    InsuranceCategory.NNW: ("OC_", "AC_"),
}


def _shift_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # 29 February in a non-leap target year
        return day.replace(year=day.year + years, day=28)


class RatingValidationService:
    """Validate rating scenarios and rating table entries."""

    def __init__(
        self,
        store: RatingTableStore,
        engine: PremiumRatingEngine,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._engine = engine
        self._clock = clock

    @beartype
    async def validate_rating_factors(
        self,
        category: InsuranceCategory,
        vehicle: VehicleAttributes,
        policy_date: date,
    ) -> RatingValidationResult:
        """Check vehicle sanity, category rules and table coverage."""
        errors: list[str] = []
        warnings: list[str] = []
        today = self._clock()

        self._check_vehicle(vehicle, today, errors, warnings)
        self._check_category_rules(category, vehicle, policy_date, errors, warnings)
        await self._check_table_coverage(category, vehicle, policy_date, errors, warnings)
        self._check_business_rules(vehicle, policy_date, today, warnings)

        return RatingValidationResult(valid=not errors, errors=errors, warnings=warnings)

    @beartype
    async def validate_rating_factor(
        self, factor: RatingFactor
    ) -> RatingValidationResult:
        """Check a rating entry against range, overlap and naming rules.

        An inverted validity window is already rejected by ``RatingFactor``.
        """
        errors: list[str] = []
        warnings: list[str] = []

        if factor.multiplier < MIN_MULTIPLIER:
            errors.append(
                f"Multiplier {factor.multiplier} is below minimum allowed value "
                f"{MIN_MULTIPLIER}"
            )
        if factor.multiplier > MAX_MULTIPLIER:
            errors.append(
                f"Multiplier {factor.multiplier} exceeds maximum allowed value "
                f"{MAX_MULTIPLIER}"
            )

        overlapping = await self._store.find_overlapping(
            factor.category, factor.factor_key, factor.valid_from, factor.valid_to
        )
        others = [o for o in overlapping if factor.id is None or o.id != factor.id]
        if others:
            warnings.append(
                f"Rating table has overlapping validity periods with "
                f"{len(others)} other entries"
            )

        key = factor.factor_key
        if not key.startswith(STANDARD_KEY_PREFIXES):
            warnings.append(
                f"Rating key '{key}' does not follow standard naming conventions"
            )
        if key.startswith(_FOREIGN_PREFIXES[factor.category]):
            warnings.append(
                f"Rating key '{key}' seems inconsistent with insurance type "
                f"{factor.category.value}"
            )

        today = self._clock()
        if factor.is_expired(today):
            warnings.append(f"Rating entry {factor.description} has expired")
        elif factor.is_future_effective(today):
            warnings.append(
                f"Rating entry {factor.description} takes effect on "
                f"{factor.valid_from.isoformat()}"
            )

        result = RatingValidationResult(valid=not errors, errors=errors, warnings=warnings)
        if result.has_warnings:
            logger.info(
                "Rating entry %s raised %s warnings", factor.description, len(warnings)
            )
        return result

    @beartype
    async def missing_rating_factors(
        self,
        category: InsuranceCategory,
        vehicle: VehicleAttributes,
        policy_date: date,
    ) -> list[str]:
        """Rating keys the scenario needs that have no entry on ``policy_date``."""
        counts = await self._key_counts(category, policy_date)
        keys = self._engine.derive_factor_keys(category, vehicle, policy_date)
        return [key for key in keys.values() if not counts[key]]

    @beartype
    async def can_calculate_premium(
        self,
        category: InsuranceCategory,
        vehicle: VehicleAttributes,
        policy_date: date,
    ) -> bool:
        """True when the scenario validates without errors."""
        result = await self.validate_rating_factors(category, vehicle, policy_date)
        return result.valid

    async def _key_counts(
        self, category: InsuranceCategory, as_of: date
    ) -> Counter[str]:
        factors = await self._store.factors_for_date(category, as_of)
        return Counter(f.factor_key for f in factors)

    def _check_vehicle(
        self,
        vehicle: VehicleAttributes,
        today: date,
        errors: list[str],
        warnings: list[str],
    ) -> None:
        capacity = vehicle.engine_capacity
        if capacity < MIN_ENGINE_CAPACITY:
            errors.append(
                f"Engine capacity {capacity}cc is below minimum {MIN_ENGINE_CAPACITY}cc"
            )
        if capacity > MAX_ENGINE_CAPACITY:
            errors.append(
                f"Engine capacity {capacity}cc exceeds maximum {MAX_ENGINE_CAPACITY}cc"
            )

        if vehicle.power < MIN_POWER:
            errors.append(f"Power {vehicle.power}HP is below minimum {MIN_POWER}HP")
        if vehicle.power > MAX_POWER:
            errors.append(f"Power {vehicle.power}HP exceeds maximum {MAX_POWER}HP")

        if vehicle.first_registration_date > today:
            errors.append("First registration date cannot be in the future")

        age = vehicle.age_in_years(today)
        if age > VERY_OLD_VEHICLE_YEARS:
            warnings.append(
                f"Vehicle is very old ({age} years), premium calculation may not "
                f"be accurate"
            )

    def _check_category_rules(
        self,
        category: InsuranceCategory,
        vehicle: VehicleAttributes,
        policy_date: date,
        errors: list[str],
        warnings: list[str],
    ) -> None:
        age = vehicle.age_in_years(policy_date)
        if category == InsuranceCategory.AC:
            if age > MAX_VEHICLE_AGE_FOR_AC:
                errors.append(
                    f"AC insurance is not available for vehicles older than "
                    f"{MAX_VEHICLE_AGE_FOR_AC} years"
                )
            if vehicle.engine_capacity < 800:
                warnings.append(
                    "AC insurance for very small engines may have limited coverage "
                    "options"
                )
        elif category == InsuranceCategory.OC:
            if age > 30:
                warnings.append("Very old vehicles may have limited OC coverage options")
        elif age > 25:
            warnings.append("NNW insurance for very old vehicles may have different terms")

    async def _check_table_coverage(
        self,
        category: InsuranceCategory,
        vehicle: VehicleAttributes,
        policy_date: date,
        errors: list[str],
        warnings: list[str],
    ) -> None:
        counts = await self._key_counts(category, policy_date)
        keys = self._engine.derive_factor_keys(category, vehicle, policy_date)
        for key in keys.values():
            if not counts[key]:
                errors.append(
                    f"Missing rating factor: {key} for {category.value} insurance on "
                    f"{policy_date.isoformat()}"
                )
            elif counts[key] > 1:
                warnings.append(
                    f"Multiple rating entries found for factor: {key}, using the "
                    f"latest one"
                )

    def _check_business_rules(
        self,
        vehicle: VehicleAttributes,
        policy_date: date,
        today: date,
        warnings: list[str],
    ) -> None:
        if policy_date > _shift_years(today, 1):
            warnings.append(
                "Policy date is more than 1 year in the future, rating factors may "
                "not be accurate"
            )
        if policy_date < _shift_years(today, -2):
            warnings.append(
                "Policy date is more than 2 years in the past, using historical "
                "rating factors"
            )

        if vehicle.engine_capacity > 3000 and vehicle.power < 150:
            warnings.append(
                "Unusual combination: large engine capacity with low power output"
            )
        if vehicle.engine_capacity < 1000 and vehicle.power > 200:
            warnings.append(
                "Unusual combination: small engine capacity with high power output"
            )
