"""Unit tests for the premium rating engine."""

import itertools
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from policy_backoffice.core.errors import ErrorKind
from policy_backoffice.core.result_types import Err, Ok
from policy_backoffice.models.rating import (
    InsuranceCategory,
    RatingFactor,
    VehicleAttributes,
)
from policy_backoffice.services.rating.rating_engine import (
    PremiumRatingEngine,
    RatingConfig,
)
from tests.fixtures.test_data import make_store

EFFECTIVE = date(2025, 6, 15)


def _vehicle(capacity: int = 1400, power: int = 110, registered: date = date(2022, 3, 1)) -> VehicleAttributes:
    return VehicleAttributes(
        engine_capacity=capacity, power=power, first_registration_date=registered
    )


class TestFactorKeys:
    """Rating key derivation."""

    @pytest.mark.parametrize(
        ("capacity", "bucket"),
        [
            (999, "ENGINE_SMALL"),
            (1000, "ENGINE_SMALL"),
            (1001, "ENGINE_MEDIUM"),
            (1600, "ENGINE_MEDIUM"),
            (2000, "ENGINE_LARGE"),
            (2001, "ENGINE_XLARGE"),
        ],
    )
    def test_engine_thresholds_are_inclusive(self, capacity: int, bucket: str) -> None:
        engine = PremiumRatingEngine(make_store({}))
        keys = engine.derive_factor_keys(
            InsuranceCategory.OC, _vehicle(capacity=capacity), EFFECTIVE
        )
        assert keys["ENGINE_CAPACITY"] == bucket

    @pytest.mark.parametrize(
        ("power", "bucket"),
        [
            (75, "POWER_LOW"),
            (76, "POWER_MEDIUM"),
            (150, "POWER_MEDIUM"),
            (250, "POWER_HIGH"),
            (251, "POWER_VERY_HIGH"),
        ],
    )
    def test_power_thresholds_are_inclusive(self, power: int, bucket: str) -> None:
        engine = PremiumRatingEngine(make_store({}))
        keys = engine.derive_factor_keys(
            InsuranceCategory.OC, _vehicle(power=power), EFFECTIVE
        )
        assert keys["POWER"] == bucket

    @pytest.mark.parametrize(
        ("registered", "age_key"),
        [
            (date(2025, 6, 1), "VEHICLE_AGE_0"),
            (date(2022, 6, 16), "VEHICLE_AGE_2"),
            (date(2022, 6, 15), "VEHICLE_AGE_3"),
            (date(2015, 6, 15), "VEHICLE_AGE_10"),
            (date(1990, 1, 1), "VEHICLE_AGE_10"),
            (date(2026, 1, 1), "VEHICLE_AGE_0"),
        ],
    )
    def test_vehicle_age_is_clamped(self, registered: date, age_key: str) -> None:
        engine = PremiumRatingEngine(make_store({}))
        keys = engine.derive_factor_keys(
            InsuranceCategory.OC, _vehicle(registered=registered), EFFECTIVE
        )
        assert keys["VEHICLE_AGE"] == age_key

    @pytest.mark.parametrize(
        ("category", "name", "key"),
        [
            (InsuranceCategory.OC, "OC_COVERAGE", "OC_STANDARD"),
            (InsuranceCategory.AC, "AC_COVERAGE", "AC_COMPREHENSIVE"),
            (InsuranceCategory.NNW, "NNW_COVERAGE", "NNW_STANDARD"),
        ],
    )
    def test_category_key(self, category: InsuranceCategory, name: str, key: str) -> None:
        engine = PremiumRatingEngine(make_store({}))
        keys = engine.derive_factor_keys(category, _vehicle(), EFFECTIVE)
        assert keys[name] == key
        assert len(keys) == 4


class TestCalculatePremium:
    """Premium calculation."""

    @pytest.mark.asyncio
    async def test_oc_example(self, oc_table: dict, vehicle: VehicleAttributes) -> None:
        """800.00 x 1.0 x 1.2 x (absent POWER_MEDIUM -> 1) x 1.0 = 960.00."""
        engine = PremiumRatingEngine(make_store(oc_table))

        result = await engine.calculate_premium(InsuranceCategory.OC, vehicle, EFFECTIVE)

        assert result == Ok(Decimal("960.00"))
        assert result.unwrap().as_tuple().exponent == -2

    @pytest.mark.asyncio
    async def test_six_year_old_vehicle(self) -> None:
        table = {
            (InsuranceCategory.OC, "VEHICLE_AGE_6"): Decimal("1.20"),
            (InsuranceCategory.OC, "ENGINE_MEDIUM"): Decimal("1.00"),
            (InsuranceCategory.OC, "POWER_MEDIUM"): Decimal("1.00"),
            (InsuranceCategory.OC, "OC_STANDARD"): Decimal("1.00"),
        }
        engine = PremiumRatingEngine(make_store(table))
        vehicle = _vehicle(capacity=1500, power=140, registered=date(2018, 2, 1))

        result = await engine.calculate_premium(
            InsuranceCategory.OC, vehicle, date(2024, 2, 1)
        )

        assert result.unwrap() == Decimal("960.00")

    @pytest.mark.asyncio
    async def test_breakdown_reports_neutral_multiplier_for_absent_entry(
        self, oc_table: dict, vehicle: VehicleAttributes
    ) -> None:
        engine = PremiumRatingEngine(make_store(oc_table))

        breakdown = (
            await engine.calculate_premium_breakdown(
                InsuranceCategory.OC, vehicle, EFFECTIVE
            )
        ).unwrap()

        assert breakdown.base_premium == Decimal("800.00")
        assert breakdown.factors == {
            "VEHICLE_AGE": Decimal("1.0"),
            "ENGINE_CAPACITY": Decimal("1.2"),
            "POWER": Decimal("1"),
            "OC_COVERAGE": Decimal("1.0"),
        }
        assert breakdown.factor_keys["POWER"] == "POWER_MEDIUM"
        assert breakdown.final_premium == Decimal("960.00")
        assert breakdown.effective_date == EFFECTIVE

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("category", "base"),
        [
            (InsuranceCategory.OC, Decimal("800.00")),
            (InsuranceCategory.AC, Decimal("1200.00")),
            (InsuranceCategory.NNW, Decimal("300.00")),
        ],
    )
    async def test_empty_tables_yield_base_premium(
        self, category: InsuranceCategory, base: Decimal, vehicle: VehicleAttributes
    ) -> None:
        engine = PremiumRatingEngine(make_store({}))

        result = await engine.calculate_premium(category, vehicle, EFFECTIVE)

        assert result.unwrap() == base

    @pytest.mark.asyncio
    async def test_rounds_half_up_once_at_the_end(self, vehicle: VehicleAttributes) -> None:
        # 300.00 x 1.00005 = 300.015 -> 300.02
        table = {(InsuranceCategory.NNW, "NNW_STANDARD"): Decimal("1.00005")}
        engine = PremiumRatingEngine(make_store(table))

        result = await engine.calculate_premium(InsuranceCategory.NNW, vehicle, EFFECTIVE)

        assert result.unwrap() == Decimal("300.02")

    @pytest.mark.asyncio
    async def test_combination_is_order_independent(self, vehicle: VehicleAttributes) -> None:
        multipliers = [Decimal("1.15"), Decimal("0.85"), Decimal("1.3"), Decimal("1.05")]
        keys = ["VEHICLE_AGE_3", "ENGINE_MEDIUM", "POWER_MEDIUM", "AC_COMPREHENSIVE"]

        premiums = set()
        for permutation in itertools.permutations(multipliers):
            table = {
                (InsuranceCategory.AC, key): m for key, m in zip(keys, permutation)
            }
            engine = PremiumRatingEngine(make_store(table))
            result = await engine.calculate_premium(
                InsuranceCategory.AC, vehicle, EFFECTIVE
            )
            premiums.add(result.unwrap())

        assert len(premiums) == 1

    @pytest.mark.asyncio
    async def test_lookups_use_effective_date(self, vehicle: VehicleAttributes) -> None:
        store = make_store({})
        engine = PremiumRatingEngine(store)

        await engine.calculate_premium(InsuranceCategory.AC, vehicle, date(2026, 1, 1))

        assert store.lookup.await_count == 4
        assert {call.args[2] for call in store.lookup.await_args_list} == {
            date(2026, 1, 1)
        }

    @pytest.mark.asyncio
    async def test_premium_follows_rate_in_force(self, vehicle: VehicleAttributes) -> None:
        store = make_store(
            {},
            factors=[
                RatingFactor(
                    id=1,
                    category=InsuranceCategory.NNW,
                    factor_key="NNW_STANDARD",
                    multiplier=Decimal("1.10"),
                    valid_from=date(2025, 1, 1),
                    valid_to=date(2025, 6, 30),
                ),
                RatingFactor(
                    id=2,
                    category=InsuranceCategory.NNW,
                    factor_key="NNW_STANDARD",
                    multiplier=Decimal("1.20"),
                    valid_from=date(2025, 7, 1),
                ),
            ],
        )
        engine = PremiumRatingEngine(store)

        premiums = [
            (await engine.calculate_premium(InsuranceCategory.NNW, vehicle, day)).unwrap()
            for day in (date(2024, 12, 31), date(2025, 6, 30), date(2025, 7, 1))
        ]

        assert premiums == [Decimal("300.00"), Decimal("330.00"), Decimal("360.00")]

    @pytest.mark.asyncio
    async def test_custom_config(self, vehicle: VehicleAttributes) -> None:
        config = RatingConfig(
            base_premiums={InsuranceCategory.OC: Decimal("1000.00")},
            max_vehicle_age_bucket=2,
        )
        store = make_store({(InsuranceCategory.OC, "VEHICLE_AGE_2"): Decimal("1.1")})
        engine = PremiumRatingEngine(store, config)

        oc = await engine.calculate_premium(InsuranceCategory.OC, vehicle, EFFECTIVE)
        ac = await engine.calculate_premium(InsuranceCategory.AC, vehicle, EFFECTIVE)

        assert oc.unwrap() == Decimal("1100.00")
        assert ac.unwrap() == Decimal("500.00")

    def test_config_rejects_unordered_thresholds(self) -> None:
        with pytest.raises(ValidationError):
            RatingConfig(engine_thresholds=[(2000, "LARGE"), (1000, "SMALL")])


class TestFailures:
    """Validation and calculation errors."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["category", "vehicle", "effective_date"])
    async def test_missing_parameter_is_validation_error(
        self, missing: str, vehicle: VehicleAttributes
    ) -> None:
        store = make_store({})
        engine = PremiumRatingEngine(store)
        params = {
            "category": InsuranceCategory.OC,
            "vehicle": vehicle,
            "effective_date": EFFECTIVE,
        }
        params[missing] = None

        result = await engine.calculate_premium(**params)

        assert isinstance(result, Err)
        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.field_name == missing
        store.lookup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_failure_becomes_calculation_error(
        self, vehicle: VehicleAttributes
    ) -> None:
        store = make_store({})
        store.lookup = AsyncMock(side_effect=ConnectionResetError("connection reset"))
        engine = PremiumRatingEngine(store)

        result = await engine.calculate_premium(InsuranceCategory.AC, vehicle, EFFECTIVE)

        assert isinstance(result, Err)
        assert result.error.kind == ErrorKind.CALCULATION
        assert "AC" in result.error.message
        assert result.error.context["category"] == "AC"
        assert store.lookup.await_count == 1
