"""Policy lifecycle business logic.

A policy is stored as ACTIVE or CANCELED. Expiry is derived from the end date
and the current day, so an ACTIVE policy past its end date is treated as
expired without any stored transition. CANCELED and expired policies accept
no further updates or cancellations.
"""

from collections.abc import Callable
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import asyncpg
from beartype import beartype

from ..core.config import Settings, get_settings
from ..core.database import Database
from ..core.errors import ErrorKind, ServiceError
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.policy import (
    CategoryDetails,
    Policy,
    PolicyCreate,
    PolicyStatus,
    PolicyUpdate,
)
from ..models.rating import InsuranceCategory, PremiumBreakdown
from .policy_numbers import PolicyNumberGenerator
from .rating.rating_engine import PremiumRatingEngine
from .registry import RegistryService

logger = get_logger(__name__)

_POLICY_COLUMNS = """
    p.id, p.policy_number, p.issue_date, p.start_date, p.end_date, p.status,
    p.category, p.premium, p.adjustment, p.client_id, p.vehicle_id, p.details,
    p.created_at, p.updated_at
"""

_RETURNING = """
    id, policy_number, issue_date, start_date, end_date, status, category,
    premium, adjustment, client_id, vehicle_id, details, created_at, updated_at
"""


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class PolicyService:
    """Create, update, cancel and query motor insurance policies."""

    def __init__(
        self,
        db: Database,
        registry: RegistryService,
        engine: PremiumRatingEngine,
        numbers: PolicyNumberGenerator | None = None,
        settings: Settings | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        """Initialize the service.

        Args:
            db: Database adapter holding the ``policies`` table.
            registry: Client and vehicle resolution.
            engine: Premium rating engine.
            numbers: Policy number candidate generator.
            settings: Application settings; process settings when omitted.
            clock: Source of the current day for every date rule.
        """
        self._db = db
        self._registry = registry
        self._engine = engine
        self._settings = settings or get_settings()
        self._numbers = numbers or PolicyNumberGenerator(
            self._settings.policy_number_suffix_length
        )
        self._clock = clock

    # Lifecycle operations

    @beartype
    async def create(self, data: PolicyCreate) -> Result[Policy, ServiceError]:
        """Validate, price, number and store a new ACTIVE policy.

        Nothing is priced or numbered unless the dates validate.
        """
        today = self._clock()
        invalid = self._validate_creation_dates(data.start_date, data.end_date, today)
        if invalid is not None:
            return Err(invalid)
        assert data.start_date is not None
        assert data.end_date is not None

        client_result = await self._registry.resolve_client(data.client_id)
        if isinstance(client_result, Err):
            return client_result

        vehicle_result = await self._registry.resolve_vehicle(data.vehicle_id)
        if isinstance(vehicle_result, Err):
            return vehicle_result

        premium_result = await self._engine.calculate_premium(
            data.category, vehicle_result.value, data.start_date
        )
        if isinstance(premium_result, Err):
            return premium_result

        self._warn_if_incomplete(data.details, data.category, "new policy")
        return await self._insert_with_unique_number(
            data, premium_result.value, today
        )

    @beartype
    async def update(
        self, policy_id: UUID, changes: PolicyUpdate
    ) -> Result[Policy, ServiceError]:
        """Change dates, adjustment and details, then reprice.

        Omitted dates keep their stored values and an omitted adjustment
        resets to zero. Pricing runs before the row is locked, so the
        transaction holds a single connection; the lock re-checks that the
        policy is still mutable before writing.
        """
        today = self._clock()

        current = await self.get(policy_id)
        if isinstance(current, Err):
            return current
        existing = current.value

        conflict = self._check_mutable(existing, today, "update")
        if conflict is not None:
            return Err(conflict)

        start_date = changes.start_date or existing.start_date
        end_date = changes.end_date or existing.end_date
        invalid = self._validate_update_dates(
            start_date, end_date, existing.issue_date, today
        )
        if invalid is not None:
            return Err(invalid)

        vehicle_result = await self._registry.resolve_vehicle(existing.vehicle_id)
        if isinstance(vehicle_result, Err):
            return vehicle_result

        premium_result = await self._engine.calculate_premium(
            existing.category, vehicle_result.value, start_date
        )
        if isinstance(premium_result, Err):
            return premium_result

        adjustment = (
            changes.adjustment if changes.adjustment is not None else Decimal("0.00")
        )
        details = existing.details.merged_with(changes.details)
        self._warn_if_incomplete(details, existing.category, existing.policy_number)

        async with self._db.transaction() as tx:
            row = await tx.fetchrow(
                f"SELECT {_POLICY_COLUMNS} FROM policies p WHERE p.id = $1 FOR UPDATE",
                policy_id,
            )
            if not row:
                return Err(ServiceError.not_found("Policy", policy_id))

            conflict = self._check_mutable(self._row_to_policy(row), today, "update")
            if conflict is not None:
                return Err(conflict)

            query = f"""
                UPDATE policies
                SET start_date = $2, end_date = $3, adjustment = $4,
                    details = $5, premium = $6, updated_at = NOW()
                WHERE id = $1
                RETURNING {_RETURNING}
            """
            updated = await tx.fetchrow(
                query,
                policy_id,
                start_date,
                end_date,
                adjustment,
                details.to_json(),
                premium_result.value,
            )

        policy = self._row_to_policy(updated)
        logger.info(
            "Updated %s (%s), premium %s, total payable %s",
            policy.description,
            policy.id,
            policy.premium,
            policy.total_payable,
        )
        return Ok(policy)

    @beartype
    async def cancel(self, policy_id: UUID) -> Result[Policy, ServiceError]:
        """Move an ACTIVE, unexpired policy to CANCELED."""
        today = self._clock()

        existing_result = await self.get(policy_id)
        if isinstance(existing_result, Err):
            return existing_result

        conflict = self._check_mutable(existing_result.value, today, "cancel")
        if conflict is not None:
            return Err(conflict)

        query = f"""
            UPDATE policies
            SET status = $2, updated_at = NOW()
            WHERE id = $1 AND status = $3
            RETURNING {_RETURNING}
        """
        row = await self._db.fetchrow(
            query,
            policy_id,
            PolicyStatus.CANCELED.value,
            PolicyStatus.ACTIVE.value,
        )
        if not row:
            # Canceled concurrently between the read and the update.
            logger.warning("Policy %s was canceled concurrently", policy_id)
            return Err(
                ServiceError.state_conflict(
                    "Policy is already canceled", policy_id=policy_id
                )
            )

        policy = self._row_to_policy(row)
        logger.info("Canceled policy %s (%s)", policy.policy_number, policy.id)
        return Ok(policy)

    # Queries

    @beartype
    async def get(self, policy_id: UUID) -> Result[Policy, ServiceError]:
        """Get a policy by id."""
        row = await self._db.fetchrow(
            f"SELECT {_POLICY_COLUMNS} FROM policies p WHERE p.id = $1", policy_id
        )
        if not row:
            return Err(ServiceError.not_found("Policy", policy_id))
        return Ok(self._row_to_policy(row))

    @beartype
    async def get_by_number(self, policy_number: str) -> Result[Policy, ServiceError]:
        """Get a policy by its business number."""
        row = await self._db.fetchrow(
            f"SELECT {_POLICY_COLUMNS} FROM policies p WHERE p.policy_number = $1",
            policy_number,
        )
        if not row:
            return Err(
                ServiceError(
                    ErrorKind.NOT_FOUND,
                    f"Policy not found with number: {policy_number}",
                    context={"entity": "Policy", "reference": policy_number},
                )
            )
        return Ok(self._row_to_policy(row))

    @beartype
    async def list_by_client(self, client_id: UUID) -> list[Policy]:
        """Policies held by a client, newest issue first."""
        rows = await self._db.fetch(
            f"""
            SELECT {_POLICY_COLUMNS} FROM policies p
            WHERE p.client_id = $1
            ORDER BY p.issue_date DESC, p.created_at DESC
            """,
            client_id,
        )
        return [self._row_to_policy(row) for row in rows]

    @beartype
    async def list_by_vehicle(self, vehicle_id: UUID) -> list[Policy]:
        """Policies covering a vehicle."""
        rows = await self._db.fetch(
            f"""
            SELECT {_POLICY_COLUMNS} FROM policies p
            WHERE p.vehicle_id = $1
            ORDER BY p.start_date DESC
            """,
            vehicle_id,
        )
        return [self._row_to_policy(row) for row in rows]

    @beartype
    async def list_by_status(self, status: PolicyStatus) -> list[Policy]:
        """Policies with the given stored status."""
        rows = await self._db.fetch(
            f"""
            SELECT {_POLICY_COLUMNS} FROM policies p
            WHERE p.status = $1
            ORDER BY p.start_date DESC
            """,
            status.value,
        )
        return [self._row_to_policy(row) for row in rows]

    @beartype
    async def list_by_category(self, category: InsuranceCategory) -> list[Policy]:
        """Policies of one insurance category."""
        rows = await self._db.fetch(
            f"""
            SELECT {_POLICY_COLUMNS} FROM policies p
            WHERE p.category = $1
            ORDER BY p.start_date DESC
            """,
            category.value,
        )
        return [self._row_to_policy(row) for row in rows]

    @beartype
    async def search_by_client_name(self, client_name: str) -> list[Policy]:
        """Case-insensitive substring search on the holder's full name."""
        needle = client_name.strip()
        if not needle:
            return []

        rows = await self._db.fetch(
            f"""
            SELECT {_POLICY_COLUMNS} FROM policies p
            JOIN clients c ON c.id = p.client_id
            WHERE (c.first_name || ' ' || c.last_name) ILIKE $1
            ORDER BY p.issue_date DESC
            """,
            _like_pattern(needle),
        )
        return [self._row_to_policy(row) for row in rows]

    @beartype
    async def list_currently_active(self, today: date | None = None) -> list[Policy]:
        """ACTIVE policies whose coverage window contains ``today``."""
        as_of = today or self._clock()
        rows = await self._db.fetch(
            f"""
            SELECT {_POLICY_COLUMNS} FROM policies p
            WHERE p.status = $1 AND p.start_date <= $2 AND p.end_date >= $2
            ORDER BY p.end_date
            """,
            PolicyStatus.ACTIVE.value,
            as_of,
        )
        return [self._row_to_policy(row) for row in rows]

    @beartype
    async def list_expiring_within(
        self, days: int
    ) -> Result[list[Policy], ServiceError]:
        """ACTIVE policies ending between today and ``days`` from now."""
        if days < 0:
            return Err(ServiceError.validation("Days must be non-negative", "days"))
        max_days = self._settings.expiring_window_max_days
        if days > max_days:
            return Err(
                ServiceError.validation(f"Days must not exceed {max_days}", "days")
            )

        today = self._clock()
        rows = await self._db.fetch(
            f"""
            SELECT {_POLICY_COLUMNS} FROM policies p
            WHERE p.status = $1 AND p.end_date BETWEEN $2 AND $3
            ORDER BY p.end_date
            """,
            PolicyStatus.ACTIVE.value,
            today,
            today + timedelta(days=days),
        )
        return Ok([self._row_to_policy(row) for row in rows])

    @beartype
    async def premium_breakdown(
        self, policy_id: UUID
    ) -> Result[PremiumBreakdown, ServiceError]:
        """Rating breakdown of a stored policy, priced at its start date."""
        policy_result = await self.get(policy_id)
        if isinstance(policy_result, Err):
            return policy_result
        policy = policy_result.value

        vehicle_result = await self._registry.resolve_vehicle(policy.vehicle_id)
        if isinstance(vehicle_result, Err):
            return vehicle_result

        return await self._engine.calculate_premium_breakdown(
            policy.category, vehicle_result.value, policy.start_date
        )

    # Internals

    async def _insert_with_unique_number(
        self, data: PolicyCreate, premium: Decimal, today: date
    ) -> Result[Policy, ServiceError]:
        max_attempts = self._settings.policy_number_max_attempts
        query = f"""
            INSERT INTO policies (
                id, policy_number, issue_date, start_date, end_date, status,
                category, premium, adjustment, client_id, vehicle_id, details
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            RETURNING {_RETURNING}
        """

        for attempt in range(1, max_attempts + 1):
            policy_number = self._numbers.candidate(data.category)
            taken = await self._db.fetchval(
                "SELECT EXISTS(SELECT 1 FROM policies WHERE policy_number = $1)",
                policy_number,
            )
            if taken:
                logger.warning(
                    "Policy number %s already taken (attempt %s/%s)",
                    policy_number,
                    attempt,
                    max_attempts,
                )
                continue

            try:
                row = await self._db.fetchrow(
                    query,
                    uuid4(),
                    policy_number,
                    today,
                    data.start_date,
                    data.end_date,
                    PolicyStatus.ACTIVE.value,
                    data.category.value,
                    premium,
                    data.adjustment,
                    data.client_id,
                    data.vehicle_id,
                    data.details.to_json(),
                )
            except asyncpg.UniqueViolationError:
                logger.warning(
                    "Policy number %s claimed concurrently (attempt %s/%s)",
                    policy_number,
                    attempt,
                    max_attempts,
                )
                continue

            if not row:
                raise RuntimeError("Policy insert returned no row")

            policy = self._row_to_policy(row)
            logger.info(
                "Created %s (%s), premium %s, %s days of coverage",
                policy.description,
                policy.id,
                policy.premium,
                policy.coverage_days,
            )
            return Ok(policy)

        logger.warning(
            "Could not allocate a %s policy number in %s attempts",
            data.category.value,
            max_attempts,
        )
        return Err(
            ServiceError.state_conflict(
                f"Could not allocate a unique policy number after {max_attempts} "
                f"attempts",
                category=data.category.value,
            )
        )

    @staticmethod
    def _validate_creation_dates(
        start_date: date | None, end_date: date | None, today: date
    ) -> ServiceError | None:
        if start_date is None:
            return ServiceError.validation("Start date is required", "start_date")
        if end_date is None:
            return ServiceError.validation("End date is required", "end_date")
        if start_date > end_date:
            return ServiceError.validation(
                "Start date must be before end date", "start_date"
            )
        if end_date < today:
            return ServiceError.validation(
                "End date cannot be in the past", "end_date"
            )
        if start_date < today:
            return ServiceError.validation(
                "Start date cannot be before the issue date", "start_date"
            )
        return None

    @staticmethod
    def _validate_update_dates(
        start_date: date, end_date: date, issue_date: date, today: date
    ) -> ServiceError | None:
        if start_date > end_date:
            return ServiceError.validation(
                "Start date must be before end date", "start_date"
            )
        if start_date < issue_date:
            return ServiceError.validation(
                f"Policy start date cannot be before the issue date "
                f"({issue_date.isoformat()})",
                "start_date",
            )
        if end_date < today:
            return ServiceError.validation(
                "End date cannot be in the past", "end_date"
            )
        return None

    @staticmethod
    def _warn_if_incomplete(
        details: CategoryDetails, category: InsuranceCategory, reference: str
    ) -> None:
        if not details.is_complete_for(category):
            logger.warning(
                "Incomplete %s details for %s: %s",
                category.value,
                reference,
                sorted(details.to_json()),
            )

    @staticmethod
    def _check_mutable(
        policy: Policy, today: date, operation: str
    ) -> ServiceError | None:
        if policy.is_canceled:
            logger.warning(
                "Refused to %s canceled policy %s", operation, policy.policy_number
            )
            message = (
                "Policy is already canceled"
                if operation == "cancel"
                else "Cannot update a canceled policy"
            )
            return ServiceError.state_conflict(
                message, policy_id=policy.id, status=policy.status.value
            )
        if policy.is_expired(today):
            logger.warning(
                "Refused to %s expired policy %s", operation, policy.policy_number
            )
            return ServiceError.state_conflict(
                f"Cannot {operation} an expired policy",
                policy_id=policy.id,
                end_date=policy.end_date.isoformat(),
            )
        return None

    def _row_to_policy(self, row: Any) -> Policy:
        return Policy(
            id=row["id"],
            policy_number=row["policy_number"],
            issue_date=row["issue_date"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            status=PolicyStatus(row["status"]),
            category=InsuranceCategory(row["category"]),
            premium=Decimal(row["premium"]),
            adjustment=Decimal(row["adjustment"]),
            client_id=row["client_id"],
            vehicle_id=row["vehicle_id"],
            details=CategoryDetails(**(row["details"] or {})),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
