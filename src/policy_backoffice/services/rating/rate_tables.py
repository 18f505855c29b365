"""Temporal rating table lookups.

Rating entries are keyed by (category, factor key) and carry an inclusive
validity window whose end may be open. The store is read-only; entries are
maintained by an external process.
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Any

from beartype import beartype
from redis.exceptions import RedisError

from ...core.cache import Cache
from ...core.database import Database
from ...core.logging_utils import get_logger
from ...models.rating import InsuranceCategory, RatingFactor

logger = get_logger(__name__)

_COLUMNS = "id, category, factor_key, multiplier, valid_from, valid_to"


@beartype
def select_effective(
    factors: Iterable[RatingFactor],
    category: InsuranceCategory,
    factor_key: str,
    as_of: date,
) -> RatingFactor | None:
    """Pick the entry in force on ``as_of`` for a (category, key) pair.

    Both window ends are inclusive. Among overlapping entries the latest
    ``valid_from`` wins and ties go to the lowest id, whatever the input order.
    """
    candidates = [
        f
        for f in factors
        if f.applies_to(category)
        and f.factor_key == factor_key
        and f.is_valid_for(as_of)
    ]
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda f: (-f.valid_from.toordinal(), f.id is None, f.id or 0),
    )


class RatingTableStore:
    """Read-only access to rating factors with optional Redis memoization."""

    def __init__(
        self,
        db: Database,
        cache: Cache | None = None,
        cache_ttl: int = 900,
    ) -> None:
        """Initialize the store.

        Args:
            db: Database adapter holding the ``rating_factors`` table.
            cache: Optional cache; ``None`` disables memoization.
            cache_ttl: Seconds a memoized lookup stays valid.
        """
        self._db = db
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._cache_prefix = "rating_factors:"

    @beartype
    async def lookup(
        self,
        category: InsuranceCategory,
        factor_key: str,
        as_of: date,
    ) -> Decimal | None:
        """Return the multiplier valid for ``as_of``, or None when absent.

        When several entries match, the one with the latest ``valid_from``
        wins and ties go to the lowest id.
        """
        cache_key = (
            f"{self._cache_prefix}{category.value}:{factor_key}:{as_of.isoformat()}"
        )
        cached = await self._cache_get(cache_key)
        if cached is not None:
            value = cached.get("multiplier")
            return Decimal(value) if value is not None else None

        query = f"""
            SELECT {_COLUMNS}
            FROM rating_factors
            WHERE category = $1
              AND factor_key = $2
              AND valid_from <= $3
        """
        rows = await self._db.fetch(query, category.value, factor_key, as_of)
        factor = select_effective(
            (self._row_to_factor(row) for row in rows), category, factor_key, as_of
        )
        multiplier = factor.multiplier if factor is not None else None

        await self._cache_set(
            cache_key,
            {"multiplier": str(multiplier) if multiplier is not None else None},
        )
        return multiplier

    @beartype
    async def factors_for_date(
        self, category: InsuranceCategory, as_of: date
    ) -> list[RatingFactor]:
        """List every entry of ``category`` valid on ``as_of``."""
        query = f"""
            SELECT {_COLUMNS}
            FROM rating_factors
            WHERE category = $1
              AND valid_from <= $2
              AND (valid_to IS NULL OR valid_to >= $2)
            ORDER BY factor_key, valid_from DESC, id ASC
        """
        rows = await self._db.fetch(query, category.value, as_of)
        return [self._row_to_factor(row) for row in rows]

    @beartype
    async def current_factors(
        self, category: InsuranceCategory, today: date
    ) -> list[RatingFactor]:
        """List the entries of ``category`` in force today."""
        return await self.factors_for_date(category, today)

    @beartype
    async def find_overlapping(
        self,
        category: InsuranceCategory,
        factor_key: str,
        valid_from: date,
        valid_to: date | None,
    ) -> list[RatingFactor]:
        """List entries for the same key whose window overlaps the given one.

        Open ends on either side are treated as unbounded.
        """
        query = f"""
            SELECT {_COLUMNS}
            FROM rating_factors
            WHERE category = $1
              AND factor_key = $2
              AND (valid_to IS NULL OR valid_to >= $3)
              AND ($4::date IS NULL OR valid_from <= $4::date)
            ORDER BY valid_from, id
        """
        rows = await self._db.fetch(
            query, category.value, factor_key, valid_from, valid_to
        )
        return [self._row_to_factor(row) for row in rows]

    async def invalidate(self) -> int:
        """Drop every memoized lookup."""
        if self._cache is None:
            return 0
        return await self._cache.clear_pattern(f"{self._cache_prefix}*")

    async def _cache_get(self, key: str) -> dict[str, Any] | None:
        if self._cache is None:
            return None
        try:
            cached = await self._cache.get(key)
        except RedisError as e:
            logger.warning("Rating cache read failed for %s: %s", key, e)
            return None
        return cached if isinstance(cached, dict) else None

    async def _cache_set(self, key: str, value: dict[str, Any]) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(key, value, self._cache_ttl)
        except RedisError as e:
            logger.warning("Rating cache write failed for %s: %s", key, e)

    def _row_to_factor(self, row: Any) -> RatingFactor:
        return RatingFactor(
            id=row["id"],
            category=InsuranceCategory(row["category"]),
            factor_key=row["factor_key"],
            multiplier=Decimal(row["multiplier"]),
            valid_from=row["valid_from"],
            valid_to=row["valid_to"],
        )
