"""Policy number candidates of the form ``<CATEGORY>-<SUFFIX>``."""

from collections.abc import Callable
from uuid import uuid4

from beartype import beartype

from ..models.rating import InsuranceCategory


def _random_hex() -> str:
    return uuid4().hex


class PolicyNumberGenerator:
    """Produce candidate policy numbers.

    Candidates are not guaranteed unique; the caller checks them against the
    store and retries on collision.
    """

    def __init__(
        self,
        suffix_length: int = 8,
        entropy: Callable[[], str] = _random_hex,
    ) -> None:
        if not 1 <= suffix_length <= 32:
            raise ValueError("suffix_length must be between 1 and 32")
        self._suffix_length = suffix_length
        self._entropy = entropy

    @beartype
    def candidate(self, category: InsuranceCategory) -> str:
        """Return a fresh candidate number for ``category``."""
        suffix = self._entropy()[: self._suffix_length].upper()
        return f"{category.value}-{suffix}"
