# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Service error taxonomy carried inside ``Err`` results.

Four kinds are distinguished so that calling layers can choose the
appropriate HTTP or UI response:

- ``VALIDATION``: malformed or rule-violating input, caught before side effects
- ``NOT_FOUND``: a referenced client, vehicle or policy cannot be resolved
- ``STATE_CONFLICT``: the policy's state forbids the requested operation
- ``CALCULATION``: unexpected failure while deriving or combining rating factors
"""

from enum import Enum
from typing import Any

from attrs import field, frozen
from beartype import beartype


class ErrorKind(str, Enum):
    """Enumeration of service error categories."""

    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    STATE_CONFLICT = "STATE_CONFLICT"
    CALCULATION = "CALCULATION"


@frozen
class ServiceError:
    """Immutable error value returned by service operations."""

    kind: ErrorKind = field()
    message: str = field()
    field_name: str | None = field(default=None)
    context: dict[str, Any] = field(factory=dict, hash=False)

    def __str__(self) -> str:
        return self.message

    @classmethod
    @beartype
    def validation(cls, message: str, field_name: str | None = None) -> "ServiceError":
        """Build a validation error, optionally naming the offending field."""
        return cls(ErrorKind.VALIDATION, message, field_name)

    @classmethod
    @beartype
    def not_found(cls, entity: str, reference: Any) -> "ServiceError":
        """Build a not-found error for ``entity`` identified by ``reference``."""
        return cls(
            ErrorKind.NOT_FOUND,
            f"{entity} not found with ID: {reference}",
            context={"entity": entity, "reference": str(reference)},
        )

    @classmethod
    @beartype
    def state_conflict(cls, message: str, **context: Any) -> "ServiceError":
        """Build a state-conflict error with diagnostic context."""
        return cls(
            ErrorKind.STATE_CONFLICT,
            message,
            context={k: str(v) for k, v in context.items()},
        )

    @classmethod
    @beartype
    def calculation(cls, category: str, cause: str) -> "ServiceError":
        """Build a calculation error naming the category under calculation."""
        return cls(
            ErrorKind.CALCULATION,
            f"Failed to calculate premium for {category} insurance: {cause}",
            context={"category": category},
        )
