"""Result types for error handling without exceptions.

Services return ``Ok(value)`` on success and ``Err(error)`` on business
failures; callers branch with ``isinstance(result, Err)`` or ``is_err()``.
"""

from collections.abc import Callable
from typing import Any, Generic, NoReturn, TypeVar, Union

from attrs import field, frozen
from beartype import beartype

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


@frozen
class Ok(Generic[T]):
    """Success result wrapper."""

    value: T = field()

    @beartype
    def is_ok(self) -> bool:
        """Check if result is Ok."""
        return True

    @beartype
    def is_err(self) -> bool:
        """Check if result is Err."""
        return False

    @property
    def ok_value(self) -> T:
        """Get the Ok value."""
        return self.value

    @property
    def err_value(self) -> None:
        """Get the Err value (None for Ok)."""
        return None

    def unwrap(self) -> T:
        """Get the success value."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Get the success value."""
        return self.value

    def unwrap_err(self) -> NoReturn:
        """Raise ValueError as this is Ok."""
        raise ValueError("Called unwrap_err on Ok value")

    def map(self, func: Callable[[T], U]) -> "Ok[U]":
        """Transform the success value."""
        return Ok(func(self.value))

    def map_err(self, func: Callable[[Any], Any]) -> "Ok[T]":
        """No-op for Ok values."""
        return self

    def and_then(self, func: Callable[[T], "Result[U, Any]"]) -> "Result[U, Any]":
        """Chain operations that return Results."""
        return func(self.value)


@frozen
class Err(Generic[E]):
    """Error result wrapper."""

    error: E = field()

    @beartype
    def is_ok(self) -> bool:
        """Check if result is Ok."""
        return False

    @beartype
    def is_err(self) -> bool:
        """Check if result is Err."""
        return True

    @property
    def ok_value(self) -> None:
        """Get the Ok value (None for Err)."""
        return None

    @property
    def err_value(self) -> E:
        """Get the Err value."""
        return self.error

    def unwrap(self) -> NoReturn:
        """Raise ValueError as this is Err."""
        raise ValueError(f"Called unwrap on Err value: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Return default value."""
        return default

    def unwrap_err(self) -> E:
        """Get the error value."""
        return self.error

    def map(self, func: Callable[[Any], Any]) -> "Err[E]":
        """No-op for Err values."""
        return self

    def map_err(self, func: Callable[[E], U]) -> "Err[U]":
        """Transform the error value."""
        return Err(func(self.error))

    def and_then(self, func: Callable[[Any], "Result[Any, E]"]) -> "Err[E]":
        """No-op for Err values."""
        return self


Result = Union[Ok[T], Err[E]]
