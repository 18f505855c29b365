"""API response patterns following Result[T,E] + HTTP semantics."""

from typing import Any, TypeVar, Union

from beartype import beartype
from fastapi import Response
from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import ErrorKind, ServiceError
from ..core.result_types import Result

T = TypeVar("T")

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STATE_CONFLICT: 409,
    ErrorKind.CALCULATION: 500,
}


@beartype
class ErrorDetails(BaseModel):
    """Structured error details."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    field: str | None = Field(default=None, description="Offending input field")
    context: dict[str, str] | None = Field(
        default=None, description="Additional error context"
    )


@beartype
class ErrorResponse(BaseModel):
    """Standardized error response for business logic failures."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    success: bool = Field(default=False, description="Always false for error responses")
    error: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(
        default=None, description="Machine-readable error code"
    )
    details: ErrorDetails | None = Field(
        default=None, description="Structured error details"
    )


class APIResponseHandler:
    """Translate service results into HTTP responses."""

    @staticmethod
    @beartype
    def map_error_to_status(error: ServiceError) -> int:
        """Map a service error kind to its HTTP status code."""
        return _STATUS_BY_KIND.get(error.kind, 422)

    @staticmethod
    @beartype
    def error_response(error: ServiceError) -> ErrorResponse:
        """Build the response body for ``error``."""
        details = None
        if error.field_name or error.context:
            details = ErrorDetails(
                field=error.field_name,
                context={k: str(v) for k, v in error.context.items()} or None,
            )
        return ErrorResponse(
            error=error.message,
            error_code=error.kind.value,
            details=details,
        )

    @staticmethod
    def from_result(
        result: Result[Any, ServiceError],
        response: Response,
        success_status: int = 200,
    ) -> Any:
        """Convert Result[T,E] to an HTTP response with proper status codes.

        Args:
            result: Service layer Result
            response: FastAPI Response object to set status code
            success_status: HTTP status for successful operations

        Returns:
            Either the unwrapped success value or ErrorResponse
        """
        if result.is_err():
            error = result.unwrap_err()
            response.status_code = APIResponseHandler.map_error_to_status(error)
            return APIResponseHandler.error_response(error)

        response.status_code = success_status
        return result.unwrap()


def handle_result(
    result: Result[T, ServiceError],
    response: Response,
    success_status: int = 200,
) -> Union[T, ErrorResponse]:
    """Convenience function for standard result handling."""
    return APIResponseHandler.from_result(result, response, success_status)
