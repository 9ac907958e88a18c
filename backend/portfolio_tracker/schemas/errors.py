# backend/portfolio_tracker/schemas/errors.py
"""
Error bodies returned by the API.

Every failure (domain exceptions from the services, HTTPException, request
validation, slowapi throttling) is rendered by a handler in main.py into
one of these two shapes.
"""

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """
    Body of every non-422 error response.

    ``error`` is the exception class name for domain errors
    (e.g. ``PortfolioNotFoundError``) so clients can branch on it.
    """

    error: str = Field(..., description="Error type, e.g. 'HoldingNotFoundError'")
    message: str = Field(..., description="Human-readable message")
    details: dict[str, Any] | None = Field(
        default=None,
        description="Context such as resource_type/resource_id or retry_after",
    )


class FieldError(BaseModel):
    """One failed constraint from request validation."""

    field: str = Field(..., description="Dotted location, e.g. 'body.quantity'")
    message: str
    type: str


class ValidationErrorDetail(BaseModel):
    """Body of 422 responses: the request did not match its schema."""

    error: str = "ValidationError"
    message: str = "Request validation failed"
    details: list[FieldError]

    @classmethod
    def from_errors(cls, errors: Iterable[dict[str, Any]]) -> "ValidationErrorDetail":
        """Build from pydantic's ``errors()`` list (loc/msg/type dicts)."""
        return cls(
            details=[
                FieldError(
                    field=".".join(str(part) for part in error["loc"]),
                    message=error["msg"],
                    type=error["type"],
                )
                for error in errors
            ]
        )
