"""API response schemas.

This module defines the common API response formats used across the application.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel


# Type variable for generic response types
T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard API response wrapper for non-streaming endpoints.

    Attributes:
        success: Whether the request was successful.
        data: The actual response data (when success is True).
        message: A human-readable message about the response.
    """

    success: bool = True
    data: T | None = None
    message: str = "Operation completed successfully"


class ErrorResponse(BaseModel):
    """Error API response.

    ``error`` is always a plain human-readable string so that streaming
    clients can surface it directly. Diagnostic fields (correlation id, error
    type, and in development tracebacks) live under ``details``.

    Attributes:
        success: Always False for error responses.
        error: A human-readable error message.
        details: Additional, environment-filtered error details.
    """

    success: bool = False
    error: str = "An error occurred"
    details: dict[str, Any] | None = None
