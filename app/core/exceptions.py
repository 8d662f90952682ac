"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- A single HTTP status per error category

Exception Hierarchy:
    BaseApplicationError (base, 500)
    ├── ValidationError - Input validation failures (400)
    ├── AuthenticationError - Missing or invalid credentials (401)
    ├── PermissionDeniedError - Authorization failures (403)
    ├── NotFoundError - Resource not found (404)
    ├── ConflictError - State conflicts (409)
    ├── RateLimitError - Rate limit exceeded (429)
    └── ExternalServiceError - Third-party service failures (502)

Usage:
    from core.exceptions import NotFoundError, PermissionDeniedError

    raise NotFoundError("Conversation not found", error_code="CHAT_NOT_FOUND")

    raise PermissionDeniedError(
        "You are not a participant in this conversation",
        error_code="NOT_PARTICIPANT",
    )

Note:
    These exceptions are rendered by core.exception_handler into the API
    envelope. DRF's own exceptions (serializer validation, authentication)
    go through the same handler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
        status_code: HTTP status used when the error reaches the API layer
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for malformed or missing input and business rule violations
    detected in the service layer (empty message content, messaging
    yourself). DRF serializer validation is handled by DRF itself.
    """

    default_error_code: str = "VALIDATION_ERROR"
    status_code: int = 400


class AuthenticationError(BaseApplicationError):
    """Raised when a request carries no usable credentials."""

    default_error_code: str = "NOT_AUTHENTICATED"
    status_code: int = 401


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Use for single-resource lookups where existence is expected
    (conversation, message, counterparty, property).
    """

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when an authenticated user lacks permission for an operation.

    Note:
        For authentication failures (missing/invalid token), use
        AuthenticationError or DRF's AuthenticationFailed.
    """

    default_error_code: str = "PERMISSION_DENIED"
    status_code: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for duplicate entries and invalid state transitions that the
    caller has to resolve.
    """

    default_error_code: str = "CONFLICT"
    status_code: int = 409


class RateLimitError(BaseApplicationError):
    """
    Raised when rate limit is exceeded.

    Include retry_after in details when possible to help clients.
    """

    default_error_code: str = "RATE_LIMIT_EXCEEDED"
    status_code: int = 429


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error for debugging but don't expose
    internal details to clients in production.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    status_code: int = 502
