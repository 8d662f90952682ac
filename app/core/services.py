"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Use for expected failures (validation, business rules)
    - Exceptions: Use for unexpected failures (database errors, bugs)

Usage:
    from core.services import BaseService, ServiceResult

    class ConversationService(BaseService):
        @classmethod
        def create(cls, requester, counterparty) -> ServiceResult[Conversation]:
            if requester.id == counterparty.id:
                return ServiceResult.failure(
                    "Cannot start a conversation with yourself",
                    error_code="SAME_USER",
                )

            with cls.atomic():
                conversation = Conversation.objects.create()

            cls.get_logger().info(f"Created conversation {conversation.id}")
            return ServiceResult.success(conversation)

    # In a view, translate failures into API exceptions
    conversation = result.unwrap(ERROR_CODE_EXCEPTIONS)

Related:
    - core.exceptions: Exception classes failures are translated into
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

from core.exceptions import BaseApplicationError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Generator, Mapping

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (validation errors, business rule violations).

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        # Success case
        return ServiceResult.success(message)

        # Failure case
        return ServiceResult.failure("Message not found", "MESSAGE_NOT_FOUND")

        # Check result
        result = MessageService.send_message(chat_id, sender, content)
        if result.success:
            message = result.data
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    def to_exception(
        self,
        error_map: Mapping[str, type[BaseApplicationError]],
        default: type[BaseApplicationError] = ValidationError,
    ) -> BaseApplicationError:
        """
        Build the application exception matching this failure.

        Args:
            error_map: Error code to exception class mapping
            default: Exception class for codes missing from the map

        Returns:
            Exception instance carrying message, error code and field errors
        """
        exc_class = error_map.get(self.error_code or "", default)
        return exc_class(
            self.error or "Request failed",
            error_code=self.error_code,
            details=self.errors,
        )

    def unwrap(
        self,
        error_map: Mapping[str, type[BaseApplicationError]],
        default: type[BaseApplicationError] = ValidationError,
    ) -> T:
        """
        Return the data of a successful result or raise for a failed one.

        Example:
            conversation = ConversationService.get_for_participant(
                chat_id, request.user
            ).unwrap(ERROR_CODE_EXCEPTIONS)
        """
        if not self.success:
            raise self.to_exception(error_map, default)
        return self.data  # type: ignore[return-value]

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Required-field validation

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.
        """
        with transaction.atomic():
            yield

