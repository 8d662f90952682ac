"""
Core Application - Infrastructure & Base Classes

This app contains infrastructure code shared by the domain apps. It holds
no chat- or property-specific logic.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes and HTTP status
    - ValidationError, AuthenticationError, PermissionDeniedError,
      NotFoundError, ConflictError, RateLimitError, ExternalServiceError

API plumbing:
    - core.exception_handler.envelope_exception_handler: renders every
      API error as {"status": "fail"|"error", "message": ...}
    - core.pagination: page/limit pagination with envelope metadata
    - core.views.health_check: liveness/readiness endpoint

Usage:
    from core.models import BaseModel
    from core.services import BaseService, ServiceResult
    from core.exceptions import NotFoundError, PermissionDeniedError
    from core.pagination import PageLimitPagination, calculate_pagination
"""
