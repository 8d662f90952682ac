"""
DRF exception handler rendering every API error in the response envelope.

Envelope:
    {
        "status": "fail",            # 4xx; "error" for 5xx
        "message": "Conversation not found",
        "errorCode": "CONVERSATION_NOT_FOUND",
        "errors": {"content": ["This field is required."]}   # optional
    }

Handled:
    - core.exceptions.BaseApplicationError subclasses (status from the class)
    - DRF APIException subclasses, including serializer validation,
      authentication, throttling and method-not-allowed
    - Django Http404 / PermissionDenied (converted by DRF)
    - Anything else: logged with traceback and answered with a generic 500

Configured via REST_FRAMEWORK["EXCEPTION_HANDLER"].
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


def build_envelope(
    status_code: int,
    message: str,
    error_code: str | None = None,
    errors: Any = None,
) -> dict[str, Any]:
    """Build the error body for a status code."""
    body: dict[str, Any] = {
        "status": "error" if status_code >= 500 else "fail",
        "message": message,
    }
    if error_code:
        body["errorCode"] = error_code
    if errors:
        body["errors"] = errors
    return body


def _drf_error_code(exc: exceptions.APIException) -> str:
    codes = exc.get_codes()
    if isinstance(codes, str):
        return codes.upper()
    return exc.default_code.upper()


def envelope_exception_handler(exc: Exception, context: dict) -> Response | None:
    """Render ``exc`` as an envelope response."""
    if isinstance(exc, BaseApplicationError):
        if exc.status_code >= 500:
            logger.error(f"Application error: {exc!r}")
        return Response(
            build_envelope(exc.status_code, exc.message, exc.error_code, exc.details),
            status=exc.status_code,
        )

    if isinstance(exc, Http404):
        exc = exceptions.NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied()

    response = drf_exception_handler(exc, context)

    if response is not None:
        if isinstance(exc, exceptions.ValidationError):
            errors = response.data
            if isinstance(errors, list):
                errors = {"non_field_errors": errors}
            message = "Invalid request data"
            error_code = "VALIDATION_ERROR"
        else:
            detail = response.data.get("detail") if isinstance(response.data, dict) else None
            message = str(detail) if detail else "Request failed"
            errors = None
            error_code = _drf_error_code(exc)
        response.data = build_envelope(response.status_code, message, error_code, errors)
        return response

    view = context.get("view")
    logger.exception(
        f"Unhandled exception in {view.__class__.__name__ if view else 'unknown view'}"
    )
    return Response(
        build_envelope(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            "INTERNAL_ERROR",
        ),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
