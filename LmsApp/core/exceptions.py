"""Project error kinds and the DRF exception handler that renders them as ``{"error": ...}``.

Kinds and status codes:
    NotAuthenticated / AuthenticationFailed -> 401
    PermissionDenied -> 403
    NotFound / Http404 -> 404
    ValidationError, Conflict, Locked -> 400
    Upstream (store/storage failures) and anything unexpected -> 500
"""

import logging
from typing import Any

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class Conflict(APIException):
    """A uniqueness rule was violated (duplicate enrollment, submission, request or join code)."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Conflict with existing record."
    default_code = "conflict"


class Locked(APIException):
    """Task gating (sequence or deadline) forbids the requested transition."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Task is locked."
    default_code = "locked"


class Upstream(APIException):
    """The store, object storage or another provider failed."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Upstream service failure."
    default_code = "upstream"


def _flatten(detail: Any) -> str:
    if isinstance(detail, dict):
        parts = []
        for field, value in detail.items():
            message = _flatten(value)
            parts.append(message if field == "non_field_errors" else f"{field}: {message}")
        return "; ".join(parts)
    if isinstance(detail, (list, tuple)):
        return "; ".join(_flatten(item) for item in detail)
    return str(detail)


def api_exception_handler(exc: Exception, context: dict) -> Response:
    """Render every error as ``{"error": str}`` (plus ``fields`` for validation errors)."""
    if isinstance(exc, DatabaseError):
        logger.exception("Database failure in %s", context.get("view").__class__.__name__)
        exc = Upstream()

    response = exception_handler(exc, context)
    if response is None:
        logger.exception("Unhandled error in %s", context.get("view").__class__.__name__)
        return Response(
            {"error": "Internal server error."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    data = response.data
    if isinstance(data, dict) and set(data) == {"detail"}:
        message = str(data["detail"])
    else:
        message = _flatten(data)
    body: dict[str, Any] = {"error": message}
    if isinstance(exc, ValidationError) and isinstance(exc.detail, dict):
        body["fields"] = exc.detail
    response.data = body
    return response
