"""
Domain error base and the DRF exception handler.

Every API error is rendered as ``{"success": false, "message": ..., "errors": ...}``
so clients see one envelope regardless of where the request was rejected.
"""
import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base for errors raised by the service layer."""

    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed."

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors or {}
        super().__init__(self.message)


def _detail_message(data):
    if isinstance(data, dict) and "detail" in data:
        return str(data["detail"])
    if isinstance(data, list) and data:
        return str(data[0])
    return "Request could not be processed."


def api_exception_handler(exc, context):
    """Map domain and DRF exceptions onto the API error envelope."""
    if isinstance(exc, DomainError):
        payload = {"success": False, "message": exc.message}
        if exc.errors:
            payload["errors"] = exc.errors
        return Response(payload, status=exc.http_status)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception("Unhandled error in %s", view.__class__.__name__ if view else "view")
        return Response(
            {"success": False, "message": "Internal server error."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, exceptions.ValidationError):
        response.data = {
            "success": False,
            "message": "Validation failed.",
            "errors": response.data,
        }
    else:
        response.data = {"success": False, "message": _detail_message(response.data)}
    return response
