"""
Service banner and health check.
"""
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.utils import timezone

from notifications.dispatch import get_sender

API_VERSION = "1.0.0"

_MAIL_STATES = {True: "ready", False: "unavailable", None: "unverified"}


def index_view(request):
    """Describe the service and its entry points."""
    return JsonResponse(
        {
            "success": True,
            "message": "Quote API Service",
            "version": API_VERSION,
            "endpoints": {
                "quotes": "/api/v1/quotes/",
                "products": "/api/v1/products/",
            },
        }
    )


def health_view(request):
    """Report database connectivity and last-known mail transport readiness."""
    try:
        connection.ensure_connection()
        database = "connected"
    except DatabaseError:
        database = "disconnected"
    payload = {
        "status": "ok" if database == "connected" else "degraded",
        "timestamp": timezone.now().isoformat(),
        "database": database,
        "mail": _MAIL_STATES[get_sender().ready],
    }
    return JsonResponse(payload, status=200 if database == "connected" else 503)
