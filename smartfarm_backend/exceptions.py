"""
API ERROR HANDLING
Every error leaving the API uses the same envelope:
    {"statusCode", "timestamp", "path", "method", "error"}
Registered as REST_FRAMEWORK["EXCEPTION_HANDLER"].
"""
import logging

from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class Conflict(APIException):
    """409 for duplicate names, emails and ids."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists."
    default_code = "conflict"


class InvalidCredentials(APIException):
    """401 for failed logins, also on views without authenticators."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid email or password."
    default_code = "invalid_credentials"


def _envelope(request, status_code, error):
    return {
        "statusCode": status_code,
        "timestamp": timezone.now().isoformat(),
        "path": request.path if request is not None else None,
        "method": request.method if request is not None else None,
        "error": error,
    }


def api_exception_handler(exc, context):
    request = context.get("request")
    response = exception_handler(exc, context)

    if response is None:
        # Not an APIException / Http404 / PermissionDenied: unexpected failure
        logger.exception(
            "Unhandled error on %s %s",
            getattr(request, "method", "?"),
            getattr(request, "path", "?"),
        )
        return Response(
            _envelope(request, 500, {"detail": "Internal server error"}),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if response.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.path, response.status_code, exc)
    else:
        logger.warning("%s %s -> %s: %s", request.method, request.path, response.status_code, exc)

    response.data = _envelope(request, response.status_code, response.data)
    return response
