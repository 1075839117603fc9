"""
Custom exception handlers for Django REST Framework.
Provides consistent error formatting and proper HTTP status codes.
"""

import logging
import traceback

from django.http import JsonResponse
from rest_framework.views import exception_handler

from core.exceptions import QVoteError

logger = logging.getLogger(__name__)


def custom_exception_handler(exc, context):
    """
    Custom exception handler for DRF that provides consistent error formatting.

    Q.Vote errors are rendered with their stable ``errorCode`` so clients can
    branch on expected outcomes (already voted, blocked, ...) instead of
    showing a generic failure.

    Args:
        exc: The exception that was raised
        context: Dictionary containing context information about the exception

    Returns:
        Response object with formatted error, or None to use default handler
    """
    if isinstance(exc, QVoteError):
        payload = exc.to_dict()
        payload["status_code"] = exc.status_code
        response = JsonResponse(payload, status=exc.status_code)
        retry_after = exc.extra.get("retry_after")
        if retry_after is not None:
            response["Retry-After"] = str(retry_after)
        return response

    response = exception_handler(exc, context)

    # If response is None, it's an unhandled exception (500 error)
    if response is None:
        logger.error(
            f"Unhandled exception: {exc.__class__.__name__}: {str(exc)}\n"
            f"Traceback:\n{traceback.format_exc()}"
        )

        # Don't expose internal details
        return JsonResponse(
            {
                "error": "An internal server error occurred",
                "error_code": "InternalServerError",
                "status_code": 500,
            },
            status=500,
        )

    custom_response_data = {
        "error": str(exc),
        "error_code": exc.__class__.__name__,
        "status_code": response.status_code,
    }

    if hasattr(exc, "detail"):
        if isinstance(exc.detail, dict):
            custom_response_data["errors"] = exc.detail
        elif isinstance(exc.detail, list):
            custom_response_data["errors"] = {"detail": exc.detail}
        else:
            custom_response_data["error"] = str(exc.detail)

    response.data = custom_response_data

    return response
