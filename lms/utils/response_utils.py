"""Response envelope and DRF exception handler.

Every API response, success or failure, has the shape
``{"success": bool, "message": str, "data": ...}``. Batch lifecycle errors
add ``code`` (and ``field`` for validation errors) to ``data`` so clients can
branch without parsing the message.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from lms.exceptions import BatchError

logger = logging.getLogger(__name__)


def api_response(success: bool, message: str, data=None, status_code=status.HTTP_200_OK):
    """
    Reusable API response wrapper for consistent frontend consumption.
    Args:
        success (bool): Indicates if the request was successful.
        message (str): Human-readable message for the frontend.
        data (dict or list, optional): The data payload. Defaults to empty dict.
        status_code (int, optional): HTTP status code. Defaults to 200.
    Returns:
        Response: DRF Response object with standardized structure.
    """
    if data is None:
        data = {}
    return Response({"success": success, "message": message, "data": data}, status=status_code)


def extract_clean_message(error_data):
    """Pull the first human-readable message out of nested DRF error data."""
    if isinstance(error_data, list) and error_data:
        return extract_clean_message(error_data[0])
    if isinstance(error_data, dict) and error_data:
        return extract_clean_message(next(iter(error_data.values())))
    return str(error_data)


def batch_error_data(exc):
    data = {"code": getattr(exc.detail, "code", exc.default_code)}
    field = getattr(exc, "field", None)
    if field:
        data["field"] = field
    blocking = getattr(exc, "blocking_batch", None)
    if blocking:
        data["blocking_batch"] = blocking
    return data


def custom_exception_handler(exc, context):
    """
    Custom exception handler that formats all errors to match api_response format.
    """
    response = exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception("Unhandled error in %s", type(view).__name__ if view else "API", exc_info=exc)
        return api_response(
            False,
            "An internal server error occurred.",
            {},
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, BatchError):
        return api_response(False, exc.message, batch_error_data(exc), response.status_code)

    if hasattr(exc, "detail"):
        message = extract_clean_message(exc.detail)
    else:
        message = extract_clean_message(response.data)

    return api_response(False, message, response.data, response.status_code)
