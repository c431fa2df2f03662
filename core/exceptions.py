from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework import status
import logging

from core.constants import LOGGER_ROOT

logger = logging.getLogger(LOGGER_ROOT)

GENERIC_SERVER_ERROR = "Server error"

STATUS_CODES = {
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
}

PASSTHROUGH_HEADERS = ("WWW-Authenticate", "Retry-After", "Allow")


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"
    default_code = "not_found"


class Forbidden(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"
    default_code = "forbidden"


class Conflict(APIException):
    """
    Business-rule violation with a valid actor and existing entities
    (duplicate member, owner removal, non-member assignee).
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Conflict"
    default_code = "conflict"


class InternalError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = GENERIC_SERVER_ERROR
    default_code = "internal_error"


def _first_message(detail):
    """Pick a human readable message out of a DRF error structure."""
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = _first_message(value)
            if key in ("detail", "non_field_errors"):
                return message
            return f"{key}: {message}"
        return ""
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ""
    return str(detail)


def custom_exception_handler(exc, context):
    """
    Wrap DRF + Django exceptions into the response envelope:
    {"success": false, "message": "...", "error": "<code>"}

    Success responses (2xx) are not touched.
    Only errors come through here.
    """
    if isinstance(exc, InternalError):
        logger.error("Internal error: %s", exc.detail, exc_info=exc.__cause__ or exc)
        return _server_error()

    response = drf_exception_handler(exc, context)

    if response is not None:
        body = {
            "success": False,
            "message": _first_message(response.data),
        }
        if isinstance(exc, ValidationError):
            body["error"] = "validation_error"
            body["errors"] = response.data
        elif isinstance(exc, APIException):
            codes = exc.get_codes()
            body["error"] = codes if isinstance(codes, str) else exc.default_code
        else:
            # Django's Http404 / PermissionDenied
            body["error"] = STATUS_CODES.get(response.status_code, "error")
        headers = {
            name: response[name]
            for name in PASSTHROUGH_HEADERS
            if response.has_header(name)
        }
        return Response(body, status=response.status_code, headers=headers)

    # Unhandled exceptions -> 500, never echo the underlying detail
    logger.exception("Unhandled API exception", exc_info=exc)
    return _server_error()


def _server_error():
    return Response(
        {
            "success": False,
            "message": GENERIC_SERVER_ERROR,
            "error": InternalError.default_code,
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
