# common/exceptions.py
"""
Error taxonomy shared by every API surface, and the DRF exception handler
that turns any failure into a JSON response at the request boundary.

ClientInputError -> 400, AuthError -> 401, NotFoundError -> 404,
UpstreamError (storage, extraction workflow, identity provider, database) -> 500.
"""
import logging

from django.db import DatabaseError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "Internal server error while processing request"


class ClientInputError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Malformed request"
    default_code = "client_input"


class AuthError(exceptions.AuthenticationFailed):
    default_detail = "Invalid or expired token"
    default_code = "auth"


class NotFoundError(exceptions.NotFound):
    default_detail = "Bill not found"
    default_code = "not_found"


class UpstreamError(exceptions.APIException):
    """
    A provider or the database failed. The message passed in is kept for
    logs only; callers always see the generic detail.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = GENERIC_SERVER_ERROR
    default_code = "upstream"

    def __init__(self, message="", public_detail=None):
        super().__init__(detail=public_detail or self.default_detail)
        self.internal_message = message or self.default_detail

    def __str__(self):
        return self.internal_message


def _flatten_detail(detail):
    """Pick the first human-readable message out of a DRF error payload."""
    if isinstance(detail, dict):
        if not detail:
            return ""
        return _flatten_detail(next(iter(detail.values())))
    if isinstance(detail, (list, tuple)):
        return _flatten_detail(detail[0]) if detail else ""
    return str(detail)


def api_exception_handler(exc, context):
    # rest_framework.views loads DEFAULT_AUTHENTICATION_CLASSES, which import this module
    from rest_framework.views import exception_handler

    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else "unknown"

    if isinstance(exc, UpstreamError):
        logger.error(f"{view_name}: upstream failure: {exc.internal_message}", exc_info=exc)
        return Response({"error": str(exc.detail)}, status=exc.status_code)

    if isinstance(exc, DatabaseError):
        logger.error(f"{view_name}: database failure: {exc}", exc_info=exc)
        return Response({"error": GENERIC_SERVER_ERROR}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(exc, Http404):
        exc = NotFoundError()

    response = exception_handler(exc, context)
    if response is None:
        logger.error(f"{view_name}: unhandled error: {exc}", exc_info=exc)
        return Response({"error": GENERIC_SERVER_ERROR}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(exc, exceptions.ValidationError):
        response.data = {"error": _flatten_detail(exc.detail), "errors": exc.detail}
    else:
        response.data = {"error": _flatten_detail(response.data)}
    return response
