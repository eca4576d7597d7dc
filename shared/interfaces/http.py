"""HTTP mapping for operation outcomes and unexpected errors."""

from __future__ import annotations

import logging

from rest_framework import status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler  # type: ignore

from shared.domain.outcomes import ErrorKind, Failure

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.TIMEOUT: status.HTTP_408_REQUEST_TIMEOUT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


def failure_response(failure: Failure) -> Response:
    """Render a business failure with its stable error code."""

    message = failure.message
    if failure.kind is ErrorKind.INTERNAL:
        message = GENERIC_ERROR_MESSAGE
    return Response(
        {"error": message, "code": failure.kind.value},
        status=STATUS_BY_KIND[failure.kind],
    )


def api_exception_handler(exc, context):  # type: ignore
    """
    DRF exception handler.

    API exceptions (validation, authentication, permissions) keep DRF's
    rendering. Anything else is logged and answered with a generic 500 so
    no internals leak to the client.
    """

    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.error(
        f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}: {exc}",
        exc_info=exc,
    )
    return Response(
        {"error": GENERIC_ERROR_MESSAGE, "code": ErrorKind.INTERNAL.value},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
