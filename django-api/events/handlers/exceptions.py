"""Maps domain errors to HTTP responses.

Installed as the REST framework EXCEPTION_HANDLER so every view shares
one status table and no internal detail leaks into a response.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from events.domain.errors import DomainError, ErrorCode, ValidationError

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_EVENT_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_TICKET_TYPE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INSUFFICIENT_INVENTORY: status.HTTP_400_BAD_REQUEST,
    ErrorCode.AMOUNT_MISMATCH: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ALREADY_BOOKED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.DUPLICATE_REFERENCE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.PAYMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PAYMENT_NOT_DELETABLE: status.HTTP_409_CONFLICT,
    ErrorCode.GATEWAY_INIT_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.VERIFICATION_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.OVERSOLD_AT_SETTLEMENT: status.HTTP_409_CONFLICT,
    ErrorCode.PAID_AFTER_FAILURE: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: status.HTTP_401_UNAUTHORIZED,
}


def error_response(error: DomainError) -> Response:
    body = {"success": False, "code": error.code.value, "message": error.message}
    if isinstance(error, ValidationError) and error.errors:
        body["errors"] = error.errors
    return Response(
        body, status=ERROR_STATUS.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    )


def exception_handler(exc, context):
    if isinstance(exc, DomainError):
        return error_response(exc)

    response = drf_exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.exception("Unhandled error in %s", type(view).__name__ if view else "view")
    return Response(
        {"success": False, "message": "Internal server error"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
