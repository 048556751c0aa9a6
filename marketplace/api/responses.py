"""
Translate ServiceResult objects into DRF responses.

Every marketplace endpoint answers with the same envelope:

    {"success": true, "data": ...}
    {"success": false, "error": {"code": "...", "message": "..."}}
"""

from rest_framework import status
from rest_framework.response import Response

from marketplace.services.base import ErrorCodes, ServiceResult, service_err

ERROR_STATUS = {
    ErrorCodes.NOT_AUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorCodes.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCodes.LISTING_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCodes.ORDER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCodes.DISPUTE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCodes.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCodes.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCodes.CONCURRENT_MODIFICATION: status.HTTP_409_CONFLICT,
    ErrorCodes.STORAGE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCodes.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_status_for(error_code: str) -> int:
    return ERROR_STATUS.get(error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def result_response(
    result: ServiceResult, serializer_class=None, many=False, success_status=status.HTTP_200_OK, context=None
):
    """
    Build the envelope response for a service result.

    Args:
        result: Outcome of a service call
        serializer_class: Serializer applied to ``result.value`` on success
        many: Serialize a list
        success_status: HTTP status for a successful result
        context: Serializer context (usually ``{"request": request}``)
    """
    if not result.ok:
        return Response(result.to_dict(), status=http_status_for(result.error))

    data = result.value
    if serializer_class is not None:
        data = serializer_class(data, many=many, context=context or {}).data
    return Response({"success": True, "data": data}, status=success_status)


def validation_error_response(errors) -> Response:
    """Envelope for request-body validation failures raised by a DRF serializer."""
    message = "; ".join(
        f"{field}: {' '.join(str(m) for m in messages)}" if isinstance(messages, list) else f"{field}: {messages}"
        for field, messages in errors.items()
    )
    return result_response(service_err(ErrorCodes.VALIDATION_ERROR, message))
