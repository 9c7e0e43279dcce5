from fastapi import status
from aeroclub_billing.libs.result import Error


class ClientError(Exception):
    """Raised by routes to turn a use case Error into an HTTP error response"""

    def __init__(self, error: Error, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(error.message)
        self.error = error
        self.status_code = status_code


ERROR_STATUS_CODES = {
    "INVOICE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ACCOUNT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INSUFFICIENT_CREDIT": status.HTTP_402_PAYMENT_REQUIRED,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "ALREADY_REVERSED": status.HTTP_409_CONFLICT,
    "IDEMPOTENCY_KEY_REUSED": status.HTTP_409_CONFLICT,
    "COMMIT_FAILED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "INDETERMINATE": status.HTTP_504_GATEWAY_TIMEOUT,
}


def client_error(error: Error) -> ClientError:
    """Wrap a use case Error with the HTTP status its code maps to (400 by default)"""
    return ClientError(error, status_code=ERROR_STATUS_CODES.get(error.code, status.HTTP_400_BAD_REQUEST))
