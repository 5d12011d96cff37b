"""
Service error taxonomy.

Every error carries the HTTP status it maps to and a stable ``code`` used in
the JSON error body (``{"error": ..., "code": ...}``). Services raise these
directly; the exception handler registered in ``main.py`` renders them.
"""

from typing import Optional, Dict


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    code: str = "ServiceError"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.message, "code": self.code}


class AuthFailedError(ServiceError):
    status_code = 401
    code = "AuthFailed"
    default_message = "Invalid authentication credentials"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(ServiceError):
    status_code = 403
    code = "Forbidden"
    default_message = "Not enough permissions"


class NotFoundError(ServiceError):
    status_code = 404
    code = "NotFound"
    default_message = "Resource not found"


class BalanceNotFoundError(NotFoundError):
    default_message = "Credit balance not found"


class PaymentNotFoundError(NotFoundError):
    default_message = "Payment transaction not found"


class GenerationNotFoundError(NotFoundError):
    default_message = "Generation not found"


class UserNotFoundError(NotFoundError):
    default_message = "User not found"


class InvalidPaymentMethodError(ServiceError):
    status_code = 400
    code = "InvalidMethod"
    default_message = "Invalid or disabled payment method"


class InsufficientCreditsError(ServiceError):
    status_code = 400
    code = "InsufficientFunds"
    default_message = "Insufficient credits. Please purchase more credits to continue."


class MissingFieldsError(ServiceError):
    status_code = 400
    code = "MissingFields"
    default_message = "Missing required fields"


class ProviderError(ServiceError):
    status_code = 400
    code = "ProviderError"
    default_message = "Code generation failed"


class InvalidRequestError(ServiceError):
    status_code = 400
    code = "InvalidRequest"
    default_message = "Invalid request"


class InvalidPaymentTransitionError(ServiceError):
    status_code = 409
    code = "InvalidTransition"
    default_message = "Payment has already been reviewed"


class StorageError(ServiceError):
    status_code = 500
    code = "StorageError"
    default_message = "Database operation failed"


class PaymentIncompleteError(StorageError):
    code = "PaymentIncomplete"
    default_message = "Payment recorded but credits could not be awarded. It will be retried."


class AwardFailedError(StorageError):
    code = "AwardFailed"
    default_message = "Failed to award credits"


class RateLimitError(ServiceError):
    status_code = 429
    code = "RateLimited"
    default_message = "Rate limit exceeded"
