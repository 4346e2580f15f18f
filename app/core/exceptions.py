from typing import Any, Dict, Optional
from fastapi import status


class BillingError(Exception):
    """Base class for errors raised by the billing services."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, details: Optional[Dict[str, Any]] = None):
        self.detail = detail
        self.details = details or {}
        super().__init__(detail)


class ValidationError(BillingError):
    """Malformed or missing input, or a state that does not allow the action."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND


class AuthorizationError(BillingError):
    """The entity exists but does not belong to the caller."""
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(BillingError):
    status_code = status.HTTP_409_CONFLICT


class ProviderError(BillingError):
    """
    Payment provider transport or business failure.
    `result` carries the saga outcome when the failure happened mid-saga.
    """
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, detail: str, details: Optional[Dict[str, Any]] = None, result: Any = None):
        super().__init__(detail, details)
        self.result = result


class PersistenceError(BillingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
