"""
Module: errors.py
Description: Exception hierarchy for the SMS dispatch service.

Delivery-level failures (provider rejections, transport errors) are never
raised: they become a terminal `failed` record. These exceptions cover
the failures that do propagate to a caller.
"""

from typing import Any, Optional


class SmsDispatchError(Exception):
    """Base exception for the SMS dispatch service."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Any] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class AuthorizationError(SmsDispatchError):
    """Raised when an operation requiring a caller identity has none."""

    def __init__(self, message: str = "User must be authenticated", details: Optional[Any] = None):
        super().__init__(message, code="UNAUTHENTICATED", status_code=401, details=details)


class RequestNotFoundError(SmsDispatchError):
    """Raised when an SMS request does not exist."""

    def __init__(self, message: str = "SMS request not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class RecoveryError(SmsDispatchError):
    """Raised when a recovery batch cannot run at all (e.g. the pending query fails)."""

    def __init__(self, message: str = "Failed to process pending SMS requests", details: Optional[Any] = None):
        super().__init__(message, code="INTERNAL", status_code=500, details=details)
