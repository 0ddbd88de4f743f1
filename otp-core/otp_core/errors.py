"""
OTP Service Errors
==================
Exception hierarchy surfaced to the request boundary.

Every error carries an internal ``code`` and the HTTP ``status_code`` it maps
to, so callers can translate it without isinstance ladders.
"""

from typing import Optional, Any


class OTPServiceError(Exception):
    """Base exception for all OTP service errors."""

    code: str = "OTP_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


class RateLimited(OTPServiceError):
    """Issuance denied because the sliding-window quota is exhausted."""

    code = "RATE_LIMITED"
    status_code = 429

    def __init__(
        self,
        message: str = "Too many requests",
        limit: int = 0,
        retry_after: Optional[int] = None,
        reset_at: Optional[int] = None,
    ):
        super().__init__(message)
        self.limit = limit
        self.retry_after = retry_after
        self.reset_at = reset_at


class NotFound(OTPServiceError):
    """No unconsumed, unexpired OTP matches the identifier or resource."""

    code = "OTP_NOT_FOUND"
    status_code = 404


class Unauthorized(OTPServiceError):
    """Retrieval credentials or session identity missing or invalid."""

    code = "UNAUTHORIZED"
    status_code = 401


class DeliveryFailed(OTPServiceError):
    """Notification sender reported failure; the new OTP was discarded."""

    code = "DELIVERY_FAILED"
    status_code = 502


class MalformedCiphertext(OTPServiceError):
    """Ciphertext does not parse or does not authenticate."""

    code = "MALFORMED_CIPHERTEXT"
    status_code = 400


class DependencyUnavailable(OTPServiceError):
    """Persistence or crypto initialization failure."""

    code = "DEPENDENCY_UNAVAILABLE"
    status_code = 503
