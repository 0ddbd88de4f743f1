"""
HTTP Integration
================
Maps service errors to JSON responses at the request boundary.

Never exposes internal error details; the body carries the internal code
so clients can branch on it.
"""

from typing import Dict

from starlette.responses import JSONResponse
import structlog

from otp_core.errors import OTPServiceError, RateLimited

logger = structlog.get_logger(__name__)

_PUBLIC_MESSAGES: Dict[str, str] = {
    "RATE_LIMITED": "Too Many Requests",
    "OTP_NOT_FOUND": "No valid OTP found",
    "UNAUTHORIZED": "Invalid client credentials",
    "DELIVERY_FAILED": "Failed to send OTP. Please try again.",
    "MALFORMED_CIPHERTEXT": "Invalid encrypted data",
    "DEPENDENCY_UNAVAILABLE": "Service temporarily unavailable",
}


def error_response(exc: OTPServiceError) -> JSONResponse:
    """Build the JSON response for a service error."""
    if exc.status_code >= 500:
        logger.warning("Request failed", code=exc.code, detail=exc.message)

    headers: Dict[str, str] = {}
    if isinstance(exc, RateLimited):
        headers["X-RateLimit-Limit"] = str(exc.limit)
        headers["X-RateLimit-Remaining"] = "0"
        if exc.reset_at is not None:
            headers["X-RateLimit-Reset"] = str(exc.reset_at)
        if exc.retry_after is not None:
            headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code.lower(),
            "message": _PUBLIC_MESSAGES.get(exc.code, "Request failed"),
            "code": exc.code,
        },
        headers=headers,
    )
