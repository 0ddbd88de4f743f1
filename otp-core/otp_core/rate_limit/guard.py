"""
Admission Guard
===============
Pre-condition stage that rejects exhausted clients before a handler runs.
"""

from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar
import structlog

from otp_core.errors import RateLimited
from .models import RateLimitInfo
from .sliding_window import SlidingWindowLimiter

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class AdmissionGuard:
    """
    Checks the quota of a client without recording an attempt.

    Usage:
        guard = AdmissionGuard(limiter)
        handler = guarded(guard, manager.generate)
        await handler(client_key)
    """

    def __init__(self, limiter: SlidingWindowLimiter):
        self.limiter = limiter

    async def __call__(self, client_key: str) -> RateLimitInfo:
        info = await self.limiter.peek(client_key)
        if not info.allowed:
            logger.info("Admission rejected", client=client_key)
            raise RateLimited(
                limit=info.limit,
                retry_after=info.retry_after,
                reset_at=info.reset_at,
            )
        return info


def guarded(
    guard: Callable[[str], Awaitable[Any]],
    handler: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """Compose ``guard`` ahead of ``handler``; the first positional arg is the client key."""

    @wraps(handler)
    async def wrapper(client_key: str, *args, **kwargs) -> T:
        await guard(client_key)
        return await handler(client_key, *args, **kwargs)

    return wrapper
