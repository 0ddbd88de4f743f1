"""
Sliding Window Rate Limiter
===========================
Per-client issuance counter over a trailing window, backed by the OTP store.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
import structlog

from otp_core.store.base import OtpStore
from .models import RateLimitInfo

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SlidingWindowLimiter:
    """
    Sliding window rate limiter over persisted attempt records.

    Counts then inserts; concurrent callers may over-admit by at most one
    per race. Store failures propagate, so a request that cannot be checked
    is rejected rather than admitted.
    """

    def __init__(
        self,
        store: OtpStore,
        max_attempts: int = 5,
        window_seconds: int = 30,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.store = store
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock or utcnow

    def _window_start(self, now: datetime) -> datetime:
        return now - timedelta(seconds=self.window_seconds)

    def _reset_at(self, now: datetime) -> int:
        return math.floor(now.timestamp()) + self.window_seconds

    async def _blocked(self, client_key: str, now: datetime) -> RateLimitInfo:
        # The quota frees up when the oldest counted attempt leaves the window
        oldest = await self.store.oldest_attempt(client_key, self._window_start(now))
        if oldest is None:
            reset_at = now + timedelta(seconds=self.window_seconds)
        else:
            reset_at = oldest + timedelta(seconds=self.window_seconds)
        retry_after = max(1, math.ceil((reset_at - now).total_seconds()))

        return RateLimitInfo(
            allowed=False,
            attempts_left=0,
            limit=self.max_attempts,
            reset_at=math.ceil(reset_at.timestamp()),
            retry_after=retry_after,
        )

    async def peek(self, client_key: str) -> RateLimitInfo:
        """Report the current quota without recording an attempt."""
        now = self._clock()
        count = await self.store.count_attempts(client_key, self._window_start(now))

        if count >= self.max_attempts:
            return await self._blocked(client_key, now)

        return RateLimitInfo(
            allowed=True,
            attempts_left=self.max_attempts - count,
            limit=self.max_attempts,
            reset_at=self._reset_at(now),
        )

    async def check_and_record(self, client_key: str) -> RateLimitInfo:
        """
        Admit or reject one issuance attempt for ``client_key``.

        Returns:
            RateLimitInfo; ``attempts_left`` counts the attempts still
            available after this one
        """
        now = self._clock()
        count = await self.store.count_attempts(client_key, self._window_start(now))

        if count >= self.max_attempts:
            logger.warning(
                "Rate limit exceeded",
                client=client_key,
                attempts=count,
                limit=self.max_attempts,
            )
            return await self._blocked(client_key, now)

        await self.store.create_attempt(client_key, now)

        return RateLimitInfo(
            allowed=True,
            attempts_left=self.max_attempts - count - 1,
            limit=self.max_attempts,
            reset_at=self._reset_at(now),
        )

    async def clear(self, client_key: str) -> None:
        """Reset the window for ``client_key``."""
        removed = await self.store.delete_attempts(client_key)
        logger.debug("Rate limit cleared", client=client_key, removed=removed)
