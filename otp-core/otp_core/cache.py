"""
TTL Cache
=========
Process-local cache with per-entry expiry and an optional periodic sweep.

Not shared across instances; never the source of truth for OTP existence
or rate-limit decisions.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional, Tuple
import structlog

logger = structlog.get_logger(__name__)


class TTLCache:
    """In-memory key/value cache with per-entry TTL."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() > expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        self._entries[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Remove expired entries."""
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now > expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def run_periodic_sweep(self, interval_seconds: float = 60.0) -> None:
        """
        Sweep forever every ``interval_seconds``.

        Run as a task and cancel it on shutdown:
            task = asyncio.create_task(cache.run_periodic_sweep())
        """
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.sweep()
            if removed:
                logger.debug("Cache sweep", removed=removed, remaining=len(self._entries))
