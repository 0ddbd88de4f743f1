"""
Store Maintenance
=================
Opportunistic purge of expired OTPs and attempts outside the window.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
import structlog

from otp_core.store.base import OtpStore

logger = structlog.get_logger(__name__)


async def purge_expired(
    store: OtpStore,
    window_seconds: int,
    now: Optional[datetime] = None,
) -> Tuple[int, int]:
    """
    Delete expired OTPs and attempts that can no longer be counted.

    Returns:
        Tuple of (otps_removed, attempts_removed)
    """
    now = now or datetime.now(timezone.utc)
    otps = await store.delete_expired_otps(now)
    attempts = await store.delete_attempts_before(now - timedelta(seconds=window_seconds))

    if otps or attempts:
        logger.info("Expired records purged", otps=otps, attempts=attempts)
    return otps, attempts


async def run_periodic_purge(
    store: OtpStore,
    window_seconds: int,
    interval_seconds: float = 60.0,
) -> None:
    """Purge forever every ``interval_seconds``; cancel the task to stop."""
    while True:
        await asyncio.sleep(interval_seconds)
        await purge_expired(store, window_seconds)
