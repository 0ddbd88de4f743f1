"""
Shared fixtures for otp-core tests.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest

from otp_core.crypto import CryptoEngine
from otp_core.notify import MessageStatus, NotificationSender, SendResult
from otp_core.otp import OtpLifecycleManager
from otp_core.rate_limit import SlidingWindowLimiter
from otp_core.store import InMemoryOtpStore

CERT_KEY = "test-cert-key-0123456789"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeSender(NotificationSender):
    """Records sends; fails or raises on demand."""

    name = "fake"

    def __init__(self, success: bool = True, raises: Optional[Exception] = None):
        self.success = success
        self.raises = raises
        self.sent: List[Tuple[str, str]] = []

    async def send_otp(self, to: str, code: str) -> SendResult:
        if self.raises is not None:
            raise self.raises
        self.sent.append((to, code))
        if self.success:
            return SendResult(success=True, message_id="SM-fake", status=MessageStatus.SENT)
        return SendResult(success=False, status=MessageStatus.FAILED, error_message="carrier rejected")


@pytest.fixture(scope="session")
def crypto() -> CryptoEngine:
    return CryptoEngine(CERT_KEY)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryOtpStore:
    return InMemoryOtpStore()


@pytest.fixture
def limiter(store, clock) -> SlidingWindowLimiter:
    return SlidingWindowLimiter(store, max_attempts=5, window_seconds=30, clock=clock)


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def manager(store, limiter, crypto, sender, clock) -> OtpLifecycleManager:
    return OtpLifecycleManager(
        store=store,
        limiter=limiter,
        crypto=crypto,
        sender=sender,
        duration_minutes=5,
        clock=clock,
    )
