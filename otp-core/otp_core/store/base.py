"""
Store Interface
===============
Persistence contract the lifecycle manager and the rate limiter depend on.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from otp_core.models import OtpRecord


class OtpStore(ABC):
    """
    Abstract keyed store for OTP and attempt records.

    Implementations raise ``DependencyUnavailable`` when the backend fails;
    callers never retry.
    """

    # OTP records

    @abstractmethod
    async def create_otp(self, record: OtpRecord) -> OtpRecord:
        pass

    @abstractmethod
    async def find_otp(self, otp_id: str, owner_key: Optional[str] = None) -> Optional[OtpRecord]:
        """Find by id, optionally restricted to ``owner_key``."""
        pass

    @abstractmethod
    async def find_latest_otp(self, owner_key: str, now: datetime) -> Optional[OtpRecord]:
        """Most recent unverified record of ``owner_key`` not expired at ``now``."""
        pass

    @abstractmethod
    async def replace_pending_otp(self, record: OtpRecord) -> int:
        """
        Delete the unverified records of ``record.owner_key`` and insert
        ``record`` as one atomic step.

        Returns:
            Number of superseded records
        """
        pass

    @abstractmethod
    async def mark_verified(self, otp_id: str) -> bool:
        """
        Flip an unverified record to verified.

        Returns:
            True only for the single caller that made the change
        """
        pass

    @abstractmethod
    async def delete_otp(self, otp_id: str) -> None:
        pass

    @abstractmethod
    async def delete_unverified_otps(self, owner_key: str) -> int:
        pass

    @abstractmethod
    async def delete_expired_otps(self, now: datetime) -> int:
        pass

    # Attempt records

    @abstractmethod
    async def create_attempt(self, client_key: str, at: datetime) -> None:
        pass

    @abstractmethod
    async def count_attempts(self, client_key: str, since: datetime) -> int:
        pass

    @abstractmethod
    async def oldest_attempt(self, client_key: str, since: datetime) -> Optional[datetime]:
        """Earliest attempt of ``client_key`` at or after ``since``."""
        pass

    @abstractmethod
    async def delete_attempts(self, client_key: str) -> int:
        pass

    @abstractmethod
    async def delete_attempts_before(self, cutoff: datetime) -> int:
        pass

    async def close(self) -> None:
        """Release backend resources."""
        pass
