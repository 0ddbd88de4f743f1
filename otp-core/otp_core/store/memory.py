"""
In-Memory Store
===============
Dict-backed store for development and testing.
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from otp_core.models import AttemptRecord, OtpRecord
from .base import OtpStore


class InMemoryOtpStore(OtpStore):
    """
    Dict-backed store.

    For development and testing only. Not shared across processes.
    Use SqlAlchemyOtpStore in production.
    """

    def __init__(self):
        self._otps: Dict[str, OtpRecord] = {}
        self._attempts: List[AttemptRecord] = []

    async def create_otp(self, record: OtpRecord) -> OtpRecord:
        self._otps[record.id] = replace(record)
        return replace(record)

    async def find_otp(self, otp_id: str, owner_key: Optional[str] = None) -> Optional[OtpRecord]:
        record = self._otps.get(otp_id)
        if record is None:
            return None
        if owner_key is not None and record.owner_key != owner_key:
            return None
        return replace(record)

    async def find_latest_otp(self, owner_key: str, now: datetime) -> Optional[OtpRecord]:
        candidates = [
            r for r in self._otps.values()
            if r.owner_key == owner_key and r.is_pending(now)
        ]
        if not candidates:
            return None
        return replace(max(candidates, key=lambda r: r.created_at))

    async def replace_pending_otp(self, record: OtpRecord) -> int:
        superseded = self._drop_unverified(record.owner_key)
        self._otps[record.id] = replace(record)
        return superseded

    async def mark_verified(self, otp_id: str) -> bool:
        record = self._otps.get(otp_id)
        if record is None or record.verified:
            return False
        record.verified = True
        return True

    async def delete_otp(self, otp_id: str) -> None:
        self._otps.pop(otp_id, None)

    async def delete_unverified_otps(self, owner_key: str) -> int:
        return self._drop_unverified(owner_key)

    def _drop_unverified(self, owner_key: str) -> int:
        stale = [
            otp_id for otp_id, r in self._otps.items()
            if r.owner_key == owner_key and not r.verified
        ]
        for otp_id in stale:
            del self._otps[otp_id]
        return len(stale)

    async def delete_expired_otps(self, now: datetime) -> int:
        expired = [otp_id for otp_id, r in self._otps.items() if r.is_expired(now)]
        for otp_id in expired:
            del self._otps[otp_id]
        return len(expired)

    async def create_attempt(self, client_key: str, at: datetime) -> None:
        self._attempts.append(AttemptRecord(client_key=client_key, created_at=at))

    async def count_attempts(self, client_key: str, since: datetime) -> int:
        return sum(
            1 for a in self._attempts
            if a.client_key == client_key and a.created_at >= since
        )

    async def oldest_attempt(self, client_key: str, since: datetime) -> Optional[datetime]:
        in_window = [
            a.created_at for a in self._attempts
            if a.client_key == client_key and a.created_at >= since
        ]
        return min(in_window, default=None)

    async def delete_attempts(self, client_key: str) -> int:
        before = len(self._attempts)
        self._attempts = [a for a in self._attempts if a.client_key != client_key]
        return before - len(self._attempts)

    async def delete_attempts_before(self, cutoff: datetime) -> int:
        before = len(self._attempts)
        self._attempts = [a for a in self._attempts if a.created_at >= cutoff]
        return before - len(self._attempts)
