"""
OTP Models
==========
Records shared between the lifecycle manager, the rate limiter and the stores.
"""

from datetime import datetime
from dataclasses import dataclass


@dataclass
class OtpRecord:
    """One issued passcode."""
    id: str
    code: str
    owner_key: str
    created_at: datetime
    expires_at: datetime
    verified: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def is_pending(self, now: datetime) -> bool:
        return not self.verified and not self.is_expired(now)


@dataclass
class AttemptRecord:
    """One counted issuance attempt."""
    client_key: str
    created_at: datetime


@dataclass
class GenerateResult:
    """Outcome of an admitted generation."""
    id: str
    attempts_left: int


@dataclass
class RetrievalResult:
    """Encrypted OTP handed to the back-office retrieval caller."""
    encrypted_code: str
    public_key: str
    id: str
