"""
Store Module
============
Persistence for OTP and attempt records.
"""

from .base import OtpStore
from .memory import InMemoryOtpStore
from .sqlalchemy_store import SqlAlchemyOtpStore, OtpRow, AttemptRow

__all__ = [
    "OtpStore",
    "InMemoryOtpStore",
    "SqlAlchemyOtpStore",
    "OtpRow",
    "AttemptRow",
]
