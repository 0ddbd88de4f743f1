"""
Crypto Module
=============
Hybrid RSA + AES-GCM protection of OTP values for the retrieval channel.
"""

from .engine import (
    CryptoEngine,
    decrypt_with_public_key,
    derive_symmetric_key,
    join_wire,
    split_wire,
)

__all__ = [
    "CryptoEngine",
    "decrypt_with_public_key",
    "derive_symmetric_key",
    "join_wire",
    "split_wire",
]
