"""
OTP Code Generation
===================
"""

import secrets
import uuid


def generate_code(length: int = 6) -> str:
    """
    Generate a numeric OTP, uniform over all ``length``-digit strings.

    Args:
        length: Number of digits

    Returns:
        OTP string, zero-padded
    """
    if length < 1:
        raise ValueError("length must be at least 1")
    return str(secrets.randbelow(10 ** length)).zfill(length)


def new_otp_id() -> str:
    return str(uuid.uuid4())
