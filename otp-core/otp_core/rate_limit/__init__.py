"""
Rate Limiting Module
====================
Sliding window issuance limiter and the admission guard built on it.
"""

from .models import RateLimitResult, RateLimitInfo
from .sliding_window import SlidingWindowLimiter
from .guard import AdmissionGuard, guarded

__all__ = [
    # Models
    "RateLimitResult",
    "RateLimitInfo",
    # Limiter
    "SlidingWindowLimiter",
    # Guard
    "AdmissionGuard",
    "guarded",
]
