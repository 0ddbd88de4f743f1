"""
OTP Core Library
================
One-time passcode issuance, verification and encrypted retrieval.
"""

__version__ = "0.1.0"

# Errors
from otp_core.errors import (
    OTPServiceError,
    RateLimited,
    NotFound,
    Unauthorized,
    DeliveryFailed,
    MalformedCiphertext,
    DependencyUnavailable,
)

# Config
from otp_core.config import OTPConfig

# Models
from otp_core.models import (
    OtpRecord,
    AttemptRecord,
    GenerateResult,
    RetrievalResult,
)

# Crypto
from otp_core.crypto import CryptoEngine, decrypt_with_public_key

# Identity
from otp_core.identity import ClientIdentityResolver, IdentityPolicy

# Rate Limiting
from otp_core.rate_limit import (
    SlidingWindowLimiter,
    RateLimitInfo,
    AdmissionGuard,
    guarded,
)

# Stores
from otp_core.store import OtpStore, InMemoryOtpStore, SqlAlchemyOtpStore

# Notification
from otp_core.notify import (
    NotificationSender,
    NullSender,
    SendResult,
    TwilioOtpSender,
    build_sender,
)

# OTP
from otp_core.otp import (
    OtpLifecycleManager,
    RetrievalAuthenticator,
    build_manager,
    generate_code,
    purge_expired,
)

# Cache
from otp_core.cache import TTLCache

__all__ = [
    # Errors
    "OTPServiceError",
    "RateLimited",
    "NotFound",
    "Unauthorized",
    "DeliveryFailed",
    "MalformedCiphertext",
    "DependencyUnavailable",
    # Config
    "OTPConfig",
    # Models
    "OtpRecord",
    "AttemptRecord",
    "GenerateResult",
    "RetrievalResult",
    # Crypto
    "CryptoEngine",
    "decrypt_with_public_key",
    # Identity
    "ClientIdentityResolver",
    "IdentityPolicy",
    # Rate Limiting
    "SlidingWindowLimiter",
    "RateLimitInfo",
    "AdmissionGuard",
    "guarded",
    # Stores
    "OtpStore",
    "InMemoryOtpStore",
    "SqlAlchemyOtpStore",
    # Notification
    "NotificationSender",
    "NullSender",
    "SendResult",
    "TwilioOtpSender",
    "build_sender",
    # OTP
    "OtpLifecycleManager",
    "RetrievalAuthenticator",
    "build_manager",
    "generate_code",
    "purge_expired",
    # Cache
    "TTLCache",
]
