"""
OTP Module
==========
OTP lifecycle: issuance, verification and encrypted retrieval.
"""

from .generator import generate_code, new_otp_id
from .credentials import RetrievalAuthenticator
from .service import OtpLifecycleManager, build_manager
from .maintenance import purge_expired, run_periodic_purge

__all__ = [
    # Generation
    "generate_code",
    "new_otp_id",
    # Retrieval auth
    "RetrievalAuthenticator",
    # Manager
    "OtpLifecycleManager",
    "build_manager",
    # Maintenance
    "purge_expired",
    "run_periodic_purge",
]
