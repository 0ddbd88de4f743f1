"""
OTP Service Configuration
=========================
Configuration values and environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OTPConfig:
    """Configuration for OTP issuance, rate limiting and retrieval."""
    code_length: int = 6
    duration_minutes: int = 5
    max_attempts: int = 5
    rate_limit_window_seconds: int = 30

    # Shared secret the symmetric layer key is derived from
    cert_key: str = ""

    # Back-office retrieval credentials
    verify_secret: str = ""
    verify_key: str = ""

    # "ip" or "ip_and_token"
    identity_policy: str = "ip"
    session_cookie_name: str = "otp_attempts"
    trust_forwarded_for: bool = False
    scope_verification_to_owner: bool = False

    database_url: str = "sqlite+aiosqlite:///./otp.db"
    cache_sweep_interval_seconds: int = 60

    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_from_number: Optional[str] = None
    sms_template: str = "Your OTP for {brand} Login is {code}"
    sms_brand: str = field(default="SnapOrderEat")

    @classmethod
    def from_env(cls) -> "OTPConfig":
        """Build a config from environment variables."""
        return cls(
            duration_minutes=int(os.getenv("OTP_DURATION_MINUTES", "5")),
            max_attempts=int(os.getenv("MAX_OTP_ATTEMPTS", "5")),
            rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "30")),
            cert_key=os.getenv("OTP_CERT_KEY", ""),
            verify_secret=os.getenv("OTP_VERIFY_SECRET", ""),
            verify_key=os.getenv("OTP_VERIFY_KEY", ""),
            identity_policy=os.getenv("IDENTITY_POLICY", "ip"),
            session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "otp_attempts"),
            trust_forwarded_for=_env_bool("TRUST_FORWARDED_FOR"),
            scope_verification_to_owner=_env_bool("SCOPE_VERIFICATION_TO_OWNER"),
            database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./otp.db"),
            cache_sweep_interval_seconds=int(os.getenv("CACHE_SWEEP_INTERVAL_SECONDS", "60")),
            twilio_account_sid=os.getenv("ACCOUNT_SID"),
            twilio_auth_token=os.getenv("ACCOUNT_AUTHTKN"),
            twilio_from_number=os.getenv("ACCOUNT_NUMBER"),
            sms_brand=os.getenv("SMS_BRAND", "SnapOrderEat"),
        )

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token)
