"""
Notification Module
===================
Delivery channels for OTP codes.
"""

import structlog

from otp_core.config import OTPConfig
from .base import (
    MessageStatus,
    NotificationSender,
    NullSender,
    SendResult,
    mask_phone,
    validate_e164,
)
from .twilio import TwilioOtpSender

logger = structlog.get_logger(__name__)


def build_sender(config: OTPConfig) -> NotificationSender:
    """Twilio when credentials are configured, otherwise a sender that always fails."""
    if not config.twilio_configured:
        logger.warning("Twilio credentials not found. SMS functionality will be disabled.")
        return NullSender()

    logger.info("Twilio SMS service initialized")
    return TwilioOtpSender(
        account_sid=config.twilio_account_sid,
        auth_token=config.twilio_auth_token,
        from_number=config.twilio_from_number,
        template=config.sms_template,
        brand=config.sms_brand,
    )


__all__ = [
    "MessageStatus",
    "NotificationSender",
    "NullSender",
    "SendResult",
    "TwilioOtpSender",
    "build_sender",
    "mask_phone",
    "validate_e164",
]
