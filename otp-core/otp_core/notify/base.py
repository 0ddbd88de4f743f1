"""
Notification Sender Interface
=============================
Out-of-band delivery of OTP codes.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
import structlog

logger = structlog.get_logger(__name__)

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass
class SendResult:
    """Result of a send operation."""
    success: bool
    message_id: Optional[str] = None
    status: MessageStatus = MessageStatus.PENDING
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None


def validate_e164(phone: str) -> bool:
    """
    Validate E.164 phone number format.

    Args:
        phone: Phone number

    Returns:
        True if valid E.164 format
    """
    return bool(E164_PATTERN.match(phone or ""))


def mask_phone(phone: str) -> str:
    """Mask all but the last four digits for logs."""
    if len(phone) <= 4:
        return "****"
    return f"{phone[:-4].rstrip('0123456789')}****{phone[-4:]}"


class NotificationSender(ABC):
    """
    Abstract base class for OTP delivery channels.

    Implementations report failure through ``SendResult.success``; raising
    is also tolerated and treated as a failed delivery by the caller.
    """

    name: str = "base"

    @abstractmethod
    async def send_otp(self, to: str, code: str) -> SendResult:
        """
        Deliver ``code`` to ``to``.

        Args:
            to: Recipient phone number (E.164 format)
            code: OTP plaintext

        Returns:
            SendResult with provider response
        """
        pass

    async def close(self) -> None:
        """Release resources (e.g., HTTP clients)."""
        pass


class NullSender(NotificationSender):
    """Sender used when no delivery channel is configured; always fails."""

    name = "null"

    async def send_otp(self, to: str, code: str) -> SendResult:
        logger.error("SMS service not available", to=mask_phone(to))
        return SendResult(
            success=False,
            status=MessageStatus.FAILED,
            error_message="SMS service not available",
        )
