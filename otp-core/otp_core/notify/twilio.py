"""
Twilio OTP Sender
=================
Delivers OTP codes over the Twilio Messages API.
"""

from base64 import b64encode
from typing import Optional

import httpx
import structlog

from .base import MessageStatus, NotificationSender, SendResult, mask_phone

logger = structlog.get_logger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"

_STATUS_MAP = {
    "queued": MessageStatus.PENDING,
    "accepted": MessageStatus.PENDING,
    "sending": MessageStatus.PENDING,
    "sent": MessageStatus.SENT,
    "delivered": MessageStatus.DELIVERED,
    "undelivered": MessageStatus.FAILED,
    "failed": MessageStatus.FAILED,
}


class TwilioOtpSender(NotificationSender):
    """
    Twilio SMS sender for OTP codes.

    Pass ``client`` to reuse an existing ``httpx.AsyncClient`` (its auth
    headers are left untouched).
    """

    name = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: Optional[str],
        template: str = "Your OTP for {brand} Login is {code}",
        brand: str = "SnapOrderEat",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.account_sid = account_sid
        self.from_number = from_number
        self.template = template
        self.brand = brand
        self.base_url = f"{TWILIO_API_BASE}/Accounts/{account_sid}"

        if client is None:
            auth = b64encode(f"{account_sid}:{auth_token}".encode()).decode()
            client = httpx.AsyncClient(
                headers={"Authorization": f"Basic {auth}"},
                timeout=timeout,
            )
        self._client = client

    def render(self, code: str) -> str:
        return self.template.format(brand=self.brand, code=code)

    async def send_otp(self, to: str, code: str) -> SendResult:
        """Send the OTP SMS via Twilio."""
        if not self.from_number:
            logger.error("Sender number not configured")
            return SendResult(
                success=False,
                status=MessageStatus.FAILED,
                error_message="SMS sender number not configured",
            )

        payload = {
            "To": to,
            "From": self.from_number,
            "Body": self.render(code),
        }

        try:
            response = await self._client.post(f"{self.base_url}/Messages.json", data=payload)
        except httpx.HTTPError as e:
            logger.error("Twilio send failed", to=mask_phone(to), error=str(e))
            return SendResult(
                success=False,
                status=MessageStatus.FAILED,
                error_message=str(e) or "Failed to send SMS",
            )

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code == 201:
            logger.info("SMS sent", to=mask_phone(to), message_id=data.get("sid"))
            return SendResult(
                success=True,
                message_id=data.get("sid"),
                status=_STATUS_MAP.get(str(data.get("status", "")).lower(), MessageStatus.PENDING),
                raw_response=data,
            )

        logger.error(
            "Twilio rejected message",
            to=mask_phone(to),
            status_code=response.status_code,
            error_code=data.get("code"),
        )
        return SendResult(
            success=False,
            status=MessageStatus.FAILED,
            error_code=str(data.get("code", response.status_code)),
            error_message=data.get("message", "Unknown error"),
            raw_response=data,
        )

    async def close(self) -> None:
        await self._client.aclose()
