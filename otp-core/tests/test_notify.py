"""
Tests for OTP delivery senders.
"""

from urllib.parse import parse_qs

import httpx
import pytest

from otp_core.config import OTPConfig
from otp_core.notify import (
    MessageStatus,
    NullSender,
    TwilioOtpSender,
    build_sender,
    mask_phone,
    validate_e164,
)


def twilio_sender(handler, from_number="+15005550006"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TwilioOtpSender(
        account_sid="AC123",
        auth_token="token",
        from_number=from_number,
        client=client,
    )


class TestTwilioSender:

    @pytest.mark.asyncio
    async def test_send_success(self):
        """Should post the rendered OTP message."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(201, json={"sid": "SM123", "status": "queued"})

        sender = twilio_sender(handler)
        result = await sender.send_otp("+14155551234", "482910")
        await sender.close()

        assert result.success is True
        assert result.message_id == "SM123"
        assert result.status == MessageStatus.PENDING
        assert seen["url"].endswith("/Accounts/AC123/Messages.json")
        assert seen["form"]["To"] == ["+14155551234"]
        assert seen["form"]["Body"] == ["Your OTP for SnapOrderEat Login is 482910"]

    @pytest.mark.asyncio
    async def test_send_rejected(self):
        def handler(request):
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        sender = twilio_sender(handler)
        result = await sender.send_otp("+14155551234", "482910")

        assert result.success is False
        assert result.error_code == "21211"
        assert result.status == MessageStatus.FAILED

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        sender = twilio_sender(handler)
        result = await sender.send_otp("+14155551234", "482910")

        assert result.success is False
        assert "connection refused" in result.error_message

    @pytest.mark.asyncio
    async def test_missing_from_number(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201, json={})

        sender = twilio_sender(handler, from_number=None)
        result = await sender.send_otp("+14155551234", "482910")

        assert result.success is False
        assert calls == []


class TestSenderFactory:

    def test_null_sender_without_credentials(self):
        assert isinstance(build_sender(OTPConfig()), NullSender)

    def test_twilio_with_credentials(self):
        config = OTPConfig(twilio_account_sid="AC1", twilio_auth_token="t", twilio_from_number="+1500")
        assert isinstance(build_sender(config), TwilioOtpSender)

    @pytest.mark.asyncio
    async def test_null_sender_fails(self):
        result = await NullSender().send_otp("+14155551234", "123456")
        assert result.success is False


class TestPhoneUtils:

    def test_validate_e164(self):
        assert validate_e164("+14155551234") is True
        assert validate_e164("+1") is False
        assert validate_e164("4155551234") is False
        assert validate_e164("") is False

    def test_mask_phone(self):
        masked = mask_phone("+14155551234")

        assert masked.endswith("1234")
        assert "415555" not in masked
