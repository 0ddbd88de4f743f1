"""
OTP Lifecycle Manager
=====================
Issuance, single-use verification and encrypted retrieval of OTPs.

States: pending (unverified, unexpired) -> verified (then deleted), or
pending -> expired (detected at lookup, purged later).
"""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
import structlog

from otp_core.cache import TTLCache
from otp_core.config import OTPConfig
from otp_core.crypto import CryptoEngine
from otp_core.errors import DeliveryFailed, NotFound, RateLimited, Unauthorized
from otp_core.models import GenerateResult, OtpRecord, RetrievalResult
from otp_core.notify import NotificationSender, build_sender, mask_phone, validate_e164
from otp_core.rate_limit import SlidingWindowLimiter
from otp_core.store.base import OtpStore
from .generator import generate_code, new_otp_id

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OtpLifecycleManager:
    """
    Owns OTP records for their whole life.

    Collaborators are injected at construction: the store, the rate limiter,
    the crypto engine, an optional notification sender and the id factory.
    """

    def __init__(
        self,
        store: OtpStore,
        limiter: SlidingWindowLimiter,
        crypto: CryptoEngine,
        sender: Optional[NotificationSender] = None,
        duration_minutes: int = 5,
        code_length: int = 6,
        scope_verification_to_owner: bool = False,
        cache: Optional[TTLCache] = None,
        id_factory: Callable[[], str] = new_otp_id,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.limiter = limiter
        self.crypto = crypto
        self.sender = sender
        self.duration = timedelta(minutes=duration_minutes)
        self.code_length = code_length
        self.scope_verification_to_owner = scope_verification_to_owner
        self.cache = cache
        self._id_factory = id_factory
        self._clock = clock or utcnow

    async def generate(
        self,
        client_key: str,
        resource_key: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> GenerateResult:
        """
        Issue a new OTP.

        Args:
            client_key: Resolved client identity, used for rate limiting
            resource_key: Logical resource owning the OTP (defaults to the client)
            phone_number: E.164 number to deliver the code to over SMS

        Returns:
            GenerateResult with the record id and attempts left

        Raises:
            ValueError: phone_number is not E.164
            RateLimited: quota exhausted for client_key
            DeliveryFailed: SMS dispatch failed; the record was discarded
        """
        if phone_number is not None and not validate_e164(phone_number):
            raise ValueError("Invalid mobile number format")

        info = await self.limiter.check_and_record(client_key)
        if not info.allowed:
            raise RateLimited(
                limit=info.limit,
                retry_after=info.retry_after,
                reset_at=info.reset_at,
            )

        owner_key = resource_key or client_key
        code = generate_code(self.code_length)
        now = self._clock()

        record = OtpRecord(
            id=self._id_factory(),
            code=code,
            owner_key=owner_key,
            created_at=now,
            expires_at=now + self.duration,
        )
        superseded = await self.store.replace_pending_otp(record)

        logger.info(
            "OTP created",
            otp_id=record.id,
            owner=owner_key,
            superseded=superseded,
            attempts_left=info.attempts_left,
        )

        if phone_number is not None:
            await self._deliver(record, phone_number)

        return GenerateResult(id=record.id, attempts_left=info.attempts_left)

    async def _deliver(self, record: OtpRecord, phone_number: str) -> None:
        if self.sender is None:
            await self.store.delete_otp(record.id)
            raise DeliveryFailed("SMS service not available")

        try:
            result = await self.sender.send_otp(phone_number, record.code)
        except Exception as e:
            logger.error(
                "OTP delivery raised",
                otp_id=record.id,
                to=mask_phone(phone_number),
                error=str(e),
            )
            await self.store.delete_otp(record.id)
            raise DeliveryFailed("Failed to send SMS") from e

        if not result.success:
            logger.error(
                "OTP delivery failed",
                otp_id=record.id,
                to=mask_phone(phone_number),
                error=result.error_message,
            )
            await self.store.delete_otp(record.id)
            raise DeliveryFailed(
                "Failed to send SMS",
                details={"error_code": result.error_code, "error": result.error_message},
            )

    async def verify(
        self,
        otp_id: str,
        code: str,
        owner_key: Optional[str] = None,
        client_key: Optional[str] = None,
    ) -> bool:
        """
        Consume an OTP.

        Absent, already verified, expired and mismatching records all give
        the same ``False``.

        Args:
            otp_id: Record id returned by ``generate``
            code: Submitted code
            owner_key: Owner the record must belong to (required when
                verification is scoped to the owner)
            client_key: Rate-limit identity to clear on success (defaults
                to the record owner)

        Raises:
            Unauthorized: scoping is enabled and no owner was supplied
        """
        if self.scope_verification_to_owner and not owner_key:
            raise Unauthorized("Session identity missing")

        lookup_owner = owner_key if self.scope_verification_to_owner else None
        record = await self.store.find_otp(otp_id, lookup_owner)
        now = self._clock()

        if record is None:
            logger.info("OTP verification failed", otp_id=otp_id, reason="not_found")
            return False
        if record.verified:
            logger.info("OTP verification failed", otp_id=otp_id, reason="already_verified")
            return False
        if record.is_expired(now):
            logger.info("OTP verification failed", otp_id=otp_id, reason="expired")
            return False
        if not hmac.compare_digest(record.code.encode(), (code or "").encode()):
            logger.info("OTP verification failed", otp_id=otp_id, reason="mismatch")
            return False

        if not await self.store.mark_verified(record.id):
            logger.info("OTP verification failed", otp_id=otp_id, reason="already_verified")
            return False

        await self.limiter.clear(client_key or record.owner_key)
        await self.store.delete_otp(record.id)
        if self.cache is not None:
            self.cache.delete(self._cache_key(record.id))

        logger.info("OTP verified", otp_id=record.id, owner=record.owner_key)
        return True

    async def retrieve(self, resource_key: str) -> RetrievalResult:
        """
        Return the latest pending OTP of ``resource_key``, encrypted.

        Read-only: the record is not consumed.

        Raises:
            NotFound: no pending OTP for the resource
        """
        now = self._clock()
        record = await self.store.find_latest_otp(resource_key, now)
        if record is None:
            logger.info("No pending OTP for resource", resource=resource_key)
            raise NotFound("No valid OTP found")

        if self.cache is not None:
            cached = self.cache.get(self._cache_key(record.id))
            if cached is not None:
                return cached

        result = RetrievalResult(
            encrypted_code=self.crypto.encrypt(record.code),
            public_key=self.crypto.public_key,
            id=record.id,
        )

        if self.cache is not None:
            ttl = (record.expires_at - now).total_seconds()
            self.cache.set(self._cache_key(record.id), result, ttl)

        logger.info("OTP retrieved", otp_id=record.id, resource=resource_key)
        return result

    @staticmethod
    def _cache_key(otp_id: str) -> str:
        return f"otp:{otp_id}"


def build_manager(
    config: OTPConfig,
    store: OtpStore,
    crypto: Optional[CryptoEngine] = None,
    sender: Optional[NotificationSender] = None,
    cache: Optional[TTLCache] = None,
) -> OtpLifecycleManager:
    """Wire a manager from configuration."""
    limiter = SlidingWindowLimiter(
        store,
        max_attempts=config.max_attempts,
        window_seconds=config.rate_limit_window_seconds,
    )
    return OtpLifecycleManager(
        store=store,
        limiter=limiter,
        crypto=crypto or CryptoEngine(config.cert_key),
        sender=sender if sender is not None else build_sender(config),
        duration_minutes=config.duration_minutes,
        code_length=config.code_length,
        scope_verification_to_owner=config.scope_verification_to_owner,
        cache=cache,
    )
