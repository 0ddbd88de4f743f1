"""
Tests for OTP issuance, verification and retrieval.
"""

import asyncio

import pytest

from otp_core.cache import TTLCache
from otp_core.crypto import decrypt_with_public_key
from otp_core.errors import DeliveryFailed, NotFound, RateLimited, Unauthorized
from otp_core.otp import OtpLifecycleManager, generate_code, purge_expired
from otp_core.rate_limit import SlidingWindowLimiter
from otp_core.store import InMemoryOtpStore

from conftest import CERT_KEY, FakeSender


class YieldingStore(InMemoryOtpStore):
    """Suspends before every call so concurrent coroutines interleave."""

    async def find_otp(self, otp_id, owner_key=None):
        await asyncio.sleep(0)
        return await super().find_otp(otp_id, owner_key)

    async def replace_pending_otp(self, record):
        await asyncio.sleep(0)
        return await super().replace_pending_otp(record)

    async def mark_verified(self, otp_id):
        await asyncio.sleep(0)
        return await super().mark_verified(otp_id)

    async def count_attempts(self, client_key, since):
        await asyncio.sleep(0)
        return await super().count_attempts(client_key, since)

    async def create_attempt(self, client_key, at):
        await asyncio.sleep(0)
        return await super().create_attempt(client_key, at)


@pytest.fixture
def yielding_store():
    return YieldingStore()


@pytest.fixture
def yielding_manager(yielding_store, crypto, clock):
    limiter = SlidingWindowLimiter(yielding_store, clock=clock)
    return OtpLifecycleManager(yielding_store, limiter, crypto, clock=clock)


def pending_for(store, owner_key, now):
    return [r for r in store._otps.values() if r.owner_key == owner_key and r.is_pending(now)]


class TestCodeGeneration:

    def test_six_ascii_digits(self):
        """Every code should be exactly six ASCII digits."""
        for _ in range(500):
            code = generate_code()
            assert len(code) == 6
            assert all(c in "0123456789" for c in code)

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            generate_code(0)


class TestGenerate:

    @pytest.mark.asyncio
    async def test_generate_returns_id_and_attempts(self, manager):
        result = await manager.generate("ip-1")

        assert result.id
        assert result.attempts_left == 4

    @pytest.mark.asyncio
    async def test_supersedes_previous(self, manager):
        """A second generate should replace the first pending OTP."""
        first = await manager.generate("ip-1")
        second = await manager.generate("ip-1")

        assert first.id != second.id
        assert await manager.verify(first.id, "000000") is False
        assert await manager.store.find_otp(first.id) is None

    @pytest.mark.asyncio
    async def test_rate_limited_then_cleared(self, manager):
        """Sixth call in the window is rejected; clear re-admits."""
        for _ in range(5):
            await manager.generate("ip-2")

        with pytest.raises(RateLimited):
            await manager.generate("ip-2")

        await manager.limiter.clear("ip-2")
        result = await manager.generate("ip-2")
        assert result.attempts_left == 4

    @pytest.mark.asyncio
    async def test_one_pending_per_owner_concurrently(self, yielding_manager, yielding_store, clock):
        """Concurrent generates for one owner should leave exactly one pending record."""
        results = await asyncio.gather(*[
            yielding_manager.generate(f"ip-{i}", resource_key="table-1") for i in range(5)
        ])

        pending = pending_for(yielding_store, "table-1", clock.now)
        assert len(pending) == 1
        assert pending[0].id in {r.id for r in results}

    @pytest.mark.asyncio
    async def test_expiry_set_from_duration(self, manager, store, clock):
        result = await manager.generate("ip-1")
        record = await store.find_otp(result.id)

        assert (record.expires_at - record.created_at).total_seconds() == 300
        assert record.created_at == clock.now


class TestDelivery:

    @pytest.mark.asyncio
    async def test_sms_dispatch(self, manager, sender, store):
        result = await manager.generate("ip-1", phone_number="+14155551234")
        record = await store.find_otp(result.id)

        assert sender.sent == [("+14155551234", record.code)]

    @pytest.mark.asyncio
    async def test_failed_delivery_discards_record(self, manager, store, clock):
        """Record must not outlive a failed delivery."""
        manager.sender = FakeSender(success=False)

        with pytest.raises(DeliveryFailed):
            await manager.generate("ip-1", phone_number="+14155551234")

        assert pending_for(store, "ip-1", clock.now) == []

    @pytest.mark.asyncio
    async def test_raising_sender_discards_record(self, manager, store, clock):
        manager.sender = FakeSender(raises=RuntimeError("network down"))

        with pytest.raises(DeliveryFailed):
            await manager.generate("ip-1", phone_number="+14155551234")

        assert pending_for(store, "ip-1", clock.now) == []

    @pytest.mark.asyncio
    async def test_no_sender(self, manager, store, clock):
        manager.sender = None

        with pytest.raises(DeliveryFailed):
            await manager.generate("ip-1", phone_number="+14155551234")
        assert pending_for(store, "ip-1", clock.now) == []

    @pytest.mark.asyncio
    async def test_invalid_phone_rejected_before_counting(self, manager, limiter):
        with pytest.raises(ValueError):
            await manager.generate("ip-1", phone_number="4155551234")

        assert (await limiter.peek("ip-1")).attempts_left == 5


class TestVerify:

    @pytest.mark.asyncio
    async def test_verify_once(self, manager, store):
        """Correct code verifies exactly once."""
        result = await manager.generate("ip-1")
        code = (await store.find_otp(result.id)).code

        assert await manager.verify(result.id, code) is True
        assert await manager.verify(result.id, code) is False
        assert await store.find_otp(result.id) is None

    @pytest.mark.asyncio
    async def test_wrong_code(self, manager, store):
        result = await manager.generate("ip-1")
        code = (await store.find_otp(result.id)).code
        wrong = "000000" if code != "000000" else "111111"

        assert await manager.verify(result.id, wrong) is False
        # A wrong guess does not consume the record
        assert await manager.verify(result.id, code) is True

    @pytest.mark.asyncio
    async def test_expired(self, manager, store, clock):
        """Verification after expiry fails even with the right code."""
        result = await manager.generate("ip-1")
        code = (await store.find_otp(result.id)).code

        clock.advance(5 * 60 + 1)
        assert await manager.verify(result.id, code) is False

    @pytest.mark.asyncio
    async def test_unknown_id(self, manager):
        assert await manager.verify("00000000-0000-0000-0000-000000000000", "123456") is False

    @pytest.mark.asyncio
    async def test_already_verified_record(self, manager, store):
        result = await manager.generate("ip-1")
        record = await store.find_otp(result.id)
        await store.mark_verified(result.id)

        assert await manager.verify(result.id, record.code) is False

    @pytest.mark.asyncio
    async def test_concurrent_verifies_succeed_once(self, yielding_manager, yielding_store):
        """Only one of several simultaneous verifies may consume the code."""
        result = await yielding_manager.generate("ip-1")
        code = (await yielding_store.find_otp(result.id)).code

        outcomes = await asyncio.gather(*[
            yielding_manager.verify(result.id, code) for _ in range(5)
        ])

        assert outcomes.count(True) == 1
        assert await yielding_store.find_otp(result.id) is None

    @pytest.mark.asyncio
    async def test_mark_verified_claims_once(self, manager, store):
        result = await manager.generate("ip-1")

        assert await store.mark_verified(result.id) is True
        assert await store.mark_verified(result.id) is False
        assert await store.mark_verified("missing") is False

    @pytest.mark.asyncio
    async def test_success_clears_rate_limit(self, manager, store):
        """A verified user regains a full quota at once."""
        result = None
        for _ in range(5):
            result = await manager.generate("ip-3")
        code = (await store.find_otp(result.id)).code

        assert await manager.verify(result.id, code) is True
        assert (await manager.generate("ip-3")).attempts_left == 4

    @pytest.mark.asyncio
    async def test_clears_client_key_for_resource_otp(self, manager, store, limiter):
        result = await manager.generate("ip-4", resource_key="table-2")
        code = (await store.find_otp(result.id)).code

        assert await manager.verify(result.id, code, client_key="ip-4") is True
        assert (await limiter.peek("ip-4")).attempts_left == 5

    @pytest.mark.asyncio
    async def test_scoped_verification(self, manager, store):
        """With owner scoping, only the owner can consume the OTP."""
        manager.scope_verification_to_owner = True
        result = await manager.generate("ip-1")
        code = (await store.find_otp(result.id)).code

        with pytest.raises(Unauthorized):
            await manager.verify(result.id, code)
        assert await manager.verify(result.id, code, owner_key="ip-9") is False
        assert await manager.verify(result.id, code, owner_key="ip-1") is True


class TestRetrieve:

    @pytest.mark.asyncio
    async def test_not_found(self, manager):
        with pytest.raises(NotFound):
            await manager.retrieve("table-9")

    @pytest.mark.asyncio
    async def test_retrieve_is_read_only(self, manager, crypto):
        """Retrieval returns a decryptable code and does not consume it."""
        result = await manager.generate("ip-1", resource_key="table-9")

        first = await manager.retrieve("table-9")
        second = await manager.retrieve("table-9")

        assert first.id == second.id == result.id
        assert first.public_key == crypto.public_key

        code = decrypt_with_public_key(first.encrypted_code, first.public_key, CERT_KEY)
        assert code == crypto.decrypt(second.encrypted_code)
        assert await manager.verify(result.id, code) is True

        with pytest.raises(NotFound):
            await manager.retrieve("table-9")

    @pytest.mark.asyncio
    async def test_expired_not_retrievable(self, manager, clock):
        await manager.generate("ip-1", resource_key="table-9")
        clock.advance(301)

        with pytest.raises(NotFound):
            await manager.retrieve("table-9")

    @pytest.mark.asyncio
    async def test_latest_after_supersession(self, manager):
        await manager.generate("ip-1", resource_key="table-9")
        latest = await manager.generate("ip-1", resource_key="table-9")

        assert (await manager.retrieve("table-9")).id == latest.id

    @pytest.mark.asyncio
    async def test_cached_payload_invalidated_on_verify(self, store, limiter, crypto, clock):
        cache = TTLCache()
        manager = OtpLifecycleManager(store, limiter, crypto, cache=cache, clock=clock)
        result = await manager.generate("ip-1", resource_key="table-5")

        first = await manager.retrieve("table-5")
        assert await manager.retrieve("table-5") is first
        assert len(cache) == 1

        assert await manager.verify(result.id, crypto.decrypt(first.encrypted_code)) is True
        assert len(cache) == 0


class TestMaintenance:

    @pytest.mark.asyncio
    async def test_purge_expired(self, manager, store, clock):
        await manager.generate("ip-1")
        await manager.generate("ip-2")
        clock.advance(301)
        fresh = await manager.generate("ip-3")

        otps, attempts = await purge_expired(store, window_seconds=30, now=clock.now)

        assert otps == 2
        assert attempts == 2
        assert list(store._otps) == [fresh.id]
