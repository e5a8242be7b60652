"""Unit tests for OTPService and its stores."""

import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.backoffice.core.config import Settings
from src.backoffice.services.otp_service import (
    PURPOSE_PASSWORD_RESET,
    PURPOSE_REGISTRATION,
    InMemoryOTPStore,
    OTPRecord,
    OTPService,
    RedisOTPStore,
)

PHONE = "+971501234567"


@pytest.fixture
def store():
    return InMemoryOTPStore(ttl_seconds=300)


@pytest.fixture
def otp_service(store):
    settings = Settings(APP_ENV="development", OTP_LENGTH=6, OTP_MAX_ATTEMPTS=3, REDIS_ENABLED=False)
    return OTPService(settings, store=store)


# --- InMemoryOTPStore ---


async def test_memory_store_load_and_failures(store):
    await store.save("k", "123456")
    await store.record_failure("k")

    assert await store.load("k") == OTPRecord("123456", 1)

    await store.discard("k")
    assert await store.load("k") is None


async def test_memory_store_expiry():
    store = InMemoryOTPStore(ttl_seconds=-1)
    await store.save("k", "123456")

    assert await store.load("k") is None


def test_memory_store_purge_expired(store):
    store._entries["old"] = (OTPRecord("1"), time.monotonic() - 10)
    store._entries["new"] = (OTPRecord("2"), time.monotonic() + 300)

    assert store.purge_expired() == 1
    assert set(store._entries) == {"new"}


# --- RedisOTPStore ---


def _connected_redis_store() -> tuple[RedisOTPStore, AsyncMock]:
    client = AsyncMock()
    store = RedisOTPStore("redis://localhost", prefix="otp:")
    store._client = client
    return store, client


async def test_redis_store_load():
    store, client = _connected_redis_store()
    client.hgetall.return_value = {"code": "123456", "failed": "2"}

    assert await store.load("reset:ana@example.com") == OTPRecord("123456", 2)
    client.hgetall.assert_awaited_once_with("otp:reset:ana@example.com")


async def test_redis_store_missing_key():
    store, client = _connected_redis_store()
    client.hgetall.return_value = {}

    assert await store.load("k") is None


async def test_redis_store_failure_and_discard():
    store, client = _connected_redis_store()

    await store.record_failure("k")
    await store.discard("k")

    client.hincrby.assert_awaited_once_with("otp:k", "failed", 1)
    client.delete.assert_awaited_once_with("otp:k")


async def test_redis_store_save_uses_one_transaction():
    store, client = _connected_redis_store()
    pipe = MagicMock()
    pipe.execute = AsyncMock()
    client.pipeline = MagicMock()
    client.pipeline.return_value.__aenter__ = AsyncMock(return_value=pipe)
    client.pipeline.return_value.__aexit__ = AsyncMock(return_value=False)

    await store.save("k", "123456")

    pipe.hset.assert_called_once_with("otp:k", mapping={"code": "123456", "failed": 0})
    pipe.expire.assert_called_once_with("otp:k", 600)
    pipe.execute.assert_awaited_once()


async def test_redis_store_not_connected():
    with pytest.raises(ConnectionError):
        await RedisOTPStore("redis://localhost").load("k")


# --- OTPService ---


def test_generate_otp(otp_service):
    otp = otp_service.generate_otp()
    assert len(otp) == 6 and otp.isdigit()
    assert len(otp_service.generate_otp(8)) == 8


def test_mask():
    assert OTPService.mask(PHONE) == "+97****567"
    assert OTPService.mask("short") == "****"


async def test_issue_and_verify_normalises_identifier_and_code(otp_service):
    otp = await otp_service.issue(PURPOSE_PASSWORD_RESET, "Ana@Example.com")

    valid, message = await otp_service.verify(PURPOSE_PASSWORD_RESET, "ana@example.com ", f" {otp} ")
    assert valid is True
    assert message == "Code verified"


async def test_code_is_single_use(otp_service):
    otp = await otp_service.issue(PURPOSE_REGISTRATION, PHONE)
    await otp_service.verify(PURPOSE_REGISTRATION, PHONE, otp)

    valid, message = await otp_service.verify(PURPOSE_REGISTRATION, PHONE, otp)
    assert valid is False
    assert "not found" in message


async def test_wrong_code_counts_down(otp_service):
    await otp_service.issue(PURPOSE_REGISTRATION, PHONE)

    valid, message = await otp_service.verify(PURPOSE_REGISTRATION, PHONE, "not-it")
    assert valid is False
    assert message == "Invalid code. 2 attempt(s) remaining."


async def test_correct_code_on_last_attempt_succeeds(otp_service):
    with patch.object(otp_service, "generate_otp", return_value="123456"):
        await otp_service.issue(PURPOSE_REGISTRATION, PHONE)

    assert await otp_service.verify(PURPOSE_REGISTRATION, PHONE, "000000") == (
        False,
        "Invalid code. 2 attempt(s) remaining.",
    )
    assert await otp_service.verify(PURPOSE_REGISTRATION, PHONE, "111111") == (
        False,
        "Invalid code. 1 attempt(s) remaining.",
    )
    assert await otp_service.verify(PURPOSE_REGISTRATION, PHONE, "123456") == (True, "Code verified")


async def test_memory_store_load_returns_snapshot(store):
    await store.save("k", "123456")
    loaded = await store.load("k")
    await store.record_failure("k")

    assert loaded.failed_attempts == 0
    assert (await store.load("k")).failed_attempts == 1


async def test_last_wrong_guess_burns_the_code(otp_service):
    with patch.object(otp_service, "generate_otp", return_value="123456"):
        await otp_service.issue(PURPOSE_REGISTRATION, PHONE)
    for _ in range(3):
        await otp_service.verify(PURPOSE_REGISTRATION, PHONE, "000000")

    valid, _ = await otp_service.verify(PURPOSE_REGISTRATION, PHONE, "123456")
    assert valid is False


async def test_exhausted_record_is_discarded(otp_service, store):
    await store.save(f"{PURPOSE_REGISTRATION}:{PHONE}", "123456")
    store._entries[f"{PURPOSE_REGISTRATION}:{PHONE}"][0].failed_attempts = 5

    valid, message = await otp_service.verify(PURPOSE_REGISTRATION, PHONE, "123456")
    assert valid is False
    assert "Too many" in message
    assert await store.load(f"{PURPOSE_REGISTRATION}:{PHONE}") is None


async def test_purposes_are_separate(otp_service):
    otp = await otp_service.issue(PURPOSE_REGISTRATION, PHONE)

    valid, _ = await otp_service.verify(PURPOSE_PASSWORD_RESET, PHONE, otp)
    assert valid is False


async def test_reissue_replaces_code(otp_service):
    with patch.object(otp_service, "generate_otp", side_effect=["111111", "222222"]):
        await otp_service.issue(PURPOSE_REGISTRATION, PHONE)
        await otp_service.issue(PURPOSE_REGISTRATION, PHONE)

    assert (await otp_service.verify(PURPOSE_REGISTRATION, PHONE, "111111"))[0] is False
    assert (await otp_service.verify(PURPOSE_REGISTRATION, PHONE, "222222"))[0] is True


async def test_falls_back_to_memory_when_redis_unavailable():
    settings = Settings(APP_ENV="development", REDIS_ENABLED=True, REDIS_URL="redis://localhost:1")
    service = OTPService(settings)

    with patch.object(RedisOTPStore, "connect", new=AsyncMock(return_value=False)):
        otp = await service.issue(PURPOSE_REGISTRATION, PHONE)

    assert isinstance(service._store, InMemoryOTPStore)
    assert (await service.verify(PURPOSE_REGISTRATION, PHONE, otp))[0] is True
