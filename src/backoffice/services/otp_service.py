"""One-time codes for phone registration and password reset.

A code is numeric, expires after ``OTP_EXPIRY_SECONDS``, is consumed by a
successful check and is thrown away after ``OTP_MAX_ATTEMPTS`` wrong guesses.
Codes are kept in Redis when ``REDIS_ENABLED`` is set and the server answers;
otherwise in process memory, which only suits a single worker.
"""
import secrets
import time
from dataclasses import dataclass, replace
from typing import Protocol

import redis.asyncio as aioredis
import structlog

from ..core.config import Settings, get_settings

logger = structlog.get_logger(__name__)

PURPOSE_REGISTRATION = "register"
PURPOSE_PASSWORD_RESET = "reset"


@dataclass
class OTPRecord:
    code: str
    failed_attempts: int = 0


class OTPStore(Protocol):
    async def save(self, key: str, code: str) -> None: ...

    async def load(self, key: str) -> OTPRecord | None: ...

    async def record_failure(self, key: str) -> None: ...

    async def discard(self, key: str) -> None: ...


class RedisOTPStore:
    """One Redis hash per key (``code``, ``failed``) expiring with the code."""

    def __init__(self, redis_url: str, prefix: str = "otp:", ttl_seconds: int = 600) -> None:
        self.redis_url = redis_url
        self.prefix = prefix
        self.ttl = ttl_seconds
        self._client: aioredis.Redis | None = None

    async def connect(self) -> bool:
        client = aioredis.from_url(self.redis_url, decode_responses=True)
        try:
            await client.ping()
        except (aioredis.RedisError, OSError) as exc:
            logger.warning("otp_redis_unavailable", error=str(exc))
            await client.aclose()
            return False
        self._client = client
        logger.info("otp_redis_connected")
        return True

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            raise ConnectionError("Redis OTP store is not connected")
        return self._client

    async def save(self, key: str, code: str) -> None:
        name = self.prefix + key
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.delete(name)
            pipe.hset(name, mapping={"code": code, "failed": 0})
            pipe.expire(name, self.ttl)
            await pipe.execute()

    async def load(self, key: str) -> OTPRecord | None:
        fields = await self.client.hgetall(self.prefix + key)
        if not fields.get("code"):
            return None
        return OTPRecord(code=fields["code"], failed_attempts=int(fields.get("failed", 0)))

    async def record_failure(self, key: str) -> None:
        # HINCRBY keeps the TTL set by save()
        await self.client.hincrby(self.prefix + key, "failed", 1)

    async def discard(self, key: str) -> None:
        await self.client.delete(self.prefix + key)


class InMemoryOTPStore:
    def __init__(self, ttl_seconds: int = 600) -> None:
        self.ttl = ttl_seconds
        self._entries: dict[str, tuple[OTPRecord, float]] = {}

    async def save(self, key: str, code: str) -> None:
        self._entries[key] = (OTPRecord(code), time.monotonic() + self.ttl)

    async def load(self, key: str) -> OTPRecord | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        record, deadline = entry
        if time.monotonic() >= deadline:
            del self._entries[key]
            return None
        # a copy, so callers see the count as it was when loaded
        return replace(record)

    async def record_failure(self, key: str) -> None:
        if key in self._entries:
            self._entries[key][0].failed_attempts += 1

    async def discard(self, key: str) -> None:
        self._entries.pop(key, None)

    def purge_expired(self) -> int:
        now = time.monotonic()
        stale = [key for key, (_, deadline) in self._entries.items() if now >= deadline]
        for key in stale:
            del self._entries[key]
        return len(stale)


class OTPService:
    """Issues and checks codes. Sending them is left to the caller."""

    def __init__(self, settings: Settings | None = None, store: OTPStore | None = None) -> None:
        self.settings = settings or get_settings()
        self._store = store

    async def _get_store(self) -> OTPStore:
        if self._store is None:
            cfg = self.settings
            if cfg.REDIS_ENABLED:
                redis_store = RedisOTPStore(cfg.REDIS_URL, cfg.REDIS_OTP_PREFIX, cfg.OTP_EXPIRY_SECONDS)
                if await redis_store.connect():
                    self._store = redis_store
                    return redis_store
            logger.info("otp_store_in_memory")
            self._store = InMemoryOTPStore(cfg.OTP_EXPIRY_SECONDS)
        return self._store

    def generate_otp(self, length: int | None = None) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(length or self.settings.OTP_LENGTH))

    @staticmethod
    def mask(identifier: str) -> str:
        """``+971501234567`` -> ``+97****567``; short identifiers are fully hidden."""
        return f"{identifier[:3]}****{identifier[-3:]}" if len(identifier) >= 8 else "****"

    @staticmethod
    def _key(purpose: str, identifier: str) -> str:
        return f"{purpose}:{identifier.strip().lower()}"

    async def issue(self, purpose: str, identifier: str) -> str:
        """Create a code for ``identifier``, replacing any outstanding one."""
        store = await self._get_store()
        code = self.generate_otp()
        await store.save(self._key(purpose, identifier), code)
        logger.info("otp_issued", purpose=purpose, identifier=self.mask(identifier))
        return code

    async def verify(self, purpose: str, identifier: str, otp: str) -> tuple[bool, str]:
        """Return ``(valid, message)``. The message is safe to show the user."""
        store = await self._get_store()
        key = self._key(purpose, identifier)
        valid, message = False, ""

        record = await store.load(key)
        max_attempts = self.settings.OTP_MAX_ATTEMPTS
        if record is None:
            message = "Code not found or expired. Please request a new one."
        elif record.failed_attempts >= max_attempts:
            await store.discard(key)
            message = "Too many failed attempts. Please request a new code."
        elif not secrets.compare_digest(record.code, otp.strip()):
            remaining = max_attempts - record.failed_attempts - 1
            await store.record_failure(key)
            if remaining <= 0:
                await store.discard(key)
                message = "Invalid code. Please request a new one."
            else:
                message = f"Invalid code. {remaining} attempt(s) remaining."
        else:
            await store.discard(key)
            valid, message = True, "Code verified"

        logger.info("otp_checked", purpose=purpose, identifier=self.mask(identifier), valid=valid)
        return valid, message

    async def close(self) -> None:
        if isinstance(self._store, RedisOTPStore):
            await self._store.disconnect()


_otp_service: OTPService | None = None


def get_otp_service() -> OTPService:
    """Process-wide service; the store is picked on first use."""
    global _otp_service
    if _otp_service is None:
        _otp_service = OTPService()
    return _otp_service


async def close_otp_service() -> None:
    global _otp_service
    if _otp_service is not None:
        await _otp_service.close()
        _otp_service = None
