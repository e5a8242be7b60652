"""
Blob Storage Service.

Key-addressed object storage used for rider documents and generated
acknowledgement PDFs. Two backends:

- ``LocalBlobStorageService``: files under ``BLOB_STORAGE_PATH``, served by
  the ``/files`` endpoint through HMAC-signed, expiring URLs
- ``S3BlobStorageService``: AWS S3 through aioboto3, presigned GET URLs

Both implement the ``StorageBackend`` protocol:
``put(content, key, content_type) -> url``, ``delete(key)`` and
``signed_url(key, ttl) -> url``. Uploads are retried with backoff.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import mimetypes
import time
from enum import Enum
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, urlencode

import aioboto3
import aiofiles
import aiofiles.os
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..core.config import Settings, get_settings
from ..core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class StorageKind(str, Enum):
    """Supported storage backends."""
    LOCAL = "local"
    S3 = "s3"


class BlobStorageError(Exception):
    """Base exception for blob storage operations."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


class BlobUploadError(BlobStorageError):
    """Error uploading blob to storage."""


class StorageBackend(Protocol):
    """Narrow storage contract used by the services."""

    async def put(self, content: bytes, key: str, content_type: str | None = None) -> str:
        """Store ``content`` under ``key`` and return its URL."""
        ...

    async def delete(self, key: str) -> bool:
        """Remove ``key``. Returns False when nothing was deleted."""
        ...

    async def signed_url(self, key: str, ttl: int | None = None) -> str:
        """Time-limited download URL for ``key``."""
        ...


def detect_mime_type(file_name: str) -> str:
    """Detect MIME type from the file name."""
    mime_type, _ = mimetypes.guess_type(file_name)
    if mime_type:
        return mime_type
    mime_map = {
        ".pdf": "application/pdf",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".png": "image/png",
        ".doc": "application/msword",
        ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
    return mime_map.get(Path(file_name).suffix.lower(), "application/octet-stream")


def _validate_key(key: str) -> str:
    """Reject keys that could escape the storage root."""
    cleaned = key.strip().lstrip("/")
    if not cleaned or any(part in ("", ".", "..") for part in cleaned.split("/")):
        raise BlobStorageError(f"Invalid storage key: {key!r}")
    return cleaned


class _RetryingUpload:
    """Mixin running ``_put_once`` under a tenacity retry policy."""

    _max_retries: int = 2
    _retry_delay: float = 0.5
    _retry_on: tuple[type[BaseException], ...] = (OSError,)

    async def _put_once(self, content: bytes, key: str, content_type: str) -> str:
        raise NotImplementedError

    async def put(self, content: bytes, key: str, content_type: str | None = None) -> str:
        key = _validate_key(key)
        content_type = content_type or detect_mime_type(key)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_retries + 1),
            wait=wait_exponential(multiplier=self._retry_delay, min=0, max=10),
            retry=retry_if_exception_type(self._retry_on),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    url = await self._put_once(content, key, content_type)
        except self._retry_on as exc:
            logger.error("Blob upload failed: key=%s error=%s", key, exc)
            raise BlobUploadError(f"Failed to store '{key}': {exc}", exc) from exc

        logger.info("Blob stored: key=%s size=%d", key, len(content))
        return url


class LocalBlobStorageService(_RetryingUpload):
    """
    Local filesystem blob storage.

    Files live at ``{base_path}/{key}``. Download URLs carry an expiry
    timestamp and an HMAC signature checked by ``verify_signature``.
    """

    def __init__(
        self,
        base_path: str | Path,
        base_url: str,
        signing_key: str,
        default_ttl: int = 3600,
        max_retries: int = 2,
        retry_delay: float = 0.5,
    ):
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/")
        self._signing_key = signing_key.encode("utf-8")
        self.default_ttl = default_ttl
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self.base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.base_path / _validate_key(key)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{quote(_validate_key(key))}"

    async def _put_once(self, content: bytes, key: str, content_type: str) -> str:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(content)
        return self.public_url(key)

    async def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if not path.exists():
            return False
        await aiofiles.os.remove(path)
        logger.info("Blob deleted: key=%s", key)
        return True

    def _signature(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode("utf-8")
        return hmac.new(self._signing_key, message, hashlib.sha256).hexdigest()

    async def signed_url(self, key: str, ttl: int | None = None) -> str:
        key = _validate_key(key)
        expires = int(time.time()) + (ttl or self.default_ttl)
        query = urlencode({"expires": expires, "signature": self._signature(key, expires)})
        return f"{self.public_url(key)}?{query}"

    def verify_signature(self, key: str, expires: int, signature: str) -> bool:
        """True when ``signature`` matches ``key``/``expires`` and has not expired."""
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self._signature(_validate_key(key), expires), signature)


class S3BlobStorageService(_RetryingUpload):
    """AWS S3 blob storage via aioboto3."""

    _retry_on = (ClientError, BotoCoreError)

    def __init__(
        self,
        bucket_name: str,
        access_key_id: str,
        secret_access_key: str,
        region: str,
        default_ttl: int = 3600,
        max_retries: int = 2,
        retry_delay: float = 0.5,
    ):
        self.bucket_name = bucket_name
        self.region = region
        self.default_ttl = default_ttl
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self.session = aioboto3.Session(
            aws_access_key_id=access_key_id or None,
            aws_secret_access_key=secret_access_key or None,
            region_name=region,
        )
        logger.info("S3 blob storage initialized: bucket=%s region=%s", bucket_name, region)

    async def _put_once(self, content: bytes, key: str, content_type: str) -> str:
        async with self.session.client("s3") as s3_client:
            await s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{quote(key)}"

    async def delete(self, key: str) -> bool:
        try:
            async with self.session.client("s3") as s3_client:
                await s3_client.delete_object(Bucket=self.bucket_name, Key=_validate_key(key))
        except (ClientError, BotoCoreError) as exc:
            logger.error("S3 deletion failed: key=%s error=%s", key, exc)
            return False
        logger.info("Deleted from S3: key=%s", key)
        return True

    async def signed_url(self, key: str, ttl: int | None = None) -> str:
        async with self.session.client("s3") as s3_client:
            return await s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": _validate_key(key)},
                ExpiresIn=ttl or self.default_ttl,
            )


class BlobStorageFactory:
    """Selects the storage backend from configuration."""

    @staticmethod
    def create_blob_service(settings: Settings) -> LocalBlobStorageService | S3BlobStorageService:
        backend = StorageKind(settings.STORAGE_BACKEND.lower())

        if backend is StorageKind.S3:
            if not settings.AWS_S3_BUCKET:
                raise ConfigurationError("AWS_S3_BUCKET is required for S3 storage")
            return S3BlobStorageService(
                bucket_name=settings.AWS_S3_BUCKET,
                access_key_id=settings.AWS_ACCESS_KEY_ID,
                secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region=settings.AWS_REGION,
                default_ttl=settings.SIGNED_URL_EXPIRY_SECONDS,
                max_retries=settings.STORAGE_MAX_RETRIES,
                retry_delay=settings.NOTIFY_RETRY_DELAY,
            )

        logger.info("Initializing local blob storage at %s", settings.BLOB_STORAGE_PATH)
        return LocalBlobStorageService(
            base_path=settings.BLOB_STORAGE_PATH,
            base_url=settings.BLOB_BASE_URL,
            signing_key=settings.SECRET_KEY,
            default_ttl=settings.SIGNED_URL_EXPIRY_SECONDS,
            max_retries=settings.STORAGE_MAX_RETRIES,
            retry_delay=settings.NOTIFY_RETRY_DELAY,
        )


# ---------------------------------------------------------------------------
# Singleton instance and dependency injection
# ---------------------------------------------------------------------------

_blob_storage_instance: LocalBlobStorageService | S3BlobStorageService | None = None


def get_blob_storage_service() -> LocalBlobStorageService | S3BlobStorageService:
    """Return the process-level storage backend."""
    global _blob_storage_instance
    if _blob_storage_instance is None:
        _blob_storage_instance = BlobStorageFactory.create_blob_service(get_settings())
    return _blob_storage_instance


def reset_blob_storage_service() -> None:
    """Reset the singleton instance (useful for testing)."""
    global _blob_storage_instance
    _blob_storage_instance = None
