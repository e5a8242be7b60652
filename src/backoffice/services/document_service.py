"""Rider document uploads: validation, storage and review status."""
from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..core.exceptions import DocumentNotFoundError, FileValidationError, RiderNotFoundError
from ..models.document import RiderDocument
from ..models.enums import DocumentStatus, DocumentType
from ..repositories.document_repository import DocumentRepository
from ..repositories.rider_repository import RiderRepository
from .blob_storage_service import StorageBackend, detect_mime_type

log = structlog.get_logger(__name__)


def document_key(rider_id: int, file_name: str) -> str:
    """``riders/{rider_id}/documents/{uuid}{ext}``; the original name is kept on the row."""
    return f"riders/{rider_id}/documents/{uuid.uuid4().hex}{Path(file_name).suffix.lower()}"


class DocumentService:
    def __init__(
        self,
        session: AsyncSession,
        storage: StorageBackend,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.storage = storage
        self.settings = settings or get_settings()
        self.repo = DocumentRepository(session)
        self.riders = RiderRepository(session)

    def validate_file(self, file_name: str | None, content: bytes) -> str:
        """Check extension and size; returns the cleaned file name."""
        allowed = self.settings.allowed_extensions_list
        name = Path(file_name or "").name
        extension = Path(name).suffix.lower().lstrip(".")
        if not name or extension not in allowed:
            raise FileValidationError(
                message=f"File type not allowed. Allowed types: {', '.join(allowed)}",
                filename=name or None,
                allowed_types=allowed,
            )
        if not content:
            raise FileValidationError(message="File is empty", filename=name)
        if len(content) > self.settings.max_file_size_bytes:
            raise FileValidationError(
                message=f"File exceeds the {self.settings.MAX_FILE_SIZE_MB}MB limit",
                filename=name,
            )
        return name

    async def upload(
        self,
        rider_id: int,
        doc_type: DocumentType | str,
        file_name: str | None,
        content: bytes,
        content_type: str | None = None,
        notes: str | None = None,
    ) -> RiderDocument:
        doc_type = DocumentType(doc_type)
        if await self.riders.get_by_id(rider_id) is None:
            raise RiderNotFoundError(rider_id)

        name = self.validate_file(file_name, content)
        mime_type = content_type or detect_mime_type(name)
        key = document_key(rider_id, name)
        await self.storage.put(content, key, mime_type)

        document = await self.repo.create(
            {
                "rider_id": rider_id,
                "type": doc_type.value,
                "status": DocumentStatus.PENDING.value,
                "file_name": name,
                "storage_key": key,
                "file_size": len(content),
                "mime_type": mime_type,
                "notes": notes,
            }
        )
        await self.session.commit()

        log.info("document_uploaded", document_id=document.id, rider_id=rider_id, type=document.type)
        return document

    async def list_for_rider(self, rider_id: int) -> list[tuple[RiderDocument, str]]:
        """Documents of a rider, each with a time-limited download URL."""
        if await self.riders.get_by_id(rider_id) is None:
            raise RiderNotFoundError(rider_id)
        documents: Sequence[RiderDocument] = await self.repo.list_for_rider(rider_id)
        return [(doc, await self.storage.signed_url(doc.storage_key)) for doc in documents]

    async def update_status(
        self,
        document_id: int,
        status: DocumentStatus | str,
        notes: str | None = None,
    ) -> RiderDocument:
        document = await self.repo.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)

        status = DocumentStatus(status)
        fields: dict[str, Any] = {
            "status": status.value,
            "verified_at": datetime.now(UTC) if status is DocumentStatus.VERIFIED else None,
        }
        if notes is not None:
            fields["notes"] = notes

        document = await self.repo.update(document, fields)
        await self.session.commit()

        log.info("document_status_updated", document_id=document_id, status=status.value)
        return document

    async def delete(self, document_id: int) -> None:
        document = await self.repo.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)

        if not await self.storage.delete(document.storage_key):
            log.warning("document_blob_missing", document_id=document_id, key=document.storage_key)
        await self.repo.delete(document)
        await self.session.commit()

        log.info("document_deleted", document_id=document_id)
