"""Acknowledgement Service.

Generates visa and SIM acknowledgement PDFs for riders, stores them in
blob storage and tracks their PENDING -> ACKNOWLEDGED lifecycle.
"""
from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..core.exceptions import (
    AcknowledgementNotFoundError,
    ConflictError,
    RiderNotFoundError,
    ValidationError,
)
from ..models.acknowledgement import Acknowledgement
from ..models.enums import AcknowledgementStatus, AcknowledgementType
from ..models.rider import Rider
from ..models.user import User
from ..repositories.acknowledgement_repository import AcknowledgementRepository
from ..repositories.rider_repository import RiderRepository
from .blob_storage_service import StorageBackend
from .pdf_service import SIM_TEMPLATE, VISA_TEMPLATE, PdfRenderer

log = structlog.get_logger(__name__)

_TEMPLATES = {
    AcknowledgementType.VISA: VISA_TEMPLATE,
    AcknowledgementType.SIM: SIM_TEMPLATE,
}


def acknowledgement_key(ack_type: AcknowledgementType, rider_id: int, timestamp_ms: int) -> str:
    """Storage key, e.g. ``acknowledgements/visa/visa-acknowledgement-7-1735689600000.pdf``."""
    kind = ack_type.value.lower()
    return f"acknowledgements/{kind}/{kind}-acknowledgement-{rider_id}-{timestamp_ms}.pdf"


class AcknowledgementService:
    def __init__(
        self,
        session: AsyncSession,
        storage: StorageBackend,
        renderer: PdfRenderer | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.storage = storage
        self.renderer = renderer or PdfRenderer()
        self.settings = settings or get_settings()
        self.repo = AcknowledgementRepository(session)
        self.riders = RiderRepository(session)

    def _template_data(
        self,
        rider: Rider,
        ack_type: AcknowledgementType,
        admin_name: str,
        *,
        signed: bool = False,
        signature_name: str | None = None,
    ) -> dict[str, Any]:
        now = datetime.now(UTC)
        return {
            "company_name": self.settings.COMPANY_NAME,
            "rider_name": rider.full_name,
            "rider_code": rider.rider_code,
            "nationality": rider.nationality or "",
            "id_number": rider.emirates_id or rider.passport_number or "",
            "phone": (rider.company_sim or rider.phone) if ack_type is AcknowledgementType.SIM else rider.phone,
            "admin_name": admin_name,
            "signed": signed,
            "signature_name": signature_name,
            "date": now.strftime("%d/%m/%Y"),
            "time": now.strftime("%H:%M"),
        }

    async def _render(self, ack_type: AcknowledgementType, data: dict[str, Any]) -> bytes:
        # reportlab is synchronous
        return await asyncio.to_thread(self.renderer.render, _TEMPLATES[ack_type], data)

    async def generate(
        self,
        rider: Rider,
        ack_type: AcknowledgementType | str,
        generated_by: User,
    ) -> Acknowledgement:
        """Render, store and record a PENDING acknowledgement for ``rider``.

        Raises ``BlobStorageError`` when storage fails; nothing is recorded then.
        """
        ack_type = AcknowledgementType(ack_type)
        if ack_type not in _TEMPLATES:
            raise ValidationError(
                message=f"No document template for {ack_type.value} acknowledgements",
                errors=[{"field": "type", "message": "Must be VISA or SIM"}],
            )

        pdf = await self._render(ack_type, self._template_data(rider, ack_type, generated_by.full_name))
        key = acknowledgement_key(ack_type, rider.id, int(time.time() * 1000))
        url = await self.storage.put(pdf, key, "application/pdf")

        async with self.session.begin_nested():
            acknowledgement = await self.repo.create(
                {
                    "rider_id": rider.id,
                    "type": ack_type.value,
                    "status": AcknowledgementStatus.PENDING.value,
                    "file_name": key.rsplit("/", 1)[-1],
                    "storage_key": key,
                    "file_url": url,
                    "generated_by_id": generated_by.id,
                }
            )
        await self.session.commit()

        log.info(
            "acknowledgement_generated",
            acknowledgement_id=acknowledgement.id,
            rider_id=rider.id,
            type=ack_type.value,
        )
        return acknowledgement

    async def generate_for_rider(
        self,
        rider_id: int,
        ack_type: AcknowledgementType | str,
        generated_by: User,
    ) -> Acknowledgement:
        rider = await self.riders.get_by_id(rider_id)
        if rider is None:
            raise RiderNotFoundError(rider_id)
        return await self.generate(rider, ack_type, generated_by)

    async def list_for_rider(self, rider_id: int) -> Sequence[Acknowledgement]:
        if await self.riders.get_by_id(rider_id) is None:
            raise RiderNotFoundError(rider_id)
        return await self.repo.list_for_rider(rider_id)

    async def list_pending(self, skip: int = 0, limit: int = 50) -> tuple[Sequence[Acknowledgement], int]:
        return await self.repo.list_pending(skip, limit), await self.repo.count_pending()

    async def acknowledge(self, acknowledgement_id: int, signature_name: str | None = None) -> Acknowledgement:
        """Mark an acknowledgement signed and store the signed PDF in place of the blank one."""
        acknowledgement = await self.repo.get_by_id(acknowledgement_id)
        if acknowledgement is None:
            raise AcknowledgementNotFoundError(acknowledgement_id)
        if acknowledgement.status == AcknowledgementStatus.ACKNOWLEDGED.value:
            raise ConflictError(
                message="Acknowledgement has already been signed",
                error_code="ALREADY_ACKNOWLEDGED",
                details={"acknowledgement_id": acknowledgement_id},
            )

        fields: dict[str, Any] = {
            "status": AcknowledgementStatus.ACKNOWLEDGED.value,
            "acknowledged_at": datetime.now(UTC),
        }
        ack_type = AcknowledgementType(acknowledgement.type)
        if ack_type in _TEMPLATES:
            rider = await self.riders.get_by_id(acknowledgement.rider_id)
            if rider is None:
                raise RiderNotFoundError(acknowledgement.rider_id)
            data = self._template_data(
                rider,
                ack_type,
                acknowledgement.generated_by.full_name,
                signed=True,
                signature_name=signature_name or rider.full_name,
            )
            pdf = await self._render(ack_type, data)
            fields["file_url"] = await self.storage.put(
                pdf, acknowledgement.storage_key, "application/pdf"
            )

        acknowledgement = await self.repo.update(acknowledgement, fields)
        await self.session.commit()

        log.info("acknowledgement_signed", acknowledgement_id=acknowledgement.id)
        return acknowledgement

    async def download_url(self, acknowledgement: Acknowledgement) -> str:
        return await self.storage.signed_url(acknowledgement.storage_key)
