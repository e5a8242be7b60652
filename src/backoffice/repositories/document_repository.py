"""Rider document repository."""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.document import RiderDocument

log = structlog.get_logger(__name__)


class DocumentRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, document_id: int) -> RiderDocument | None:
        query = select(RiderDocument).where(RiderDocument.id == document_id)
        return await self.session.scalar(query)

    async def list_for_rider(self, rider_id: int) -> Sequence[RiderDocument]:
        """Documents of a rider, most recently uploaded first."""
        query = (
            select(RiderDocument)
            .where(RiderDocument.rider_id == rider_id)
            .order_by(RiderDocument.uploaded_at.desc(), RiderDocument.id.desc())
        )
        return (await self.session.scalars(query)).all()

    async def create(self, fields: dict[str, Any]) -> RiderDocument:
        document = RiderDocument(**fields)
        self.session.add(document)
        await self.session.flush()
        await self.session.refresh(document)

        log.info("document_row_created", document_id=document.id, rider_id=document.rider_id)
        return document

    async def update(self, document: RiderDocument, fields: dict[str, Any]) -> RiderDocument:
        for key, value in fields.items():
            setattr(document, key, value)
        await self.session.flush()
        await self.session.refresh(document)
        return document

    async def delete(self, document: RiderDocument) -> None:
        await self.session.delete(document)
        await self.session.flush()
