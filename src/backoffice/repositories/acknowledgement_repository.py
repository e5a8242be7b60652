"""Acknowledgement repository."""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.acknowledgement import Acknowledgement
from ..models.enums import AcknowledgementStatus


class AcknowledgementRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, acknowledgement_id: int) -> Acknowledgement | None:
        query = select(Acknowledgement).where(Acknowledgement.id == acknowledgement_id)
        return await self.session.scalar(query)

    async def list_for_rider(self, rider_id: int) -> Sequence[Acknowledgement]:
        query = (
            select(Acknowledgement)
            .where(Acknowledgement.rider_id == rider_id)
            .order_by(Acknowledgement.created_at.desc(), Acknowledgement.id.desc())
        )
        return (await self.session.scalars(query)).all()

    async def list_pending(self, skip: int = 0, limit: int = 50) -> Sequence[Acknowledgement]:
        query = (
            select(Acknowledgement)
            .where(Acknowledgement.status == AcknowledgementStatus.PENDING.value)
            .order_by(Acknowledgement.created_at.asc(), Acknowledgement.id.asc())
            .offset(skip)
            .limit(limit)
        )
        return (await self.session.scalars(query)).all()

    async def count_pending(self) -> int:
        query = select(func.count(Acknowledgement.id)).where(
            Acknowledgement.status == AcknowledgementStatus.PENDING.value
        )
        result = await self.session.execute(query)
        return result.scalar_one()

    async def create(self, fields: dict[str, Any]) -> Acknowledgement:
        acknowledgement = Acknowledgement(**fields)
        self.session.add(acknowledgement)
        await self.session.flush()
        await self.session.refresh(acknowledgement)
        return acknowledgement

    async def update(self, acknowledgement: Acknowledgement, fields: dict[str, Any]) -> Acknowledgement:
        for key, value in fields.items():
            setattr(acknowledgement, key, value)
        await self.session.flush()
        await self.session.refresh(acknowledgement)
        return acknowledgement
