"""Rider Repository - Data access layer for riders and rider codes."""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.rider import UNIQUE_IDENTITY_FIELDS, Rider, RiderCodeCounter

log = structlog.get_logger(__name__)


class RiderRepository:
    """Repository for Rider CRUD and rider-code sequencing.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_by_id(self, rider_id: int) -> Rider | None:
        query = select(Rider).where(Rider.id == rider_id)
        return await self.session.scalar(query)

    async def get_by_code(self, rider_code: str) -> Rider | None:
        query = select(Rider).where(Rider.rider_code == rider_code)
        return await self.session.scalar(query)

    def _filtered(
        self,
        query,
        *,
        search: str | None = None,
        employment_status: str | None = None,
        onboarding_status: str | None = None,
        is_active: bool | None = None,
    ):
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(Rider.first_name).like(pattern),
                    func.lower(Rider.last_name).like(pattern),
                    func.lower(Rider.rider_code).like(pattern),
                    func.lower(Rider.email).like(pattern),
                    Rider.phone.like(pattern),
                )
            )
        if employment_status:
            query = query.where(Rider.employment_status == employment_status)
        if onboarding_status:
            query = query.where(Rider.onboarding_status == onboarding_status)
        if is_active is not None:
            query = query.where(Rider.is_active.is_(is_active))
        return query

    async def get_all(self, skip: int = 0, limit: int = 20, **filters: Any) -> Sequence[Rider]:
        """Get riders with optional filtering, newest first."""
        query = self._filtered(select(Rider), **filters)
        query = query.order_by(Rider.created_at.desc(), Rider.id.desc()).offset(skip).limit(limit)
        return (await self.session.scalars(query)).all()

    async def count_all(self, **filters: Any) -> int:
        query = self._filtered(select(func.count(Rider.id)), **filters)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def find_conflicts(
        self,
        values: dict[str, Any],
        exclude_id: int | None = None,
    ) -> list[str]:
        """Return the unique identity fields in ``values`` already used by another rider.

        ``None`` values are ignored, so blank identity fields never collide.
        """
        candidates = {
            field: value
            for field, value in values.items()
            if field in UNIQUE_IDENTITY_FIELDS and value is not None
        }
        if not candidates:
            return []

        query = select(Rider).where(
            or_(*(getattr(Rider, field) == value for field, value in candidates.items()))
        )
        if exclude_id is not None:
            query = query.where(Rider.id != exclude_id)

        result = await self.session.execute(query)
        conflicting: set[str] = set()
        for rider in result.scalars().all():
            for field, value in candidates.items():
                if getattr(rider, field) == value:
                    conflicting.add(field)

        return [field for field in UNIQUE_IDENTITY_FIELDS if field in conflicting]

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def create(self, fields: dict[str, Any]) -> Rider:
        rider = Rider(**fields)
        self.session.add(rider)
        await self.session.flush()
        await self.session.refresh(rider)

        log.info("rider_row_created", rider_id=rider.id, rider_code=rider.rider_code)
        return rider

    async def update(self, rider: Rider, fields: dict[str, Any]) -> Rider:
        for key, value in fields.items():
            setattr(rider, key, value)
        await self.session.flush()
        await self.session.refresh(rider)
        return rider

    # =========================================================================
    # RIDER CODE SEQUENCE
    # =========================================================================

    async def lock_counter(self, year: int) -> RiderCodeCounter | None:
        """Fetch the counter row for ``year`` with a row-level lock (``FOR UPDATE``)."""
        query = (
            select(RiderCodeCounter)
            .where(RiderCodeCounter.year == year)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(query)

    async def create_counter(self, year: int, last_value: int) -> RiderCodeCounter:
        counter = RiderCodeCounter(year=year, last_value=last_value)
        self.session.add(counter)
        await self.session.flush()
        return counter

    async def count_codes_with_prefix(self, code_prefix: str) -> int:
        """Number of riders whose code starts with ``code_prefix`` (e.g. ``FLCR26``)."""
        query = select(func.count(Rider.id)).where(Rider.rider_code.like(f"{code_prefix}%"))
        result = await self.session.execute(query)
        return result.scalar_one()
