"""Email configuration repository."""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.email_config import EmailConfiguration


class EmailConfigRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, config_id: int) -> EmailConfiguration | None:
        query = select(EmailConfiguration).where(EmailConfiguration.id == config_id)
        return await self.session.scalar(query)

    async def get_default(self) -> EmailConfiguration | None:
        """The active default configuration, if any."""
        query = select(EmailConfiguration).where(
            EmailConfiguration.is_default.is_(True),
            EmailConfiguration.is_active.is_(True),
        )
        return (await self.session.scalars(query)).first()

    async def list_all(self) -> Sequence[EmailConfiguration]:
        query = select(EmailConfiguration).order_by(
            EmailConfiguration.is_default.desc(),
            EmailConfiguration.created_at.desc(),
            EmailConfiguration.id.desc(),
        )
        return (await self.session.scalars(query)).all()

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(EmailConfiguration.id)))
        return result.scalar_one()

    async def clear_default(self, except_id: int | None = None) -> None:
        """Unset ``is_default`` on every configuration except ``except_id``."""
        statement = update(EmailConfiguration).where(EmailConfiguration.is_default.is_(True))
        if except_id is not None:
            statement = statement.where(EmailConfiguration.id != except_id)
        await self.session.execute(
            statement.values(is_default=False).execution_options(synchronize_session="fetch")
        )

    async def create(self, fields: dict[str, Any]) -> EmailConfiguration:
        config = EmailConfiguration(**fields)
        self.session.add(config)
        await self.session.flush()
        await self.session.refresh(config)
        return config

    async def update(self, config: EmailConfiguration, fields: dict[str, Any]) -> EmailConfiguration:
        for key, value in fields.items():
            setattr(config, key, value)
        await self.session.flush()
        await self.session.refresh(config)
        return config

    async def delete(self, config: EmailConfiguration) -> None:
        await self.session.delete(config)
        await self.session.flush()
