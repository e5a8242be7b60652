"""Email configuration management.

At most one configuration is the default. Making a configuration the
default clears the flag on every other row in the same transaction.
"""
from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..core.exceptions import BadRequestError, EmailConfigNotFoundError
from ..models.email_config import EmailConfiguration
from ..models.user import User
from ..repositories.email_config_repository import EmailConfigRepository
from .email_service import EmailService, SMTPTransport

log = structlog.get_logger(__name__)

MailerFactory = Callable[[EmailConfiguration], EmailService]


class EmailConfigService:
    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        mailer_factory: MailerFactory | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.repo = EmailConfigRepository(session)
        self._mailer_factory = mailer_factory or self._default_mailer

    def _default_mailer(self, config: EmailConfiguration) -> EmailService:
        return EmailService(self.settings, SMTPTransport.from_config(config), enabled=True)

    async def list_configs(self) -> Sequence[EmailConfiguration]:
        return await self.repo.list_all()

    async def get_config(self, config_id: int) -> EmailConfiguration:
        config = await self.repo.get_by_id(config_id)
        if config is None:
            raise EmailConfigNotFoundError(config_id)
        return config

    async def create_config(self, fields: dict[str, Any], created_by: User | None = None) -> EmailConfiguration:
        # The first configuration becomes the default
        if not fields.get("is_default") and await self.repo.count() == 0:
            fields["is_default"] = True

        if fields.get("is_default"):
            await self.repo.clear_default()
        config = await self.repo.create({**fields, "created_by_id": created_by.id if created_by else None})
        await self.session.commit()

        log.info("email_config_created", config_id=config.id, is_default=config.is_default)
        return config

    async def update_config(self, config_id: int, fields: dict[str, Any]) -> EmailConfiguration:
        config = await self.get_config(config_id)
        if fields.get("is_default"):
            await self.repo.clear_default(except_id=config.id)
        config = await self.repo.update(config, fields)
        await self.session.commit()

        log.info("email_config_updated", config_id=config.id, fields=sorted(k for k in fields if k != "password"))
        return config

    async def set_default(self, config_id: int) -> EmailConfiguration:
        config = await self.get_config(config_id)
        await self.repo.clear_default(except_id=config.id)
        config = await self.repo.update(config, {"is_default": True})
        await self.session.commit()

        log.info("email_config_default_set", config_id=config.id)
        return config

    async def delete_config(self, config_id: int) -> None:
        config = await self.get_config(config_id)
        if config.is_default and await self.repo.count() == 1:
            raise BadRequestError(
                message="Cannot delete the only email configuration. Create another one first.",
                error_code="LAST_EMAIL_CONFIG",
            )
        await self.repo.delete(config)
        await self.session.commit()

        log.info("email_config_deleted", config_id=config_id)

    async def test_config(self, config_id: int, to_email: str | None = None) -> tuple[bool, EmailConfiguration]:
        """Send a test email through ``config_id`` and record the outcome on the row."""
        config = await self.get_config(config_id)
        recipient = to_email or config.test_email or config.from_email

        mailer = self._mailer_factory(config)
        try:
            await mailer.send_test_message(recipient)
        except Exception as exc:
            success = False
            test_result = f"Error: {exc}"
            log.warning("email_config_test_failed", config_id=config_id, error=str(exc))
        else:
            success = True
            test_result = f"Success: Email sent to {recipient}"

        config = await self.repo.update(
            config,
            {"last_tested_at": datetime.now(UTC), "test_result": test_result},
        )
        await self.session.commit()
        return success, config
