"""
Outbound email over SMTP (aiosmtplib).

Subjects and bodies come from the YAML file at ``EMAIL_TEMPLATES_PATH``;
``{placeholders}`` are filled with ``str.format_map`` and unknown ones are
left in place. The SMTP account is the active default ``EmailConfiguration``
row when there is one, else the ``SMTP_*`` settings.

    mailer: EmailService = Depends(get_email_service)
    await mailer.send_otp(to_address="ops@flcd.com", otp="123456", purpose="reset")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from email.message import EmailMessage
from email.utils import formataddr
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosmtplib
import structlog
import yaml
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..core.config import Settings, get_settings
from ..db.session import get_db
from ..repositories.email_config_repository import EmailConfigRepository

if TYPE_CHECKING:
    from ..models.email_config import EmailConfiguration

log = structlog.get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[3]

# Connection-level failures; a rejected login or recipient is not retried.
TRANSIENT_SMTP_ERRORS = (
    aiosmtplib.SMTPConnectError,
    aiosmtplib.SMTPServerDisconnected,
    aiosmtplib.SMTPTimeoutError,
    TimeoutError,
    ConnectionError,
)


class _KeepUnknown(dict):  # type: ignore[type-arg]
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    body_html: str
    body_text: str = ""

    def render(self, variables: dict[str, Any]) -> EmailTemplate:
        values = _KeepUnknown(variables)
        return EmailTemplate(*(getattr(self, f.name).format_map(values) for f in fields(self)))


@lru_cache(maxsize=4)
def load_templates(path: str) -> dict[str, EmailTemplate]:
    """Parse the template file once per path. ``load_templates.cache_clear()`` forces a re-read."""
    file = Path(path)
    if not file.is_absolute():
        file = PROJECT_ROOT / file
    raw = yaml.safe_load(file.read_text(encoding="utf-8")) or {}
    log.info("email_templates_loaded", path=str(file), count=len(raw))
    return {
        name: EmailTemplate(spec.get("subject", ""), spec.get("body_html", ""), spec.get("body_text", ""))
        for name, spec in raw.items()
    }


def get_template(name: str, templates_path: str) -> EmailTemplate:
    try:
        return load_templates(templates_path)[name]
    except KeyError:
        raise ValueError(f"No email template named '{name}'") from None


@dataclass(frozen=True)
class SMTPTransport:
    """Where and as whom to send. ``use_ssl`` is implicit TLS, ``use_tls`` is STARTTLS."""

    host: str
    port: int
    username: str
    password: str
    use_ssl: bool
    use_tls: bool
    from_address: str
    from_name: str

    @classmethod
    def from_settings(cls, settings: Settings) -> SMTPTransport:
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_ssl=settings.SMTP_USE_SSL,
            use_tls=settings.SMTP_USE_TLS,
            from_address=settings.EMAIL_FROM_ADDRESS,
            from_name=settings.EMAIL_FROM_NAME,
        )

    @classmethod
    def from_config(cls, config: EmailConfiguration) -> SMTPTransport:
        # a stored config is either implicit TLS ("secure") or STARTTLS
        return cls(
            host=config.host,
            port=config.port,
            username=config.username,
            password=config.password,
            use_ssl=config.secure,
            use_tls=not config.secure,
            from_address=config.from_email,
            from_name=config.from_name,
        )


class EmailService:
    """Renders and sends the platform's emails.

    ``send`` and the ``send_*`` helpers report delivery as a boolean after
    ``NOTIFY_MAX_RETRIES`` retries; ``send_test_message`` raises instead so the
    caller can show the SMTP error.
    """

    def __init__(
        self,
        settings: Settings,
        transport: SMTPTransport | None = None,
        enabled: bool | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport or SMTPTransport.from_settings(settings)
        self._enabled = settings.EMAIL_ENABLED if enabled is None else enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def transport(self) -> SMTPTransport:
        return self._transport

    def build_message(
        self,
        to_address: str,
        subject: str,
        body_html: str,
        body_text: str | None = None,
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self._transport.from_name, self._transport.from_address))
        msg["To"] = to_address
        if body_text:
            msg.set_content(body_text)
            msg.add_alternative(body_html, subtype="html")
        else:
            msg.set_content(body_html, subtype="html")
        return msg

    async def deliver(self, msg: EmailMessage) -> None:
        """Send ``msg``, retrying transient failures; the final error propagates."""
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TRANSIENT_SMTP_ERRORS),
            stop=stop_after_attempt(self._settings.NOTIFY_MAX_RETRIES + 1),
            wait=wait_exponential(multiplier=self._settings.NOTIFY_RETRY_DELAY, max=10),
            before_sleep=before_sleep_log(logging.getLogger(__name__), logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._smtp_send(msg)

    async def send(
        self,
        to_address: str,
        subject: str,
        body_html: str,
        body_text: str | None = None,
    ) -> bool:
        if not self._enabled:
            log.warning("email_skipped_disabled", subject=subject)
            return False
        try:
            await self.deliver(self.build_message(to_address, subject, body_html, body_text))
        except (aiosmtplib.SMTPException, OSError) as exc:
            log.error("email_send_failed", subject=subject, error=str(exc))
            return False
        log.info("email_sent", subject=subject)
        return True

    def _render(self, template_name: str, variables: dict[str, Any]) -> EmailTemplate:
        base = {
            "company_name": self._settings.COMPANY_NAME,
            "platform_name": self._transport.from_name,
            "support_email": self._transport.from_address,
            "portal_url": self._settings.PORTAL_URL,
        }
        return get_template(template_name, self._settings.EMAIL_TEMPLATES_PATH).render(base | variables)

    async def send_template(self, to_address: str, template_name: str, variables: dict[str, Any]) -> bool:
        email = self._render(template_name, variables)
        return await self.send(to_address, email.subject, email.body_html, email.body_text)

    async def send_rider_credentials(
        self,
        *,
        to_address: str,
        first_name: str,
        last_name: str,
        rider_code: str,
        password: str,
    ) -> bool:
        return await self.send_template(
            to_address,
            "rider_credentials",
            {
                "first_name": first_name,
                "last_name": last_name,
                "rider_code": rider_code,
                "password": password,
                "login_email": to_address,
            },
        )

    async def send_otp(self, *, to_address: str, otp: str, purpose: str) -> bool:
        template = "password_reset_otp" if purpose == "reset" else "registration_otp"
        return await self.send_template(
            to_address, template, {"otp": otp, "expiry_minutes": self._settings.OTP_EXPIRY_SECONDS // 60}
        )

    async def send_test_message(self, to_address: str) -> None:
        t = self._transport
        email = self._render("config_test", {"smtp_host": t.host, "smtp_port": t.port})
        await self.deliver(self.build_message(to_address, email.subject, email.body_html, email.body_text))
        log.info("email_config_test_sent", smtp_host=t.host)

    async def _smtp_send(self, msg: EmailMessage) -> None:
        t = self._transport
        timeout = self._settings.EMAIL_TIMEOUT_SECONDS
        smtp = aiosmtplib.SMTP(
            hostname=t.host,
            port=t.port,
            use_tls=t.use_ssl,
            start_tls=t.use_tls and not t.use_ssl,
            username=t.username or None,
            password=t.password or None,
            timeout=timeout,
        )
        try:
            async with smtp:
                await smtp.send_message(msg)
        except aiosmtplib.SMTPException as exc:
            log.error("smtp_error", smtp_host=t.host, smtp_port=t.port, error=str(exc))
            raise
        except TimeoutError as exc:
            raise aiosmtplib.SMTPConnectTimeoutError(f"SMTP connection timed out after {timeout}s") from exc


async def build_email_service(session: AsyncSession, settings: Settings) -> EmailService:
    """Prefer the stored default configuration; it enables sending on its own."""
    config = await EmailConfigRepository(session).get_default()
    if config is None:
        return EmailService(settings)
    return EmailService(settings, SMTPTransport.from_config(config), enabled=True)


async def get_email_service(
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
) -> EmailService:
    return await build_email_service(db, settings)
