"""
Email Configuration API Endpoints.

SMTP configurations managed from the dashboard, guarded by ``settings.*``.
Passwords are accepted on write and never returned.
"""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import Settings, get_settings
from ....core.rbac import SettingsDeleter, SettingsReader, SettingsWriter
from ....core.responses import GenericResponse, MessageResponse
from ....db.session import get_db
from ....schemas.email_config import (
    EmailConfigCreate,
    EmailConfigResponse,
    EmailConfigTestRequest,
    EmailConfigTestResponse,
    EmailConfigUpdate,
)
from ....services.email_config_service import EmailConfigService

router = APIRouter(prefix="/email-config")


async def get_email_config_service(
    settings: Annotated[Settings, Depends(get_settings)],
    db: AsyncSession = Depends(get_db),
) -> EmailConfigService:
    return EmailConfigService(db, settings)


EmailConfigs = Annotated[EmailConfigService, Depends(get_email_config_service)]


@router.get("", response_model=GenericResponse[list[EmailConfigResponse]], summary="List configurations")
async def list_configs(
    current_user: SettingsReader,
    service: EmailConfigs,
) -> GenericResponse[list[EmailConfigResponse]]:
    configs = await service.list_configs()
    return GenericResponse(
        message="Email configurations retrieved",
        data=[EmailConfigResponse.model_validate(c) for c in configs],
    )


@router.get("/{config_id}", response_model=GenericResponse[EmailConfigResponse], summary="Get configuration")
async def get_config(
    config_id: int,
    current_user: SettingsReader,
    service: EmailConfigs,
) -> GenericResponse[EmailConfigResponse]:
    config = await service.get_config(config_id)
    return GenericResponse(message="Email configuration retrieved", data=EmailConfigResponse.model_validate(config))


@router.post(
    "",
    response_model=GenericResponse[EmailConfigResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create configuration",
)
async def create_config(
    payload: EmailConfigCreate,
    current_user: SettingsWriter,
    service: EmailConfigs,
) -> GenericResponse[EmailConfigResponse]:
    config = await service.create_config(payload.model_dump(), created_by=current_user)
    return GenericResponse(message="Email configuration created", data=EmailConfigResponse.model_validate(config))


@router.put("/{config_id}", response_model=GenericResponse[EmailConfigResponse], summary="Update configuration")
async def update_config(
    config_id: int,
    payload: EmailConfigUpdate,
    current_user: SettingsWriter,
    service: EmailConfigs,
) -> GenericResponse[EmailConfigResponse]:
    # Omitted or null fields keep their stored value; test_email may be cleared
    fields = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key == "test_email"
    }
    config = await service.update_config(config_id, fields)
    return GenericResponse(message="Email configuration updated", data=EmailConfigResponse.model_validate(config))


@router.delete("/{config_id}", response_model=MessageResponse, summary="Delete configuration")
async def delete_config(
    config_id: int,
    current_user: SettingsDeleter,
    service: EmailConfigs,
) -> MessageResponse:
    await service.delete_config(config_id)
    return MessageResponse(message="Email configuration deleted successfully")


@router.post("/{config_id}/test", response_model=EmailConfigTestResponse, summary="Send a test email")
async def test_config(
    config_id: int,
    current_user: SettingsWriter,
    service: EmailConfigs,
    payload: EmailConfigTestRequest | None = None,
) -> EmailConfigTestResponse:
    success, config = await service.test_config(config_id, payload.to_email if payload else None)
    return EmailConfigTestResponse(
        success=success,
        message="Test email sent" if success else "Test email failed",
        test_result=config.test_result or "",
    )


@router.post(
    "/{config_id}/set-default",
    response_model=GenericResponse[EmailConfigResponse],
    summary="Make configuration the default",
)
async def set_default(
    config_id: int,
    current_user: SettingsWriter,
    service: EmailConfigs,
) -> GenericResponse[EmailConfigResponse]:
    config = await service.set_default(config_id)
    return GenericResponse(message="Default email configuration set", data=EmailConfigResponse.model_validate(config))
