"""
Role Management API Endpoints.

- GET    /roles/modules             permission catalog and preset role keys
- GET    /roles                     roles with user counts
- GET    /roles/{id}
- POST   /roles
- PUT    /roles/{id}                partial update; ``permissions`` replaces the set
- DELETE /roles/{id}                403 for Super Admin, 409 while assigned
- POST   /roles/initialize-presets  create missing preset roles
"""
from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import Settings, get_settings
from ....core.permissions import PRESET_ROLES, list_modules
from ....core.rbac import UsersDeleter, UsersReader, UsersWriter
from ....core.responses import GenericResponse, MessageResponse
from ....db.session import get_db
from ....schemas.role import (
    InitializePresetsResponse,
    ModuleInfo,
    ModulesResponse,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    role_response,
)
from ....services.rbac_service import RBACService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/roles")


async def get_rbac_service(
    settings: Annotated[Settings, Depends(get_settings)],
    db: AsyncSession = Depends(get_db),
) -> RBACService:
    return RBACService(db, settings)


RBAC = Annotated[RBACService, Depends(get_rbac_service)]


@router.get(
    "/modules",
    response_model=GenericResponse[ModulesResponse],
    summary="Permission catalog",
)
async def get_modules(current_user: UsersReader) -> GenericResponse[ModulesResponse]:
    modules = {key: ModuleInfo(**module) for key, module in list_modules().items()}
    return GenericResponse(
        message="Modules retrieved",
        data=ModulesResponse(modules=modules, preset_roles=list(PRESET_ROLES)),
    )


@router.get(
    "",
    response_model=GenericResponse[list[RoleResponse]],
    summary="List roles",
)
async def list_roles(current_user: UsersReader, service: RBAC) -> GenericResponse[list[RoleResponse]]:
    roles = await service.list_roles()
    return GenericResponse(
        message="Roles retrieved",
        data=[role_response(role, count) for role, count in roles],
    )


@router.post(
    "/initialize-presets",
    response_model=InitializePresetsResponse,
    summary="Create missing preset roles",
)
async def initialize_presets(current_user: UsersWriter, service: RBAC) -> InitializePresetsResponse:
    results = await service.initialize_presets()
    created = sum(1 for r in results if "created" in r)
    return InitializePresetsResponse(
        message=f"Preset roles initialized ({created} created, {len(results) - created} existing)",
        results=results,
    )


@router.get(
    "/{role_id}",
    response_model=GenericResponse[RoleResponse],
    summary="Get role by ID",
)
async def get_role(role_id: int, current_user: UsersReader, service: RBAC) -> GenericResponse[RoleResponse]:
    role, count = await service.get_role(role_id)
    return GenericResponse(message="Role retrieved", data=role_response(role, count))


@router.post(
    "",
    response_model=GenericResponse[RoleResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a role",
)
async def create_role(
    payload: RoleCreate,
    current_user: UsersWriter,
    service: RBAC,
) -> GenericResponse[RoleResponse]:
    role = await service.create_role(payload.name, payload.description, payload.permissions)
    logger.info("role_created_by_admin", role_id=role.id, created_by=current_user.id)
    return GenericResponse(message="Role created successfully", data=role_response(role))


@router.put(
    "/{role_id}",
    response_model=GenericResponse[RoleResponse],
    summary="Update a role",
)
async def update_role(
    role_id: int,
    payload: RoleUpdate,
    current_user: UsersWriter,
    service: RBAC,
) -> GenericResponse[RoleResponse]:
    changes = payload.model_dump(exclude_unset=True)
    role = await service.update_role(role_id, **changes)
    role, count = await service.get_role(role.id)
    return GenericResponse(message="Role updated successfully", data=role_response(role, count))


@router.delete(
    "/{role_id}",
    response_model=MessageResponse,
    summary="Delete a role",
)
async def delete_role(role_id: int, current_user: UsersDeleter, service: RBAC) -> MessageResponse:
    await service.delete_role(role_id)
    logger.info("role_deleted_by_admin", role_id=role_id, deleted_by=current_user.id)
    return MessageResponse(message="Role deleted successfully")
