"""Role and permission schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from ..core.permissions import normalize_permission_name, split_permission_name
from ..core.responses import APIModel
from ..models.role import Role


def _canonical_permissions(names: list[str]) -> list[str]:
    """Normalize to ``resource.action`` and drop duplicates, keeping order."""
    seen: dict[str, None] = {}
    for name in names:
        split_permission_name(name)
        seen.setdefault(normalize_permission_name(name), None)
    return list(seen)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class RoleCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Fleet Coordinator"])
    description: str | None = Field(None, max_length=500)
    permissions: list[str] = Field(
        default_factory=list,
        description="Permission names; 'resource.action' or 'resource:action'",
        examples=[["riders.read", "riders:write"]],
    )

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Role name cannot be blank")
        return v

    @field_validator("permissions")
    @classmethod
    def _normalize_permissions(cls, v: list[str]) -> list[str]:
        return _canonical_permissions(v)


class RoleUpdate(APIModel):
    """Partial update. ``permissions``, when given, is the complete desired set."""

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    permissions: list[str] | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Role name cannot be blank")
        return v

    @field_validator("permissions")
    @classmethod
    def _normalize_permissions(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else _canonical_permissions(v)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class ModuleInfo(APIModel):
    name: str
    permissions: list[str]


class ModulesResponse(APIModel):
    modules: dict[str, ModuleInfo]
    preset_roles: list[str] = Field(description="Preset role keys")


class RoleResponse(APIModel):
    id: int
    name: str
    description: str | None = None
    is_active: bool
    permissions: list[str] = Field(default_factory=list)
    user_count: int = 0
    created_at: datetime
    updated_at: datetime


class InitializePresetsResponse(APIModel):
    success: bool = True
    message: str
    results: list[dict[str, str]] = Field(
        description="One entry per preset: {'created': name} or {'exists': name}",
    )


def role_response(role: Role, user_count: int = 0) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        description=role.description,
        is_active=role.is_active,
        permissions=role.permission_names,
        user_count=user_count,
        created_at=role.created_at,
        updated_at=role.updated_at,
    )
