"""
User Schemas.

Pydantic models for staff user management requests and responses.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from ..core.responses import APIModel


def _strip_phone(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        return None
    digits = "".join(c for c in v if c.isdigit())
    if len(digits) < 10:
        raise ValueError("Phone number must have at least 10 digits")
    return v


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class UserCreate(APIModel):
    """Schema for creating a staff user."""

    email: EmailStr = Field(..., examples=["ops@flcd.com"])
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: str | None = Field(None, examples=["+971501234567"])
    is_active: bool = True
    role_ids: list[int] = Field(default_factory=list, description="Roles to assign")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        return _strip_phone(v)


class UserUpdate(APIModel):
    """Schema for updating a user. Only provided fields change."""

    email: EmailStr | None = None
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    phone: str | None = None
    password: str | None = Field(None, min_length=8, max_length=128)
    is_active: bool | None = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        return _strip_phone(v)


class UserRolesUpdate(APIModel):
    role_ids: list[int] = Field(..., description="Complete set of role ids for the user")


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class RoleSummary(APIModel):
    id: int
    name: str


class UserResponse(APIModel):
    id: int
    email: str
    phone: str | None = None
    first_name: str
    last_name: str
    is_active: bool
    roles: list[RoleSummary] = Field(default_factory=list)
    last_login_at: datetime | None = None
    created_at: datetime


class UserProfileResponse(UserResponse):
    """Current user with their effective permissions."""

    permissions: list[str] = Field(default_factory=list)
