"""Email configuration schemas. Passwords are write-only."""
from __future__ import annotations

from datetime import datetime

from pydantic import EmailStr, Field

from ..core.responses import APIModel


class EmailConfigCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=100)
    host: str = Field(..., min_length=1, max_length=255, examples=["smtp.office365.com"])
    port: int = Field(587, ge=1, le=65535)
    secure: bool = Field(False, description="Implicit TLS (port 465)")
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=500)
    from_email: EmailStr
    from_name: str = Field("FLCD Platform", max_length=255)
    test_email: EmailStr | None = None
    is_default: bool = False
    is_active: bool = True


class EmailConfigUpdate(APIModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    host: str | None = Field(None, min_length=1, max_length=255)
    port: int | None = Field(None, ge=1, le=65535)
    secure: bool | None = None
    username: str | None = Field(None, min_length=1, max_length=255)
    password: str | None = Field(None, min_length=1, max_length=500)
    from_email: EmailStr | None = None
    from_name: str | None = Field(None, max_length=255)
    test_email: EmailStr | None = None
    is_default: bool | None = None
    is_active: bool | None = None


class EmailConfigTestRequest(APIModel):
    to_email: EmailStr | None = Field(None, description="Defaults to the configuration's test email")


class EmailConfigResponse(APIModel):
    id: int
    name: str
    host: str
    port: int
    secure: bool
    username: str
    from_email: str
    from_name: str
    test_email: str | None = None
    is_default: bool
    is_active: bool
    last_tested_at: datetime | None = None
    test_result: str | None = None
    created_at: datetime
    updated_at: datetime


class EmailConfigTestResponse(APIModel):
    success: bool
    message: str
    test_result: str
