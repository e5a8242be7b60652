"""Authentication schemas: login, refresh, OTP registration, password reset."""
from __future__ import annotations

from pydantic import EmailStr, Field, field_validator

from ..core.responses import APIModel
from .user import UserResponse


class LoginRequest(APIModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(APIModel):
    refresh_token: str = Field(..., min_length=1)


class TokenResponse(APIModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token lifetime in seconds")
    user: UserResponse


class RegisterSendOTPRequest(APIModel):
    """Start phone-based registration; the code is emailed to ``email``."""

    phone: str = Field(..., min_length=10, max_length=20, examples=["+971501234567"])
    email: EmailStr

    @field_validator("phone")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class RegisterVerifyRequest(APIModel):
    phone: str = Field(..., min_length=10, max_length=20)
    otp: str = Field(..., pattern=r"^\d{4,8}$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("phone")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class ForgotPasswordRequest(APIModel):
    email: EmailStr


class ResetPasswordRequest(APIModel):
    email: EmailStr
    otp: str = Field(..., pattern=r"^\d{4,8}$")
    new_password: str = Field(..., min_length=8, max_length=128)


class OTPSentResponse(APIModel):
    success: bool = True
    message: str
    expires_in: int = Field(description="Seconds until the code expires")
