"""
Rider Schemas.

Request bodies trim every string and turn blank strings into ``None``
before validation, so blank optional fields never collide on uniqueness.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..core.responses import APIModel
from ..models.enums import EmploymentStatus, OnboardingStatus


def blank_to_none(data: Any) -> Any:
    """Strip string values of a raw payload; empty strings become ``None``."""
    if not isinstance(data, dict):
        return data
    cleaned: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            value = value.strip() or None
        cleaned[key] = value
    return cleaned


class _RiderInput(APIModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def _normalize_blanks(cls, data: Any) -> Any:
        return blank_to_none(data)


class RiderFields(_RiderInput):
    """Optional rider attributes shared by create and update."""

    email: EmailStr | None = Field(None, description="Rider email (unique when present)")
    date_of_birth: date | None = Field(None, description="ISO date", examples=["1995-04-21"])
    nationality: str | None = Field(None, max_length=100)
    address: str | None = None
    blood_group: str | None = Field(None, max_length=5)
    language_spoken: str | None = Field(None, max_length=255)
    emergency_contact: str | None = Field(None, max_length=200)
    emergency_phone: str | None = Field(None, max_length=20)
    health_notes: str | None = None

    emirates_id: str | None = Field(None, max_length=50, description="Unique when present")
    emirates_id_expiry: date | None = None
    passport_number: str | None = Field(None, max_length=50, description="Unique when present")
    passport_expiry: date | None = None
    visa_number: str | None = Field(None, max_length=50)
    license_number: str | None = Field(None, max_length=50, description="Unique when present")
    license_expiry: date | None = None

    employee_id: str | None = Field(None, max_length=50, description="Unique when present")
    joining_date: date | None = None
    city_of_work: str | None = Field(None, max_length=100)
    company_sim: str | None = Field(
        None,
        max_length=20,
        description="Company SIM number; triggers a SIM acknowledgement on creation",
    )
    delivery_partner: str | None = Field(None, max_length=100)
    delivery_partner_id: str | None = Field(None, max_length=100)
    insurance_partner: str | None = Field(None, max_length=100)
    insurance_expiry: date | None = None
    admin_notes: str | None = None

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str | None) -> str | None:
        return v.lower() if v else v


class RiderCreate(RiderFields):
    """Schema for creating a rider."""

    first_name: str = Field(..., min_length=1, max_length=100, examples=["Ana"])
    last_name: str = Field(..., min_length=1, max_length=100, examples=["Cruz"])
    phone: str = Field(..., min_length=10, max_length=20, examples=["+971501112222"])
    employment_status: EmploymentStatus = Field(EmploymentStatus.PENDING, validate_default=True)
    onboarding_status: OnboardingStatus = Field(OnboardingStatus.PENDING, validate_default=True)


class RiderUpdate(RiderFields):
    """Partial update: only fields present in the body are applied."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    phone: str | None = Field(None, min_length=10, max_length=20)
    employment_status: EmploymentStatus | None = None
    onboarding_status: OnboardingStatus | None = None
    is_active: bool | None = None

    @field_validator("first_name", "last_name", "phone", "employment_status", "onboarding_status", "is_active")
    @classmethod
    def _not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("cannot be blank")
        return v


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class RiderResponse(APIModel):
    """Rider as returned by the API."""

    id: int
    rider_code: str
    first_name: str
    last_name: str
    phone: str
    email: str | None = None
    date_of_birth: date | None = None
    nationality: str | None = None
    address: str | None = None
    blood_group: str | None = None
    language_spoken: str | None = None
    emergency_contact: str | None = None
    emergency_phone: str | None = None
    health_notes: str | None = None
    emirates_id: str | None = None
    emirates_id_expiry: date | None = None
    passport_number: str | None = None
    passport_expiry: date | None = None
    visa_number: str | None = None
    license_number: str | None = None
    license_expiry: date | None = None
    employee_id: str | None = None
    joining_date: date | None = None
    employment_status: str
    onboarding_status: str
    city_of_work: str | None = None
    company_sim: str | None = None
    delivery_partner: str | None = None
    delivery_partner_id: str | None = None
    insurance_partner: str | None = None
    insurance_expiry: date | None = None
    admin_notes: str | None = None
    is_active: bool
    created_by_id: int
    created_at: datetime
    updated_at: datetime


class AcknowledgementFlags(APIModel):
    """Which acknowledgements were generated and stored."""

    visa: bool = False
    sim: bool = False


class RiderCreateResponse(APIModel):
    """Result of creating a single rider.

    ``email_sent`` and ``acknowledgements`` report what actually succeeded.
    """

    success: bool = True
    message: str = "Rider created successfully"
    rider: RiderResponse
    email_sent: bool = False
    acknowledgements: AcknowledgementFlags = Field(default_factory=AcknowledgementFlags)


class BulkUploadRowError(APIModel):
    row: int = Field(description="CSV line number (header is line 1)")
    data: dict[str, Any] = Field(description="Raw row values")
    error: str
    details: list[dict[str, Any]] | None = None


class BulkUploadResult(APIModel):
    successful: int = 0
    failed: int = 0
    errors: list[BulkUploadRowError] = Field(default_factory=list)
    notifications_sent: bool = Field(
        default=False,
        description="Bulk uploads never send credential emails or generate acknowledgements",
    )


class BulkUploadResponse(APIModel):
    success: bool = True
    message: str
    results: BulkUploadResult
