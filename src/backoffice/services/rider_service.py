"""
Rider Onboarding Service.

Creates riders with unique codes, rejects duplicate identities, and on
single creation sends the rider's login credentials and generates the visa
(always) and SIM (when a company SIM is issued) acknowledgements.

Side effects run after the rider is committed. Each one is isolated: a
failure is logged and reported as ``False`` in the result, never rolled
back into the rider.
"""
from __future__ import annotations

import csv
import io
import re
import secrets
import string
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..core.exceptions import (
    InternalServerError,
    RiderAlreadyExistsError,
    RiderNotFoundError,
    ValidationError,
)
from ..core.security import hash_password
from ..models.enums import AcknowledgementType
from ..models.rider import UNIQUE_IDENTITY_FIELDS, Rider
from ..models.user import User
from ..repositories.rider_repository import RiderRepository
from ..repositories.user_repository import UserRepository
from ..schemas.rider import BulkUploadResult, BulkUploadRowError, RiderCreate, RiderUpdate
from .acknowledgement_service import AcknowledgementService
from .email_service import EmailService

log = structlog.get_logger(__name__)

PASSWORD_CHARSET = string.ascii_uppercase + string.ascii_lowercase + string.digits + "!@#$%^&*"


# =============================================================================
# Rider codes and passwords
# =============================================================================

def format_rider_code(year: int, sequence: int, prefix: str = "FLCR") -> str:
    """``FLCR`` + two-digit year + sequence padded to four digits (wider on overflow)."""
    return f"{prefix}{year % 100:02d}{sequence:04d}"


def generate_initial_password(length: int = 8) -> str:
    """Random password drawn uniformly from ``PASSWORD_CHARSET``."""
    return "".join(secrets.choice(PASSWORD_CHARSET) for _ in range(length))


def validation_errors(exc: PydanticValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic errors to ``[{"field", "message"}]``."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]) or "body",
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


# =============================================================================
# CSV header mapping
# =============================================================================

def _collapse(header: str) -> str:
    return re.sub(r"[^a-z0-9]", "", header.lower())


_HEADER_ALIASES = {
    "mobile": "phone",
    "mobilenumber": "phone",
    "phonenumber": "phone",
    "contactnumber": "phone",
    "emailaddress": "email",
    "dob": "date_of_birth",
    "birthdate": "date_of_birth",
    "eid": "emirates_id",
    "emiratesidnumber": "emirates_id",
    "passport": "passport_number",
    "passportno": "passport_number",
    "visa": "visa_number",
    "visano": "visa_number",
    "license": "license_number",
    "licenseno": "license_number",
    "drivinglicense": "license_number",
    "drivinglicensenumber": "license_number",
    "employeeno": "employee_id",
    "empid": "employee_id",
    "sim": "company_sim",
    "simnumber": "company_sim",
    "city": "city_of_work",
    "language": "language_spoken",
    "languages": "language_spoken",
    "bloodtype": "blood_group",
    "emergencycontactname": "emergency_contact",
    "emergencycontactphone": "emergency_phone",
    "notes": "admin_notes",
}

_FIELD_BY_HEADER = {_collapse(name): name for name in RiderCreate.model_fields} | _HEADER_ALIASES

_ENUM_FIELDS = ("employment_status", "onboarding_status")

CSV_TEMPLATE_ROWS = [
    {
        "firstName": "Ana",
        "lastName": "Cruz",
        "phone": "+971501112222",
        "email": "ana.cruz@example.com",
        "dateOfBirth": "1995-04-21",
        "nationality": "Philippines",
        "emiratesId": "784-1995-1234567-1",
        "passportNumber": "P1234567",
        "licenseNumber": "DL998877",
        "employeeId": "EMP-1001",
        "joiningDate": "2026-01-15",
        "cityOfWork": "Dubai",
        "companySim": "+971559990000",
        "deliveryPartner": "Talabat",
        "employmentStatus": "PENDING",
        "onboardingStatus": "PENDING",
    },
]


def map_csv_row(row: dict[str | None, Any]) -> dict[str, Any]:
    """Translate a raw CSV row to rider field names.

    Unknown columns and blank cells are dropped, so blank optional cells fall
    back to the field defaults.
    """
    mapped: dict[str, Any] = {}
    for header, value in row.items():
        if header is None or not isinstance(value, str):
            continue
        field = _FIELD_BY_HEADER.get(_collapse(header))
        if field is None:
            continue
        value = value.strip()
        if not value:
            continue
        if field in _ENUM_FIELDS:
            value = value.upper().replace(" ", "_")
        mapped[field] = value
    return mapped


# =============================================================================
# Service
# =============================================================================

@dataclass
class RiderCreationResult:
    rider: Rider
    email_sent: bool = False
    visa_acknowledgement: bool = False
    sim_acknowledgement: bool = False


class RiderService:
    """Rider onboarding and maintenance."""

    def __init__(
        self,
        session: AsyncSession,
        mailer: EmailService | None = None,
        acknowledgements: AcknowledgementService | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.mailer = mailer
        self.acknowledgements = acknowledgements
        self.settings = settings or get_settings()
        self.repo = RiderRepository(session)
        self.users = UserRepository(session)

    # -------------------------------------------------------------------------
    # Rider codes
    # -------------------------------------------------------------------------

    async def next_rider_code(self, year: int | None = None) -> str:
        """Allocate the next code for ``year`` from its locked counter row.

        A missing counter row is seeded from the codes already issued that
        year. Must run inside the transaction that inserts the rider.
        """
        year = year or datetime.now(UTC).year
        prefix = self.settings.RIDER_CODE_PREFIX

        counter = await self.repo.lock_counter(year)
        if counter is None:
            issued = await self.repo.count_codes_with_prefix(f"{prefix}{year % 100:02d}")
            try:
                async with self.session.begin_nested():
                    counter = await self.repo.create_counter(year, issued)
            except IntegrityError:
                # Another transaction created it first
                counter = await self.repo.lock_counter(year)
                if counter is None:
                    raise InternalServerError("Could not allocate a rider code") from None

        counter.last_value += 1
        await self.session.flush()
        return format_rider_code(year, counter.last_value, prefix)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def system_user(self) -> User:
        """Inactive placeholder creator for riders created without a staff user."""
        user = await self.users.get_by_email(self.settings.SYSTEM_USER_EMAIL)
        if user is None:
            user = await self.users.create(
                email=self.settings.SYSTEM_USER_EMAIL,
                password_hash=hash_password(secrets.token_urlsafe(32)),
                first_name="System",
                last_name="User",
                is_active=False,
            )
            log.info("system_user_created", user_id=user.id)
        return user

    @staticmethod
    def _validate(schema: type[RiderCreate] | type[RiderUpdate], data: Any) -> Any:
        if isinstance(data, schema):
            return data
        try:
            return schema.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(errors=validation_errors(exc)) from exc

    async def _insert(self, data: RiderCreate, creator: User) -> Rider:
        """Duplicate check, code allocation and insert. Does not commit."""
        values = data.model_dump()
        conflicts = await self.repo.find_conflicts(values)
        if conflicts:
            raise RiderAlreadyExistsError(conflicts)

        values["rider_code"] = await self.next_rider_code()
        values["created_by_id"] = creator.id
        return await self.repo.create(values)

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def create_rider(
        self,
        data: RiderCreate | dict[str, Any],
        created_by: User | None = None,
        send_notifications: bool = True,
    ) -> RiderCreationResult:
        data = self._validate(RiderCreate, data)
        creator = created_by or await self.system_user()

        try:
            rider = await self._insert(data, creator)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            log.warning("rider_insert_conflict", error=str(exc.orig))
            raise RiderAlreadyExistsError() from exc

        log.info("rider_created", rider_id=rider.id, rider_code=rider.rider_code, created_by=creator.id)

        result = RiderCreationResult(rider=rider)
        if send_notifications:
            await self._run_side_effects(result, creator)
        return result

    async def _run_side_effects(self, result: RiderCreationResult, creator: User) -> None:
        rider = result.rider

        if rider.email and self.mailer is not None:
            try:
                result.email_sent = await self.mailer.send_rider_credentials(
                    to_address=rider.email,
                    first_name=rider.first_name,
                    last_name=rider.last_name,
                    rider_code=rider.rider_code,
                    password=generate_initial_password(self.settings.INITIAL_PASSWORD_LENGTH),
                )
            except Exception as exc:
                log.error("rider_credentials_email_failed", rider_id=rider.id, error=str(exc))
            else:
                if not result.email_sent:
                    log.warning("rider_credentials_email_not_sent", rider_id=rider.id)

        if self.acknowledgements is None:
            return

        result.visa_acknowledgement = await self._acknowledge(rider, AcknowledgementType.VISA, creator)
        if rider.company_sim:
            result.sim_acknowledgement = await self._acknowledge(rider, AcknowledgementType.SIM, creator)

    async def _acknowledge(self, rider: Rider, ack_type: AcknowledgementType, creator: User) -> bool:
        try:
            await self.acknowledgements.generate(rider, ack_type, creator)
        except Exception as exc:
            log.error(
                "acknowledgement_generation_failed",
                rider_id=rider.id,
                type=ack_type.value,
                error=str(exc),
            )
            return False
        return True

    # -------------------------------------------------------------------------
    # Bulk upload
    # -------------------------------------------------------------------------

    async def bulk_upload(self, content: bytes, created_by: User | None = None) -> BulkUploadResult:
        """Create one rider per CSV row, each in its own savepoint.

        No credential emails or acknowledgements are produced in bulk mode.
        Row numbers count the header as row 1.
        """
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ValidationError(message="CSV file must be UTF-8 encoded") from exc

        reader = csv.DictReader(io.StringIO(text))
        if not reader.fieldnames:
            raise ValidationError(message="CSV file is empty")

        creator = created_by or await self.system_user()
        result = BulkUploadResult()

        for row_number, raw in enumerate(reader, start=2):
            raw_data = {k: v for k, v in raw.items() if k is not None}
            if not any(isinstance(v, str) and v.strip() for v in raw_data.values()):
                continue

            try:
                data = RiderCreate.model_validate(map_csv_row(raw))
                async with self.session.begin_nested():
                    rider = await self._insert(data, creator)
            except PydanticValidationError as exc:
                result.errors.append(
                    BulkUploadRowError(
                        row=row_number,
                        data=raw_data,
                        error="Validation failed",
                        details=validation_errors(exc),
                    )
                )
            except RiderAlreadyExistsError as exc:
                result.errors.append(
                    BulkUploadRowError(
                        row=row_number,
                        data=raw_data,
                        error=exc.message,
                        details=[
                            {"field": field, "message": "already exists"}
                            for field in exc.details.get("conflicting_fields", [])
                        ],
                    )
                )
            except IntegrityError:
                result.errors.append(
                    BulkUploadRowError(row=row_number, data=raw_data, error=RiderAlreadyExistsError().message)
                )
            else:
                result.successful += 1
                log.debug("bulk_row_created", row=row_number, rider_code=rider.rider_code)

        result.failed = len(result.errors)
        await self.session.commit()

        log.info("rider_bulk_upload_completed", successful=result.successful, failed=result.failed)
        return result

    # -------------------------------------------------------------------------
    # Read / update / delete
    # -------------------------------------------------------------------------

    async def get_rider(self, rider_id: int) -> Rider:
        rider = await self.repo.get_by_id(rider_id)
        if rider is None:
            raise RiderNotFoundError(rider_id)
        return rider

    async def list_riders(
        self,
        page: int = 1,
        page_size: int = 20,
        search: str | None = None,
        employment_status: str | None = None,
        onboarding_status: str | None = None,
        is_active: bool | None = None,
    ) -> tuple[Sequence[Rider], int]:
        filters = {
            "search": search,
            "employment_status": employment_status,
            "onboarding_status": onboarding_status,
            "is_active": is_active,
        }
        riders = await self.repo.get_all(skip=(page - 1) * page_size, limit=page_size, **filters)
        total = await self.repo.count_all(**filters)
        return riders, total

    async def update_rider(self, rider_id: int, data: RiderUpdate | dict[str, Any]) -> Rider:
        """Apply only the fields present in ``data``; blank strings clear optional fields."""
        data = self._validate(RiderUpdate, data)
        rider = await self.get_rider(rider_id)

        fields = data.model_dump(exclude_unset=True)
        changed_identity = {
            field: fields[field]
            for field in UNIQUE_IDENTITY_FIELDS
            if field in fields and fields[field] != getattr(rider, field)
        }
        if changed_identity:
            conflicts = await self.repo.find_conflicts(changed_identity, exclude_id=rider.id)
            if conflicts:
                raise RiderAlreadyExistsError(conflicts)

        if not fields:
            return rider

        try:
            rider = await self.repo.update(rider, fields)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise RiderAlreadyExistsError() from exc

        log.info("rider_updated", rider_id=rider.id, fields=sorted(fields))
        return rider

    async def delete_rider(self, rider_id: int) -> Rider:
        """Soft delete."""
        rider = await self.get_rider(rider_id)
        rider = await self.repo.update(rider, {"is_active": False})
        await self.session.commit()

        log.info("rider_deactivated", rider_id=rider.id)
        return rider

    @staticmethod
    def csv_template() -> str:
        """Header row plus one example row for bulk uploads."""
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=list(CSV_TEMPLATE_ROWS[0]))
        writer.writeheader()
        writer.writerows(CSV_TEMPLATE_ROWS)
        return buf.getvalue()
