"""Tests for rider onboarding: codes, duplicates, side effects and bulk upload."""

from __future__ import annotations

import csv
import io
import re
import string
from datetime import UTC, datetime

import pytest

from src.backoffice.core.exceptions import RiderAlreadyExistsError, RiderNotFoundError, ValidationError
from src.backoffice.repositories.acknowledgement_repository import AcknowledgementRepository
from src.backoffice.repositories.rider_repository import RiderRepository
from src.backoffice.services.acknowledgement_service import AcknowledgementService
from src.backoffice.services.rider_service import (
    PASSWORD_CHARSET,
    RiderService,
    format_rider_code,
    generate_initial_password,
    map_csv_row,
)

YY = datetime.now(UTC).year % 100


@pytest.fixture
def acknowledgements(db_session, storage):
    return AcknowledgementService(db_session, storage)


@pytest.fixture
def service(db_session, mailer, acknowledgements):
    return RiderService(db_session, mailer=mailer, acknowledgements=acknowledgements)


def ana(**overrides):
    data = {
        "first_name": "Ana",
        "last_name": "Cruz",
        "phone": "+971501112222",
        "email": "ana.cruz@example.com",
        "emirates_id": "784-1995-1234567-1",
        "company_sim": "+971559990000",
    }
    data.update(overrides)
    return data


def csv_bytes(rows: list[dict[str, str]]) -> bytes:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=list(rows[0]))
    writer.writeheader()
    writer.writerows(rows)
    return buf.getvalue().encode("utf-8")


# --- helpers ---

def test_format_rider_code():
    assert format_rider_code(2026, 1) == "FLCR260001"
    assert format_rider_code(2031, 42, prefix="ABC") == "ABC310042"
    assert format_rider_code(2026, 12345) == "FLCR2612345"


def test_generate_initial_password():
    password = generate_initial_password(8)
    assert len(password) == 8
    assert set(password) <= set(PASSWORD_CHARSET)
    assert len(PASSWORD_CHARSET) == 70
    assert set(string.ascii_letters + string.digits) <= set(PASSWORD_CHARSET)


def test_map_csv_row_aliases_and_enums():
    mapped = map_csv_row(
        {
            "First Name": " Omar ",
            "last_name": "Haddad",
            "Mobile": "+971502223333",
            "EID": "784-1990-7654321-2",
            "Employment Status": "active",
            "Onboarding Status": "in progress",
            "Shoe Size": "42",
            None: ["overflow"],
        }
    )
    assert mapped == {
        "first_name": "Omar",
        "last_name": "Haddad",
        "phone": "+971502223333",
        "emirates_id": "784-1990-7654321-2",
        "employment_status": "ACTIVE",
        "onboarding_status": "IN_PROGRESS",
    }


# --- rider codes ---

@pytest.mark.asyncio
async def test_codes_are_sequential(service):
    first = await service.create_rider(ana(), send_notifications=False)
    second = await service.create_rider(
        ana(phone="+971501113333", email=None, emirates_id=None), send_notifications=False
    )

    assert re.fullmatch(r"FLCR\d{6}", first.rider.rider_code)
    assert first.rider.rider_code == f"FLCR{YY:02d}0001"
    assert second.rider.rider_code == f"FLCR{YY:02d}0002"


@pytest.mark.asyncio
async def test_counter_seeded_from_existing_codes(service, db_session):
    creator = await service.system_user()
    await RiderRepository(db_session).create(
        {
            "rider_code": f"FLCR{YY:02d}0001",
            "first_name": "Legacy",
            "last_name": "Rider",
            "phone": "+971500000001",
            "created_by_id": creator.id,
        }
    )
    await db_session.commit()

    result = await service.create_rider(ana(), send_notifications=False)
    assert result.rider.rider_code == f"FLCR{YY:02d}0002"


@pytest.mark.asyncio
async def test_codes_distinct_before_any_rider_is_saved(service, db_session):
    # Counting saved riders would give 0001 twice here. FOR UPDATE is a no-op on
    # SQLite, so concurrent allocation is only serialised on PostgreSQL.
    first = await service.next_rider_code()
    second = await service.next_rider_code()

    assert await RiderRepository(db_session).count_codes_with_prefix(f"FLCR{YY:02d}") == 0
    assert (first, second) == (f"FLCR{YY:02d}0001", f"FLCR{YY:02d}0002")


@pytest.mark.asyncio
async def test_counter_is_per_year(service):
    assert await service.next_rider_code(2031) == "FLCR310001"
    assert await service.next_rider_code(2031) == "FLCR310002"
    assert await service.next_rider_code(2032) == "FLCR320001"


# --- creation ---

@pytest.mark.asyncio
async def test_create_rider_with_side_effects(service, mailer, db_session, storage, make_staff):
    staff = await make_staff(["riders.write"])

    result = await service.create_rider(ana(), created_by=staff)

    assert result.email_sent is True
    assert result.visa_acknowledgement is True
    assert result.sim_acknowledgement is True
    assert result.rider.created_by_id == staff.id

    sent = mailer.credentials[0]
    assert sent["to_address"] == "ana.cruz@example.com"
    assert sent["rider_code"] == result.rider.rider_code
    assert len(sent["password"]) == 8

    acks = await AcknowledgementRepository(db_session).list_for_rider(result.rider.id)
    assert sorted(a.type for a in acks) == ["SIM", "VISA"]
    assert all(a.status == "PENDING" for a in acks)
    for ack in acks:
        assert storage.path_for(ack.storage_key).read_bytes().startswith(b"%PDF")


@pytest.mark.asyncio
async def test_no_sim_no_email(service, mailer):
    result = await service.create_rider(ana(email="", company_sim=""))

    assert result.rider.email is None
    assert result.email_sent is False
    assert result.visa_acknowledgement is True
    assert result.sim_acknowledgement is False
    assert mailer.credentials == []


@pytest.mark.asyncio
async def test_mail_failure_keeps_rider(db_session, failing_mailer, acknowledgements):
    service = RiderService(db_session, mailer=failing_mailer, acknowledgements=acknowledgements)

    result = await service.create_rider(ana())

    assert result.email_sent is False
    assert result.visa_acknowledgement is True
    assert (await service.get_rider(result.rider.id)).rider_code == result.rider.rider_code


@pytest.mark.asyncio
async def test_acknowledgement_failure_keeps_rider(service, storage, monkeypatch):
    async def broken_put(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(storage, "put", broken_put)

    result = await service.create_rider(ana())

    assert result.email_sent is True
    assert result.visa_acknowledgement is False
    assert result.sim_acknowledgement is False
    assert (await service.get_rider(result.rider.id)).is_active


@pytest.mark.asyncio
async def test_rider_without_creator_uses_system_user(service, settings):
    result = await service.create_rider(ana(), send_notifications=False)
    system = await service.system_user()

    assert result.rider.created_by_id == system.id
    assert system.email == settings.SYSTEM_USER_EMAIL
    assert system.is_active is False


@pytest.mark.asyncio
async def test_duplicate_emirates_id(service):
    await service.create_rider(ana(), send_notifications=False)

    with pytest.raises(RiderAlreadyExistsError) as exc:
        await service.create_rider(
            ana(phone="+971509998888", email="other@example.com"), send_notifications=False
        )
    assert exc.value.details["conflicting_fields"] == ["emirates_id"]


@pytest.mark.asyncio
async def test_duplicate_email_is_case_insensitive(service):
    await service.create_rider(ana(), send_notifications=False)

    with pytest.raises(RiderAlreadyExistsError) as exc:
        await service.create_rider(
            ana(phone="+971509998888", email="ANA.CRUZ@example.com", emirates_id=None),
            send_notifications=False,
        )
    assert exc.value.details["conflicting_fields"] == ["email"]


@pytest.mark.asyncio
async def test_blank_identity_fields_never_collide(service):
    await service.create_rider(ana(email="", emirates_id=""), send_notifications=False)
    second = await service.create_rider(
        ana(phone="+971501119999", email="  ", emirates_id=""), send_notifications=False
    )
    assert second.rider.email is None
    assert second.rider.emirates_id is None


@pytest.mark.asyncio
async def test_create_rider_validation(service):
    with pytest.raises(ValidationError) as exc:
        await service.create_rider({"first_name": "Ana", "phone": "123"})
    fields = {e["field"] for e in exc.value.details["validation_errors"]}
    assert {"lastName", "phone"} <= fields


# --- bulk upload ---

@pytest.mark.asyncio
async def test_bulk_upload_partial_failure(service, mailer, db_session):
    content = csv_bytes(
        [
            {"firstName": "Ana", "lastName": "Cruz", "mobile": "+971501112222", "email": "ana@example.com"},
            {"firstName": "Omar", "lastName": "Haddad", "mobile": "+971502223333", "email": ""},
            {"firstName": "", "lastName": "", "mobile": "", "email": ""},
            {"firstName": "Li", "lastName": "Wei", "mobile": "+971503334444", "email": ""},
            {"firstName": "Dup", "lastName": "Phone", "mobile": "+971501112222", "email": ""},
        ]
    )

    result = await service.bulk_upload(content)

    assert result.successful == 3
    assert result.failed == 1
    assert result.notifications_sent is False
    error = result.errors[0]
    assert error.row == 6
    assert error.data["firstName"] == "Dup"
    assert error.details == [{"field": "phone", "message": "already exists"}]

    # Bulk mode sends no credentials and generates no acknowledgements
    assert mailer.credentials == []
    riders, total = await service.list_riders()
    assert total == 3
    for rider in riders:
        assert await AcknowledgementRepository(db_session).list_for_rider(rider.id) == []


@pytest.mark.asyncio
async def test_bulk_upload_row_missing_phone(service):
    content = csv_bytes(
        [
            {"firstName": "Ana", "lastName": "Cruz", "mobile": "+971501112222"},
            {"firstName": "Omar", "lastName": "Haddad", "mobile": "+971502223333"},
            {"firstName": "Li", "lastName": "Wei", "mobile": "+971503334444"},
            {"firstName": "No", "lastName": "Phone", "mobile": ""},
        ]
    )

    result = await service.bulk_upload(content)

    assert (result.successful, result.failed) == (3, 1)
    error = result.errors[0]
    assert (error.row, error.error) == (5, "Validation failed")
    assert [d["field"] for d in error.details] == ["phone"]


@pytest.mark.asyncio
async def test_bulk_upload_validation_errors_per_row(service):
    content = csv_bytes(
        [
            {"First Name": "Ana", "Last Name": "Cruz", "Phone": "+971501112222", "Employment Status": "active"},
            {"First Name": "Bad", "Last Name": "Phone", "Phone": "12", "Employment Status": ""},
            {"First Name": "Odd", "Last Name": "Status", "Phone": "+971507778888", "Employment Status": "retired"},
        ]
    )

    result = await service.bulk_upload(content)

    assert result.successful == 1
    assert [e.row for e in result.errors] == [3, 4]
    assert result.errors[0].error == "Validation failed"
    assert result.errors[0].details[0]["field"] == "phone"
    riders, _ = await service.list_riders()
    assert riders[0].employment_status == "ACTIVE"


@pytest.mark.asyncio
async def test_bulk_upload_duplicates_within_file(service):
    content = csv_bytes(
        [
            {"firstName": "Ana", "lastName": "Cruz", "phone": "+971501112222", "passportNumber": "P1"},
            {"firstName": "Ana", "lastName": "Again", "phone": "+971501113333", "passportNumber": "P1"},
        ]
    )

    result = await service.bulk_upload(content)

    assert result.successful == 1
    assert result.errors[0].row == 3
    assert result.errors[0].details == [{"field": "passport_number", "message": "already exists"}]


@pytest.mark.asyncio
async def test_bulk_upload_codes_follow_on(service):
    await service.create_rider(ana(), send_notifications=False)
    content = csv_bytes([{"firstName": "Omar", "lastName": "Haddad", "phone": "+971502223333"}])

    await service.bulk_upload(content)

    riders, _ = await service.list_riders(search="Omar")
    assert riders[0].rider_code == f"FLCR{YY:02d}0002"


@pytest.mark.asyncio
async def test_bulk_upload_empty_file(service):
    with pytest.raises(ValidationError):
        await service.bulk_upload(b"")


@pytest.mark.asyncio
async def test_bulk_upload_not_utf8(service):
    with pytest.raises(ValidationError):
        await service.bulk_upload("firstName\nJosé\n".encode("latin-1"))


def test_csv_template_headers_map_to_fields():
    text = RiderService.csv_template()
    reader = csv.DictReader(io.StringIO(text))
    row = next(reader)
    mapped = map_csv_row(row)
    assert mapped["first_name"] == "Ana"
    assert mapped["emirates_id"] == "784-1995-1234567-1"
    assert set(mapped) == {
        "first_name", "last_name", "phone", "email", "date_of_birth", "nationality",
        "emirates_id", "passport_number", "license_number", "employee_id", "joining_date",
        "city_of_work", "company_sim", "delivery_partner", "employment_status", "onboarding_status",
    }


# --- read / update / delete ---

@pytest.mark.asyncio
async def test_update_rider_partial(service):
    created = await service.create_rider(ana(), send_notifications=False)

    rider = await service.update_rider(created.rider.id, {"cityOfWork": "Abu Dhabi", "email": ""})

    assert rider.city_of_work == "Abu Dhabi"
    assert rider.email is None
    assert rider.first_name == "Ana"


@pytest.mark.asyncio
async def test_update_rider_rejects_blank_required(service):
    created = await service.create_rider(ana(), send_notifications=False)

    with pytest.raises(ValidationError):
        await service.update_rider(created.rider.id, {"firstName": "  "})


@pytest.mark.asyncio
async def test_update_rider_identity_conflict(service):
    await service.create_rider(ana(), send_notifications=False)
    other = await service.create_rider(
        ana(phone="+971503334444", email=None, emirates_id=None), send_notifications=False
    )

    with pytest.raises(RiderAlreadyExistsError) as exc:
        await service.update_rider(other.rider.id, {"emiratesId": "784-1995-1234567-1"})
    assert exc.value.details["conflicting_fields"] == ["emirates_id"]


@pytest.mark.asyncio
async def test_update_rider_keeps_own_identity(service):
    created = await service.create_rider(ana(), send_notifications=False)
    rider = await service.update_rider(created.rider.id, {"phone": "+971501112222", "nationality": "PH"})
    assert rider.nationality == "PH"


@pytest.mark.asyncio
async def test_delete_rider_is_soft(service):
    created = await service.create_rider(ana(), send_notifications=False)

    await service.delete_rider(created.rider.id)

    rider = await service.get_rider(created.rider.id)
    assert rider.is_active is False
    _, active = await service.list_riders(is_active=True)
    assert active == 0


@pytest.mark.asyncio
async def test_get_missing_rider(service):
    with pytest.raises(RiderNotFoundError):
        await service.get_rider(404)


@pytest.mark.asyncio
async def test_list_riders_search_and_filters(service):
    await service.create_rider(ana(), send_notifications=False)
    await service.create_rider(
        {"first_name": "Omar", "last_name": "Haddad", "phone": "+971502223333", "employment_status": "ACTIVE"},
        send_notifications=False,
    )

    riders, total = await service.list_riders(search="hadd")
    assert total == 1
    assert riders[0].first_name == "Omar"

    _, active = await service.list_riders(employment_status="ACTIVE")
    assert active == 1

    page, total = await service.list_riders(page=2, page_size=1)
    assert total == 2
    assert len(page) == 1
