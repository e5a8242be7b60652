"""API tests for SMTP configuration management."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from src.backoffice.services.email_config_service import EmailConfigService

from conftest import FakeMailer, bearer

if TYPE_CHECKING:
    from httpx import AsyncClient


def config_body(name: str = "Primary", **overrides):
    body = {
        "name": name,
        "host": "smtp.example.com",
        "port": 587,
        "username": "mailer",
        "password": "smtp-secret",
        "fromEmail": "noreply@flcd.com",
        "fromName": "FLC Delivery Services",
    }
    body.update(overrides)
    return body


@pytest.fixture
def smtp(monkeypatch):
    """Route configuration tests through a recording mailer instead of SMTP."""
    mailer = FakeMailer()
    monkeypatch.setattr(EmailConfigService, "_default_mailer", lambda self, config: mailer)
    return mailer


@pytest.mark.asyncio
async def test_create_and_list(client: AsyncClient, admin_headers) -> None:
    response = await client.post("/api/v1/email-config", headers=admin_headers, json=config_body())

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["isDefault"] is True
    assert data["fromEmail"] == "noreply@flcd.com"
    assert "password" not in data

    listed = await client.get("/api/v1/email-config", headers=admin_headers)
    assert [c["name"] for c in listed.json()["data"]] == ["Primary"]
    assert "smtp-secret" not in listed.text


@pytest.mark.asyncio
async def test_get_missing_config(client: AsyncClient, admin_headers) -> None:
    response = await client.get("/api/v1/email-config/4242", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_keeps_omitted_fields(client: AsyncClient, admin_headers) -> None:
    created = await client.post(
        "/api/v1/email-config",
        headers=admin_headers,
        json=config_body(testEmail="ops@flcd.com"),
    )
    config_id = created.json()["data"]["id"]

    response = await client.put(
        f"/api/v1/email-config/{config_id}",
        headers=admin_headers,
        json={"port": 465, "secure": True, "host": None, "testEmail": None},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["port"] == 465
    assert data["secure"] is True
    assert data["host"] == "smtp.example.com"
    assert data["testEmail"] is None


@pytest.mark.asyncio
async def test_set_default(client: AsyncClient, admin_headers) -> None:
    await client.post("/api/v1/email-config", headers=admin_headers, json=config_body("Primary"))
    backup = await client.post("/api/v1/email-config", headers=admin_headers, json=config_body("Backup"))

    response = await client.post(
        f"/api/v1/email-config/{backup.json()['data']['id']}/set-default",
        headers=admin_headers,
    )

    assert response.status_code == 200
    listed = await client.get("/api/v1/email-config", headers=admin_headers)
    assert {c["name"]: c["isDefault"] for c in listed.json()["data"]} == {"Primary": False, "Backup": True}


@pytest.mark.asyncio
async def test_delete_config(client: AsyncClient, admin_headers) -> None:
    primary = await client.post("/api/v1/email-config", headers=admin_headers, json=config_body("Primary"))
    backup = await client.post("/api/v1/email-config", headers=admin_headers, json=config_body("Backup"))

    deleted = await client.delete(f"/api/v1/email-config/{backup.json()['data']['id']}", headers=admin_headers)
    last = await client.delete(f"/api/v1/email-config/{primary.json()['data']['id']}", headers=admin_headers)

    assert deleted.status_code == 200
    assert last.status_code == 400
    assert last.json()["error"]["code"] == "LAST_EMAIL_CONFIG"


@pytest.mark.asyncio
async def test_send_test_email(client: AsyncClient, admin_headers, smtp) -> None:
    created = await client.post("/api/v1/email-config", headers=admin_headers, json=config_body())
    config_id = created.json()["data"]["id"]

    response = await client.post(
        f"/api/v1/email-config/{config_id}/test",
        headers=admin_headers,
        json={"toEmail": "ops@flcd.com"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["testResult"] == "Success: Email sent to ops@flcd.com"
    assert smtp.tests == ["ops@flcd.com"]

    stored = await client.get(f"/api/v1/email-config/{config_id}", headers=admin_headers)
    assert stored.json()["data"]["lastTestedAt"] is not None


@pytest.mark.asyncio
async def test_send_test_email_failure(client: AsyncClient, admin_headers, smtp) -> None:
    smtp.succeed = False
    created = await client.post("/api/v1/email-config", headers=admin_headers, json=config_body())

    response = await client.post(
        f"/api/v1/email-config/{created.json()['data']['id']}/test",
        headers=admin_headers,
        json={"toEmail": "ops@flcd.com"},
    )

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["testResult"] == "Error: Connection refused"


@pytest.mark.asyncio
async def test_requires_settings_permissions(client: AsyncClient, make_staff) -> None:
    reader = await make_staff(["settings.read"])

    listed = await client.get("/api/v1/email-config", headers=bearer(reader))
    created = await client.post("/api/v1/email-config", headers=bearer(reader), json=config_body())

    assert listed.status_code == 200
    assert created.status_code == 403
