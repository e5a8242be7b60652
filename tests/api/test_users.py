"""API tests for staff user administration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from conftest import bearer

if TYPE_CHECKING:
    from httpx import AsyncClient


def new_user(**overrides):
    body = {
        "email": "dispatcher@flcd.com",
        "password": "Passw0rd!",
        "firstName": "Dana",
        "lastName": "Haddad",
        "phone": "+971502223333",
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_list_users(client: AsyncClient, admin_headers, make_staff) -> None:
    await make_staff(email="one@flcd.com")
    await make_staff(email="two@flcd.com", is_active=False)

    response = await client.get("/api/v1/users", headers=admin_headers, params={"page_size": 2})

    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["pagination"]["total"] == 3
    assert body["pagination"]["hasNext"] is True


@pytest.mark.asyncio
async def test_list_users_filters(client: AsyncClient, admin_headers, make_staff) -> None:
    await make_staff(email="one@flcd.com")
    await make_staff(email="two@flcd.com", is_active=False)

    inactive = await client.get("/api/v1/users", headers=admin_headers, params={"is_active": "false"})
    searched = await client.get("/api/v1/users", headers=admin_headers, params={"search": "one@"})

    assert [u["email"] for u in inactive.json()["data"]] == ["two@flcd.com"]
    assert [u["email"] for u in searched.json()["data"]] == ["one@flcd.com"]


@pytest.mark.asyncio
async def test_list_users_requires_permission(client: AsyncClient, make_staff) -> None:
    user = await make_staff(["riders.read"])

    response = await client.get("/api/v1/users", headers=bearer(user))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"


@pytest.mark.asyncio
async def test_get_user(client: AsyncClient, admin_headers, make_staff) -> None:
    user = await make_staff(["riders.read"], role_name="Viewer")

    response = await client.get(f"/api/v1/users/{user.id}", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == user.email
    assert data["roles"][0]["name"] == "Viewer"
    assert "passwordHash" not in data


@pytest.mark.asyncio
async def test_get_missing_user(client: AsyncClient, admin_headers) -> None:
    response = await client.get("/api/v1/users/9999", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_create_user_with_roles(client: AsyncClient, admin_headers, make_staff) -> None:
    viewer = await make_staff(["riders.read"], role_name="Viewer")
    role_id = viewer.roles[0].id

    response = await client.post("/api/v1/users", headers=admin_headers, json=new_user(roleIds=[role_id]))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["email"] == "dispatcher@flcd.com"
    assert [r["name"] for r in data["roles"]] == ["Viewer"]

    login = await client.post(
        "/api/v1/auth/login",
        json={"email": "dispatcher@flcd.com", "password": "Passw0rd!"},
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_create_user_duplicate(client: AsyncClient, admin_headers, make_staff) -> None:
    await make_staff(email="dispatcher@flcd.com")

    response = await client.post("/api/v1/users", headers=admin_headers, json=new_user())

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "USER_ALREADY_EXISTS"


@pytest.mark.asyncio
async def test_create_user_unknown_role(client: AsyncClient, admin_headers) -> None:
    response = await client.post("/api/v1/users", headers=admin_headers, json=new_user(roleIds=[4242]))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_user_short_password(client: AsyncClient, admin_headers) -> None:
    response = await client.post("/api/v1/users", headers=admin_headers, json=new_user(password="short"))

    assert response.status_code == 400
    fields = [e["field"] for e in response.json()["error"]["details"]["validation_errors"]]
    assert fields == ["password"]


@pytest.mark.asyncio
async def test_update_user(client: AsyncClient, admin_headers, make_staff) -> None:
    user = await make_staff(email="old@flcd.com", password="OldPassw0rd!")

    response = await client.patch(
        f"/api/v1/users/{user.id}",
        headers=admin_headers,
        json={"email": "New@flcd.com", "firstName": "Renamed", "password": "NewPassw0rd!", "phone": None},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == "new@flcd.com"
    assert data["firstName"] == "Renamed"
    assert data["phone"] is None

    login = await client.post("/api/v1/auth/login", json={"email": "new@flcd.com", "password": "NewPassw0rd!"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_update_user_null_fields_are_ignored(client: AsyncClient, admin_headers, make_staff) -> None:
    user = await make_staff(email="keep@flcd.com")

    response = await client.patch(
        f"/api/v1/users/{user.id}",
        headers=admin_headers,
        json={"firstName": None, "email": None},
    )

    assert response.status_code == 200
    assert response.json()["data"]["email"] == "keep@flcd.com"


@pytest.mark.asyncio
async def test_update_user_email_taken(client: AsyncClient, admin_headers, make_staff) -> None:
    await make_staff(email="taken@flcd.com")
    user = await make_staff(email="mine@flcd.com")

    response = await client.patch(
        f"/api/v1/users/{user.id}",
        headers=admin_headers,
        json={"email": "taken@flcd.com"},
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_deactivate_user(client: AsyncClient, admin_headers, make_staff) -> None:
    user = await make_staff(email="leaving@flcd.com")

    response = await client.delete(f"/api/v1/users/{user.id}", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["isActive"] is False

    # Users are kept, only deactivated
    again = await client.get(f"/api/v1/users/{user.id}", headers=admin_headers)
    assert again.status_code == 200

    login = await client.post("/api/v1/auth/login", json={"email": "leaving@flcd.com", "password": "Passw0rd!"})
    assert login.status_code == 401


@pytest.mark.asyncio
async def test_deactivate_requires_delete_permission(client: AsyncClient, make_staff) -> None:
    writer = await make_staff(["users.read", "users.write"])
    target = await make_staff()

    response = await client.delete(f"/api/v1/users/{target.id}", headers=bearer(writer))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_replace_user_roles(client: AsyncClient, admin_headers, make_staff) -> None:
    user = await make_staff(["riders.read"], role_name="Viewer")
    other = await make_staff(["riders.write"], role_name="Editor")
    editor_id = other.roles[0].id

    response = await client.put(
        f"/api/v1/users/{user.id}/roles",
        headers=admin_headers,
        json={"roleIds": [editor_id]},
    )

    assert response.status_code == 200
    assert [r["name"] for r in response.json()["data"]["roles"]] == ["Editor"]

    me = await client.get("/api/v1/auth/me", headers=bearer(user))
    assert me.json()["data"]["permissions"] == ["riders.write"]


@pytest.mark.asyncio
async def test_only_super_admin_grants_super_admin(
    client: AsyncClient, super_admin, admin_headers, make_staff
) -> None:
    writer = await make_staff(["users.read", "users.write"])
    super_role_id = super_admin.roles[0].id

    response = await client.put(
        f"/api/v1/users/{writer.id}/roles",
        headers=bearer(writer),
        json={"roleIds": [super_role_id]},
    )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "SUPER_ADMIN_GRANT_FORBIDDEN"

    response = await client.put(
        f"/api/v1/users/{writer.id}/roles",
        headers=admin_headers,
        json={"roleIds": [super_role_id]},
    )
    assert response.status_code == 200
    assert [r["name"] for r in response.json()["data"]["roles"]] == ["Super Admin"]
