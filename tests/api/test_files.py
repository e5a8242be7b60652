"""API tests for signed local file downloads."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from httpx import AsyncClient


@pytest.mark.asyncio
async def test_signed_download(client: AsyncClient, storage) -> None:
    await storage.put(b"hello", "riders/1/documents/note.txt", "text/plain")
    url = await storage.signed_url("riders/1/documents/note.txt")

    response = await client.get(url)

    assert response.status_code == 200
    assert response.content == b"hello"
    assert "note.txt" in response.headers["content-disposition"]


@pytest.mark.asyncio
async def test_tampered_signature(client: AsyncClient, storage) -> None:
    await storage.put(b"hello", "riders/1/documents/note.txt", "text/plain")
    expires = int(time.time()) + 60

    response = await client.get(
        "/api/v1/files/riders/1/documents/note.txt",
        params={"expires": expires, "signature": "0" * 64},
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INVALID_SIGNATURE"


@pytest.mark.asyncio
async def test_signature_is_bound_to_key(client: AsyncClient, storage) -> None:
    await storage.put(b"secret", "riders/2/documents/other.txt", "text/plain")
    url = await storage.signed_url("riders/1/documents/note.txt")
    query = url.split("?", 1)[1]

    response = await client.get(f"/api/v1/files/riders/2/documents/other.txt?{query}")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_expired_link(client: AsyncClient, storage) -> None:
    await storage.put(b"hello", "riders/1/documents/note.txt", "text/plain")
    expired = int(time.time()) - 1
    signature = storage._signature("riders/1/documents/note.txt", expired)

    response = await client.get(
        "/api/v1/files/riders/1/documents/note.txt",
        params={"expires": expired, "signature": signature},
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_missing_file(client: AsyncClient, storage) -> None:
    url = await storage.signed_url("riders/1/documents/gone.txt")

    response = await client.get(url)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_missing_signature(client: AsyncClient) -> None:
    response = await client.get("/api/v1/files/riders/1/documents/note.txt")
    assert response.status_code == 400
