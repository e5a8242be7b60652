"""Health, readiness and liveness endpoints plus app-level middleware."""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.backoffice.core.config import get_settings

if TYPE_CHECKING:
    from httpx import AsyncClient


async def test_health_reports_each_component(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["service"] == get_settings().APP_NAME
    assert set(body["checks"]) == {"database", "email", "storage"}
    assert body["checks"]["database"]["status"] == "healthy"
    assert body["checks"]["database"]["latencyMs"] is not None


async def test_disabled_email_degrades_overall_status(client: AsyncClient) -> None:
    body = (await client.get("/api/v1/health")).json()

    assert body["checks"]["email"]["status"] == "degraded"
    assert body["status"] == "degraded"


async def test_ready_and_live(client: AsyncClient) -> None:
    ready = await client.get("/api/v1/health/ready")
    live = await client.get("/api/v1/health/live")

    assert (ready.status_code, ready.json()) == (200, {"status": "ready"})
    assert (live.status_code, live.json()) == (200, {"status": "alive"})


async def test_root_links_to_health(client: AsyncClient) -> None:
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["health"] == "/api/v1/health"


async def test_request_id_is_echoed(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health/live", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


async def test_request_id_generated_when_absent(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health/live")
    assert len(response.headers["X-Request-ID"]) == 36


async def test_api_responses_are_not_frameable(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health/live")

    assert response.headers["X-Frame-Options"] == "DENY"
    assert "frame-ancestors 'none'" in response.headers["Content-Security-Policy"]
