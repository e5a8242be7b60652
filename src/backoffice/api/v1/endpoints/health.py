"""Liveness, readiness and component status for the orchestrator."""
import time
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import Settings, get_settings
from ....core.responses import HealthCheck, HealthResponse
from ....db.session import get_db

router = APIRouter(prefix="/health")

_SEVERITY = {"healthy": 0, "degraded": 1, "unhealthy": 2}


async def _probe_database(db: AsyncSession) -> HealthCheck:
    started = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:  # reported, not raised: the endpoint must still answer
        return HealthCheck(status="unhealthy", message=str(exc))
    return HealthCheck(
        status="healthy",
        latency_ms=round((time.perf_counter() - started) * 1000, 2),
        message="Connected",
    )


def _email_check(settings: Settings) -> HealthCheck:
    # riders can still be onboarded without mail; credentials just are not sent
    if not settings.EMAIL_ENABLED:
        return HealthCheck(status="degraded", message="Email delivery disabled")
    return HealthCheck(status="healthy", message=f"SMTP via {settings.SMTP_HOST or 'stored configuration'}")


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Status of the service and of the database, email and storage it depends on.",
)
async def health_check(
    settings: Annotated[Settings, Depends(get_settings)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthResponse:
    checks = {
        "database": await _probe_database(db),
        "email": _email_check(settings),
        "storage": HealthCheck(status="healthy", message=f"{settings.STORAGE_BACKEND} backend"),
    }
    worst = max((c.status for c in checks.values()), key=_SEVERITY.__getitem__)

    return HealthResponse(
        status=worst,
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.APP_ENV,
        checks=checks,
    )


@router.get("/ready", summary="Readiness probe", description="200 once the database answers, 503 otherwise.")
async def readiness_probe(
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict[str, str]:
    check = await _probe_database(db)
    if check.status != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready"}
    return {"status": "ready"}


@router.get("/live", summary="Liveness probe")
async def liveness_probe() -> dict[str, str]:
    return {"status": "alive"}
