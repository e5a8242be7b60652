"""Async SQLAlchemy engine, declarative base and request-scoped sessions.

The schema itself is owned by Alembic (``scripts/migrate.py upgrade``);
nothing here creates tables.
"""
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from functools import cached_property
from typing import Annotated, Any

import structlog
from fastapi import Depends
from sqlalchemy import DateTime, func, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..core.config import Settings, get_settings

log = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """Server-populated ``created_at`` and ``updated_at``.

    ``eager_defaults`` returns the generated timestamps with the INSERT/UPDATE,
    so they can be serialised right after a flush.
    """

    __mapper_args__ = {"eager_defaults": True}

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class DatabaseManager:
    """Owns one engine and its session factory; both are built on first use."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    @cached_property
    def engine(self) -> AsyncEngine:
        cfg = self.settings
        url = make_url(cfg.DATABASE_URL)
        pool_args: dict[str, Any] = {}
        if not url.get_backend_name().startswith("sqlite"):
            pool_args = {
                "pool_size": cfg.DATABASE_POOL_SIZE,
                "max_overflow": cfg.DATABASE_MAX_OVERFLOW,
                "pool_timeout": cfg.DATABASE_POOL_TIMEOUT,
            }
        engine = create_async_engine(url, echo=cfg.DATABASE_ECHO, pool_pre_ping=True, **pool_args)
        log.info("db_engine_created", backend=url.get_backend_name(), database=url.database, **pool_args)
        return engine

    @cached_property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return async_sessionmaker(self.engine, expire_on_commit=False, autoflush=False)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Unit of work: commit when the block exits cleanly, roll back otherwise."""
        async with self.session_factory() as db:
            try:
                yield db
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    async def health_check(self) -> dict[str, Any]:
        started = time.perf_counter()
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as exc:
            log.error("db_ping_failed", error=str(exc))
            return {"status": "unhealthy", "error": str(exc)}
        return {"status": "healthy", "latency_ms": round((time.perf_counter() - started) * 1000, 2)}

    async def close(self) -> None:
        if "engine" not in self.__dict__:
            return
        await self.engine.dispose()
        # drop the cached engine and factory so a later call rebuilds them
        self.__dict__.pop("engine", None)
        self.__dict__.pop("session_factory", None)
        log.info("db_engine_disposed")


_manager: DatabaseManager | None = None


def get_db_manager() -> DatabaseManager:
    global _manager
    if _manager is None:
        _manager = DatabaseManager()
    return _manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with get_db_manager().session() as db:
        yield db


async def close_db() -> None:
    if _manager is not None:
        await _manager.close()


DbSession = Annotated[AsyncSession, Depends(get_db)]
