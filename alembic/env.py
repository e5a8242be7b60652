"""Alembic environment for the back-office schema.

Migrations run through the same async driver the application uses
(asyncpg, or aiosqlite locally), so no second sync driver is needed.

The URL is taken from, in order:
    alembic -x db_url=postgresql+asyncpg://... upgrade head
    ALEMBIC_DATABASE_URL / DATABASE_URL
    the application settings (.env)

``alembic upgrade head --sql`` renders the DDL without connecting.
"""
import asyncio
import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.ext.asyncio import create_async_engine

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.backoffice.db.session import Base  # noqa: E402
import src.backoffice.models  # noqa: E402, F401  registers every table on Base.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_ASYNC_DRIVERS = {"postgresql": "postgresql+asyncpg", "sqlite": "sqlite+aiosqlite"}


def database_url() -> str:
    url = (
        context.get_x_argument(as_dictionary=True).get("db_url")
        or os.environ.get("ALEMBIC_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )
    if not url:
        from src.backoffice.core.config import get_settings

        url = get_settings().DATABASE_URL
    if not url:
        raise RuntimeError("No database URL: pass -x db_url=..., or set ALEMBIC_DATABASE_URL or DATABASE_URL")

    parsed = make_url(url)
    # plain postgresql:// or sqlite:// URLs get the async driver
    if parsed.drivername in _ASYNC_DRIVERS:
        parsed = parsed.set(drivername=_ASYNC_DRIVERS[parsed.drivername])
    return parsed.render_as_string(hide_password=False)


def _configure(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online() -> None:
    engine = create_async_engine(database_url(), poolclass=pool.NullPool)
    try:
        async with engine.connect() as conn:
            await conn.run_sync(_configure)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    context.configure(
        url=database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    asyncio.run(_migrate_online())
