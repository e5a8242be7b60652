"""Pytest fixtures and configuration."""

from __future__ import annotations

import os

# Settings are read once at import; pin the test environment first.
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("NOTIFY_RETRY_DELAY", "0")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")

from collections.abc import AsyncGenerator, Awaitable, Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.backoffice.core.config import Settings, get_settings
from src.backoffice.core.security import ACCESS_TOKEN_TYPE, create_token, hash_password
from src.backoffice.db.session import Base, get_db
from src.backoffice.main import app
from src.backoffice.models.user import User
from src.backoffice.repositories.user_repository import UserRepository
from src.backoffice.services.blob_storage_service import (
    LocalBlobStorageService,
    get_blob_storage_service,
)
from src.backoffice.services.email_service import get_email_service
from src.backoffice.services.otp_service import InMemoryOTPStore, OTPService, get_otp_service
from src.backoffice.services.pdf_service import PdfRenderer, get_pdf_renderer
from src.backoffice.services.rbac_service import RBACService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Test database URL (in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeMailer:
    """Stand-in for EmailService that records what would have been sent."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.credentials: list[dict[str, Any]] = []
        self.otps: list[dict[str, Any]] = []
        self.tests: list[str] = []

    async def send_rider_credentials(self, **kwargs: Any) -> bool:
        self.credentials.append(kwargs)
        return self.succeed

    async def send_otp(self, *, to_address: str, otp: str, purpose: str) -> bool:
        self.otps.append({"to_address": to_address, "otp": otp, "purpose": purpose})
        return self.succeed

    async def send_test_message(self, to_address: str) -> None:
        if not self.succeed:
            raise ConnectionError("Connection refused")
        self.tests.append(to_address)


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine.

    pysqlite's own transaction handling breaks SAVEPOINT; SQLAlchemy emits
    BEGIN itself instead.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def failing_mailer() -> FakeMailer:
    return FakeMailer(succeed=False)


@pytest.fixture
def storage(tmp_path: Path, settings: Settings) -> LocalBlobStorageService:
    return LocalBlobStorageService(
        base_path=tmp_path / "blobs",
        base_url=settings.BLOB_BASE_URL,
        signing_key=settings.SECRET_KEY,
        max_retries=0,
    )


@pytest.fixture
def otp_service(settings: Settings) -> OTPService:
    return OTPService(settings, store=InMemoryOTPStore(ttl_seconds=600))


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    mailer: FakeMailer,
    storage: LocalBlobStorageService,
    otp_service: OTPService,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with overridden dependencies.

    Requests share ``db_session`` so tests can inspect what endpoints wrote.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: mailer
    app.dependency_overrides[get_blob_storage_service] = lambda: storage
    app.dependency_overrides[get_otp_service] = lambda: otp_service
    app.dependency_overrides[get_pdf_renderer] = PdfRenderer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Users, roles and tokens
# ---------------------------------------------------------------------------

StaffFactory = Callable[..., Awaitable[User]]


@pytest.fixture
def make_staff(db_session: AsyncSession) -> StaffFactory:
    """Create a staff user holding a fresh role with ``permissions``."""
    counter = {"n": 0}

    async def _make(
        permissions: Sequence[str] = (),
        *,
        role_name: str | None = None,
        email: str | None = None,
        password: str = "Passw0rd!",
        is_active: bool = True,
    ) -> User:
        counter["n"] += 1
        n = counter["n"]
        rbac = RBACService(db_session)
        roles = []
        if role_name or permissions:
            roles.append(await rbac.create_role(role_name or f"Test Role {n}", None, list(permissions)))
        user = await UserRepository(db_session).create(
            email=email or f"staff{n}@flcd.com",
            password_hash=hash_password(password),
            first_name="Staff",
            last_name=f"Member{n}",
            is_active=is_active,
            roles=roles,
        )
        await db_session.commit()
        return user

    return _make


def bearer(user: User, settings: Settings | None = None) -> dict[str, str]:
    token, _ = create_token(
        user_id=user.id,
        token_type=ACCESS_TOKEN_TYPE,
        settings=settings or get_settings(),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def super_admin(make_staff: StaffFactory) -> User:
    return await make_staff(role_name="Super Admin", email="admin@flcd.com")


@pytest.fixture
def admin_headers(super_admin: User) -> dict[str, str]:
    return bearer(super_admin)


@pytest.fixture
def rider_payload() -> dict[str, Any]:
    """Single-rider request body (camelCase, as the dashboard sends it)."""
    return {
        "firstName": "Ana",
        "lastName": "Cruz",
        "phone": "+971501112222",
        "email": "ana.cruz@example.com",
        "nationality": "Philippines",
        "emiratesId": "784-1995-1234567-1",
        "passportNumber": "P1234567",
        "companySim": "+971559990000",
        "cityOfWork": "Dubai",
    }
