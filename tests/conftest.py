"""
Pytest configuration and shared fixtures.

Each test gets its own SQLite database file (aiosqlite) with every auth table
created from SQLModel metadata, so tests never touch a dev/prod database.
"""

import os

# Settings are read at import time; configure them before importing safra_auth
os.environ["SECRET_KEY"] = "test-secret-key-that-is-definitely-longer-than-32-bytes"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from safra_auth.core.database import create_tables, get_db  # noqa: E402
from safra_auth.core.principals import ADMIN, USER  # noqa: E402
from safra_auth.core.security import PasswordHasher  # noqa: E402
from safra_auth.core.tokens import TokenIssuer  # noqa: E402
from safra_auth.main import app as main_app  # noqa: E402
from safra_auth.services.auth_service import AuthService  # noqa: E402
from safra_auth.services.credential_store import CredentialStore  # noqa: E402

TEST_PASSWORD = "Password123"


@pytest.fixture(scope="function")
async def engine(tmp_path):
    """
    Create a fresh SQLite database for each test function.

    Function scope keeps the engine on the same event loop as db_session.
    """
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}", echo=False)
    await create_tables(bind=test_engine)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Database session configured like the application's session factory."""
    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer()


@pytest.fixture
def user_service(db_session: AsyncSession, hasher, issuer) -> AuthService:
    return AuthService(db_session, USER, hasher=hasher, issuer=issuer)


@pytest.fixture
def admin_service(db_session: AsyncSession, hasher, issuer) -> AuthService:
    return AuthService(db_session, ADMIN, hasher=hasher, issuer=issuer)


@pytest.fixture
async def registered_user(user_service: AuthService):
    """
    Register user@x.do / Password123 through the service.

    Usage:
        async def test_login(registered_user, user_service):
            assert registered_user.id is not None
    """
    result = await user_service.register("user@x.do", TEST_PASSWORD, first_name="Ana")
    assert result.success, result.message
    return result.user


@pytest.fixture
async def admin_user(db_session: AsyncSession, hasher):
    """Admin account (role admin) for admin-path tests."""
    store = CredentialStore(db_session, ADMIN)
    admin = await store.create(
        "admin@safrareport.com",
        hasher.hash(TEST_PASSWORD),
        username="admin",
        role="admin",
    )
    await db_session.commit()
    return admin


@pytest.fixture(scope="function")
def app(db_session: AsyncSession) -> FastAPI:
    """
    FastAPI app with the test database session.

    This overrides the database dependency to use the test session.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    main_app.dependency_overrides[get_db] = override_get_db

    yield main_app

    main_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for testing API endpoints.

    Usage:
        async def test_endpoint(client):
            response = await client.post("/api/v1/auth/login", json={...})
            assert response.status_code == 200
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
