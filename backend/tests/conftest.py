"""
Todo Backend — Test Configuration (conftest.py)
================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Store, service and end-to-end tests run against a throwaway SQLite
       database (aiosqlite) built from the ORM metadata; unit tests use
       mocks. The environment is forced to `test` so mock tokens work.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── db_engine: SQLite engine with users + todos tables
    │   └── session_factory → db_session → store
    ├── mock_db_session: AsyncMock session (no database)
    ├── test_settings: Settings for environment=test, JWKS unset
    └── app → test_client: create_app() over db_engine via HTTPX
"""

import os
import tempfile

# Override settings for testing BEFORE any app imports
_test_dir = tempfile.mkdtemp(prefix="todo_backend_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_dir}/app.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWKS_URI"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from typing import AsyncGenerator, Dict, Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402
from starlette.requests import Request  # noqa: E402

import todo_backend.models  # noqa: E402,F401
from todo_backend.config import Settings  # noqa: E402
from todo_backend.database import Base, build_engine, get_db_session  # noqa: E402
from todo_backend.main import create_app  # noqa: E402
from todo_backend.store import ValidatedStore  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

def make_request(
    headers: Optional[Dict[str, str]] = None,
    cookies: Optional[Dict[str, str]] = None,
) -> Request:
    """Build a bare Starlette request carrying the given headers and cookies."""
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookies:
        cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        raw_headers.append((b"cookie", cookie_header.encode()))
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/api/me",
            "headers": raw_headers,
            "query_string": b"",
        }
    )


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """A fresh SQLite database per test with the users and todos tables."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path}/todos.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session) -> ValidatedStore:
    return ValidatedStore(db_session)


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.return_value = result_with_rows([...])
        await ValidatedStore(mock_db_session).query_many(...)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session


def result_with_rows(rows):
    """A MagicMock shaped like a SQLAlchemy Result whose mappings() yields `rows`."""
    result = MagicMock()
    result.mappings.return_value.all.return_value = rows
    return result


# ══════════════════════════════════════════════════════════════════════════
# Application Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        jwks_uri="",
        external_auth_url="https://auth.example.com/login",
        log_level="WARNING",
    )


@pytest.fixture
def app(test_settings, session_factory):
    """
    The application wired to the per-test SQLite database.

    get_db_session is overridden with the same commit / rollback contract
    as the production dependency.
    """
    application = create_app(test_settings)

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = override_db_session
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient talking to the app in-process.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/api/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
