"""
Todo Backend — Database Session Management
===========================================

What:  Async SQLAlchemy engine, session factory, ORM base and FastAPI dependency.
How:   One engine (connection pool) per process; one AsyncSession per request,
       committed on success and rolled back on error.
Who:   `get_db_session` is injected into routes and the auth dependency;
       `Base` is the metadata source for Alembic and the test database.

Connection Pooling (PostgreSQL):
    pool_size:        persistent connections (settings.db_pool_size)
    max_overflow:     burst connections on top of pool_size
    pool_pre_ping:    validates a connection before handing it out
    pool_recycle=3600 recycles connections hourly
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from todo_backend.config import settings


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    Pool sizing only applies to PostgreSQL; other dialects (the SQLite test
    database) keep SQLAlchemy's default pool for their driver.
    """
    options: Dict[str, Any] = {"echo": echo}
    if database_url.startswith("postgresql"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(database_url, **options)


# ── Engine & Session Factory ──────────────────────────────────────────────
engine = build_engine(settings.database_url, echo=settings.log_level == "DEBUG")

# expire_on_commit=False: returned rows stay readable after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for the ORM models (users, todos)."""


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the auth dependency and the route handler
        3. On success: commits (the user upsert and any todo write)
        4. On error: rolls back and re-raises for the global handlers
        5. Always: closes the session (returns connection to pool)
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def dispose_engine() -> None:
    """Closes all pooled connections. Called from the app lifespan on shutdown."""
    await engine.dispose()
