"""
Todo Backend — Alembic Environment
===================================

What:  Applies the schema the API expects: `users`, keyed by the resolved
       identity (IdP subject or anonymous UUID), and `todos`, whose
       `user_id` references it, plus the per-user listing index.
How:   The target database is DATABASE_URL from Settings, overridable for a
       single run with `-x url=...`. Online runs go through the same asyncpg
       driver as the API via connection.run_sync().
Who:   Operators, before the API starts against a fresh database:

           cd backend
           alembic upgrade head                      # DATABASE_URL
           alembic -x url=postgresql+asyncpg://... upgrade head
           alembic upgrade head --sql                # review DDL only

Tests do not run migrations; they build the same tables from
`todo_backend.models` metadata.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from todo_backend.config import settings
from todo_backend.database import Base

# User and Todo must be registered on Base.metadata for --autogenerate
import todo_backend.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    """`-x url=...` for this invocation, else DATABASE_URL."""
    return context.get_x_argument(as_dictionary=True).get("url") or settings.database_url


config.set_main_option("sqlalchemy.url", _database_url())


def run_migrations_offline() -> None:
    """Print the users / todos DDL instead of executing it."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def apply_revisions(connection: Connection) -> None:
    # compare_type catches title / email length changes on --autogenerate
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(apply_revisions)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
