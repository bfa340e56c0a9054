"""
Todo Backend — Validated Store
===============================

What:  Executes parameterized SQL and validates every returned row against
       a Pydantic schema before handing it to application code.
How:   SQL is wrapped in SQLAlchemy `text()` and values are passed as bound
       parameters (`:name`); the driver does the binding, so no value is ever
       interpolated into the statement. Rows are validated with
       `schema.model_validate`; the first row that fails raises
       `ValidationError(row_index=...)` and nothing is returned.
Who:   TodoService (todo CRUD) and AuthResolver (user upsert). One store
       wraps one request-scoped AsyncSession.

Statements passed to the store must return rows (SELECT, or a write with a
RETURNING clause).
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from todo_backend.exceptions import DatabaseError, ValidationError
from todo_backend.schemas.user import User, UserRecord

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

UPSERT_USER_SQL = """
    INSERT INTO users (user_id, email, first_name, last_name, is_anonymous, updated_at)
    VALUES (:user_id, :email, :first_name, :last_name, :is_anonymous, CURRENT_TIMESTAMP)
    ON CONFLICT (user_id)
    DO UPDATE SET
        email = EXCLUDED.email,
        first_name = EXCLUDED.first_name,
        last_name = EXCLUDED.last_name,
        is_anonymous = EXCLUDED.is_anonymous,
        updated_at = CURRENT_TIMESTAMP
    RETURNING user_id, email, first_name, last_name, is_anonymous, created_at, updated_at
"""


class ValidatedStore:
    """
    Schema-validated access to the database for one session.

    Operations:
        query_many(sql, params, schema) → list of validated rows ([] if none)
        query_one(sql, params, schema)  → first validated row or None
        upsert_user(user)               → validated UserRecord (last write wins)
        commit()                        → commit the session so far

    Errors:
        ValidationError: a row did not match `schema` (schema drift)
        DatabaseError:   the driver raised (connection, constraint, syntax)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def query_many(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]],
        schema: Type[SchemaT],
    ) -> List[SchemaT]:
        rows = await self._fetch_all(sql, params)
        return [self._validate_row(row, index, schema) for index, row in enumerate(rows)]

    async def query_one(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]],
        schema: Type[SchemaT],
    ) -> Optional[SchemaT]:
        rows = await self._fetch_all(sql, params)
        if not rows:
            return None
        return self._validate_row(rows[0], 0, schema)

    async def upsert_user(self, user: User) -> UserRecord:
        """
        Insert the user or overwrite its profile columns.

        Keyed by user_id. Email, names and the anonymity flag are replaced
        unconditionally and updated_at is bumped; created_at is kept.
        """
        record = await self.query_one(
            UPSERT_USER_SQL,
            {
                "user_id": user.user_id,
                "email": user.email or None,
                "first_name": user.first_name or None,
                "last_name": user.last_name or None,
                "is_anonymous": user.is_anonymous,
            },
            UserRecord,
        )
        if record is None:
            raise DatabaseError(
                message="Could not record the current user.",
                context={"user_id": user.user_id, "cause": "upsert returned no row"},
            )
        logger.debug("Upserted user %s (anonymous=%s)", record.user_id, record.is_anonymous)
        return record

    async def commit(self) -> None:
        """Commit the work done so far in this session."""
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.error("Commit failed: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__}) from e

    # ── Internals ─────────────────────────────────────────────────────────

    async def _fetch_all(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]],
    ) -> Sequence[Mapping[str, Any]]:
        try:
            result = await self.session.execute(text(sql), dict(params or {}))
            return result.mappings().all()
        except SQLAlchemyError as e:
            logger.error("Query failed: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__}) from e

    @staticmethod
    def _validate_row(row: Mapping[str, Any], index: int, schema: Type[SchemaT]) -> SchemaT:
        try:
            return schema.model_validate(dict(row))
        except SchemaError as e:
            logger.error(
                "Row %d failed %s validation: %s",
                index,
                schema.__name__,
                e,
            )
            raise ValidationError(
                row_index=index,
                detail=str(e),
                schema=schema.__name__,
            ) from e
