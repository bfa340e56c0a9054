"""
Todo Backend — Todo SQLAlchemy Model
=====================================

What:  ORM model for the `todos` table.
Who:   Alembic metadata and the test database; TodoService talks to the
       table with parameterized SQL through ValidatedStore.

Table Design:
    - id: SERIAL primary key, generated by the database
    - user_id: owning user; every query filters on it
    - title: 1-200 characters (length enforced by the column and the schemas)
    - completed: defaults to false
    - created_at: set on insert, never updated

    Index (user_id, created_at DESC) serves the only list query:
        SELECT ... WHERE user_id = :user_id ORDER BY created_at DESC
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, false, func
from sqlalchemy.orm import Mapped, mapped_column

from todo_backend.database import Base


class Todo(Base):
    """
    A single todo item owned by exactly one user.

    Ownership is enforced in SQL: updates and deletes use
    WHERE id = :id AND user_id = :user_id, so a foreign id matches no row.
    """

    __tablename__ = "todos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    completed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.current_timestamp(),
    )

    __table_args__ = (
        Index("idx_todos_user_created_at", user_id, created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Todo(id={self.id}, user_id='{self.user_id}', completed={self.completed})>"
