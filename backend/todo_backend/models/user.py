"""
Todo Backend — User SQLAlchemy Model
=====================================

What:  ORM model for the `users` table.
Who:   Read by Alembic (autogenerate) and by the test suite to build the
       schema. Runtime reads and writes go through ValidatedStore SQL.

Lifecycle:
    Upserted on every resolved request (keyed by user_id); never deleted.
    Anonymous users carry no email / first_name / last_name.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, false, func
from sqlalchemy.orm import Mapped, mapped_column

from todo_backend.database import Base


class User(Base):
    __tablename__ = "users"

    # JWT `sub` claim or the anonymous cookie UUID
    user_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Identity provider subject or anonymous UUID",
    )

    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    is_anonymous: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
        comment="True when no email or name claims are present",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.current_timestamp(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.current_timestamp(),
    )

    def __repr__(self) -> str:
        return f"<User(user_id='{self.user_id}', is_anonymous={self.is_anonymous})>"
