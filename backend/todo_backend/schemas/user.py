"""
Todo Backend — User & Token Schemas
====================================

What:  Pydantic models for the resolved user, the `users` row and JWT claims.

    User          — identity produced by AuthResolver (in-process)
    UserRecord    — row returned by the upsert (validated by ValidatedStore)
    UserResponse  — GET /api/me body, camelCase like the frontend expects
    TokenClaims   — shape check applied to verified JWT claims
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def is_anonymous_identity(
    email: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> bool:
    """An identity is anonymous when it carries no email and no name."""
    return not email and not first_name and not last_name


class User(BaseModel):
    """
    The identity attached to a request.

    `is_anonymous` is derived from the optional fields whenever a User is
    built from claims (see `from_claims`).
    """

    user_id: str = Field(min_length=1)
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_anonymous: bool

    @classmethod
    def from_claims(
        cls,
        sub: str,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> "User":
        return cls(
            user_id=sub,
            email=email,
            first_name=first_name,
            last_name=last_name,
            is_anonymous=is_anonymous_identity(email, first_name, last_name),
        )

    @classmethod
    def anonymous(cls, user_id: str) -> "User":
        return cls(user_id=user_id, is_anonymous=True)


class UserRecord(BaseModel):
    """One row of the `users` table, as returned by the upsert."""

    user_id: str
    email: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    is_anonymous: bool
    created_at: datetime
    updated_at: datetime


class UserResponse(BaseModel):
    """
    GET /api/me body: {userId, email?, firstName?, lastName?, isAnonymous}.

    Absent fields are dropped from the JSON (the route uses
    response_model_exclude_none) rather than sent as null.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_anonymous: bool


class TokenClaims(BaseModel):
    """
    Expected shape of a verified JWT claim set.

    Only `sub` is required; unknown claims are ignored.
    """

    sub: str = Field(min_length=1)
    iss: Optional[str] = None
    aud: Optional[Union[str, List[str]]] = None
    exp: Optional[float] = None
    iat: Optional[float] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    def to_user(self) -> User:
        return User.from_claims(
            sub=self.sub,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
        )


class RuntimeConfigResponse(BaseModel):
    """GET /api/config body."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    external_auth_url: str
