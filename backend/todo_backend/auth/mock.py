"""
Todo Backend — Mock Bearer Tokens (development / test only)
============================================================

What:  Unsigned bearer tokens for a fixed set of predefined identities, so
       the frontend and the test suite can act as "logged in" users without
       an identity provider.
How:   Token format is `mock.<userId>.<base64(JSON payload)>`. The payload
       carries the identity claims plus `iat` / `exp` (one hour).
Who:   MockBearerVerifier (decoding) and the app lifespan, which logs a
       ready-to-use token for each identity at startup.

Never enabled in production: the verifier is only installed when
settings.mock_auth_enabled is true.
"""

import base64
import binascii
import json
import logging
import time
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as SchemaError

from todo_backend.schemas.user import User

logger = logging.getLogger(__name__)

MOCK_TOKEN_PREFIX = "mock"
MOCK_TOKEN_TTL_SECONDS = 3600

MOCK_USERS: Dict[str, User] = {
    "test_user_1": User.from_claims(
        sub="test-user-1",
        email="test1@example.com",
        first_name="Test",
        last_name="User",
    ),
    "test_user_2": User.from_claims(
        sub="test-user-2",
        email="test2@example.com",
        first_name="Second",
        last_name="Tester",
    ),
    "anonymous": User.anonymous("test-anonymous-user"),
}


class MockTokenPayload(BaseModel):
    """JSON payload segment of a mock token. `sub` falls back to the userId segment."""

    model_config = ConfigDict(extra="ignore")

    sub: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    iat: Optional[float] = None
    exp: Optional[float] = None


def generate_mock_token(user: User, now: Optional[float] = None) -> str:
    """Build a mock token for `user`, valid for one hour from `now`."""
    issued_at = int(now if now is not None else time.time())
    payload = {
        "sub": user.user_id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "iat": issued_at,
        "exp": issued_at + MOCK_TOKEN_TTL_SECONDS,
    }
    encoded = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    return f"{MOCK_TOKEN_PREFIX}.{user.user_id}.{encoded}"


def decode_mock_token(token: str, now: Optional[float] = None) -> Optional[User]:
    """
    Decode a mock token into a User.

    Returns None for anything that is not a valid, unexpired mock token
    (wrong prefix, wrong segment count, bad base64 or JSON, expired). The
    caller then treats the token as a real JWT.
    """
    parts = token.split(".")
    if len(parts) != 3 or parts[0] != MOCK_TOKEN_PREFIX:
        return None

    _, user_id, encoded = parts
    # Accept both the standard and the URL-safe alphabet, with or without padding
    normalized = encoded.replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)

    try:
        raw = base64.b64decode(normalized, validate=True)
        payload = MockTokenPayload.model_validate(json.loads(raw))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, SchemaError):
        return None

    current = now if now is not None else time.time()
    if payload.exp and payload.exp < current:
        logger.debug("Mock token for %s expired", user_id)
        return None

    sub = payload.sub or user_id
    if not sub:
        return None

    return User.from_claims(
        sub=sub,
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )


def generate_all_mock_tokens(now: Optional[float] = None) -> Dict[str, str]:
    """Return a fresh token for every predefined identity, keyed by identity name."""
    return {name: generate_mock_token(user, now=now) for name, user in MOCK_USERS.items()}


def log_mock_tokens() -> None:
    """Print ready-to-use tokens so developers can paste them into requests."""
    logger.info("Mock authentication enabled. Tokens (valid for 1 hour):")
    for name, token in generate_all_mock_tokens().items():
        logger.info("  %s: Bearer %s", name, token)
