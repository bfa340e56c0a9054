"""
Todo Backend — Auth Resolver
=============================

What:  Turns an incoming request into a User and records that user in the
       database.
How:   Decision flow per request:

           Authorization: Bearer <token>?
             ├── no  → anonymous_user_id cookie?
             │         ├── yes → reuse it
             │         └── no  → new UUID, cookie to be set on the response
             │         → User(is_anonymous=True)
             └── yes → BearerVerifier.verify(token)
                       ├── mock token (development/test) → predefined identity
                       └── otherwise → JWKS-verified JWT claims
           → ValidatedStore.upsert_user(user)   (exactly once per request)

       The bearer strategy is chosen once at startup (`build_bearer_verifier`)
       rather than per request.
Who:   The `get_current_user` dependency (auth/dependencies.py).

Errors:
    ConfigurationError      bearer token present, no JWKS configured  → 500
    InvalidCredentialError  token rejected for any reason             → 401
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
from jose import JWTError
from pydantic import ValidationError as SchemaError
from starlette.requests import Request
from starlette.responses import Response

from todo_backend.auth.keys import KeyResolver
from todo_backend.auth.mock import decode_mock_token
from todo_backend.config import Settings
from todo_backend.exceptions import ConfigurationError, InvalidCredentialError
from todo_backend.schemas.user import TokenClaims, User
from todo_backend.store import ValidatedStore

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass
class AnonymousCookie:
    """Cookie the response must carry to pin a newly minted anonymous id."""

    name: str
    value: str
    max_age: int
    secure: bool
    httponly: bool = True
    samesite: str = "lax"
    path: str = "/"

    def apply(self, response: Response) -> None:
        response.set_cookie(
            key=self.name,
            value=self.value,
            max_age=self.max_age,
            path=self.path,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )


@dataclass
class AuthResult:
    user: User
    cookie_to_set: Optional[AnonymousCookie] = None


class BearerVerifier(Protocol):
    async def verify(self, token: str) -> User:
        """Return the token's identity or raise ConfigurationError / InvalidCredentialError."""
        ...


class JWKSBearerVerifier:
    """
    Verifies real JWTs through the configured key resolver.

    With no resolver (JWKS_URI unset) every token fails with
    ConfigurationError. Every verification failure collapses into one
    InvalidCredentialError; the specific cause is only logged.
    """

    def __init__(self, key_resolver: Optional[KeyResolver]):
        self.key_resolver = key_resolver

    async def verify(self, token: str) -> User:
        if self.key_resolver is None:
            logger.error("Bearer token received but JWKS_URI is not configured")
            raise ConfigurationError(context={"missing": "JWKS_URI"})

        try:
            claims = await self.key_resolver.verify(token)
        except JWTError as e:
            logger.warning("JWT rejected: %s", e)
            raise InvalidCredentialError(reason=str(e)) from e
        except httpx.HTTPError as e:
            raise InvalidCredentialError(
                reason="signing keys unavailable",
                context={"error_type": type(e).__name__},
            ) from e

        try:
            parsed = TokenClaims.model_validate(claims)
        except SchemaError as e:
            logger.warning("JWT claims have an unexpected shape: %s", e)
            raise InvalidCredentialError(reason="claims failed validation") from e

        return parsed.to_user()


class MockBearerVerifier:
    """
    Accepts mock tokens and hands every other token to `fallback`.

    A malformed or expired mock token is not an error here; it simply falls
    through to real verification.
    """

    def __init__(self, fallback: BearerVerifier):
        self.fallback = fallback

    async def verify(self, token: str) -> User:
        user = decode_mock_token(token)
        if user is not None:
            logger.debug("Mock token accepted for %s", user.user_id)
            return user
        return await self.fallback.verify(token)


def build_bearer_verifier(
    app_settings: Settings,
    key_resolver: Optional[KeyResolver],
) -> BearerVerifier:
    """Pick the bearer strategy for this process from the environment."""
    real = JWKSBearerVerifier(key_resolver)
    if app_settings.mock_auth_enabled:
        logger.info("Mock bearer tokens enabled (environment=%s)", app_settings.environment)
        return MockBearerVerifier(real)
    return real


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token of an `Authorization: Bearer <token>` header, else None."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    return authorization[len(BEARER_PREFIX):].strip()


class AuthResolver:
    """
    Resolves requests to users.

    Attributes:
        verifier:        bearer strategy (mock + JWKS, or JWKS only)
        cookie_name:     anonymous id cookie name
        cookie_max_age:  anonymous cookie lifetime in seconds
        secure_cookie:   set the Secure flag (production only)
    """

    def __init__(
        self,
        verifier: BearerVerifier,
        cookie_name: str = "anonymous_user_id",
        cookie_max_age: int = 60 * 60 * 24 * 365,
        secure_cookie: bool = False,
    ):
        self.verifier = verifier
        self.cookie_name = cookie_name
        self.cookie_max_age = cookie_max_age
        self.secure_cookie = secure_cookie

    @classmethod
    def from_settings(
        cls,
        app_settings: Settings,
        key_resolver: Optional[KeyResolver],
    ) -> "AuthResolver":
        return cls(
            verifier=build_bearer_verifier(app_settings, key_resolver),
            cookie_name=app_settings.anonymous_cookie_name,
            cookie_max_age=app_settings.anonymous_cookie_max_age,
            secure_cookie=app_settings.is_production,
        )

    async def resolve(self, request: Request, store: ValidatedStore) -> AuthResult:
        """
        Resolve the request's user and upsert it.

        Nothing is written when resolution fails.
        """
        token = extract_bearer_token(request.headers.get("authorization"))

        if token is None:
            result = self._resolve_anonymous(request)
        else:
            result = AuthResult(user=await self.verifier.verify(token))

        await store.upsert_user(result.user)
        return result

    def _resolve_anonymous(self, request: Request) -> AuthResult:
        existing = request.cookies.get(self.cookie_name)
        if existing:
            return AuthResult(user=User.anonymous(existing))

        anonymous_id = str(uuid.uuid4())
        logger.info("Issued new anonymous id %s", anonymous_id)
        return AuthResult(
            user=User.anonymous(anonymous_id),
            cookie_to_set=AnonymousCookie(
                name=self.cookie_name,
                value=anonymous_id,
                max_age=self.cookie_max_age,
                secure=self.secure_cookie,
            ),
        )
