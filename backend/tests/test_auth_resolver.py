"""
Todo Backend — AuthResolver Tests
==================================

What:  The per-request identity decision flow.
How:   Bare Starlette requests and a mocked store; the key resolver is an
       AsyncMock so no network or signing is involved (see test_jwks.py for
       real signature checks).

What we test:
    ✅ No bearer → cookie reused or minted, anonymous user, one upsert
    ✅ Mock tokens in test mode → predefined identity
    ✅ Expired / garbage tokens without JWKS → ConfigurationError
    ✅ Verification or claim-shape failures → InvalidCredentialError
    ✅ Nothing is upserted when resolution fails
"""

import time
import uuid
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from jose import JWTError
from jose.exceptions import ExpiredSignatureError

from conftest import make_request
from todo_backend.auth.mock import MOCK_TOKEN_TTL_SECONDS, MOCK_USERS, generate_mock_token
from todo_backend.auth.resolver import (
    AuthResolver,
    JWKSBearerVerifier,
    MockBearerVerifier,
    build_bearer_verifier,
    extract_bearer_token,
)
from todo_backend.config import Settings
from todo_backend.exceptions import ConfigurationError, InvalidCredentialError
from todo_backend.schemas.user import User


@pytest.fixture
def fake_store():
    store = MagicMock()
    store.upsert_user = AsyncMock()
    return store


@pytest.fixture
def key_resolver():
    resolver = AsyncMock()
    resolver.verify = AsyncMock()
    return resolver


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _settings(**overrides) -> Settings:
    values = {"environment": "test", "jwks_uri": ""}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestAnonymous:

    def setup_method(self):
        self.resolver = AuthResolver.from_settings(_settings(), key_resolver=None)

    @pytest.mark.asyncio
    async def test_no_cookie_mints_id_and_cookie(self, fake_store):
        result = await self.resolver.resolve(make_request(), fake_store)

        assert result.user.is_anonymous is True
        assert uuid.UUID(result.user.user_id)
        cookie = result.cookie_to_set
        assert cookie.name == "anonymous_user_id"
        assert cookie.value == result.user.user_id
        assert cookie.max_age == 31536000
        assert cookie.httponly is True
        assert cookie.samesite == "lax"
        assert cookie.path == "/"
        assert cookie.secure is False
        fake_store.upsert_user.assert_awaited_once_with(result.user)

    @pytest.mark.asyncio
    async def test_existing_cookie_is_reused(self, fake_store):
        request = make_request(cookies={"anonymous_user_id": "known-anon"})

        result = await self.resolver.resolve(request, fake_store)

        assert result.user == User.anonymous("known-anon")
        assert result.cookie_to_set is None
        fake_store.upsert_user.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_cookie_mints_new_id(self, fake_store):
        request = make_request(cookies={"anonymous_user_id": ""})

        result = await self.resolver.resolve(request, fake_store)

        assert result.cookie_to_set is not None
        assert result.user.user_id

    @pytest.mark.asyncio
    async def test_non_bearer_authorization_is_anonymous(self, fake_store):
        request = make_request(headers={"Authorization": "Basic dXNlcjpwYXNz"})

        result = await self.resolver.resolve(request, fake_store)

        assert result.user.is_anonymous is True

    def test_secure_cookie_only_in_production(self):
        prod = AuthResolver.from_settings(_settings(environment="production"), key_resolver=None)

        assert prod.secure_cookie is True
        assert self.resolver.secure_cookie is False


class TestMockTokens:

    def setup_method(self):
        self.resolver = AuthResolver.from_settings(_settings(), key_resolver=None)

    @pytest.mark.asyncio
    async def test_mock_user_resolves_to_identity(self, fake_store):
        token = generate_mock_token(MOCK_USERS["test_user_1"])

        result = await self.resolver.resolve(make_request(headers=_bearer(token)), fake_store)

        assert result.user.user_id == "test-user-1"
        assert result.user.email == "test1@example.com"
        assert result.user.is_anonymous is False
        assert result.cookie_to_set is None
        fake_store.upsert_user.assert_awaited_once_with(result.user)

    @pytest.mark.asyncio
    async def test_bearer_wins_over_cookie(self, fake_store):
        token = generate_mock_token(MOCK_USERS["test_user_2"])
        request = make_request(headers=_bearer(token), cookies={"anonymous_user_id": "anon"})

        result = await self.resolver.resolve(request, fake_store)

        assert result.user.user_id == "test-user-2"

    @pytest.mark.asyncio
    async def test_expired_mock_without_jwks_is_configuration_error(self, fake_store):
        token = generate_mock_token(
            MOCK_USERS["test_user_1"], now=time.time() - 2 * MOCK_TOKEN_TTL_SECONDS
        )

        with pytest.raises(ConfigurationError) as exc_info:
            await self.resolver.resolve(make_request(headers=_bearer(token)), fake_store)

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Authentication not properly configured"
        fake_store.upsert_user.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_mock_with_jwks_is_invalid_credential(self, fake_store, key_resolver):
        key_resolver.verify.side_effect = JWTError("Not enough segments")
        resolver = AuthResolver.from_settings(_settings(), key_resolver=key_resolver)
        token = generate_mock_token(
            MOCK_USERS["test_user_1"], now=time.time() - 2 * MOCK_TOKEN_TTL_SECONDS
        )

        with pytest.raises(InvalidCredentialError):
            await resolver.resolve(make_request(headers=_bearer(token)), fake_store)

        key_resolver.verify.assert_awaited_once_with(token)
        fake_store.upsert_user.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mock_tokens_ignored_in_production(self, fake_store, key_resolver):
        key_resolver.verify.side_effect = JWTError("Not enough segments")
        resolver = AuthResolver.from_settings(
            _settings(environment="production"), key_resolver=key_resolver
        )
        token = generate_mock_token(MOCK_USERS["test_user_1"])

        with pytest.raises(InvalidCredentialError):
            await resolver.resolve(make_request(headers=_bearer(token)), fake_store)


class TestRealTokens:

    @pytest.mark.asyncio
    async def test_no_jwks_is_configuration_error(self, fake_store):
        resolver = AuthResolver(JWKSBearerVerifier(None))

        with pytest.raises(ConfigurationError):
            await resolver.resolve(make_request(headers=_bearer("a.b.c")), fake_store)

        fake_store.upsert_user.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_verified_claims_become_user(self, fake_store, key_resolver):
        key_resolver.verify.return_value = {
            "sub": "idp|123",
            "iss": "https://id.example.com",
            "aud": ["todo-api", "other"],
            "exp": time.time() + 60,
            "iat": time.time(),
            "email": "jane@example.com",
            "first_name": "Jane",
            "last_name": "Doe",
        }
        resolver = AuthResolver(JWKSBearerVerifier(key_resolver))

        result = await resolver.resolve(make_request(headers=_bearer("real.jwt.token")), fake_store)

        assert result.user == User(
            user_id="idp|123",
            email="jane@example.com",
            first_name="Jane",
            last_name="Doe",
            is_anonymous=False,
        )
        fake_store.upsert_user.assert_awaited_once_with(result.user)

    @pytest.mark.asyncio
    async def test_claims_without_profile_are_anonymous(self, fake_store, key_resolver):
        key_resolver.verify.return_value = {"sub": "idp|456"}
        resolver = AuthResolver(JWKSBearerVerifier(key_resolver))

        result = await resolver.resolve(make_request(headers=_bearer("t")), fake_store)

        assert result.user.is_anonymous is True
        assert result.cookie_to_set is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            JWTError("Signature verification failed."),
            ExpiredSignatureError("Signature has expired."),
            httpx.ConnectError("connection refused"),
        ],
    )
    async def test_verification_failures_are_invalid_credential(
        self, fake_store, key_resolver, error
    ):
        key_resolver.verify.side_effect = error
        resolver = AuthResolver(JWKSBearerVerifier(key_resolver))

        with pytest.raises(InvalidCredentialError) as exc_info:
            await resolver.resolve(make_request(headers=_bearer("t")), fake_store)

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Invalid or expired authentication token"
        fake_store.upsert_user.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "claims",
        [
            {"email": "no-sub@example.com"},
            {"sub": ""},
            {"sub": "x", "email": 42},
            {"sub": "x", "aud": {"not": "a list"}},
        ],
    )
    async def test_bad_claim_shape_is_invalid_credential(self, fake_store, key_resolver, claims):
        key_resolver.verify.return_value = claims
        resolver = AuthResolver(JWKSBearerVerifier(key_resolver))

        with pytest.raises(InvalidCredentialError) as exc_info:
            await resolver.resolve(make_request(headers=_bearer("t")), fake_store)

        assert exc_info.value.reason == "claims failed validation"
        fake_store.upsert_user.assert_not_awaited()


class TestBearerStrategy:

    def test_mock_enabled_in_test_and_development(self):
        for environment in ("test", "development"):
            verifier = build_bearer_verifier(_settings(environment=environment), None)
            assert isinstance(verifier, MockBearerVerifier)
            assert isinstance(verifier.fallback, JWKSBearerVerifier)

    def test_production_uses_jwks_only(self):
        verifier = build_bearer_verifier(_settings(environment="production"), None)

        assert isinstance(verifier, JWKSBearerVerifier)

    def test_extract_bearer_token(self):
        assert extract_bearer_token("Bearer abc") == "abc"
        assert extract_bearer_token("Bearer ") == ""
        assert extract_bearer_token("bearer abc") is None
        assert extract_bearer_token("Basic abc") is None
        assert extract_bearer_token(None) is None
