"""
Todo Backend — Mock Token Tests
================================

What:  Generation and decoding of `mock.<userId>.<base64 JSON>` tokens.
"""

import base64
import json
import time

from todo_backend.auth.mock import (
    MOCK_TOKEN_TTL_SECONDS,
    MOCK_USERS,
    decode_mock_token,
    generate_all_mock_tokens,
    generate_mock_token,
)


def _encode(payload: dict) -> str:
    return base64.b64encode(json.dumps(payload).encode()).decode()


class TestGenerate:

    def test_token_shape(self):
        token = generate_mock_token(MOCK_USERS["test_user_1"], now=1_700_000_000)
        tag, user_id, encoded = token.split(".")

        payload = json.loads(base64.b64decode(encoded))
        assert tag == "mock"
        assert user_id == "test-user-1"
        assert payload["sub"] == "test-user-1"
        assert payload["email"] == "test1@example.com"
        assert payload["exp"] - payload["iat"] == MOCK_TOKEN_TTL_SECONDS

    def test_all_identities_get_a_token(self):
        tokens = generate_all_mock_tokens()

        assert set(tokens) == {"test_user_1", "test_user_2", "anonymous"}
        assert all(t.startswith("mock.") for t in tokens.values())

    def test_predefined_identities(self):
        assert MOCK_USERS["test_user_2"].first_name == "Second"
        assert MOCK_USERS["test_user_2"].last_name == "Tester"
        assert MOCK_USERS["test_user_2"].is_anonymous is False
        assert MOCK_USERS["anonymous"].user_id == "test-anonymous-user"
        assert MOCK_USERS["anonymous"].is_anonymous is True


class TestDecode:

    def test_generated_token_decodes_to_identity(self):
        user = decode_mock_token(generate_mock_token(MOCK_USERS["test_user_1"]))

        assert user == MOCK_USERS["test_user_1"]

    def test_anonymous_identity_stays_anonymous(self):
        user = decode_mock_token(generate_mock_token(MOCK_USERS["anonymous"]))

        assert user.user_id == "test-anonymous-user"
        assert user.is_anonymous is True

    def test_expired_token_is_not_a_mock_token(self):
        issued = time.time() - 2 * MOCK_TOKEN_TTL_SECONDS
        token = generate_mock_token(MOCK_USERS["test_user_1"], now=issued)

        assert decode_mock_token(token) is None

    def test_zero_exp_means_no_expiry(self):
        token = "mock.u-0." + _encode({"sub": "u-0", "iat": 0, "exp": 0})

        user = decode_mock_token(token, now=1_700_000_000)

        assert user is not None
        assert user.user_id == "u-0"

    def test_sub_falls_back_to_middle_field(self):
        token = "mock.fallback-user." + _encode({"email": "f@example.com"})

        user = decode_mock_token(token)

        assert user.user_id == "fallback-user"
        assert user.email == "f@example.com"
        assert user.is_anonymous is False

    def test_url_safe_unpadded_payload_accepted(self):
        encoded = base64.urlsafe_b64encode(json.dumps({"sub": "u-1"}).encode()).decode().rstrip("=")

        assert decode_mock_token(f"mock.u-1.{encoded}").user_id == "u-1"

    def test_malformed_tokens_are_rejected(self):
        good_payload = _encode({"sub": "x"})
        for token in (
            "",
            "mock",
            "mock.x",
            f"notmock.x.{good_payload}",
            f"mock.x.{good_payload}.extra",
            "mock.x.%%%not-base64%%%",
            "mock.x." + base64.b64encode(b"not json").decode(),
            "mock.x." + _encode(["a", "list"]),
            "eyJhbGciOiJSUzI1NiJ9.eyJzdWIiOiJ4In0.c2ln",
        ):
            assert decode_mock_token(token) is None, token

    def test_missing_identity_is_rejected(self):
        assert decode_mock_token("mock.." + _encode({})) is None
