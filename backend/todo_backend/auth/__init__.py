"""
Authentication: resolves every request to a User.

    AuthResolver        — cookie / mock token / JWKS-verified JWT decision flow
    JWKSKeyResolver     — remote signing-key cache + signature verification
    MockBearerVerifier  — development/test tokens for predefined identities
"""

from todo_backend.auth.keys import JWKSKeyResolver, KeyResolver
from todo_backend.auth.resolver import (
    AuthResolver,
    AuthResult,
    BearerVerifier,
    JWKSBearerVerifier,
    MockBearerVerifier,
    build_bearer_verifier,
)

__all__ = [
    "AuthResolver",
    "AuthResult",
    "BearerVerifier",
    "JWKSBearerVerifier",
    "JWKSKeyResolver",
    "KeyResolver",
    "MockBearerVerifier",
    "build_bearer_verifier",
]
