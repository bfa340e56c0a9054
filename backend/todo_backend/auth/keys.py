"""
Todo Backend — JWKS Key Resolution & JWT Verification
=======================================================

What:  Fetches the identity provider's signing keys (JWKS), caches them and
       verifies bearer JWTs against them.
How:   Keys are fetched with httpx on first use, cached by key id (`kid`)
       and refreshed when the TTL expires or an unknown `kid` shows up
       (key rotation). Signatures, expiry and issuer (plus audience, when
       configured) are checked with python-jose.
Who:   Constructed once by the app factory (`build_key_resolver`) and
       injected into JWKSBearerVerifier. Closed in the app lifespan.

Supported algorithms: RS256 (RSA keys), ES256 (EC keys).
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Protocol

import httpx
from jose import JWTError, jwk, jwt
from jose.backends.base import Key
from jose.exceptions import JOSEError

from todo_backend.config import Settings

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ["RS256", "ES256"]


class KeyResolver(Protocol):
    """Anything that can turn a bearer token into verified claims."""

    async def verify(self, token: str) -> Dict[str, Any]:
        """Return the verified claim set or raise jose.JWTError."""
        ...

    async def close(self) -> None:
        ...


class JWKSKeyResolver:
    """
    JWKS-backed token verifier with an in-memory key cache.

    Attributes:
        jwks_uri:   URL of the JSON Web Key Set
        issuer:     expected `iss` claim (None skips the check)
        audience:   expected `aud` claim (None skips the check)
        cache_ttl:  seconds before cached keys are refetched
        leeway:     clock skew tolerance in seconds

    Example:
        >>> resolver = JWKSKeyResolver("https://id.example.com/.well-known/jwks.json",
        ...                            issuer="https://id.example.com")
        >>> claims = await resolver.verify(token)
        >>> claims["sub"]
    """

    def __init__(
        self,
        jwks_uri: str,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        cache_ttl: int = 3600,
        leeway: int = 10,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.jwks_uri = jwks_uri
        self.issuer = issuer or None
        self.audience = audience or None
        self.cache_ttl = cache_ttl
        self.leeway = leeway
        self._keys: Dict[str, Key] = {}
        self._last_refresh: Optional[float] = None
        self._refresh_lock = asyncio.Lock()
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, connect=5.0)
        )

    async def verify(self, token: str) -> Dict[str, Any]:
        """
        Verify a JWT and return its claims.

        Steps:
            1. Read `kid` from the unverified header
            2. Look the signing key up in the cache (refreshing if needed)
            3. Check signature, exp / nbf / iat, issuer and audience

        Raises:
            JWTError: malformed token, unknown key, bad signature, expired,
                      wrong issuer or audience
            httpx.HTTPError: the JWKS endpoint could not be reached
        """
        header = jwt.get_unverified_header(token)
        kid = header.get("kid")
        if not kid:
            raise JWTError("JWT header missing 'kid' (key ID)")

        signing_key = await self.get_signing_key(kid)

        claims = jwt.decode(
            token,
            signing_key,
            algorithms=SUPPORTED_ALGORITHMS,
            audience=self.audience,
            issuer=self.issuer,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_nbf": True,
                "verify_iat": True,
                "verify_iss": self.issuer is not None,
                "verify_aud": self.audience is not None,
                "leeway": self.leeway,
            },
        )

        logger.debug(
            "JWT verified",
            extra={"user_id": claims.get("sub"), "kid": kid, "exp": claims.get("exp")},
        )
        return claims

    async def get_signing_key(self, kid: str) -> Key:
        """
        Return the public key for `kid`.

        Refreshes the cache when it is stale, and once more when the key id
        is unknown (the provider may have rotated keys).

        Raises:
            JWTError: key id still unknown after refresh, or the JWKS body
                      is not a key set
        """
        if self._needs_refresh():
            await self.refresh_keys()

        key = self._keys.get(kid)
        if key is None:
            logger.warning(
                "Key ID '%s' not in cache, refreshing JWKS",
                kid,
                extra={"kid": kid, "cached_kids": list(self._keys)},
            )
            await self.refresh_keys()
            key = self._keys.get(kid)

        if key is None:
            raise JWTError(f"Key ID '{kid}' not found in JWKS")
        return key

    async def refresh_keys(self) -> None:
        """
        Fetch the JWKS and replace the cache.

        Keys without a `kid` are skipped. The new key map is swapped in as a
        whole, so concurrent readers see either the old or the new set.
        """
        async with self._refresh_lock:
            logger.info("Fetching JWKS from %s", self.jwks_uri)
            try:
                response = await self._http_client.get(self.jwks_uri)
                response.raise_for_status()
                document = response.json()
            except httpx.HTTPError as e:
                logger.error(
                    "Failed to fetch JWKS from %s: %s",
                    self.jwks_uri,
                    e,
                    extra={"error_type": "jwks_fetch_failed"},
                )
                raise
            except ValueError as e:
                logger.error(
                    "JWKS response from %s is not JSON: %s",
                    self.jwks_uri,
                    e,
                    extra={"error_type": "jwks_malformed"},
                )
                raise JWTError("JWKS response is not valid JSON") from e

            keys_list = document.get("keys", []) if isinstance(document, dict) else None
            if not isinstance(keys_list, list):
                logger.error(
                    "JWKS response from %s has no 'keys' list",
                    self.jwks_uri,
                    extra={"error_type": "jwks_malformed"},
                )
                raise JWTError("JWKS response is not a key set")

            new_keys: Dict[str, Key] = {}
            for key_data in keys_list:
                if not isinstance(key_data, dict):
                    logger.warning("JWKS entry is not an object, skipping")
                    continue
                kid = key_data.get("kid")
                if not kid:
                    logger.warning("JWKS key missing 'kid', skipping")
                    continue

                kty = key_data.get("kty")
                if kty == "EC":
                    algorithm = "ES256"
                elif kty == "RSA":
                    algorithm = "RS256"
                else:
                    algorithm = key_data.get("alg", "RS256")

                try:
                    new_keys[kid] = jwk.construct(key_data, algorithm=algorithm)
                except JOSEError as e:
                    logger.warning("Skipping unusable JWKS key %s: %s", kid, e)

            if not new_keys:
                logger.warning(
                    "JWKS response contains no usable keys; token verification will fail",
                    extra={"jwks_uri": self.jwks_uri},
                )

            self._keys = new_keys
            self._last_refresh = time.monotonic()
            logger.info(
                "JWKS cache refreshed",
                extra={"key_count": len(new_keys), "key_ids": list(new_keys)},
            )

    def _needs_refresh(self) -> bool:
        if self._last_refresh is None:
            return True
        return time.monotonic() - self._last_refresh >= self.cache_ttl

    async def close(self) -> None:
        await self._http_client.aclose()
        logger.info("JWKS client closed")


def build_key_resolver(app_settings: Settings) -> Optional[JWKSKeyResolver]:
    """
    Create the process-wide key resolver, or None when JWKS_URI is unset.

    With no resolver, bearer tokens that are not mock tokens fail with a
    ConfigurationError; cookie-based anonymous users are unaffected.
    """
    if not app_settings.jwks_configured:
        logger.info("JWKS not configured: JWT verification disabled, anonymous mode only")
        return None

    logger.info("JWKS configured for JWT verification: %s", app_settings.jwks_uri)
    return JWKSKeyResolver(
        jwks_uri=app_settings.jwks_uri.strip(),
        issuer=app_settings.jwt_issuer,
        audience=app_settings.jwt_audience,
        cache_ttl=app_settings.jwks_cache_ttl_seconds,
        leeway=app_settings.jwt_leeway_seconds,
    )
