from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Any

import httpx
from jose import JWTError, jwt

from app.models.user import UserRole

logger = logging.getLogger(__name__)

ALGORITHMS_BY_KEY_TYPE = {
    "RSA": ("RS256", "RS384", "RS512"),
    "EC": ("ES256", "ES384", "ES512"),
    "oct": ("HS256", "HS384", "HS512"),
}
CUSTOM_ROLES = frozenset(role.value for role in UserRole)


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    email: str | None
    roles: frozenset[str] = field(default_factory=frozenset)
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    def has_any_role(self, *roles: UserRole | str) -> bool:
        wanted = {role.value if isinstance(role, UserRole) else role for role in roles}
        return bool(self.roles & wanted)


class JWKSCache:
    """Per-URL cache of identity-provider signing keys, refreshed after ``ttl_seconds``."""

    def __init__(
        self,
        *,
        ttl_seconds: int = 300,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._client = httpx.Client(timeout=timeout_seconds, transport=transport)
        self._entries: dict[str, tuple[float, list[dict]]] = {}
        self._lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_keys(self, url: str, *, force: bool = False) -> list[dict]:
        now = time.monotonic()
        with self._lock:
            cached = self._entries.get(url)
        if cached is not None and not force and cached[0] > now:
            return cached[1]

        try:
            response = self._client.get(url)
            response.raise_for_status()
            keys = list(response.json().get("keys") or [])
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("JWKS fetch from %s failed: %s", url, exc)
            if cached is not None:
                return cached[1]
            raise JWTError("Signing keys unavailable") from exc

        with self._lock:
            self._entries[url] = (now + self._ttl_seconds, keys)
        logger.info("JWKS loaded from %s (kids=%s)", url, [key.get("kid") for key in keys])
        return keys

    def find_key(self, url: str, kid: str | None) -> dict | None:
        keys = self.get_keys(url)
        key = _select_key(keys, kid)
        if key is None and kid is not None:
            # Unknown kid usually means the realm rotated its keys.
            key = _select_key(self.get_keys(url, force=True), kid)
        return key


def _select_key(keys: list[dict], kid: str | None) -> dict | None:
    if kid is None:
        return keys[0] if len(keys) == 1 else None
    return next((key for key in keys if key.get("kid") == kid), None)


def extract_roles(claims: dict[str, Any]) -> frozenset[str]:
    realm_roles = (claims.get("realm_access") or {}).get("roles") or []
    return frozenset(role for role in realm_roles if role in CUSTOM_ROLES)


def decode_token(token: str, *, issuer: str, jwks_url: str, jwks_cache: JWKSCache) -> TokenClaims:
    """Validate ``token`` against the realm's keys; raises ``JWTError`` on any failure."""
    header = jwt.get_unverified_header(token)
    key = jwks_cache.find_key(jwks_url, header.get("kid"))
    if key is None:
        raise JWTError("Unknown signing key")

    algorithm = header.get("alg")
    if algorithm not in ALGORITHMS_BY_KEY_TYPE.get(key.get("kty"), ()):
        raise JWTError(f"Algorithm {algorithm!r} does not match the signing key")

    claims = jwt.decode(
        token,
        key,
        algorithms=[algorithm],
        issuer=issuer,
        options={"verify_aud": False},
    )
    subject = claims.get("sub")
    if not subject:
        raise JWTError("Token has no subject")
    return TokenClaims(subject=subject, email=claims.get("email"), roles=extract_roles(claims), raw=claims)
