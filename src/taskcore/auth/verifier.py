"""
Bearer token verification.

The gate only depends on the ``TokenVerifier`` protocol: anything with an
async ``verify(token) -> Identity`` that raises ``InvalidTokenError`` on
rejection can be plugged in (an OAuth introspection client, a JWKS-backed
JWT checker, ...). ``HmacTokenVerifier`` is the built-in implementation:
tokens are ``<b64url(payload)>.<b64url(HMAC-SHA256(payload))>`` where the
payload is a compact JSON object with ``sub``, ``iat`` and ``exp``.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

from ..config.auth_config import AuthConfig
from ..errors import InvalidTokenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The verified caller behind a bearer token."""
    subject: str
    claims: Dict[str, Any] = field(default_factory=dict)


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Identity: ...


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(segment: str) -> bytes:
    padded = segment + "=" * (-len(segment) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
        raise InvalidTokenError("Token is not valid base64url") from exc


class HmacTokenVerifier:
    """Issues and verifies HMAC-SHA256 signed bearer tokens with an expiry."""

    def __init__(
        self,
        secret: str,
        *,
        ttl_s: int = 3600,
        leeway_s: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("HmacTokenVerifier requires a non-empty secret")
        self._key = secret.encode("utf-8")
        self.ttl_s = ttl_s
        self.leeway_s = leeway_s
        self._clock = clock

    @classmethod
    def from_config(cls, config: Optional[AuthConfig] = None) -> "HmacTokenVerifier":
        config = config or AuthConfig()
        return cls(config.token_secret, ttl_s=config.token_ttl_s, leeway_s=config.leeway_s)

    def _sign(self, message: bytes) -> bytes:
        return hmac.new(self._key, message, hashlib.sha256).digest()

    def issue(self, subject: str, *, ttl_s: Optional[int] = None, claims: Optional[Dict[str, Any]] = None) -> str:
        """Mint a token for ``subject``. Extra claims cannot override sub/iat/exp."""
        if not subject:
            raise ValueError("subject must be non-empty")
        now = int(self._clock())
        payload = dict(claims or {})
        payload.update({"sub": subject, "iat": now, "exp": now + (self.ttl_s if ttl_s is None else ttl_s)})
        body = _b64encode(json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8"))
        return f"{body}.{_b64encode(self._sign(body.encode('ascii')))}"

    async def verify(self, token: str) -> Identity:
        parts = token.split(".")
        if len(parts) != 2 or not all(parts):
            raise InvalidTokenError("Malformed token")
        body, signature = parts

        expected = self._sign(body.encode("ascii", errors="replace"))
        if not hmac.compare_digest(expected, _b64decode(signature)):
            raise InvalidTokenError("Invalid token signature")

        try:
            payload = json.loads(_b64decode(body))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidTokenError("Token payload is not JSON") from exc
        if not isinstance(payload, dict):
            raise InvalidTokenError("Token payload is not an object")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError("Token has no subject")

        exp = payload.get("exp")
        if not isinstance(exp, int) or isinstance(exp, bool):
            raise InvalidTokenError("Token has no expiry")
        if self._clock() > exp + self.leeway_s:
            raise InvalidTokenError("Token has expired")

        claims = {k: v for k, v in payload.items() if k != "sub"}
        return Identity(subject=subject, claims=claims)
