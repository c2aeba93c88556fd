"""
Bearer auth gate.

``require_identity`` is a FastAPI dependency meant to be attached at router
level (``APIRouter(dependencies=[Depends(require_identity)])``) so every route
on that router is gated the same way. FastAPI resolves router dependencies
before body validation and before the handler's own dependencies, so a
rejected request never reaches validation or the store.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status  # pyright: ignore[reportMissingImports]
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer  # pyright: ignore[reportMissingImports]
from prometheus_client import Counter  # pyright: ignore[reportMissingImports]

from ..errors import InvalidTokenError
from .verifier import Identity, TokenVerifier

logger = logging.getLogger(__name__)

AUTH_REJECTIONS = Counter(
    "taskcore_auth_rejections_total", "Requests rejected by the bearer gate", ["reason"]
)

# auto_error=False: we want our own 401 body rather than FastAPI's 403.
bearer_scheme = HTTPBearer(auto_error=False, description="Bearer token issued by the auth service")


def _unauthorized(reason: str, detail: str) -> HTTPException:
    AUTH_REJECTIONS.labels(reason).inc()
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token_verifier(request: Request) -> TokenVerifier:
    """The verifier built at startup; override this dependency in tests."""
    verifier = getattr(request.app.state, "token_verifier", None)
    if verifier is None:
        raise RuntimeError("No token verifier configured on app.state")
    return verifier


async def require_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> Identity:
    if credentials is None:
        # HTTPBearer yields None both for a missing header and a non-Bearer scheme
        reason = "missing" if "authorization" not in request.headers else "malformed"
        logger.warning("Rejected %s %s: %s credentials", request.method, request.url.path, reason)
        raise _unauthorized(reason, "No token, authorization denied")

    try:
        identity = await verifier.verify(credentials.credentials)
    except InvalidTokenError as exc:
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        raise _unauthorized("invalid", "Token is not valid")

    request.state.identity = identity
    return identity
