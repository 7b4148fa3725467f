"""Security dependencies: purchaser sessions, staff API keys and scopes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Set

import jwt
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from eventory.config import get_settings
from eventory.db import get_db
from eventory.models.api_key import ApiKey, ApiScope
from eventory.utils.apikey import find_valid_key
from eventory.utils.errors import error_response
from eventory.utils.time import utcnow

logger = logging.getLogger(__name__)


def _bearer(authorization: str | None) -> str | None:
    if authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
        return token or None
    return None


@dataclass(frozen=True)
class SessionUser:
    """Purchaser identity taken from a verified session token."""

    id: str
    email: str | None = None


def require_session_user(authorization: str | None = Header(default=None)) -> SessionUser:
    """Verify the purchaser's session JWT and return who they are."""

    token = _bearer(authorization)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("AUTH_REQUIRED", "Authentication required."),
        )

    settings = get_settings()
    if not settings.SESSION_JWT_SECRET:
        logger.error("SESSION_JWT_SECRET is not configured; rejecting session token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("INVALID_SESSION", "Invalid session."),
        )

    try:
        claims = jwt.decode(
            token,
            settings.SESSION_JWT_SECRET,
            algorithms=[settings.SESSION_JWT_ALGORITHM],
            audience=settings.SESSION_JWT_AUDIENCE,
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as exc:
        logger.info("Session token rejected", extra={"reason": type(exc).__name__})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("INVALID_SESSION", "Invalid session."),
        )

    subject = str(claims["sub"]).strip().lower()
    email = claims.get("email")
    return SessionUser(id=subject, email=email if isinstance(email, str) else None)


def _extract_key(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> str | None:
    """Read the key from ``X-API-Key`` or ``Authorization: Bearer``."""
    if x_api_key:
        return x_api_key.strip()
    return _bearer(authorization)


def require_api_key(
    db: Session = Depends(get_db),
    token: str | None = Depends(_extract_key),
) -> ApiKey:
    """Validate API key tokens and return the corresponding row."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("NO_API_KEY", "API key required."),
        )

    key = find_valid_key(db, token)
    if key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("UNAUTHORIZED", "Invalid or expired API key"),
        )

    key.last_used_at = utcnow()
    db.commit()
    return key


def require_scope(allowed: Set[ApiScope]) -> Callable:
    """Enforce that a key carries one of the allowed scopes (admin always passes)."""

    if not allowed:
        raise RuntimeError("require_scope needs a non-empty set of ApiScope")

    def _dep(key: ApiKey = Depends(require_api_key)) -> ApiKey:
        if key.scope == ApiScope.admin or key.scope in allowed:
            return key
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_response(
                "INSUFFICIENT_SCOPE",
                f"Requires one of: {sorted(scope.value for scope in allowed)}",
            ),
        )

    return _dep


__all__ = ["SessionUser", "require_api_key", "require_scope", "require_session_user"]
