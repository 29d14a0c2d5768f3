"""Dependency helpers shared by API routers."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone

from fastapi import Header

import huddle.runtime as runtime
from huddle.core.tokens import SessionClaims
from huddle.core.tokens import SessionTokenExpiredError
from huddle.core.tokens import SessionTokenInvalidError
from huddle.core.tokens import verify_session_token
from huddle.sessions.errors import SessionAuthError
from huddle.sessions.errors import SessionAuthExpiredError


def verify_token(token: str) -> SessionClaims:
    """Verify a session token against the runtime signing key.

    Raises SessionAuthError (or SessionAuthExpiredError) so both the REST and
    the WebSocket edge can map the failure their own way.
    """
    try:
        return verify_session_token(
            token,
            secret=runtime.settings.huddle_jwt_secret,
            now=datetime.now(timezone.utc),
        )
    except SessionTokenExpiredError as exc:
        raise SessionAuthExpiredError("session token expired") from exc
    except SessionTokenInvalidError as exc:
        raise SessionAuthError("invalid session token") from exc


def require_claims(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> SessionClaims:
    """Read and validate Bearer session token from Authorization header."""
    if authorization is None:
        raise SessionAuthError("missing Authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise SessionAuthError("Authorization header must be a Bearer token")
    return verify_token(token)
