"""JWT session credentials: the identity claims a connection presents."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any

import jwt

ALGORITHM = "HS256"
DEFAULT_TOKEN_EXPIRE_SECONDS = 24 * 60 * 60


class SessionTokenError(ValueError):
    """Base session token error."""


class SessionTokenInvalidError(SessionTokenError):
    """Raised when a token cannot be decoded or its claims are malformed."""


class SessionTokenExpiredError(SessionTokenError):
    """Raised when a token is past its validity window."""


@dataclass(frozen=True, slots=True)
class SessionClaims:
    """Verified identity carried by a session token."""

    user_id: str
    username: str
    session_code: str
    is_host: bool
    exp: int


def issue_session_token(
    *,
    secret: str,
    user_id: str,
    username: str,
    session_code: str,
    is_host: bool,
    now: datetime,
    expires_in_seconds: int = DEFAULT_TOKEN_EXPIRE_SECONDS,
) -> str:
    """Sign claims {userId, username, sessionCode, isHost} with an exp."""
    exp = int((now + timedelta(seconds=expires_in_seconds)).timestamp())
    payload = {
        "userId": user_id,
        "username": username,
        "sessionCode": session_code,
        "isHost": is_host,
        "exp": exp,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_session_token(token: str, *, secret: str, now: datetime) -> SessionClaims:
    """Decode and validate a session token."""
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"verify_exp": False},
        )
    except jwt.InvalidTokenError as exc:
        raise SessionTokenInvalidError("invalid session token") from exc

    exp = payload.get("exp")
    if not isinstance(exp, int):
        raise SessionTokenInvalidError("missing or invalid exp")

    now_ts = int(now.astimezone(timezone.utc).timestamp())
    if now_ts >= exp:
        raise SessionTokenExpiredError("session token expired")

    user_id = payload.get("userId")
    username = payload.get("username")
    session_code = payload.get("sessionCode")
    is_host = payload.get("isHost")
    if not isinstance(user_id, str) or not user_id:
        raise SessionTokenInvalidError("missing or invalid userId")
    if not isinstance(username, str) or not username:
        raise SessionTokenInvalidError("missing or invalid username")
    if not isinstance(session_code, str) or not session_code:
        raise SessionTokenInvalidError("missing or invalid sessionCode")
    if not isinstance(is_host, bool):
        raise SessionTokenInvalidError("missing or invalid isHost")

    return SessionClaims(
        user_id=user_id,
        username=username,
        session_code=session_code.upper(),
        is_host=is_host,
        exp=exp,
    )
