"""Session REST routes: create, join, info."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
import logging

from fastapi import APIRouter
from fastapi import Header

import huddle.runtime as runtime
from huddle.api.deps import require_claims
from huddle.api.errors import raise_session_error
from huddle.api.session_views import session_info
from huddle.core.tokens import issue_session_token
from huddle.sessions.errors import CodeGenerationExhaustedError
from huddle.sessions.errors import SessionAuthError
from huddle.sessions.errors import SessionEndedError
from huddle.sessions.errors import SessionFullError
from huddle.sessions.errors import SessionNotFoundError
from huddle.sessions.errors import SessionValidationError
from huddle.sessions.registry import SessionIdentity
from huddle.sessions.schemas import CreateSessionRequest
from huddle.sessions.schemas import JoinSessionRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def _issue_token(identity: SessionIdentity) -> str:
    settings = runtime.settings
    return issue_session_token(
        secret=settings.huddle_jwt_secret,
        user_id=identity.user_id,
        username=identity.username,
        session_code=identity.session_code,
        is_host=identity.is_host,
        now=datetime.now(timezone.utc),
        expires_in_seconds=settings.huddle_token_expire_seconds,
    )


@router.post("/api/sessions/create")
def create_session(payload: CreateSessionRequest) -> dict[str, object]:
    """Create a session with the caller as host."""
    try:
        identity = runtime.session_registry.create(payload.host_name)
    except SessionValidationError as exc:
        raise_session_error(exc, detail={"field": "hostName"})
    except CodeGenerationExhaustedError as exc:
        logger.error("session creation failed: %s", exc)
        raise_session_error(exc)

    return {
        "sessionCode": identity.session_code,
        "token": _issue_token(identity),
        "userId": identity.user_id,
        "isHost": True,
    }


@router.post("/api/sessions/join")
def join_session(payload: JoinSessionRequest) -> dict[str, object]:
    """Mint a guest identity for an existing session."""
    code = payload.session_code.strip().upper()
    try:
        identity = runtime.session_registry.join(code, payload.username)
    except SessionValidationError as exc:
        raise_session_error(exc, detail={"field": "username"})
    except (SessionNotFoundError, SessionEndedError, SessionFullError) as exc:
        raise_session_error(exc, detail={"sessionCode": code})

    return {
        "sessionCode": identity.session_code,
        "token": _issue_token(identity),
        "userId": identity.user_id,
        "isHost": False,
        "hostName": identity.host_name,
        "status": identity.status,
    }


@router.get("/api/sessions/{code}")
def get_session_info(
    code: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Return one session's public info for any valid token holder."""
    try:
        require_claims(authorization)
        session = runtime.session_registry.lookup(code)
    except SessionAuthError as exc:
        raise_session_error(exc)
    except SessionNotFoundError as exc:
        raise_session_error(exc, detail={"sessionCode": code.upper()})
    return session_info(session)


@router.get("/api/health")
def health() -> dict[str, object]:
    return {"status": "ok", "sessions": len(runtime.session_registry)}
