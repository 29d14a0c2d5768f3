"""WebSocket route handler for the session channel."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import WebSocket

import huddle.runtime as runtime
from huddle.api.deps import verify_token
from huddle.sessions.errors import SessionAuthError

from .handler import SessionConnection
from .protocol import CLOSE_UNAUTHORIZED

router = APIRouter()


async def close_ws_unauthorized(websocket: WebSocket) -> None:
    """Close websocket with unified unauthorized semantics."""
    await websocket.accept()
    await websocket.close(code=CLOSE_UNAUTHORIZED, reason="UNAUTHORIZED")


@router.websocket("/ws/session")
async def ws_session(websocket: WebSocket) -> None:
    """Session websocket: auth + attach + session-state snapshot + room events."""
    token = websocket.query_params.get("token")
    if token is None or token == "":
        await close_ws_unauthorized(websocket)
        return

    try:
        claims = verify_token(token)
    except SessionAuthError:
        await close_ws_unauthorized(websocket)
        return

    connection = SessionConnection(
        websocket,
        claims=claims,
        registry=runtime.session_registry,
        scheduler=runtime.cleanup_scheduler,
        settings=runtime.settings,
    )
    await connection.run()
