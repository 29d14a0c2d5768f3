"""WebSocket wire protocol helpers."""

from __future__ import annotations

import json
from typing import Any

WS_PROTOCOL_VERSION = 1

CLOSE_NORMAL = 1000
CLOSE_UNAUTHORIZED = 4401
CLOSE_KICKED = 4403
CLOSE_NOT_FOUND = 4404
CLOSE_HEARTBEAT_TIMEOUT = 4408
CLOSE_FULL = 4409
CLOSE_ENDED = 4410
CLOSE_SUPERSEDED = 4003

# Server -> client event names.
SESSION_STATE = "session-state"
MEMBER_JOINED = "member-joined"
MEMBER_LEFT = "member-left"
HOST_LEFT = "host-left"
SESSION_ENDED = "session-ended"
SESSION_EXPIRED = "session-expired"
CHAT_MESSAGE = "chat-message"
TYPING_START = "typing-start"
TYPING_STOP = "typing-stop"
KICKED = "kicked"
ERROR = "error"

# Client -> server event names.
HOST_LEAVE = "host-leave"
SESSION_END = "session-end"
KICK = "kick"
MEMBER_LEAVE = "member-leave"


def ws_event(event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {"v": WS_PROTOCOL_VERSION, "type": event_type, "payload": payload}


async def ws_send_event(websocket: Any, event_type: str, payload: dict[str, Any]) -> None:
    message = ws_event(event_type, payload)
    if hasattr(websocket, "send_json"):
        await websocket.send_json(message)
        return
    if hasattr(websocket, "send_text"):
        await websocket.send_text(json.dumps(message))
