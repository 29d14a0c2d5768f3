"""Pydantic models for session REST bodies and inbound WebSocket frames."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class CreateSessionRequest(BaseModel):
    """POST /api/sessions/create request body."""

    model_config = ConfigDict(populate_by_name=True)

    host_name: str = Field(alias="hostName")


class JoinSessionRequest(BaseModel):
    """POST /api/sessions/join request body."""

    model_config = ConfigDict(populate_by_name=True)

    session_code: str = Field(alias="sessionCode")
    username: str


class ClientEvent(BaseModel):
    """One client frame: {"type": ..., "payload": {...}}."""

    type: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)


class ChatMessagePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str | None = None
    message: str | None = None

    @property
    def body(self) -> str:
        if self.text is not None:
            return self.text
        return self.message or ""


class KickPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_user_id: str = Field(alias="targetUserId")
