"""Per-connection actor bound to one session for its whole lifetime."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from collections.abc import Callable
import logging
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError

from huddle.api.session_views import member_event
from huddle.api.session_views import message_detail
from huddle.api.session_views import session_state
from huddle.core.config import Settings
from huddle.core.tokens import SessionClaims
from huddle.sessions.cleanup import CleanupScheduler
from huddle.sessions.errors import HostOnlyError
from huddle.sessions.errors import InvalidTargetError
from huddle.sessions.errors import MemberNotFoundError
from huddle.sessions.errors import SessionError
from huddle.sessions.errors import SessionNotFoundError
from huddle.sessions.errors import SessionValidationError
from huddle.sessions.models import STATUS_ENDED
from huddle.sessions.models import Session
from huddle.sessions.models import now_ms
from huddle.sessions.registry import SessionRegistry
from huddle.sessions.schemas import ChatMessagePayload
from huddle.sessions.schemas import ClientEvent
from huddle.sessions.schemas import KickPayload

from . import protocol
from .broadcast import broadcast_to_room
from .heartbeat import ws_message_loop

logger = logging.getLogger(__name__)

EventHandler = Callable[[Session, dict[str, Any]], Awaitable[bool]]


def _parse_payload(model: type[BaseModel], payload: dict[str, Any]) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise SessionValidationError("malformed event payload") from exc


class SessionConnection:
    """Authenticated socket attached to one session.

    Every session mutation runs under ``session.lock``. Once ``_detached`` is
    set (own disconnect, leave, kick, eviction or supersede) the connection
    processes no more events and its disconnect path is a no-op, which makes
    teardown happen exactly once.
    """

    def __init__(
        self,
        websocket: Any,
        *,
        claims: SessionClaims,
        registry: SessionRegistry,
        scheduler: CleanupScheduler,
        settings: Settings,
    ) -> None:
        self.websocket = websocket
        self.claims = claims
        self.session: Session | None = None
        self._registry = registry
        self._scheduler = scheduler
        self._settings = settings
        self._detached = False
        self._stalled = False
        self._handlers: dict[str, EventHandler] = {
            protocol.CHAT_MESSAGE: self._on_chat_message,
            protocol.TYPING_START: self._on_typing_start,
            protocol.TYPING_STOP: self._on_typing_stop,
            protocol.HOST_LEAVE: self._on_host_leave,
            protocol.SESSION_END: self._on_session_end,
            protocol.KICK: self._on_kick,
            protocol.MEMBER_LEAVE: self._on_member_leave,
        }

    @property
    def user_id(self) -> str:
        return self.claims.user_id

    @property
    def username(self) -> str:
        return self.claims.username

    @property
    def is_host(self) -> bool:
        return self.claims.is_host

    @property
    def detached(self) -> bool:
        return self._detached

    def mark_detached(self) -> None:
        self._detached = True

    async def send(self, event_type: str, payload: dict[str, Any]) -> bool:
        """Deliver one event within the send deadline; False if dropped.

        A peer that does not drain its socket within the deadline is marked
        stalled and closed; its own disconnect path then removes it.
        """
        if self._stalled:
            return False
        try:
            await asyncio.wait_for(
                protocol.ws_send_event(self.websocket, event_type, payload),
                timeout=self._settings.huddle_heartbeat_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._stalled = True
            logger.warning("user %s stopped reading; closing socket", self.user_id)
            await self.close(code=protocol.CLOSE_HEARTBEAT_TIMEOUT, reason="SEND_TIMEOUT")
            return False
        except Exception:
            logger.debug("dropping %s for user %s: send failed", event_type, self.user_id, exc_info=True)
            return False
        return True

    async def close(self, *, code: int, reason: str) -> None:
        try:
            await asyncio.wait_for(
                self.websocket.close(code=code, reason=reason),
                timeout=self._settings.huddle_heartbeat_timeout_seconds,
            )
        except Exception:
            logger.debug("close(%s) for user %s failed", code, self.user_id, exc_info=True)

    async def send_error(self, code: str, message: str) -> None:
        await self.send(protocol.ERROR, {"code": code, "message": message})

    async def run(self) -> None:
        """Attach to the claimed session, pump events, then tear down."""
        try:
            session = self._registry.lookup(self.claims.session_code)
        except SessionNotFoundError:
            await self.websocket.accept()
            await self.close(code=protocol.CLOSE_NOT_FOUND, reason="SESSION_NOT_FOUND")
            return

        await self.websocket.accept()
        if not await self.attach(session):
            return

        try:
            await ws_message_loop(
                self.websocket,
                on_message=self.handle_text,
                token_expire_epoch_value=self.claims.exp,
                heartbeat_interval_seconds=self._settings.huddle_heartbeat_interval_seconds,
                heartbeat_timeout_seconds=self._settings.huddle_heartbeat_timeout_seconds,
            )
        finally:
            await self.disconnect()

    async def attach(self, session: Session) -> bool:
        async with session.lock:
            if self._registry.get(session.code) is not session:
                await self.close(code=protocol.CLOSE_NOT_FOUND, reason="SESSION_NOT_FOUND")
                return False
            if session.status == STATUS_ENDED:
                await self.close(code=protocol.CLOSE_ENDED, reason="SESSION_ENDED")
                return False
            if self.user_id in session.removed:
                await self.close(code=protocol.CLOSE_KICKED, reason="KICKED")
                return False

            existing = session.find_member(self.user_id)
            if existing is None and len(session.members) >= self._registry.max_members:
                await self.close(code=protocol.CLOSE_FULL, reason="SESSION_FULL")
                return False

            self._scheduler.cancel_empty_grace(session)
            previous = existing.connection if existing is not None else None
            member, joined = session.attach(
                user_id=self.user_id,
                username=self.username,
                is_host=self.is_host,
                connection=self,
            )
            self.session = session

            if previous is not None and previous is not self:
                previous.mark_detached()
                await previous.close(code=protocol.CLOSE_SUPERSEDED, reason="SUPERSEDED")
            if joined:
                await broadcast_to_room(
                    session,
                    protocol.MEMBER_JOINED,
                    member_event(member, timestamp=member.joined_at),
                    exclude=self,
                )
            await self.send(protocol.SESSION_STATE, session_state(session))

        logger.info(
            "user %s %s session %s",
            self.username,
            "joined" if joined else "reconnected to",
            session.code,
        )
        return True

    async def handle_text(self, message: str) -> bool:
        """Apply one client frame; returns False once this connection is done."""
        session = self.session
        if session is None or self._detached:
            return False

        try:
            event = ClientEvent.model_validate_json(message)
        except ValidationError:
            await self.send_error(SessionValidationError.code, "malformed event")
            return True

        handler = self._handlers.get(event.type)
        if handler is None:
            await self.send_error(SessionValidationError.code, f"unknown event type: {event.type}")
            return True

        async with session.lock:
            if self._detached:
                return False
            try:
                return await handler(session, event.payload)
            except SessionError as exc:
                await self.send_error(exc.code, str(exc))
                return True
            except Exception:
                logger.exception(
                    "unexpected failure handling %s from user %s in session %s",
                    event.type,
                    self.user_id,
                    session.code,
                )
                await self.send_error("INTERNAL_ERROR", "internal error")
                return True

    async def disconnect(self) -> None:
        session = self.session
        if session is None or self._detached:
            return
        async with session.lock:
            await self.leave_locked(session)

    async def leave_locked(self, session: Session) -> None:
        """Detach, notify the room and arm the grace timer if it emptied."""
        if self._detached:
            return
        self._detached = True
        member = session.detach(self)
        if member is None:
            return

        timestamp = now_ms()
        await broadcast_to_room(session, protocol.MEMBER_LEFT, member_event(member, timestamp=timestamp))
        if member.is_host and session.mark_host_left():
            await broadcast_to_room(
                session,
                protocol.HOST_LEFT,
                {
                    "message": f"Host {member.username} has disconnected. The session will continue.",
                    "timestamp": timestamp,
                },
            )
        if session.is_empty and self._registry.get(session.code) is session:
            self._scheduler.arm_empty_grace(session)
        logger.info("user %s left session %s", member.username, session.code)

    def _require_host(self, action: str) -> None:
        if not self.is_host:
            raise HostOnlyError(f"only the host can {action}")

    async def _on_chat_message(self, session: Session, payload: dict[str, Any]) -> bool:
        data = _parse_payload(ChatMessagePayload, payload)
        message = session.append_message(
            user_id=self.user_id,
            username=self.username,
            text=data.body,
            max_length=self._settings.huddle_max_message_length,
        )
        await broadcast_to_room(session, protocol.CHAT_MESSAGE, message_detail(message))
        return True

    async def _on_typing_start(self, session: Session, payload: dict[str, Any]) -> bool:
        await broadcast_to_room(
            session,
            protocol.TYPING_START,
            {"userId": self.user_id, "username": self.username},
            exclude=self,
        )
        return True

    async def _on_typing_stop(self, session: Session, payload: dict[str, Any]) -> bool:
        await broadcast_to_room(
            session,
            protocol.TYPING_STOP,
            {"userId": self.user_id, "username": self.username},
            exclude=self,
        )
        return True

    async def _on_host_leave(self, session: Session, payload: dict[str, Any]) -> bool:
        self._require_host("leave as host")
        if session.mark_host_left():
            await broadcast_to_room(
                session,
                protocol.HOST_LEFT,
                {
                    "message": (
                        f"Host {self.username} has left the session. "
                        "The session will continue without the host."
                    ),
                    "timestamp": now_ms(),
                },
            )
            logger.info("host %s left session %s", self.username, session.code)
        return True

    async def _on_session_end(self, session: Session, payload: dict[str, Any]) -> bool:
        self._require_host("end the session")
        if session.end():
            await broadcast_to_room(
                session,
                protocol.SESSION_ENDED,
                {"message": "The session has been ended by the host", "timestamp": now_ms()},
            )
            self._scheduler.schedule_end(session)
            logger.info("session %s ended by host %s", session.code, self.username)
        return True

    async def _on_kick(self, session: Session, payload: dict[str, Any]) -> bool:
        self._require_host("remove members")
        data = _parse_payload(KickPayload, payload)
        target = session.find_member(data.target_user_id)
        if target is None:
            raise MemberNotFoundError(f"member {data.target_user_id} not found")
        if target.is_host:
            raise InvalidTargetError("the host cannot be removed")

        session.removed.add(target.user_id)
        connection = target.connection
        await connection.send(protocol.KICKED, {"message": "You have been removed from the session by the host"})
        await connection.leave_locked(session)
        await connection.close(code=protocol.CLOSE_KICKED, reason="KICKED")
        logger.info("host %s removed %s from session %s", self.username, target.username, session.code)
        return True

    async def _on_member_leave(self, session: Session, payload: dict[str, Any]) -> bool:
        await self.leave_locked(session)
        await self.close(code=protocol.CLOSE_NORMAL, reason="LEFT")
        return False


__all__ = ["SessionConnection"]
