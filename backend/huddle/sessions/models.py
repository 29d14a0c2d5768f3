"""In-memory session aggregate: status, membership and message log."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from dataclasses import field
import secrets
import time
from typing import Any

from huddle.sessions.errors import SessionValidationError

STATUS_ACTIVE = "active"
STATUS_HOST_LEFT = "host-left"
STATUS_ENDED = "ended"

MAX_MESSAGE_LENGTH = 500

# Allowed forward moves; anything else (including re-entry) is ignored.
_TRANSITIONS: dict[str, frozenset[str]] = {
    STATUS_ACTIVE: frozenset({STATUS_HOST_LEFT, STATUS_ENDED}),
    STATUS_HOST_LEFT: frozenset({STATUS_ENDED}),
    STATUS_ENDED: frozenset(),
}


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_message_id() -> str:
    return secrets.token_hex(4)


@dataclass(slots=True)
class Member:
    """One attached participant; `connection` is swapped on reconnect."""

    user_id: str
    username: str
    connection: Any
    joined_at: int
    is_host: bool = False


@dataclass(frozen=True, slots=True)
class Message:
    """Immutable chat log entry."""

    message_id: str
    user_id: str
    username: str
    text: str
    timestamp: int


@dataclass(eq=False, slots=True)
class Session:
    """Session aggregate state.

    All mutation happens while holding ``lock``; the registry never touches a
    session's fields, it only inserts and removes the whole object.
    """

    code: str
    host_id: str
    host_name: str
    created_at: int = field(default_factory=now_ms)
    status: str = STATUS_ACTIVE
    members: list[Member] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    removed: set[str] = field(default_factory=set)
    cleanup_task: asyncio.Task[Any] | None = field(default=None, repr=False)
    end_task: asyncio.Task[Any] | None = field(default=None, repr=False)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def find_member(self, user_id: str) -> Member | None:
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    def attach(
        self,
        *,
        user_id: str,
        username: str,
        is_host: bool,
        connection: Any,
    ) -> tuple[Member, bool]:
        """Attach a connection; returns (member, joined).

        A known user_id only has its connection replaced (reconnect), so
        ``joined`` is False and no join notice should go out.
        """
        existing = self.find_member(user_id)
        if existing is not None:
            existing.connection = connection
            return existing, False

        member = Member(
            user_id=user_id,
            username=username,
            connection=connection,
            joined_at=now_ms(),
            is_host=is_host,
        )
        self.members.append(member)
        return member, True

    def detach(self, connection: Any) -> Member | None:
        """Remove the member bound to ``connection``; None if nobody is."""
        for idx, member in enumerate(self.members):
            if member.connection is connection:
                return self.members.pop(idx)
        return None

    def append_message(
        self,
        *,
        user_id: str,
        username: str,
        text: str,
        max_length: int = MAX_MESSAGE_LENGTH,
    ) -> Message:
        if not isinstance(text, str) or not text.strip():
            raise SessionValidationError("message text is required")
        if len(text) > max_length:
            raise SessionValidationError(f"message text exceeds {max_length} characters")
        if self.status == STATUS_ENDED:
            raise SessionValidationError("session has ended")

        message = Message(
            message_id=generate_message_id(),
            user_id=user_id,
            username=username,
            text=text,
            timestamp=now_ms(),
        )
        self.messages.append(message)
        return message

    def transition(self, target: str) -> bool:
        """Move status forward; returns False (no-op) for re-entry or regression."""
        if target not in _TRANSITIONS[self.status]:
            return False
        self.status = target
        return True

    def mark_host_left(self) -> bool:
        return self.transition(STATUS_HOST_LEFT)

    def end(self) -> bool:
        return self.transition(STATUS_ENDED)

    @property
    def is_empty(self) -> bool:
        return not self.members

    def connections(self, *, exclude: Any = None) -> list[Any]:
        return [
            member.connection
            for member in self.members
            if member.connection is not None and member.connection is not exclude
        ]

    def cancel_timers(self) -> None:
        """Cancel the grace and end timers, skipping the task running this call."""
        for attr in ("cleanup_task", "end_task"):
            task = getattr(self, attr)
            setattr(self, attr, None)
            _cancel_unless_current(task)


def _cancel_unless_current(task: asyncio.Task[Any] | None) -> None:
    if task is None or task.done():
        return
    try:
        current = asyncio.current_task()
    except RuntimeError:
        current = None
    if task is not current:
        task.cancel()


__all__ = [
    "MAX_MESSAGE_LENGTH",
    "Member",
    "Message",
    "STATUS_ACTIVE",
    "STATUS_ENDED",
    "STATUS_HOST_LEFT",
    "Session",
    "generate_message_id",
    "now_ms",
]
