"""Session domain package: aggregate, registry, cleanup and error taxonomy."""

from huddle.sessions.errors import SessionEndedError
from huddle.sessions.errors import SessionError
from huddle.sessions.errors import SessionFullError
from huddle.sessions.errors import SessionNotFoundError
from huddle.sessions.errors import SessionValidationError
from huddle.sessions.models import Member
from huddle.sessions.models import Message
from huddle.sessions.models import Session
from huddle.sessions.registry import SessionIdentity
from huddle.sessions.registry import SessionRegistry

__all__ = [
    "Member",
    "Message",
    "Session",
    "SessionEndedError",
    "SessionError",
    "SessionFullError",
    "SessionIdentity",
    "SessionNotFoundError",
    "SessionRegistry",
    "SessionValidationError",
]
