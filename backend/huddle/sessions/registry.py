"""In-memory registry mapping session codes to live sessions."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import secrets
import string
import threading

from huddle.core.display_name import DisplayNameValidationError
from huddle.core.display_name import MAX_DISPLAY_NAME_LENGTH
from huddle.core.display_name import normalize_and_validate_display_name
from huddle.sessions.errors import CodeGenerationExhaustedError
from huddle.sessions.errors import SessionEndedError
from huddle.sessions.errors import SessionFullError
from huddle.sessions.errors import SessionNotFoundError
from huddle.sessions.errors import SessionValidationError
from huddle.sessions.models import STATUS_ENDED
from huddle.sessions.models import Session

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_MAX_MEMBERS = 50
DEFAULT_CODE_ATTEMPTS = 10


def generate_session_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def generate_user_id() -> str:
    return secrets.token_hex(8)


@dataclass(frozen=True, slots=True)
class SessionIdentity:
    """Identity minted by create/join, handed to the credential gate."""

    session_code: str
    user_id: str
    username: str
    is_host: bool
    host_name: str
    status: str


class SessionRegistry:
    """Owns the code -> Session map.

    ``_guard`` only protects the dict itself and is never held across an
    await or while acquiring a session lock, so it cannot deadlock against
    per-session serialization.
    """

    def __init__(
        self,
        *,
        max_members: int = DEFAULT_MAX_MEMBERS,
        max_username_length: int = MAX_DISPLAY_NAME_LENGTH,
        code_attempts: int = DEFAULT_CODE_ATTEMPTS,
        code_generator: Callable[[], str] = generate_session_code,
        user_id_generator: Callable[[], str] = generate_user_id,
    ) -> None:
        if max_members < 1:
            raise ValueError("max_members must be >= 1")
        if code_attempts < 1:
            raise ValueError("code_attempts must be >= 1")

        self._sessions: dict[str, Session] = {}
        self._guard = threading.Lock()
        self.max_members = max_members
        self.max_username_length = max_username_length
        self._code_attempts = code_attempts
        self._code_generator = code_generator
        self._user_id_generator = user_id_generator

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)

    def _validate_name(self, raw_name: str) -> str:
        try:
            return normalize_and_validate_display_name(raw_name, max_length=self.max_username_length)
        except DisplayNameValidationError as exc:
            raise SessionValidationError(str(exc)) from exc

    def create(self, host_name: str) -> SessionIdentity:
        """Create an Active session with the caller as host."""
        host_name = self._validate_name(host_name)
        host_id = self._user_id_generator()

        with self._guard:
            for _ in range(self._code_attempts):
                code = self._code_generator()
                if code not in self._sessions:
                    break
            else:
                raise CodeGenerationExhaustedError(
                    f"no unique session code after {self._code_attempts} attempts"
                )
            session = Session(code=code, host_id=host_id, host_name=host_name)
            self._sessions[code] = session

        logger.info("session %s created by host %s", code, host_name)
        return SessionIdentity(
            session_code=code,
            user_id=host_id,
            username=host_name,
            is_host=True,
            host_name=host_name,
            status=session.status,
        )

    def join(self, code: str, username: str) -> SessionIdentity:
        """Mint a guest identity for an existing session; does not attach."""
        username = self._validate_name(username)
        session = self.lookup(code)
        if session.status == STATUS_ENDED:
            raise SessionEndedError(f"session {session.code} has ended")
        if len(session.members) >= self.max_members:
            raise SessionFullError(f"session {session.code} is full")

        identity = SessionIdentity(
            session_code=session.code,
            user_id=self._user_id_generator(),
            username=username,
            is_host=False,
            host_name=session.host_name,
            status=session.status,
        )
        logger.info("user %s issued identity for session %s", username, session.code)
        return identity

    def get(self, code: str) -> Session | None:
        with self._guard:
            return self._sessions.get(code.upper())

    def lookup(self, code: str) -> Session:
        """Return the live session for ``code`` or raise SessionNotFoundError."""
        session = self.get(code)
        if session is None:
            raise SessionNotFoundError(f"session {code.upper()} not found")
        return session

    def list_sessions(self) -> list[Session]:
        """Snapshot of live sessions, safe to iterate while others mutate the map."""
        with self._guard:
            return list(self._sessions.values())

    def delete(self, code: str, *, expected: Session | None = None) -> Session | None:
        """Remove a session and cancel its timers.

        With ``expected`` the entry is only removed if it is still that exact
        object, so racing teardown paths delete at most once.
        """
        code = code.upper()
        with self._guard:
            session = self._sessions.get(code)
            if session is None:
                return None
            if expected is not None and session is not expected:
                return None
            del self._sessions[code]
        session.cancel_timers()
        logger.info("session %s deleted", code)
        return session


__all__ = [
    "CODE_ALPHABET",
    "CODE_LENGTH",
    "SessionIdentity",
    "SessionRegistry",
    "generate_session_code",
    "generate_user_id",
]
