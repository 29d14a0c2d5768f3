"""Session-domain error taxonomy."""

from __future__ import annotations


class SessionError(Exception):
    """Base class for session-domain errors."""

    code = "SESSION_ERROR"


class SessionValidationError(SessionError):
    """Raised for malformed or oversized input before any mutation."""

    code = "VALIDATION_ERROR"


class SessionAuthError(SessionError):
    """Raised when a credential is missing, malformed or wrongly signed."""

    code = "AUTH_TOKEN_INVALID"


class SessionAuthExpiredError(SessionAuthError):
    """Raised when a credential is past its exp."""

    code = "AUTH_TOKEN_EXPIRED"


class SessionNotFoundError(SessionError):
    """Raised when no live session (or member) matches the given key."""

    code = "SESSION_NOT_FOUND"


class MemberNotFoundError(SessionNotFoundError):
    """Raised when a host action names a user who is not attached."""

    code = "MEMBER_NOT_FOUND"


class SessionEndedError(SessionError):
    """Raised when joining a session that has already ended."""

    code = "SESSION_ENDED"


class SessionFullError(SessionError):
    """Raised when a session is at its member cap."""

    code = "SESSION_FULL"


class HostOnlyError(SessionError):
    """Raised when a non-host invokes a host-only action."""

    code = "FORBIDDEN"


class InvalidTargetError(SessionError):
    """Raised when a host action targets a member it cannot apply to."""

    code = "INVALID_TARGET"


class CodeGenerationExhaustedError(SessionError):
    """Raised when no unique session code could be minted."""

    code = "CODE_GENERATION_EXHAUSTED"


__all__ = [
    "CodeGenerationExhaustedError",
    "HostOnlyError",
    "InvalidTargetError",
    "MemberNotFoundError",
    "SessionAuthError",
    "SessionAuthExpiredError",
    "SessionEndedError",
    "SessionError",
    "SessionFullError",
    "SessionNotFoundError",
    "SessionValidationError",
]
