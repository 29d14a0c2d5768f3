"""Unified `{code, message, detail}` error payloads for the REST surface."""

from __future__ import annotations

from typing import Any
from typing import NoReturn

from fastapi import HTTPException
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from huddle.sessions.errors import CodeGenerationExhaustedError
from huddle.sessions.errors import SessionAuthError
from huddle.sessions.errors import SessionEndedError
from huddle.sessions.errors import SessionError
from huddle.sessions.errors import SessionFullError
from huddle.sessions.errors import SessionNotFoundError
from huddle.sessions.errors import SessionValidationError

_STATUS_BY_ERROR: tuple[tuple[type[SessionError], int], ...] = (
    (SessionValidationError, 400),
    (SessionAuthError, 401),
    (SessionNotFoundError, 404),
    (SessionEndedError, 409),
    (SessionFullError, 409),
    (CodeGenerationExhaustedError, 500),
)

_PAYLOAD_KEYS = frozenset({"code", "message", "detail"})


def api_error(*, code: str, message: str, detail: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"code": code, "message": message, "detail": detail or {}}


def raise_session_error(exc: SessionError, *, detail: dict[str, Any] | None = None) -> NoReturn:
    """Translate a session-domain error into the unified HTTP error payload."""
    status_code = next(
        (mapped for error_type, mapped in _STATUS_BY_ERROR if isinstance(exc, error_type)),
        500,
    )
    raise HTTPException(
        status_code=status_code,
        detail=api_error(code=exc.code, message=str(exc), detail=detail),
    ) from exc


async def handle_http_exception(_: Request, exc: HTTPException) -> JSONResponse:
    """Render every HTTPException in the unified shape."""
    if isinstance(exc.detail, dict) and _PAYLOAD_KEYS <= set(exc.detail):
        content = exc.detail
    else:
        content = api_error(code="HTTP_ERROR", message=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def handle_request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are reported as 400 VALIDATION_ERROR."""
    fields = sorted({".".join(str(part) for part in error["loc"][1:]) for error in exc.errors()})
    return JSONResponse(
        status_code=400,
        content=api_error(
            code=SessionValidationError.code,
            message="malformed request body",
            detail={"fields": fields},
        ),
    )
