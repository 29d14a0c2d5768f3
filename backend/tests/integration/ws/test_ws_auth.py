"""Session websocket auth and attach-gate contract tests."""

from __future__ import annotations

import asyncio
from datetime import datetime
from datetime import timedelta
from datetime import timezone

import pytest

from huddle.core.tokens import issue_session_token
from tests.integration.ws.session_harness import FakeWebSocket
from tests.integration.ws.session_harness import TEST_JWT_SECRET


def _setup_runtime(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("HUDDLE_JWT_SECRET", TEST_JWT_SECRET)

    import huddle.runtime as runtime
    import huddle.ws.routers as ws_routers

    runtime.startup()
    return runtime, ws_routers


def _token(code: str, *, user_id: str, username: str, is_host: bool, now: datetime | None = None) -> str:
    return issue_session_token(
        secret=TEST_JWT_SECRET,
        user_id=user_id,
        username=username,
        session_code=code,
        is_host=is_host,
        now=now or datetime.now(timezone.utc),
        expires_in_seconds=3600,
    )


def test_ws_valid_token_attaches_and_sends_snapshot(monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: valid host token -> Output: accepted, session-state, member attached until disconnect."""
    runtime, ws_routers = _setup_runtime(monkeypatch)
    identity = runtime.session_registry.create("Alice")
    token = _token(identity.session_code, user_id=identity.user_id, username="Alice", is_host=True)

    async def _scenario() -> None:
        websocket = FakeWebSocket(token=token)
        task = asyncio.create_task(ws_routers.ws_session(websocket))
        state = await websocket.wait_for("session-state")
        session = runtime.session_registry.lookup(identity.session_code)
        assert [member.username for member in session.members] == ["Alice"]
        assert state[0]["hostName"] == "Alice"

        websocket.disconnect()
        await asyncio.wait_for(task, timeout=1.0)
        assert session.members == []
        assert websocket.accept_count == 1
        assert websocket.close_code is None
        session.cancel_timers()

    asyncio.run(_scenario())


@pytest.mark.parametrize("token", [None, "", "invalid-token"])
def test_ws_rejects_missing_or_invalid_token_with_4401(
    monkeypatch: pytest.MonkeyPatch,
    token: str | None,
) -> None:
    """Input: no / empty / garbage token -> Output: accept then close 4401 UNAUTHORIZED."""
    _, ws_routers = _setup_runtime(monkeypatch)
    websocket = FakeWebSocket(token=token)

    asyncio.run(ws_routers.ws_session(websocket))

    assert websocket.accept_count == 1
    assert websocket.close_code == 4401
    assert websocket.close_reason == "UNAUTHORIZED"
    assert websocket.sent_messages == []


def test_ws_rejects_expired_token_with_4401(monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: token issued two hours ago with 1h expiry -> Output: close 4401."""
    runtime, ws_routers = _setup_runtime(monkeypatch)
    identity = runtime.session_registry.create("Alice")
    websocket = FakeWebSocket(
        token=_token(
            identity.session_code,
            user_id=identity.user_id,
            username="Alice",
            is_host=True,
            now=datetime.now(timezone.utc) - timedelta(hours=2),
        )
    )

    asyncio.run(ws_routers.ws_session(websocket))

    assert websocket.close_code == 4401
    assert runtime.session_registry.lookup(identity.session_code).members == []


def test_ws_rejects_token_signed_with_other_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: token signed by a different key -> Output: close 4401."""
    runtime, ws_routers = _setup_runtime(monkeypatch)
    identity = runtime.session_registry.create("Alice")
    forged = issue_session_token(
        secret="another-secret-key-that-is-32-bytes-long",
        user_id=identity.user_id,
        username="Alice",
        session_code=identity.session_code,
        is_host=True,
        now=datetime.now(timezone.utc),
    )
    websocket = FakeWebSocket(token=forged)

    asyncio.run(ws_routers.ws_session(websocket))

    assert websocket.close_code == 4401


def test_ws_unknown_session_closes_with_4404(monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: valid token for a code that no longer exists -> Output: close 4404, no snapshot."""
    _, ws_routers = _setup_runtime(monkeypatch)
    websocket = FakeWebSocket(
        token=_token("ZZZZZZ", user_id="00000000000000aa", username="Ghost", is_host=False)
    )

    asyncio.run(ws_routers.ws_session(websocket))

    assert websocket.accept_count == 1
    assert websocket.close_code == 4404
    assert websocket.close_reason == "SESSION_NOT_FOUND"
    assert websocket.sent_messages == []
