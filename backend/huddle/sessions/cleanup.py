"""Cleanup scheduling: empty-session grace timers, delayed end teardown, max-age sweep."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from collections.abc import Callable
import logging
from typing import Any

from huddle.sessions.models import Session
from huddle.sessions.models import now_ms
from huddle.sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)

CLOSE_SESSION_ENDED = 4001
CLOSE_SESSION_EXPIRED = 4002

# evict(session, *, notice_type, notice_payload, close_code, reason)
Evictor = Callable[..., Awaitable[None]]


class CleanupScheduler:
    """Arms, cancels and fires the only scheduled work in the process.

    Every timer re-checks, under the session lock, that the session is still
    registered (and for the grace timer, still empty) before it deletes.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        *,
        evict: Evictor,
        grace_seconds: float = 300.0,
        max_age_seconds: float = 86400.0,
        sweep_interval_seconds: float = 3600.0,
        end_delay_seconds: float = 2.0,
    ) -> None:
        self._registry = registry
        self._evict = evict
        self.grace_seconds = grace_seconds
        self.max_age_seconds = max_age_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self.end_delay_seconds = end_delay_seconds
        self._sweep_task: asyncio.Task[Any] | None = None

    # Caller holds session.lock for arm/cancel/schedule.

    def arm_empty_grace(self, session: Session) -> None:
        self.cancel_empty_grace(session)
        session.cleanup_task = asyncio.create_task(self._expire_if_empty(session))

    def cancel_empty_grace(self, session: Session) -> None:
        task = session.cleanup_task
        session.cleanup_task = None
        if task is not None and not task.done():
            task.cancel()

    def schedule_end(self, session: Session) -> None:
        if session.end_task is not None and not session.end_task.done():
            return
        session.end_task = asyncio.create_task(self._finish_ended(session))

    async def _expire_if_empty(self, session: Session) -> None:
        await asyncio.sleep(self.grace_seconds)
        async with session.lock:
            if session.cleanup_task is not asyncio.current_task():
                return
            session.cleanup_task = None
            if self._registry.get(session.code) is not session:
                return
            if not session.is_empty:
                return
            self._registry.delete(session.code, expected=session)
            logger.info("session %s removed after empty grace period", session.code)

    async def _finish_ended(self, session: Session) -> None:
        await asyncio.sleep(self.end_delay_seconds)
        async with session.lock:
            session.end_task = None
            if self._registry.get(session.code) is not session:
                return
            await self._evict(
                session,
                notice_type=None,
                notice_payload=None,
                close_code=CLOSE_SESSION_ENDED,
                reason="SESSION_ENDED",
            )
            self._registry.delete(session.code, expected=session)
            logger.info("session %s torn down after host ended it", session.code)

    async def sweep_once(self, *, now: int | None = None) -> list[str]:
        """Expire every session older than max age; returns the deleted codes."""
        now = now_ms() if now is None else now
        max_age_ms = self.max_age_seconds * 1000
        expired: list[str] = []
        for session in self._registry.list_sessions():
            if now - session.created_at <= max_age_ms:
                continue
            async with session.lock:
                if self._registry.get(session.code) is not session:
                    continue
                await self._evict(
                    session,
                    notice_type="session-expired",
                    notice_payload={
                        "message": "This session has reached its maximum age and has been closed",
                        "timestamp": now_ms(),
                    },
                    close_code=CLOSE_SESSION_EXPIRED,
                    reason="SESSION_EXPIRED",
                )
                if self._registry.delete(session.code, expected=session) is not None:
                    expired.append(session.code)
        if expired:
            logger.info("max-age sweep removed %d session(s): %s", len(expired), ", ".join(expired))
        return expired

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("max-age sweep failed")

    def start(self) -> None:
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        task = self._sweep_task
        self._sweep_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


__all__ = [
    "CLOSE_SESSION_ENDED",
    "CLOSE_SESSION_EXPIRED",
    "CleanupScheduler",
]
