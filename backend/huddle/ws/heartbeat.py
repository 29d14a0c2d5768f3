"""Keepalive probing and the inbound frame pump for session sockets."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from collections.abc import Callable
import json
import logging
import time
from typing import Any

from fastapi import WebSocketDisconnect

from .protocol import CLOSE_HEARTBEAT_TIMEOUT
from .protocol import CLOSE_UNAUTHORIZED
from .protocol import ws_send_event

logger = logging.getLogger(__name__)

PING = "PING"
PONG = "PONG"
MAX_MISSED_PONGS = 2

FrameHandler = Callable[[str], Awaitable[bool]]


def control_frame_kind(message: str) -> str | None:
    """Return PING/PONG for keepalive frames (raw or JSON typed), else None."""
    if message in (PING, PONG):
        return message
    if not message.startswith("{"):
        return None
    try:
        frame = json.loads(message)
    except json.JSONDecodeError:
        return None
    if isinstance(frame, dict) and frame.get("type") in (PING, PONG):
        return frame["type"]
    return None


class Heartbeat:
    """Server-driven PING cadence for one socket.

    A probe that gets no PONG within ``timeout_seconds`` counts as missed;
    ``MAX_MISSED_PONGS`` consecutive misses close the socket with 4408.
    """

    def __init__(
        self,
        websocket: Any,
        *,
        interval_seconds: float = 30.0,
        timeout_seconds: float = 10.0,
        max_missed: int = MAX_MISSED_PONGS,
    ) -> None:
        self.websocket = websocket
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.max_missed = max_missed
        self.missed = 0
        self.last_pong_at: float | None = None
        self._pong = asyncio.Event()

    def acknowledge(self) -> None:
        self.last_pong_at = time.monotonic()
        self.missed = 0
        self._pong.set()

    async def _probe(self) -> bool:
        self._pong.clear()
        await ws_send_event(self.websocket, PING, {})
        try:
            await asyncio.wait_for(self._pong.wait(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            self.missed += 1
            return False
        return True

    async def run(self) -> None:
        idle = max(self.interval_seconds - self.timeout_seconds, 0.0)
        while True:
            if not await self._probe() and self.missed >= self.max_missed:
                logger.info("closing socket after %d unanswered pings", self.missed)
                await self.websocket.close(code=CLOSE_HEARTBEAT_TIMEOUT, reason="HEARTBEAT_TIMEOUT")
                return
            if idle:
                await asyncio.sleep(idle)


async def close_when_token_expires(websocket: Any, *, expire_epoch: int) -> None:
    await asyncio.sleep(max(expire_epoch - time.time(), 0.0))
    try:
        await websocket.close(code=CLOSE_UNAUTHORIZED, reason="UNAUTHORIZED")
    except Exception:
        logger.debug("close on token expiry failed", exc_info=True)


async def _stop(task: asyncio.Task[Any] | None) -> None:
    if task is None:
        return
    if not task.done():
        task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("socket watcher task failed", exc_info=True)


async def ws_message_loop(
    websocket: Any,
    *,
    on_message: FrameHandler,
    token_expire_epoch_value: int | None = None,
    heartbeat_interval_seconds: float = 30.0,
    heartbeat_timeout_seconds: float = 10.0,
) -> None:
    """Pump inbound text frames until disconnect or until ``on_message`` returns False.

    Keepalive frames are consumed here: a client PING is answered with a PONG
    event, a PONG acknowledges the outstanding server probe.
    """
    heartbeat = Heartbeat(
        websocket,
        interval_seconds=heartbeat_interval_seconds,
        timeout_seconds=heartbeat_timeout_seconds,
    )
    watchers: list[asyncio.Task[Any]] = [asyncio.create_task(heartbeat.run())]
    if token_expire_epoch_value is not None:
        watchers.append(
            asyncio.create_task(close_when_token_expires(websocket, expire_epoch=token_expire_epoch_value))
        )
    try:
        while True:
            message = await websocket.receive_text()
            kind = control_frame_kind(message)
            if kind == PING:
                await ws_send_event(websocket, PONG, {})
            elif kind == PONG:
                heartbeat.acknowledge()
            elif not await on_message(message):
                return
    except WebSocketDisconnect:
        return
    finally:
        for task in watchers:
            await _stop(task)
