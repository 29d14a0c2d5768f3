"""Room fan-out and forced-eviction helpers for session connections."""

from __future__ import annotations

import logging
from typing import Any

from huddle.sessions.models import Session

logger = logging.getLogger(__name__)


async def broadcast_to_room(
    session: Session,
    event_type: str,
    payload: dict[str, Any],
    *,
    exclude: Any = None,
) -> int:
    """Send one event to every attached connection; returns delivered count.

    Caller holds ``session.lock`` so every member sees room events in the
    same order.
    """
    delivered = 0
    for connection in session.connections(exclude=exclude):
        if await connection.send(event_type, payload):
            delivered += 1
    return delivered


async def evict_room(
    session: Session,
    *,
    notice_type: str | None,
    notice_payload: dict[str, Any] | None,
    close_code: int,
    reason: str,
) -> None:
    """Optionally notify, then force-close every connection and drop all members.

    Evicted connections are marked detached first, so their own disconnect
    path is a no-op and no further events from them are processed.
    """
    connections = session.connections()
    for connection in connections:
        connection.mark_detached()
    for connection in connections:
        if notice_type is not None:
            await connection.send(notice_type, notice_payload or {})
        await connection.close(code=close_code, reason=reason)
    session.members.clear()
    logger.info(
        "evicted %d connection(s) from session %s (%s)",
        len(connections),
        session.code,
        reason,
    )
