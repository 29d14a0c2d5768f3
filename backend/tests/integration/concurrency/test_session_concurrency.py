"""Session concurrency contract tests: registry races and per-session ordering."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
import random
import threading
import time

import pytest
from fastapi import HTTPException

from huddle.sessions.registry import SessionRegistry
from huddle.ws import protocol
from tests.integration.ws.session_harness import SessionHarness
from tests.integration.ws.session_harness import TEST_JWT_SECRET


def test_concurrent_create_never_hands_out_a_duplicate_code() -> None:
    """Contract: racing creates over a tiny code pool still register unique codes."""
    pool = [f"CODE0{idx}" for idx in range(8)]

    def _slow_code() -> str:
        # Widen the check-then-insert window.
        time.sleep(0.001)
        return random.choice(pool)

    registry = SessionRegistry(code_generator=_slow_code, code_attempts=500)
    start_barrier = threading.Barrier(len(pool))

    def _create_worker(idx: int) -> str:
        start_barrier.wait()
        return registry.create(f"Host {idx}").session_code

    with ThreadPoolExecutor(max_workers=len(pool)) as executor:
        codes = list(executor.map(_create_worker, range(len(pool))))

    assert sorted(codes) == sorted(pool)
    assert len(registry) == len(pool)


def test_concurrent_join_routes_mint_distinct_identities(monkeypatch: pytest.MonkeyPatch) -> None:
    """Contract: racing joins against one code each get a distinct userId."""
    monkeypatch.setenv("HUDDLE_JWT_SECRET", TEST_JWT_SECRET)

    import huddle.runtime as runtime
    from huddle.api.routers import sessions as session_routes
    from huddle.sessions.schemas import CreateSessionRequest
    from huddle.sessions.schemas import JoinSessionRequest

    runtime.startup()
    code = session_routes.create_session(CreateSessionRequest(hostName="Alice"))["sessionCode"]
    workers = 8
    start_barrier = threading.Barrier(workers)

    def _join_worker(idx: int) -> str:
        start_barrier.wait()
        try:
            result = session_routes.join_session(
                JoinSessionRequest(sessionCode=code, username=f"Guest{idx}")
            )
        except HTTPException as exc:
            return str(exc.status_code)
        return str(result["userId"])

    with ThreadPoolExecutor(max_workers=workers) as executor:
        user_ids = list(executor.map(_join_worker, range(workers)))

    assert len(set(user_ids)) == workers
    assert all(len(user_id) == 16 for user_id in user_ids)


def test_concurrent_attach_keeps_members_unique_and_announces_each_once() -> None:
    """Contract: simultaneous attaches produce one member each and one member-joined each."""

    async def _scenario() -> None:
        harness = SessionHarness()
        try:
            host = harness.create("Alice")
            host_ws = await harness.connect(host)
            guests = [harness.join(host.session_code, f"Guest{idx}") for idx in range(6)]

            sockets = await asyncio.gather(*(harness.connect(guest) for guest in guests))
            joined = await host_ws.wait_for(protocol.MEMBER_JOINED, count=len(guests))
            await harness.settle()

            session = harness.registry.lookup(host.session_code)
            member_ids = [member.user_id for member in session.members]
            assert len(member_ids) == len(set(member_ids)) == len(guests) + 1
            assert len(joined) == len(guests)
            # Join notices arrive in attach order.
            assert [event["userId"] for event in joined] == member_ids[1:]
            for guest, websocket in zip(guests, sockets):
                state = websocket.events(protocol.SESSION_STATE)[0]
                assert guest.user_id in {member["userId"] for member in state["members"]}
        finally:
            await harness.shutdown()

    asyncio.run(_scenario())


def test_same_user_racing_sockets_leave_one_member() -> None:
    """Contract: two sockets for one identity end with one member and one superseded socket."""

    async def _scenario() -> None:
        harness = SessionHarness()
        try:
            host = harness.create("Alice")
            host_ws = await harness.connect(host)
            bob = harness.join(host.session_code, "Bob")

            first, second = await asyncio.gather(harness.connect(bob), harness.connect(bob))
            await harness.settle()

            session = harness.registry.lookup(host.session_code)
            assert [member.username for member in session.members] == ["Alice", "Bob"]
            assert len(host_ws.events(protocol.MEMBER_JOINED)) == 1
            assert sorted([first.close_code, second.close_code], key=str) == [
                protocol.CLOSE_SUPERSEDED,
                None,
            ]
            assert host_ws.events(protocol.MEMBER_LEFT) == []
        finally:
            await harness.shutdown()

    asyncio.run(_scenario())


def test_concurrent_chat_is_seen_in_the_same_order_by_every_member() -> None:
    """Contract: interleaved senders yield one total order matching the stored log."""

    async def _scenario() -> None:
        harness = SessionHarness()
        try:
            host = harness.create("Alice")
            claims = [host] + [harness.join(host.session_code, name) for name in ("Bob", "Carol")]
            sockets = [await harness.connect(item) for item in claims]
            per_sender = 10

            for round_idx in range(per_sender):
                for sender_idx, websocket in enumerate(sockets):
                    websocket.push_event(protocol.CHAT_MESSAGE, {"text": f"m{sender_idx}-{round_idx}"})

            total = per_sender * len(sockets)
            for websocket in sockets:
                await websocket.wait_for(protocol.CHAT_MESSAGE, count=total, timeout=3.0)

            session = harness.registry.lookup(host.session_code)
            stored = [message.message_id for message in session.messages]
            assert len(stored) == total
            for websocket in sockets:
                seen = [event["messageId"] for event in websocket.events(protocol.CHAT_MESSAGE)]
                assert seen == stored
            for sender_idx in range(len(sockets)):
                texts = [message.text for message in session.messages if message.text.startswith(f"m{sender_idx}-")]
                assert texts == [f"m{sender_idx}-{idx}" for idx in range(per_sender)]
        finally:
            await harness.shutdown()

    asyncio.run(_scenario())


def test_kick_racing_disconnect_tears_down_once() -> None:
    """Contract: kick and the target's own disconnect together emit one member-left."""

    async def _scenario() -> None:
        harness = SessionHarness()
        try:
            host = harness.create("Alice")
            host_ws = await harness.connect(host)
            bob = harness.join(host.session_code, "Bob")
            bob_ws = await harness.connect(bob)

            host_ws.push_event(protocol.KICK, {"targetUserId": bob.user_id})
            bob_ws.disconnect()
            await host_ws.wait_for(protocol.MEMBER_LEFT)
            await harness.settle()

            assert len(host_ws.events(protocol.MEMBER_LEFT)) == 1
            session = harness.registry.lookup(host.session_code)
            assert [member.username for member in session.members] == ["Alice"]
            errors = host_ws.events(protocol.ERROR)
            # Losing the race means the target is already gone.
            assert errors in ([], [{"code": "MEMBER_NOT_FOUND", "message": f"member {bob.user_id} not found"}])
        finally:
            await harness.shutdown()

    asyncio.run(_scenario())


def test_sweep_racing_end_timer_deletes_once() -> None:
    """Contract: max-age sweep and the end teardown never double-evict."""

    async def _scenario() -> None:
        harness = SessionHarness()
        harness.scheduler.end_delay_seconds = 0.0
        harness.scheduler.max_age_seconds = 0.001
        try:
            host = harness.create("Alice")
            host_ws = await harness.connect(host)
            host_ws.push_event(protocol.SESSION_END)
            await host_ws.wait_for(protocol.SESSION_ENDED)
            await asyncio.sleep(0.01)

            await harness.scheduler.sweep_once()
            await host_ws.wait_closed()
            await harness.settle()

            assert harness.registry.get(host.session_code) is None
            assert host_ws.close_code in (4001, 4002)
        finally:
            await harness.shutdown()

    asyncio.run(_scenario())
