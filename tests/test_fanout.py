"""Tests for the shared poll loop and subscriber sessions."""

from __future__ import annotations

import asyncio

from services.broadcaster import Broadcaster
from services.fanout import SharedPollLoop
from services.scheduler import SchedulerState
from services.session import SessionRegistry, SubscriberSession


def test_shared_loop_polls_once_per_tick_for_all_subscribers(
    scripted_connector, fake_websocket, register_words
) -> None:
    connector = scripted_connector(default=register_words(1.0, 2.0))
    first_socket, second_socket = fake_websocket(), fake_websocket()
    first = Broadcaster(first_socket, "first")
    second = Broadcaster(second_socket, "second")
    shared = SharedPollLoop(connector, interval=0.02)

    async def scenario() -> None:
        await shared.subscribe(first)
        await shared.subscribe(second)
        await asyncio.sleep(0.2)
        await shared.unsubscribe(first)
        await shared.unsubscribe(second)

    asyncio.run(scenario())

    assert first_socket.sent
    assert first_socket.sent == second_socket.sent
    assert len(first_socket.sent) <= connector.calls <= len(first_socket.sent) + 1
    assert shared.running is False


def test_shared_loop_starts_and_stops_with_subscribers(scripted_connector, fake_websocket) -> None:
    shared = SharedPollLoop(scripted_connector(), interval=1.0)
    broadcaster = Broadcaster(fake_websocket(), "only")

    async def scenario() -> tuple:
        before = shared.running
        await shared.subscribe(broadcaster)
        during = shared.running, shared.subscriber_count
        await shared.unsubscribe(broadcaster)
        return before, during, shared.running, shared.subscriber_count

    before, during, after, remaining = asyncio.run(scenario())

    assert before is False
    assert during == (True, 1)
    assert after is False
    assert remaining == 0


def test_shared_loop_drops_failed_subscriber_only(
    scripted_connector, fake_websocket, register_words
) -> None:
    connector = scripted_connector(default=register_words(3.0))
    healthy_socket = fake_websocket()
    healthy = Broadcaster(healthy_socket, "healthy")
    broken = Broadcaster(fake_websocket(fail_with=RuntimeError("closed")), "broken")
    shared = SharedPollLoop(connector, interval=0.01)

    async def scenario() -> tuple:
        await shared.subscribe(healthy)
        await shared.subscribe(broken)
        await asyncio.sleep(0.1)
        state = shared.running, shared.subscriber_count
        await shared.shutdown()
        return state

    running, count = asyncio.run(scenario())

    assert running is True
    assert count == 1
    assert healthy_socket.sent
    assert broken.closed is True


def test_per_session_subscriber_owns_a_scheduler(
    scripted_connector, fake_websocket, register_words
) -> None:
    websocket = fake_websocket()
    session = SubscriberSession(
        Broadcaster(websocket, "solo"),
        scripted_connector(default=register_words(7.0)),
        interval=0.01,
    )

    async def scenario() -> None:
        await session.open()
        await asyncio.sleep(0.08)
        await session.close()
        await session.close()

    asyncio.run(scenario())

    assert session.scheduler is not None
    assert session.scheduler.state is SchedulerState.cancelled
    assert websocket.sent
    sent_at_close = len(websocket.sent)
    assert session.broadcaster.closed is True
    assert len(websocket.sent) == sent_at_close


def test_shared_session_uses_the_loop_instead_of_its_own_scheduler(
    scripted_connector, fake_websocket
) -> None:
    connector = scripted_connector()
    shared = SharedPollLoop(connector, interval=1.0)
    session = SubscriberSession(
        Broadcaster(fake_websocket(), "shared-1"), connector, interval=1.0, shared_loop=shared
    )

    async def scenario() -> tuple:
        await session.open()
        subscribed = shared.subscriber_count
        await session.close()
        return subscribed, shared.subscriber_count

    subscribed, remaining = asyncio.run(scenario())

    assert session.scheduler is None
    assert subscribed == 1
    assert remaining == 0


def test_registry_closes_every_session(scripted_connector, fake_websocket) -> None:
    registry = SessionRegistry()
    sessions = [
        SubscriberSession(Broadcaster(fake_websocket(), f"s{i}"), scripted_connector(), interval=1.0)
        for i in range(3)
    ]

    async def scenario() -> None:
        for session in sessions:
            registry.add(session)
            await session.open()
        await registry.close_all()

    asyncio.run(scenario())

    assert len(registry) == 0
    assert all(session.scheduler.state is SchedulerState.cancelled for session in sessions)
