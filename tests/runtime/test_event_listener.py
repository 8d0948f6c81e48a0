from __future__ import annotations

import asyncio

import pytest

from kingtiles_relayer.application.ports.events import GameStartedEvent
from kingtiles_relayer.application.services.events import GameStartedHandler
from kingtiles_relayer.runtime.event_listener import EventListener
from tests.fixtures.builders import make_board, make_session
from tests.fixtures.events import ScriptedEventSource
from tests.fixtures.harness import build_harness

pytestmark = pytest.mark.anyio("asyncio")


async def test_events_are_handled_until_stopped() -> None:
    harness = build_harness(now=1_000)
    harness.registry.put(make_session(1))
    harness.base.put_board(make_board(1, is_active=True, end_ts=1_060, scores=(0, 0)))
    source = ScriptedEventSource([GameStartedEvent(session_id=1), GameStartedEvent(session_id=99)])
    listener = EventListener(
        source=source,
        handler=GameStartedHandler(registry=harness.registry, delegation=harness.delegation),
        tasks=harness.tasks,
    )

    listener.start()
    await asyncio.sleep(0.01)
    await harness.tasks.join()

    assert listener.running
    assert harness.scheduler.is_ticking(1)
    assert harness.base.count("delegate_board") == 1

    await listener.stop(timeout=1.0)

    assert not listener.running
    assert source.subscriptions == 1
    await harness.aclose()


async def test_failing_source_stops_listener_quietly() -> None:
    harness = build_harness()

    class BrokenSource(ScriptedEventSource):
        async def subscribe(self):
            raise RuntimeError("websocket refused")
            yield  # pragma: no cover

    listener = EventListener(
        source=BrokenSource(),
        handler=GameStartedHandler(registry=harness.registry, delegation=harness.delegation),
        tasks=harness.tasks,
    )

    listener.start()
    await asyncio.sleep(0.01)

    assert not listener.running
    await listener.stop()
