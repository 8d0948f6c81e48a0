from __future__ import annotations

import pytest

from kingtiles_relayer.application.ports.events import GameStartedEvent
from kingtiles_relayer.application.services.events import GameStartedHandler, route_game_started
from tests.fixtures.builders import make_board, make_session
from tests.fixtures.harness import build_harness

pytestmark = pytest.mark.anyio("asyncio")


async def test_event_for_tracked_session_starts_it() -> None:
    harness = build_harness(now=1_000)
    harness.registry.put(make_session(3))
    harness.base.put_board(make_board(3, is_active=True, end_ts=1_060, scores=(0, 0)))
    handler = GameStartedHandler(registry=harness.registry, delegation=harness.delegation)

    await handler.handle(GameStartedEvent(session_id=3, signature="sig"))

    assert harness.base.count("delegate_board", 3) == 1
    assert harness.scheduler.is_ticking(3)
    await harness.aclose()


async def test_event_for_untracked_session_is_ignored() -> None:
    harness = build_harness()
    harness.base.put_board(make_board(8, is_active=True, end_ts=1_060, scores=(0, 0)))
    handler = GameStartedHandler(registry=harness.registry, delegation=harness.delegation)

    await handler.handle(GameStartedEvent(session_id=8))

    assert harness.base.calls == []
    assert not harness.scheduler.is_ticking(8)


def test_route_returns_live_session() -> None:
    harness = build_harness()
    session = make_session(2)
    harness.registry.put(session)

    assert route_game_started(GameStartedEvent(session_id=2), harness.registry) is session
    assert route_game_started(GameStartedEvent(session_id=9), harness.registry) is None
