from __future__ import annotations

import asyncio

import pytest

from kingtiles_relayer.application.services.ticks import TickPeriods, TickScheduler
from tests.fixtures.ledger import FakeBaseLedger, FakeExecutionLayer

pytestmark = pytest.mark.anyio("asyncio")

FAST = TickPeriods(score_seconds=0.01, king_seconds=0.02, powerup_seconds=0.03, bomb_seconds=0.04)


def _execution() -> FakeExecutionLayer:
    return FakeExecutionLayer(FakeBaseLedger())


async def test_every_action_fires_immediately() -> None:
    execution = _execution()
    scheduler = TickScheduler(execution=execution, periods=TickPeriods(60, 60, 60, 60))

    scheduler.start(1, 60)
    await asyncio.sleep(0.01)

    assert execution.count("accrue_scores", 1) == 1
    assert execution.count("request_king_move", 1) == 1
    assert execution.count("request_powerup_spawn", 1) == 1
    assert execution.count("request_bomb_drop", 1) == 1
    await scheduler.aclose()


async def test_score_ticks_repeat_on_their_period() -> None:
    execution = _execution()
    scheduler = TickScheduler(execution=execution, periods=FAST)

    scheduler.start(1, 60)
    await asyncio.sleep(0.1)
    await scheduler.aclose()

    assert execution.count("accrue_scores", 1) >= 3
    assert execution.count("accrue_scores", 1) > execution.count("request_bomb_drop", 1)


async def test_failing_action_keeps_ticking() -> None:
    execution = _execution()
    execution.action_error = RuntimeError("execution layer hiccup")
    scheduler = TickScheduler(execution=execution, periods=FAST)

    scheduler.start(1, 60)
    await asyncio.sleep(0.05)

    assert scheduler.is_ticking(1)
    assert execution.count("accrue_scores", 1) >= 2
    await scheduler.aclose()


async def test_countdown_invokes_expiry_handler() -> None:
    execution = _execution()
    expired: list[int] = []
    scheduler = TickScheduler(execution=execution, periods=FAST)

    async def on_expire(session_id: int) -> None:
        expired.append(session_id)
        scheduler.stop(session_id)

    scheduler.bind_expiry(on_expire)
    scheduler.start(5, 0.03)
    await asyncio.sleep(0.1)

    assert expired == [5]
    assert not scheduler.is_ticking(5)


async def test_stop_halts_all_actions() -> None:
    execution = _execution()
    scheduler = TickScheduler(execution=execution, periods=FAST)

    scheduler.start(1, 60)
    await asyncio.sleep(0.02)
    scheduler.stop(1)
    await asyncio.sleep(0)
    before = execution.count("accrue_scores", 1)
    await asyncio.sleep(0.05)

    assert execution.count("accrue_scores", 1) == before
    assert scheduler.ticking_ids() == frozenset()


async def test_restart_replaces_previous_timers() -> None:
    execution = _execution()
    expired: list[int] = []
    scheduler = TickScheduler(execution=execution, periods=TickPeriods(60, 60, 60, 60))

    async def on_expire(session_id: int) -> None:
        expired.append(session_id)

    scheduler.bind_expiry(on_expire)
    scheduler.start(1, 0.02)
    scheduler.start(1, 60)
    await asyncio.sleep(0.05)

    assert expired == []
    assert scheduler.ticking_ids() == frozenset({1})
    await scheduler.aclose()
