from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from kingtiles_relayer.application.retry import RetryPolicy
from kingtiles_relayer.runtime.watchdog import Watchdog
from tests.fixtures.builders import make_board, make_session
from tests.fixtures.harness import FAST_SETTLEMENT, Harness, build_harness
from tests.fixtures.ledger import unreachable

pytestmark = pytest.mark.anyio("asyncio")


def _watchdog(harness: Harness, *, interval: float = 5.0) -> Watchdog:
    return Watchdog(
        registry=harness.registry,
        base_ledger=harness.base,
        scheduler=harness.scheduler,
        delegation=harness.delegation,
        end_guard=harness.settlement.end_guard,
        interval_seconds=interval,
    )


async def test_sweep_redrives_active_sessions_that_are_not_ticking() -> None:
    harness = build_harness(now=1_000)
    for session_id in (1, 2, 3):
        harness.registry.put(make_session(session_id))
    harness.base.put_board(make_board(1))  # still waiting for players
    harness.base.put_board(make_board(2, is_active=True, end_ts=1_060, scores=(0, 0)))
    harness.base.put_board(make_board(3, is_active=True, end_ts=1_060, scores=(0, 0)))
    harness.scheduler.start(3, 60)

    driven = await _watchdog(harness).sweep()

    assert driven == [2]
    assert harness.scheduler.ticking_ids() == frozenset({2, 3})
    assert harness.base.count("delegate_board") == 1
    await harness.aclose()


async def test_sweep_skips_sessions_being_ended() -> None:
    harness = build_harness(now=1_000)
    harness.registry.put(make_session(4))
    harness.base.put_board(make_board(4, is_active=True, end_ts=1_060, scores=(0, 0)))
    harness.settlement.end_guard.try_acquire(4)

    assert await _watchdog(harness).sweep() == []
    assert not harness.scheduler.is_ticking(4)


async def test_sweep_tolerates_unreadable_boards() -> None:
    harness = build_harness(now=1_000)
    harness.registry.put(make_session(5))
    harness.base.put_board(make_board(5, is_active=True, end_ts=1_060, scores=(0, 0)))
    harness.base.fetch_error = unreachable("base")

    assert await _watchdog(harness).sweep() == []


async def test_worker_sweeps_on_interval_until_stopped() -> None:
    harness = build_harness(now=1_000)
    harness.registry.put(make_session(6))
    harness.base.put_board(make_board(6, is_active=True, end_ts=1_060, scores=(0, 0)))
    watchdog = _watchdog(harness, interval=0.01)

    watchdog.start()
    assert watchdog.running
    await asyncio.sleep(0.05)
    await watchdog.stop(timeout=1.0)

    assert not watchdog.running
    assert harness.scheduler.is_ticking(6)
    await harness.aclose()


async def test_sweep_is_not_held_up_by_a_session_stuck_in_reward_retries() -> None:
    slow_rewards = replace(
        FAST_SETTLEMENT,
        reward_policy=RetryPolicy(max_attempts=10, base_delay=30.0, max_delay=60.0),
    )
    harness = build_harness(now=1_000, settlement_config=slow_rewards)
    harness.registry.put(make_session(1))
    harness.registry.put(make_session(2))
    harness.base.put_board(make_board(1, is_active=True, end_ts=990, scores=(2, 1)))
    harness.base.put_board(make_board(2, is_active=True, end_ts=1_060, scores=(0, 0)))
    harness.base.reward_errors = [unreachable("base") for _ in range(10)]

    driven = await asyncio.wait_for(_watchdog(harness).sweep(), timeout=1.0)

    assert driven == [1, 2]
    assert harness.scheduler.is_ticking(2)
    for _ in range(100):
        if harness.base.count("distribute_rewards", 1):
            break
        await asyncio.sleep(0.01)
    assert harness.base.count("distribute_rewards", 1) == 1
    assert harness.base.payouts == []
    await harness.aclose()
