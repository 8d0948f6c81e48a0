from __future__ import annotations

import pytest

from tests.fixtures.builders import make_board, make_session
from tests.fixtures.harness import build_harness
from tests.fixtures.ledger import DELEGATION_OWNER, unreachable

pytestmark = pytest.mark.anyio("asyncio")


async def test_started_board_is_delegated_and_ticking() -> None:
    harness = build_harness(now=1_000)
    session = make_session(1)
    harness.registry.put(session)
    harness.base.put_board(make_board(1, is_active=True, end_ts=1_060, scores=(0, 0)))

    await harness.delegation.ensure_active(session)

    assert harness.base.count("delegate_board", 1) == 1
    assert harness.base.owners["board-1"] == DELEGATION_OWNER
    assert session.trace.delegate_tx == "delegate_board-tx-1"
    assert harness.scheduler.is_ticking(1)
    await harness.aclose()


async def test_already_delegated_board_only_starts_ticking() -> None:
    harness = build_harness(now=1_000)
    session = make_session(1)
    harness.base.put_board(make_board(1, is_active=True, end_ts=1_060, scores=(0, 0)), owner=DELEGATION_OWNER)

    await harness.delegation.ensure_active(session)

    assert harness.base.count("delegate_board") == 0
    assert session.trace.delegate_tx is None
    assert harness.scheduler.is_ticking(1)
    await harness.aclose()


async def test_ticking_session_is_left_alone() -> None:
    harness = build_harness(now=1_000)
    session = make_session(1)
    harness.base.put_board(make_board(1, is_active=True, end_ts=1_060, scores=(0, 0)))
    harness.scheduler.start(1, 60)

    await harness.delegation.ensure_active(session)

    assert harness.base.count("delegate_board") == 0
    await harness.aclose()


async def test_concurrent_start_is_skipped_while_guard_held() -> None:
    harness = build_harness(now=1_000)
    session = make_session(1)
    harness.base.put_board(make_board(1, is_active=True, end_ts=1_060, scores=(0, 0)))
    harness.delegation.start_guard.try_acquire(1)

    await harness.delegation.ensure_active(session)

    assert harness.base.count("delegate_board") == 0
    assert not harness.scheduler.is_ticking(1)


async def test_board_past_end_time_goes_straight_to_settlement() -> None:
    harness = build_harness(now=1_000)
    session = make_session(2)
    harness.registry.put(session)
    harness.base.put_board(make_board(2, is_active=True, end_ts=990, scores=(1, 2)))

    await harness.delegation.ensure_active(session)
    await harness.tasks.join()

    assert not harness.scheduler.is_ticking(2)
    assert harness.execution.count("end_session", 2) == 1
    assert 2 not in harness.registry
    await harness.aclose()


async def test_unreadable_board_ticks_for_full_duration() -> None:
    harness = build_harness(now=1_000, game_duration_seconds=60.0)
    session = make_session(3)
    harness.base.put_board(make_board(3, is_active=True, end_ts=1_060, scores=(0, 0)))
    harness.base.fetch_error = unreachable("base")

    await harness.delegation.ensure_active(session)

    assert harness.scheduler.is_ticking(3)
    await harness.aclose()


async def test_delegation_failure_releases_guard() -> None:
    harness = build_harness(now=1_000)
    session = make_session(4)
    harness.base.put_board(make_board(4, is_active=True, end_ts=1_060, scores=(0, 0)))

    async def failing_delegate(session_id: int) -> str:
        raise RuntimeError("blockhash not found")

    harness.base.delegate_board = failing_delegate  # type: ignore[method-assign]

    await harness.delegation.ensure_active(session)

    assert not harness.scheduler.is_ticking(4)
    assert not harness.delegation.start_guard.is_held(4)
