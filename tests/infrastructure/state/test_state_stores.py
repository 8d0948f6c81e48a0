from __future__ import annotations

from datetime import UTC, datetime

from kingtiles_relayer.application.ports.state import StatusCachePort
from kingtiles_relayer.domain.board import BoardStatus
from kingtiles_relayer.domain.session import CompletedGameSnapshot, TransactionTrace
from kingtiles_relayer.infrastructure.state.completed_games import InMemoryCompletedGameStore
from kingtiles_relayer.infrastructure.state.session_registry import InMemorySessionRegistry
from kingtiles_relayer.infrastructure.state.status_cache import StatusCache
from tests.fixtures.builders import make_board, make_session


def _snapshot(session_id: int, *, second: int, side: int = 8, players: int = 2) -> CompletedGameSnapshot:
    board = make_board(session_id, end_ts=1, board_side_len=side, max_players=players)
    return CompletedGameSnapshot(
        status=BoardStatus.from_board(
            board, session_id=session_id, board_address=f"board-{session_id}", source="base", now=2
        ),
        trace=TransactionTrace(end_tx=f"end-{session_id}"),
        completed_at=datetime(2026, 3, 1, 12, 0, second, tzinfo=UTC),
    )


class FakeClock:
    def __init__(self) -> None:
        self.value = 100.0

    def __call__(self) -> float:
        return self.value


def test_registry_lists_sessions_by_id() -> None:
    registry = InMemorySessionRegistry()
    for session_id in (5, 1, 3):
        registry.put(make_session(session_id))

    registry.remove(3)
    registry.remove(99)

    assert [session.session_id for session in registry.list()] == [1, 5]
    assert 5 in registry
    assert 3 not in registry


def test_completed_store_tracks_latest_overall_and_per_mode() -> None:
    store = InMemoryCompletedGameStore()
    store.put(_snapshot(1, second=1))
    store.put(_snapshot(2, second=3, side=10, players=4))
    store.put(_snapshot(3, second=2))

    assert store.latest().session_id == 2
    by_mode = store.latest_by_mode()
    assert by_mode["8x2"].session_id == 3
    assert by_mode["10x4"].session_id == 2


def test_updating_latest_snapshot_replaces_it() -> None:
    store = InMemoryCompletedGameStore()
    first = _snapshot(1, second=1)
    store.put(first)

    store.put(first.with_reward_error("exhausted"))

    assert store.latest().trace.reward_error == "exhausted"
    assert store.get(1).trace.reward_error == "exhausted"


def test_cache_entry_expires_after_ttl() -> None:
    clock = FakeClock()
    cache: StatusCache[str] = StatusCache(clock=clock)
    cache.put(1, "payload", ttl_seconds=0.4)

    clock.value += 0.3
    assert cache.get(1) == "payload"

    clock.value += 0.2
    assert cache.get(1) is None
    assert len(cache) == 0


def test_cache_invalidate_drops_entry() -> None:
    cache: StatusCachePort[str] = StatusCache(clock=FakeClock())
    cache.put(1, "payload", ttl_seconds=10)

    cache.invalidate(1)

    assert cache.get(1) is None


def test_cache_implements_status_cache_port() -> None:
    assert StatusCachePort in StatusCache.__mro__
