from __future__ import annotations

from kingtiles_relayer.application.in_flight import InFlightGuard


def test_second_acquire_is_refused_until_release() -> None:
    guard = InFlightGuard("end")

    assert guard.try_acquire(7)
    assert not guard.try_acquire(7)
    assert guard.is_held(7)

    guard.release(7)

    assert not guard.is_held(7)
    assert guard.try_acquire(7)


def test_sessions_are_guarded_independently() -> None:
    guard = InFlightGuard("reward")

    assert guard.try_acquire(1)
    assert guard.try_acquire(2)
    assert guard.held() == frozenset({1, 2})


def test_release_of_unheld_session_is_a_noop() -> None:
    guard = InFlightGuard("start")

    guard.release(3)

    assert guard.held() == frozenset()
