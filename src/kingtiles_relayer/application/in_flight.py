"""Per-session guards for operations that must not overlap."""

from __future__ import annotations

import threading


class InFlightGuard:
    """Atomic check-and-set of operation tokens keyed by session id."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._in_flight: set[int] = set()
        self._lock = threading.Lock()

    def try_acquire(self, session_id: int) -> bool:
        """Mark ``session_id`` as in flight; ``False`` when it already was."""
        with self._lock:
            if session_id in self._in_flight:
                return False
            self._in_flight.add(session_id)
            return True

    def release(self, session_id: int) -> None:
        with self._lock:
            self._in_flight.discard(session_id)

    def is_held(self, session_id: int) -> bool:
        with self._lock:
            return session_id in self._in_flight

    def held(self) -> frozenset[int]:
        with self._lock:
            return frozenset(self._in_flight)


__all__ = ["InFlightGuard"]
