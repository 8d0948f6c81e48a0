"""Short-TTL cache for status payloads."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Generic, TypeVar

from kingtiles_relayer.application.ports.state import StatusCachePort

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class StatusCacheEntry(Generic[T]):
    payload: T
    cached_at: float
    ttl_seconds: float

    def is_fresh(self, now: float) -> bool:
        return now - self.cached_at < self.ttl_seconds


class StatusCache(StatusCachePort[T]):
    """Per-session payload cache; expired entries are dropped on read."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[int, StatusCacheEntry[T]] = {}
        self._clock = clock
        self._lock = Lock()

    def get(self, session_id: int) -> T | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            if not entry.is_fresh(now):
                del self._entries[session_id]
                return None
            return entry.payload

    def put(self, session_id: int, payload: T, *, ttl_seconds: float) -> None:
        entry = StatusCacheEntry(payload=payload, cached_at=self._clock(), ttl_seconds=ttl_seconds)
        with self._lock:
            self._entries[session_id] = entry

    def invalidate(self, session_id: int) -> None:
        with self._lock:
            self._entries.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["StatusCache", "StatusCacheEntry"]
