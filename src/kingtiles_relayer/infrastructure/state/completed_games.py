"""In-memory history of completed sessions."""

from __future__ import annotations

from threading import Lock

from kingtiles_relayer.application.ports.state import CompletedGameStorePort
from kingtiles_relayer.domain.session import CompletedGameSnapshot


class InMemoryCompletedGameStore(CompletedGameStorePort):
    """Snapshots by session id plus the latest one per board mode."""

    def __init__(self) -> None:
        self._snapshots: dict[int, CompletedGameSnapshot] = {}
        self._latest: CompletedGameSnapshot | None = None
        self._lock = Lock()

    def put(self, snapshot: CompletedGameSnapshot) -> None:
        with self._lock:
            self._snapshots[snapshot.session_id] = snapshot
            if self._latest is None or self._latest.session_id == snapshot.session_id:
                self._latest = snapshot
            elif snapshot.rank() >= self._latest.rank():
                self._latest = snapshot

    def get(self, session_id: int) -> CompletedGameSnapshot | None:
        with self._lock:
            return self._snapshots.get(session_id)

    def latest(self) -> CompletedGameSnapshot | None:
        with self._lock:
            return self._latest

    def latest_by_mode(self) -> dict[str, CompletedGameSnapshot]:
        with self._lock:
            snapshots = list(self._snapshots.values())
        by_mode: dict[str, CompletedGameSnapshot] = {}
        for snapshot in snapshots:
            current = by_mode.get(snapshot.mode_key)
            if current is None or snapshot.rank() > current.rank():
                by_mode[snapshot.mode_key] = snapshot
        return by_mode


__all__ = ["InMemoryCompletedGameStore"]
