"""In-memory registry of live sessions."""

from __future__ import annotations

from threading import Lock

from kingtiles_relayer.application.ports.state import SessionRegistryPort
from kingtiles_relayer.domain.session import Session


class InMemorySessionRegistry(SessionRegistryPort):
    """Stores live sessions keyed by session id."""

    def __init__(self) -> None:
        self._sessions: dict[int, Session] = {}
        self._lock = Lock()

    def put(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def get(self, session_id: int) -> Session | None:
        with self._lock:
            session = self._sessions.get(session_id)
        return session

    def remove(self, session_id: int) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def list(self) -> list[Session]:
        with self._lock:
            sessions = list(self._sessions.values())
        return sorted(sessions, key=lambda session: session.session_id)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions


__all__ = ["InMemorySessionRegistry"]
