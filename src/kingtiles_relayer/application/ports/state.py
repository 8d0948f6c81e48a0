"""Port definitions for in-process session and snapshot state."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol, TypeVar

from kingtiles_relayer.domain.session import CompletedGameSnapshot, Session


class SessionRegistryPort(Protocol):
    """Owner of every live session."""

    def put(self, session: Session) -> None:
        ...

    def get(self, session_id: int) -> Session | None:
        ...

    def remove(self, session_id: int) -> None:
        ...

    def list(self) -> Sequence[Session]:
        ...


class CompletedGameStorePort(Protocol):
    """History of finished sessions indexed by id and by mode."""

    def put(self, snapshot: CompletedGameSnapshot) -> None:
        ...

    def get(self, session_id: int) -> CompletedGameSnapshot | None:
        ...

    def latest(self) -> CompletedGameSnapshot | None:
        ...

    def latest_by_mode(self) -> Mapping[str, CompletedGameSnapshot]:
        ...


T = TypeVar("T")


class StatusCachePort(Protocol[T]):
    """Short-lived per-session status payloads."""

    def get(self, session_id: int) -> T | None:
        ...

    def put(self, session_id: int, payload: T, *, ttl_seconds: float) -> None:
        ...

    def invalidate(self, session_id: int) -> None:
        ...


__all__ = ["CompletedGameStorePort", "SessionRegistryPort", "StatusCachePort"]
