"""Read path for session status with caching and ledger fallback."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from kingtiles_relayer.application.clock import LedgerClock
from kingtiles_relayer.application.ports.ledger import BaseLedgerPort, ExecutionLayerPort
from kingtiles_relayer.application.ports.state import CompletedGameStorePort, SessionRegistryPort, StatusCachePort
from kingtiles_relayer.application.retry import RetryPolicy
from kingtiles_relayer.domain.board import BoardState, BoardStatus
from kingtiles_relayer.domain.exceptions import AccountNotFoundError, LedgerUnavailableError
from kingtiles_relayer.domain.session import CompletedGameSnapshot, Session, TransactionTrace

logger = logging.getLogger("kingtiles_relayer.status")

EXECUTION_SOURCE = "execution"
BASE_SOURCE = "base"


@dataclass(frozen=True)
class StatusReadConfig:
    active_ttl_seconds: float = 0.4
    inactive_ttl_seconds: float = 1.5
    execution_policy: RetryPolicy = RetryPolicy(max_attempts=2, base_delay=0.3, max_delay=0.3)
    execution_active_policy: RetryPolicy = RetryPolicy(max_attempts=3, base_delay=0.3, max_delay=0.3)


@dataclass(frozen=True, slots=True)
class StatusView:
    """One resolved status read; ``status`` is ``None`` when there is no board to show."""

    session_id: int | None
    status: BoardStatus | None
    trace: TransactionTrace | None = None
    completed_at: datetime | None = None
    message: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status is not None and self.status.is_active

    @classmethod
    def from_snapshot(cls, snapshot: CompletedGameSnapshot) -> StatusView:
        return cls(
            session_id=snapshot.session_id,
            status=snapshot.status,
            trace=snapshot.trace,
            completed_at=snapshot.completed_at,
        )


@dataclass(frozen=True, slots=True)
class LiveSessionView:
    session: Session
    is_active: bool
    players_count: int
    game_end_timestamp: int


@dataclass(frozen=True, slots=True)
class SessionsOverview:
    live: tuple[LiveSessionView, ...]
    last_completed: CompletedGameSnapshot | None
    last_completed_by_mode: Mapping[str, CompletedGameSnapshot]


class StatusReader:
    """Serves status reads, preferring the execution layer while a session is active.

    For an active session it refuses to answer with base-ledger state when the
    execution layer is unreachable; settled history is served from memory.
    """

    def __init__(
        self,
        *,
        registry: SessionRegistryPort,
        completed: CompletedGameStorePort,
        cache: StatusCachePort[StatusView],
        base_ledger: BaseLedgerPort,
        execution: ExecutionLayerPort,
        clock: LedgerClock,
        config: StatusReadConfig | None = None,
    ) -> None:
        self._registry = registry
        self._completed = completed
        self._cache = cache
        self._base = base_ledger
        self._execution = execution
        self._clock = clock
        self._config = config or StatusReadConfig()

    def live_session_ids(self) -> list[int]:
        return [session.session_id for session in self._registry.list()]

    def last_completed(self) -> CompletedGameSnapshot | None:
        return self._completed.latest()

    async def get_status(self, session_id: int | None = None) -> StatusView:
        if session_id is None:
            live = self.live_session_ids()
            if not live:
                latest = self.last_completed()
                if latest is not None:
                    return StatusView.from_snapshot(latest)
                return StatusView(session_id=None, status=None, message="No active game")
            session_id = min(live)

        cached = self._cache.get(session_id)
        if cached is not None:
            return cached

        session = self._registry.get(session_id)
        if session is None:
            snapshot = self._completed.get(session_id)
            if snapshot is not None:
                view = StatusView.from_snapshot(snapshot)
                self._cache.put(session_id, view, ttl_seconds=self._config.inactive_ttl_seconds)
                return view

        view = await self._read_from_ledgers(session_id, session)
        ttl = self._config.active_ttl_seconds if view.is_active else self._config.inactive_ttl_seconds
        self._cache.put(session_id, view, ttl_seconds=ttl)
        return view

    async def _read_from_ledgers(self, session_id: int, session: Session | None) -> StatusView:
        address = session.board_address if session is not None else self._base.board_address(session_id)
        trace_state = session.trace if session is not None else None
        try:
            board = await self._fetch_execution(session_id, self._config.execution_policy)
            source = EXECUTION_SOURCE
        except Exception as er_exc:
            logger.info(
                "execution layer read failed; checking base ledger",
                extra={"data": {"session_id": session_id, "error": str(er_exc)}},
            )
            try:
                board = await self._base.fetch_board(session_id)
            except AccountNotFoundError:
                return StatusView(
                    session_id=session_id,
                    status=None,
                    trace=trace_state,
                    message=f"No board found for session {session_id}",
                )
            except Exception as exc:
                logger.warning(
                    "both ledgers unreachable for status read",
                    extra={"data": {"session_id": session_id, "error": str(exc)}},
                )
                raise LedgerUnavailableError("ledgers temporarily unavailable; retry shortly") from exc
            source = BASE_SOURCE
            if board.is_active:
                try:
                    board = await self._fetch_execution(session_id, self._config.execution_active_policy)
                    source = EXECUTION_SOURCE
                except Exception as exc:
                    logger.warning(
                        "execution layer unavailable for active session",
                        extra={"data": {"session_id": session_id, "error": str(exc)}},
                    )
                    raise LedgerUnavailableError(
                        "execution layer temporarily unavailable; moves are on the execution layer, retry shortly"
                    ) from exc

        now = await self._clock.now()
        status = BoardStatus.from_board(
            board,
            session_id=session_id,
            board_address=address,
            source=source,
            now=now,
        )
        return StatusView(session_id=session_id, status=status, trace=trace_state)

    async def _fetch_execution(self, session_id: int, policy: RetryPolicy) -> BoardState:
        last_error: Exception | None = None
        for attempt in range(1, policy.max_attempts + 1):
            try:
                return await self._execution.fetch_board(session_id)
            except Exception as exc:
                last_error = exc
                if policy.allows_retry_after(attempt):
                    await asyncio.sleep(policy.delay_for(attempt))
        assert last_error is not None
        raise last_error

    async def overview(self) -> SessionsOverview:
        sessions = self._registry.list()
        live = await asyncio.gather(*(self._live_view(session) for session in sessions))
        return SessionsOverview(
            live=tuple(live),
            last_completed=self._completed.latest(),
            last_completed_by_mode=self._completed.latest_by_mode(),
        )

    async def _live_view(self, session: Session) -> LiveSessionView:
        try:
            board = await self._base.fetch_board(session.session_id)
        except Exception as exc:
            logger.debug(
                "live board read failed",
                extra={"data": {"session_id": session.session_id, "error": str(exc)}},
            )
            return LiveSessionView(session=session, is_active=False, players_count=0, game_end_timestamp=0)
        return LiveSessionView(
            session=session,
            is_active=board.is_active,
            players_count=board.players_count,
            game_end_timestamp=board.game_end_timestamp,
        )


__all__ = [
    "LiveSessionView",
    "SessionsOverview",
    "StatusReadConfig",
    "StatusReader",
    "StatusView",
]
