"""Promote a full session from the base ledger to the execution layer."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from opentelemetry import trace

from kingtiles_relayer.application.background import BackgroundTasks
from kingtiles_relayer.application.clock import LedgerClock
from kingtiles_relayer.application.in_flight import InFlightGuard
from kingtiles_relayer.application.ports.ledger import BaseLedgerPort
from kingtiles_relayer.application.services.ticks import TickScheduler
from kingtiles_relayer.domain.session import Session

logger = logging.getLogger("kingtiles_relayer.delegation")
tracer = trace.get_tracer("kingtiles_relayer.delegation")


class DelegationManager:
    """Ensures a started session is delegated and ticking.

    Triggered by the game-started event and by the watchdog; both may race,
    so the ownership check makes delegation idempotent and the start guard
    keeps two invocations for one session from overlapping.
    """

    def __init__(
        self,
        *,
        base_ledger: BaseLedgerPort,
        clock: LedgerClock,
        scheduler: TickScheduler,
        end_session: Callable[[int], Awaitable[None]],
        tasks: BackgroundTasks,
        game_duration_seconds: float = 60.0,
    ) -> None:
        self._base = base_ledger
        self._clock = clock
        self._scheduler = scheduler
        self._end_session = end_session
        self._tasks = tasks
        self._game_duration_seconds = game_duration_seconds
        self._start_guard = InFlightGuard("start")

    @property
    def start_guard(self) -> InFlightGuard:
        return self._start_guard

    async def ensure_active(self, session: Session) -> None:
        session_id = session.session_id
        if self._scheduler.is_ticking(session_id):
            return
        if not self._start_guard.try_acquire(session_id):
            logger.info("delegation already in flight", extra={"data": {"session_id": session_id}})
            return
        try:
            with tracer.start_as_current_span("delegation.ensure_active", attributes={"session_id": session_id}):
                await self._ensure_active(session)
        except Exception as exc:
            # the watchdog retries on its next sweep
            logger.error(
                "delegation failed",
                extra={"data": {"session_id": session_id, "error": str(exc)}},
            )
        finally:
            self._start_guard.release(session_id)

    async def _ensure_active(self, session: Session) -> None:
        session_id = session.session_id
        owner = await self._base.get_account_owner(session.board_address)
        if owner is not None and owner != self._base.program_id:
            logger.info(
                "board already delegated; skipping delegate call",
                extra={"data": {"session_id": session_id, "owner": owner}},
            )
        else:
            tx_hash = await self._base.delegate_board(session_id)
            session.record_delegate(tx_hash)
            logger.info("board delegated", extra={"data": {"session_id": session_id, "tx_hash": tx_hash}})

        remaining = await self._remaining_seconds(session_id)
        if remaining <= 0:
            logger.info("session already past end time; settling", extra={"data": {"session_id": session_id}})
            # reward retries can run for minutes
            self._tasks.spawn(self._end_session(session_id), name=f"delegation-end-{session_id}")
            return
        self._scheduler.start(session_id, remaining)

    async def _remaining_seconds(self, session_id: int) -> float:
        try:
            board = await self._base.fetch_board(session_id)
        except Exception as exc:
            logger.warning(
                "could not read end timestamp; using full game duration",
                extra={"data": {"session_id": session_id, "error": str(exc)}},
            )
            return self._game_duration_seconds
        now = await self._clock.now()
        return board.seconds_remaining(now)


__all__ = ["DelegationManager"]
