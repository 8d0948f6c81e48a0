"""Background worker that re-drives live sessions that are active but not ticking."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from kingtiles_relayer.application.in_flight import InFlightGuard
from kingtiles_relayer.application.ports.ledger import BaseLedgerPort
from kingtiles_relayer.application.ports.state import SessionRegistryPort
from kingtiles_relayer.application.services.delegation import DelegationManager
from kingtiles_relayer.application.services.ticks import TickScheduler

if TYPE_CHECKING:
    from kingtiles_relayer.runtime.bootstrap import RuntimeContext

logger = logging.getLogger("kingtiles_relayer.watchdog")

DEFAULT_INTERVAL_SECONDS = 5.0


class Watchdog:
    """Periodically hands every active, non-ticking session back to delegation.

    Covers waiting sessions that filled up without an observed start event and
    sessions whose first delegation attempt failed.
    """

    worker_name = "kingtiles-watchdog"

    def __init__(
        self,
        *,
        registry: SessionRegistryPort,
        base_ledger: BaseLedgerPort,
        scheduler: TickScheduler,
        delegation: DelegationManager,
        end_guard: InFlightGuard,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._registry = registry
        self._base = base_ledger
        self._scheduler = scheduler
        self._delegation = delegation
        self._end_guard = end_guard
        self._interval = interval_seconds
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start the sweep loop (idempotent)."""
        if self._task is not None and not self._task.done():
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name=self.worker_name)

    async def stop(self, *, timeout: float = 5.0) -> None:
        task = self._task
        if task is None:
            return
        self._stop.set()
        try:
            await asyncio.wait_for(task, timeout=timeout)
        finally:
            self._task = None

    @property
    def running(self) -> bool:
        task = self._task
        return bool(task is not None and not task.done())

    async def sweep(self) -> list[int]:
        """Run one pass; returns the session ids handed to delegation."""
        driven: list[int] = []
        for session in self._registry.list():
            session_id = session.session_id
            if self._scheduler.is_ticking(session_id) or self._end_guard.is_held(session_id):
                continue
            try:
                board = await self._base.fetch_board(session_id)
            except Exception as exc:
                logger.debug(
                    "watchdog board read failed",
                    extra={"data": {"session_id": session_id, "error": str(exc)}},
                )
                continue
            if not board.is_active:
                continue
            logger.info("active session not ticking; re-driving", extra={"data": {"session_id": session_id}})
            driven.append(session_id)
            await self._delegation.ensure_active(session)
        return driven

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except TimeoutError:
                pass
            else:
                return
            try:
                await self.sweep()
            except Exception:
                logger.exception("watchdog sweep failed")


def create_watchdog(context: RuntimeContext) -> Watchdog:
    """Build a watchdog wired from a runtime context."""
    return Watchdog(
        registry=context.session_registry,
        base_ledger=context.base_ledger,
        scheduler=context.scheduler,
        delegation=context.delegation,
        end_guard=context.settlement.end_guard,
        interval_seconds=context.settings.orchestrator.watchdog_interval_seconds,
    )


__all__ = ["DEFAULT_INTERVAL_SECONDS", "Watchdog", "create_watchdog"]
