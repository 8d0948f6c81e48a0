"""Per-session periodic on-chain effects and the end-of-game countdown."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from kingtiles_relayer.application.ports.ledger import ExecutionLayerPort

logger = logging.getLogger("kingtiles_relayer.ticks")

ExpiryCallback = Callable[[int], Awaitable[None]]


@dataclass(frozen=True)
class TickPeriods:
    score_seconds: float = 1.0
    king_seconds: float = 5.0
    powerup_seconds: float = 7.0
    bomb_seconds: float = 10.0


@dataclass(slots=True)
class _SessionTimers:
    periodic: list[asyncio.Task[None]]
    countdown: asyncio.Task[None]
    actions: set[asyncio.Task[Any]] = field(default_factory=set)

    def all_tasks(self) -> list[asyncio.Task[Any]]:
        return [*self.periodic, self.countdown, *self.actions]


class TickScheduler:
    """Runs four independent periodic actions plus one countdown per session.

    Every periodic action fires immediately and then on its own period. Each
    firing runs as its own task so a slow transaction never delays the next
    firing or any other action. Only :meth:`stop` ends ticking.
    """

    def __init__(
        self,
        *,
        execution: ExecutionLayerPort,
        periods: TickPeriods | None = None,
        on_expire: ExpiryCallback | None = None,
    ) -> None:
        self._execution = execution
        self._periods = periods or TickPeriods()
        self._on_expire = on_expire
        self._timers: dict[int, _SessionTimers] = {}

    def bind_expiry(self, on_expire: ExpiryCallback) -> None:
        self._on_expire = on_expire

    def is_ticking(self, session_id: int) -> bool:
        return session_id in self._timers

    def ticking_ids(self) -> frozenset[int]:
        return frozenset(self._timers)

    def start(self, session_id: int, remaining_seconds: float) -> None:
        """(Re)start ticking ``session_id`` for ``remaining_seconds``."""
        self.stop(session_id)
        actions: list[tuple[str, float, Callable[[int], Awaitable[str]]]] = [
            ("score", self._periods.score_seconds, self._execution.accrue_scores),
            ("king", self._periods.king_seconds, self._execution.request_king_move),
            ("powerup", self._periods.powerup_seconds, self._execution.request_powerup_spawn),
            ("bomb", self._periods.bomb_seconds, self._execution.request_bomb_drop),
        ]
        countdown = asyncio.create_task(
            self._countdown(session_id, remaining_seconds),
            name=f"ticks-{session_id}-countdown",
        )
        timers = _SessionTimers(periodic=[], countdown=countdown)
        self._timers[session_id] = timers
        for label, period, action in actions:
            timers.periodic.append(
                asyncio.create_task(
                    self._periodic(session_id, timers, label, period, action),
                    name=f"ticks-{session_id}-{label}",
                )
            )
        logger.info(
            "ticking started",
            extra={"data": {"session_id": session_id, "remaining_seconds": round(remaining_seconds, 3)}},
        )

    def stop(self, session_id: int) -> None:
        """Cancel every timer of ``session_id``; never cancels the calling task."""
        timers = self._timers.pop(session_id, None)
        if timers is None:
            return
        current = asyncio.current_task()
        for task in timers.all_tasks():
            if task is not current and not task.done():
                task.cancel()
        logger.info("ticking stopped", extra={"data": {"session_id": session_id}})

    async def aclose(self) -> None:
        tasks: list[asyncio.Task[Any]] = []
        for session_id in list(self._timers):
            timers = self._timers.get(session_id)
            if timers is not None:
                tasks.extend(timers.all_tasks())
            self.stop(session_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _periodic(
        self,
        session_id: int,
        timers: _SessionTimers,
        label: str,
        period: float,
        action: Callable[[int], Awaitable[str]],
    ) -> None:
        while True:
            task = asyncio.create_task(
                self._fire(session_id, label, action),
                name=f"ticks-{session_id}-{label}-fire",
            )
            timers.actions.add(task)
            task.add_done_callback(timers.actions.discard)
            await asyncio.sleep(period)

    async def _fire(
        self,
        session_id: int,
        label: str,
        action: Callable[[int], Awaitable[str]],
    ) -> None:
        try:
            tx_hash = await action(session_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "tick action failed",
                extra={"data": {"session_id": session_id, "action": label, "error": str(exc)}},
            )
            return
        logger.debug(
            "tick action confirmed",
            extra={"data": {"session_id": session_id, "action": label, "tx_hash": tx_hash}},
        )

    async def _countdown(self, session_id: int, remaining_seconds: float) -> None:
        await asyncio.sleep(max(0.0, remaining_seconds))
        logger.info("session duration elapsed", extra={"data": {"session_id": session_id}})
        if self._on_expire is None:
            logger.warning("no expiry handler bound", extra={"data": {"session_id": session_id}})
            self.stop(session_id)
            return
        await self._on_expire(session_id)


__all__ = ["TickPeriods", "TickScheduler"]
