"""Rebuild the live session registry from base-ledger state at startup."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from kingtiles_relayer.application.background import BackgroundTasks
from kingtiles_relayer.application.clock import LedgerClock
from kingtiles_relayer.application.ports.ledger import BaseLedgerPort, BoardAccount
from kingtiles_relayer.application.ports.state import SessionRegistryPort
from kingtiles_relayer.application.services.ticks import TickScheduler
from kingtiles_relayer.domain.session import Session, SessionConfig

logger = logging.getLogger("kingtiles_relayer.recovery")


@dataclass(slots=True)
class RecoverySummary:
    waiting: list[int] = field(default_factory=list)
    resumed: list[int] = field(default_factory=list)
    settling: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def recovered(self) -> int:
        return len(self.waiting) + len(self.resumed) + len(self.settling)


class RecoveryManager:
    """Restores waiting and mid-game sessions so a restart converges to the right phase."""

    def __init__(
        self,
        *,
        base_ledger: BaseLedgerPort,
        registry: SessionRegistryPort,
        clock: LedgerClock,
        scheduler: TickScheduler,
        end_session: Callable[[int], Awaitable[None]],
        tasks: BackgroundTasks,
    ) -> None:
        self._base = base_ledger
        self._registry = registry
        self._clock = clock
        self._scheduler = scheduler
        self._end_session = end_session
        self._tasks = tasks

    async def recover(self) -> RecoverySummary:
        summary = RecoverySummary()
        logger.info("scanning base ledger for boards")
        try:
            accounts = await self._base.list_boards()
        except Exception as exc:
            logger.error("board enumeration failed", extra={"data": {"error": str(exc)}})
            summary.failed.append(f"enumerate: {exc}")
            return summary

        now = await self._clock.now()
        for account in accounts:
            try:
                self._restore(account, now, summary)
            except Exception as exc:
                logger.exception(
                    "failed to restore board",
                    extra={"data": {"address": account.address, "error": str(exc)}},
                )
                summary.failed.append(account.address)

        logger.info(
            "recovery completed",
            extra={
                "data": {
                    "recovered": summary.recovered,
                    "waiting": summary.waiting,
                    "resumed": summary.resumed,
                    "settling": summary.settling,
                    "failed": len(summary.failed),
                }
            },
        )
        return summary

    def _restore(self, account: BoardAccount, now: int, summary: RecoverySummary) -> None:
        board = account.board
        if not board.is_active and not board.is_waiting_for_players:
            return
        session_id = board.session_id
        if self._registry.get(session_id) is not None:
            summary.skipped.append(session_id)
            return

        session = Session(
            session_id=session_id,
            board_address=account.address,
            config=SessionConfig(
                board_side_len=board.board_side_len,
                max_players=board.max_players,
                registration_fee=board.registration_fee,
                reward_per_score=board.reward_per_score,
            ),
        )
        self._registry.put(session)

        if board.is_waiting_for_players:
            summary.waiting.append(session_id)
            logger.info(
                "restored waiting board",
                extra={"data": {"session_id": session_id, "mode": board.mode.key}},
            )
            return

        remaining = board.seconds_remaining(now)
        if remaining > 0:
            summary.resumed.append(session_id)
            logger.info(
                "restored active board",
                extra={"data": {"session_id": session_id, "mode": board.mode.key, "remaining_seconds": remaining}},
            )
            self._scheduler.start(session_id, remaining)
            return

        summary.settling.append(session_id)
        logger.info("restored board already past end time; settling", extra={"data": {"session_id": session_id}})
        self._tasks.spawn(self._end_session(session_id), name=f"recovery-end-{session_id}")


__all__ = ["RecoveryManager", "RecoverySummary"]
