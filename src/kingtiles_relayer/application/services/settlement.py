"""Session end, snapshot capture and reward distribution."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from opentelemetry import trace

from kingtiles_relayer.application.background import BackgroundTasks
from kingtiles_relayer.application.clock import LedgerClock
from kingtiles_relayer.application.in_flight import InFlightGuard
from kingtiles_relayer.application.ports.leaderboard import LeaderboardPort
from kingtiles_relayer.application.ports.ledger import BaseLedgerPort, ExecutionLayerPort
from kingtiles_relayer.application.ports.state import CompletedGameStorePort, SessionRegistryPort, StatusCachePort
from kingtiles_relayer.application.retry import RetryPolicy
from kingtiles_relayer.application.services.ticks import TickScheduler
from kingtiles_relayer.domain.board import BoardState, BoardStatus
from kingtiles_relayer.domain.exceptions import (
    AccountNotFoundError,
    OwnershipMismatchError,
    RewardDistributionInFlightError,
    SessionStillActiveError,
    TransactionFailedError,
)
from kingtiles_relayer.domain.session import CompletedGameSnapshot, TransactionTrace

logger = logging.getLogger("kingtiles_relayer.settlement")
tracer = trace.get_tracer("kingtiles_relayer.settlement")

BASE_LEDGER_SOURCE = "base"


@dataclass(frozen=True)
class SettlementConfig:
    settling_delay_seconds: float = 5.0
    reward_policy: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=10, base_delay=12.0, max_delay=60.0, jitter_ratio=0.2)
    )
    ownership_policy: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=6, base_delay=6.0, max_delay=30.0, jitter_ratio=0.2)
    )
    not_over_min_wait_seconds: float = 2.0
    not_over_padding_seconds: float = 0.5


@dataclass(frozen=True, slots=True)
class RewardOutcome:
    session_id: int
    tx_hash: str | None
    error: str | None
    attempts: int

    @property
    def succeeded(self) -> bool:
        return self.tx_hash is not None


class _NotOverYet(Exception):
    def __init__(self, wait_seconds: float) -> None:
        super().__init__(f"session not over yet; waiting {wait_seconds:.1f}s")
        self.wait_seconds = wait_seconds


class SettlementManager:
    """Ends sessions exactly once and pays players with bounded retries.

    Lifecycle per session: ticking, ending, snapshot captured, reward pending,
    then reward settled or reward failed. ``end_session`` and the reward
    sequence each hold their own per-session guard.
    """

    def __init__(
        self,
        *,
        registry: SessionRegistryPort,
        completed: CompletedGameStorePort,
        status_cache: StatusCachePort,
        base_ledger: BaseLedgerPort,
        execution: ExecutionLayerPort,
        clock: LedgerClock,
        scheduler: TickScheduler,
        leaderboard: LeaderboardPort,
        tasks: BackgroundTasks,
        explorer_url: Callable[[str], str],
        config: SettlementConfig | None = None,
    ) -> None:
        self._registry = registry
        self._completed = completed
        self._cache = status_cache
        self._base = base_ledger
        self._execution = execution
        self._clock = clock
        self._scheduler = scheduler
        self._leaderboard = leaderboard
        self._tasks = tasks
        self._explorer_url = explorer_url
        self._config = config or SettlementConfig()
        self._end_guard = InFlightGuard("end")
        self._reward_guard = InFlightGuard("reward")
        # traces of ended sessions whose post-end snapshot could not be captured
        self._unsnapshotted: dict[int, TransactionTrace] = {}

    @property
    def end_guard(self) -> InFlightGuard:
        return self._end_guard

    @property
    def reward_guard(self) -> InFlightGuard:
        return self._reward_guard

    # --- End ---

    async def end_session(self, session_id: int) -> None:
        """End ``session_id`` on the execution layer and settle it on the base ledger."""
        if not self._end_guard.try_acquire(session_id):
            logger.info("session end already in flight", extra={"data": {"session_id": session_id}})
            return
        try:
            with tracer.start_as_current_span("settlement.end_session", attributes={"session_id": session_id}):
                await self._end_session(session_id)
        finally:
            self._end_guard.release(session_id)

    async def _end_session(self, session_id: int) -> None:
        self._scheduler.stop(session_id)
        session = self._registry.get(session_id)
        if session is None:
            logger.info("session not live; nothing to end", extra={"data": {"session_id": session_id}})
            return

        remaining = await self._remaining_on_ledger(session_id)
        if remaining is not None and remaining > 0:
            logger.info(
                "session not over on ledger; resuming ticking",
                extra={"data": {"session_id": session_id, "remaining_seconds": remaining}},
            )
            self._scheduler.start(session_id, remaining)
            return

        try:
            end_tx = await self._execution.end_session(session_id)
        except Exception as exc:
            # left live so the watchdog can drive it again
            logger.error(
                "end transaction failed",
                extra={"data": {"session_id": session_id, "error": str(exc), **_failure_logs(exc)}},
            )
            return
        session.record_end(end_tx)
        logger.info("session ended", extra={"data": {"session_id": session_id, "tx_hash": end_tx}})

        await asyncio.sleep(self._config.settling_delay_seconds)
        if not await self._capture_snapshot(session_id, session.board_address, session.trace):
            self._unsnapshotted[session_id] = session.trace
        self._registry.remove(session_id)
        await self.distribute_rewards(session_id, session.trace)

    async def _remaining_on_ledger(self, session_id: int) -> int | None:
        try:
            board = await self._base.fetch_board(session_id)
        except Exception as exc:
            logger.warning(
                "could not read end timestamp; proceeding with end",
                extra={"data": {"session_id": session_id, "error": str(exc)}},
            )
            return None
        now = await self._clock.now()
        if board.is_over(now):
            return 0
        return board.seconds_remaining(now)

    async def _capture_snapshot(self, session_id: int, board_address: str, trace_state: TransactionTrace) -> bool:
        try:
            board = await self._base.fetch_board(session_id)
        except Exception as exc:
            logger.warning(
                "unable to capture post-end board",
                extra={"data": {"session_id": session_id, "error": str(exc)}},
            )
            return False
        snapshot = await self._store_snapshot(board, board_address, trace_state)
        logger.info(
            "completed snapshot stored",
            extra={"data": {"session_id": session_id, "players": snapshot.status.players_count}},
        )
        await self._sync_leaderboard(session_id, board)
        return True

    async def _store_snapshot(
        self,
        board: BoardState,
        board_address: str,
        trace_state: TransactionTrace,
    ) -> CompletedGameSnapshot:
        now = await self._clock.now()
        snapshot = CompletedGameSnapshot(
            status=BoardStatus.from_board(
                board,
                session_id=board.session_id,
                board_address=board_address,
                source=BASE_LEDGER_SOURCE,
                now=now,
            ),
            trace=trace_state,
            completed_at=datetime.now(UTC),
        )
        self._completed.put(snapshot)
        self._cache.invalidate(board.session_id)
        self._unsnapshotted.pop(board.session_id, None)
        return snapshot

    async def _sync_leaderboard(self, session_id: int, board: BoardState) -> None:
        if not self._leaderboard.enabled:
            logger.info("leaderboard not configured; skipping sync", extra={"data": {"session_id": session_id}})
            return
        for player in board.registered_players():
            try:
                await self._leaderboard.upsert(player.wallet, player.score, session_id)
            except Exception as exc:
                logger.error(
                    "leaderboard sync failed",
                    extra={"data": {"session_id": session_id, "wallet": player.wallet, "error": str(exc)}},
                )

    # --- Rewards ---

    async def retry_rewards(self, session_id: int) -> None:
        """Manual entry point: re-run reward distribution for an ended session."""
        board = await self._base.fetch_board(session_id)
        if board.is_active:
            raise SessionStillActiveError(
                f"session {session_id} is still active; retry rewards only after it ends"
            )
        if self._reward_guard.is_held(session_id):
            raise RewardDistributionInFlightError(f"reward distribution already running for session {session_id}")
        existing = self._completed.get(session_id)
        if existing is not None:
            trace_state = existing.trace
        else:
            trace_state = self._unsnapshotted.get(session_id, TransactionTrace())
        logger.info("manual reward retry scheduled", extra={"data": {"session_id": session_id}})
        self._tasks.spawn(self.distribute_rewards(session_id, trace_state), name=f"rewards-{session_id}")

    async def distribute_rewards(self, session_id: int, trace_state: TransactionTrace) -> RewardOutcome | None:
        """Run the reward sequence; ``None`` when one is already in flight."""
        if not self._reward_guard.try_acquire(session_id):
            logger.info("reward distribution already in flight", extra={"data": {"session_id": session_id}})
            return None
        try:
            with tracer.start_as_current_span("settlement.distribute_rewards", attributes={"session_id": session_id}):
                return await self._reward_loop(session_id, trace_state)
        finally:
            self._reward_guard.release(session_id)

    async def _reward_loop(self, session_id: int, trace_state: TransactionTrace) -> RewardOutcome:
        reward_policy = self._config.reward_policy
        ownership_policy = self._config.ownership_policy
        failures = 0
        mismatches = 0
        while True:
            attempt = failures + mismatches + 1
            logger.info(
                "distributing rewards",
                extra={"data": {"session_id": session_id, "attempt": attempt, "max_attempts": reward_policy.max_attempts}},
            )
            try:
                tx_hash = await self._attempt_reward(session_id, trace_state)
            except _NotOverYet as wait:
                logger.info(
                    "session not over on ledger; waiting before reward",
                    extra={"data": {"session_id": session_id, "wait_seconds": wait.wait_seconds}},
                )
                await asyncio.sleep(wait.wait_seconds)
                continue
            except OwnershipMismatchError as exc:
                mismatches += 1
                logger.warning(
                    "board owner mismatch at reward time",
                    extra={"data": {"session_id": session_id, "owner": exc.owner, "expected": exc.expected}},
                )
                await self._refinalize(session_id)
                if not ownership_policy.allows_retry_after(mismatches):
                    message = f"{exc} (persisted after {mismatches} attempts)"
                    return self._record_exhausted(session_id, message, attempt)
                delay = ownership_policy.delay_for(mismatches)
                logger.info(
                    "owner mismatch retry scheduled",
                    extra={"data": {"session_id": session_id, "delay_seconds": round(delay, 3)}},
                )
                await asyncio.sleep(delay)
                continue
            except Exception as exc:
                failures += 1
                logger.error(
                    "reward attempt failed",
                    extra={"data": {"session_id": session_id, "attempt": attempt, "error": str(exc), **_failure_logs(exc)}},
                )
                if not reward_policy.allows_retry_after(failures):
                    return self._record_exhausted(session_id, str(exc), attempt)
                delay = reward_policy.delay_for(failures)
                logger.info(
                    "reward retry scheduled",
                    extra={"data": {"session_id": session_id, "delay_seconds": round(delay, 3)}},
                )
                await asyncio.sleep(delay)
                continue
            return RewardOutcome(session_id=session_id, tx_hash=tx_hash, error=None, attempts=attempt)

    async def _attempt_reward(self, session_id: int, trace_state: TransactionTrace) -> str:
        address = self._base.board_address(session_id)
        owner = await self._base.get_account_owner(address)
        if owner is None:
            raise AccountNotFoundError(f"board account missing on base ledger for session {session_id}")
        if owner != self._base.program_id:
            raise OwnershipMismatchError(session_id=session_id, owner=owner, expected=self._base.program_id)

        board = await self._base.fetch_board(session_id)
        now = await self._clock.now()
        if not board.is_over(now):
            wait = max(
                self._config.not_over_min_wait_seconds,
                board.seconds_remaining(now) + self._config.not_over_padding_seconds,
            )
            raise _NotOverYet(wait)

        payees = [player.wallet for player in board.registered_players()]
        tx_hash = await self._base.distribute_rewards(session_id, payees)
        explorer = self._explorer_url(tx_hash)
        logger.info(
            "rewards distributed",
            extra={"data": {"session_id": session_id, "tx_hash": tx_hash, "explorer_url": explorer, "payees": payees}},
        )

        final_trace = trace_state.with_reward(tx_hash, explorer)
        session = self._registry.get(session_id)
        if session is not None:
            session.record_reward(tx_hash, explorer)
        try:
            final_board = await self._base.fetch_board(session_id)
        except Exception as exc:
            logger.warning(
                "final board read failed; reusing pre-reward board",
                extra={"data": {"session_id": session_id, "error": str(exc)}},
            )
            final_board = board
        await self._store_snapshot(final_board, address, final_trace)
        return tx_hash

    async def _refinalize(self, session_id: int) -> None:
        try:
            tx_hash = await self._execution.end_session(session_id)
        except Exception as exc:
            logger.warning(
                "re-finalize on execution layer failed",
                extra={"data": {"session_id": session_id, "error": str(exc), **_failure_logs(exc)}},
            )
            return
        logger.info("re-finalize submitted", extra={"data": {"session_id": session_id, "tx_hash": tx_hash}})
        await asyncio.sleep(self._config.settling_delay_seconds)

    def _record_exhausted(self, session_id: int, message: str, attempts: int) -> RewardOutcome:
        logger.error(
            "reward attempts exhausted; manual retry required",
            extra={"data": {"session_id": session_id, "attempts": attempts, "error": message}},
        )
        existing = self._completed.get(session_id)
        if existing is not None:
            self._completed.put(existing.with_reward_error(message))
            self._cache.invalidate(session_id)
        return RewardOutcome(session_id=session_id, tx_hash=None, error=message, attempts=attempts)


def _failure_logs(exc: Exception) -> dict[str, object]:
    if isinstance(exc, TransactionFailedError) and exc.logs:
        return {"signature": exc.signature, "program_logs": list(exc.logs)}
    return {}


__all__ = ["RewardOutcome", "SettlementConfig", "SettlementManager"]
