from __future__ import annotations

from dataclasses import dataclass

from kingtiles_relayer.application.background import BackgroundTasks
from kingtiles_relayer.application.clock import LedgerClock
from kingtiles_relayer.application.retry import RetryPolicy
from kingtiles_relayer.application.services.delegation import DelegationManager
from kingtiles_relayer.application.services.recovery import RecoveryManager
from kingtiles_relayer.application.services.settlement import SettlementConfig, SettlementManager
from kingtiles_relayer.application.services.status import StatusReadConfig, StatusReader, StatusView
from kingtiles_relayer.application.services.ticks import TickPeriods, TickScheduler
from kingtiles_relayer.infrastructure.state.completed_games import InMemoryCompletedGameStore
from kingtiles_relayer.infrastructure.state.session_registry import InMemorySessionRegistry
from kingtiles_relayer.infrastructure.state.status_cache import StatusCache
from tests.fixtures.leaderboard import RecordingLeaderboard
from tests.fixtures.ledger import FakeBaseLedger, FakeExecutionLayer

NO_WAIT = RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0)

FAST_SETTLEMENT = SettlementConfig(
    settling_delay_seconds=0.0,
    reward_policy=NO_WAIT,
    ownership_policy=NO_WAIT,
    not_over_min_wait_seconds=0.0,
    not_over_padding_seconds=0.0,
)

FAST_STATUS = StatusReadConfig(
    execution_policy=RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0),
    execution_active_policy=RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0),
)

# long periods so only the immediate firing happens inside a test
IDLE_PERIODS = TickPeriods(score_seconds=60.0, king_seconds=60.0, powerup_seconds=60.0, bomb_seconds=60.0)


@dataclass
class Harness:
    base: FakeBaseLedger
    execution: FakeExecutionLayer
    registry: InMemorySessionRegistry
    completed: InMemoryCompletedGameStore
    cache: StatusCache[StatusView]
    clock: LedgerClock
    tasks: BackgroundTasks
    scheduler: TickScheduler
    leaderboard: RecordingLeaderboard
    settlement: SettlementManager
    delegation: DelegationManager
    recovery: RecoveryManager
    status: StatusReader

    async def aclose(self) -> None:
        await self.scheduler.aclose()
        await self.tasks.aclose()


def build_harness(
    *,
    now: int = 1_000,
    settlement_config: SettlementConfig = FAST_SETTLEMENT,
    periods: TickPeriods = IDLE_PERIODS,
    leaderboard_enabled: bool = True,
    game_duration_seconds: float = 60.0,
) -> Harness:
    base = FakeBaseLedger(now=now)
    execution = FakeExecutionLayer(base)
    registry = InMemorySessionRegistry()
    completed = InMemoryCompletedGameStore()
    cache: StatusCache[StatusView] = StatusCache()
    clock = LedgerClock(base)
    tasks = BackgroundTasks()
    scheduler = TickScheduler(execution=execution, periods=periods)
    leaderboard = RecordingLeaderboard(enabled=leaderboard_enabled)
    settlement = SettlementManager(
        registry=registry,
        completed=completed,
        status_cache=cache,
        base_ledger=base,
        execution=execution,
        clock=clock,
        scheduler=scheduler,
        leaderboard=leaderboard,
        tasks=tasks,
        explorer_url=lambda tx_hash: f"https://explorer.test/tx/{tx_hash}",
        config=settlement_config,
    )
    scheduler.bind_expiry(settlement.end_session)
    delegation = DelegationManager(
        base_ledger=base,
        clock=clock,
        scheduler=scheduler,
        end_session=settlement.end_session,
        tasks=tasks,
        game_duration_seconds=game_duration_seconds,
    )
    recovery = RecoveryManager(
        base_ledger=base,
        registry=registry,
        clock=clock,
        scheduler=scheduler,
        end_session=settlement.end_session,
        tasks=tasks,
    )
    status = StatusReader(
        registry=registry,
        completed=completed,
        cache=cache,
        base_ledger=base,
        execution=execution,
        clock=clock,
        config=FAST_STATUS,
    )
    return Harness(
        base=base,
        execution=execution,
        registry=registry,
        completed=completed,
        cache=cache,
        clock=clock,
        tasks=tasks,
        scheduler=scheduler,
        leaderboard=leaderboard,
        settlement=settlement,
        delegation=delegation,
        recovery=recovery,
        status=status,
    )
