"""Runtime wiring for the relayer service."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from kingtiles_relayer.application.background import BackgroundTasks
from kingtiles_relayer.application.clock import LedgerClock
from kingtiles_relayer.application.services.delegation import DelegationManager
from kingtiles_relayer.application.services.events import GameStartedHandler
from kingtiles_relayer.application.services.recovery import RecoveryManager
from kingtiles_relayer.application.services.session_creator import SessionCreator
from kingtiles_relayer.application.services.settlement import SettlementManager
from kingtiles_relayer.application.services.status import StatusReader, StatusView
from kingtiles_relayer.application.services.ticks import TickScheduler
from kingtiles_relayer.infrastructure.http.routes import SessionRouteDeps
from kingtiles_relayer.infrastructure.leaderboard.supabase import SupabaseLeaderboard
from kingtiles_relayer.infrastructure.ledger.client import SolanaBaseLedger, SolanaExecutionLayer
from kingtiles_relayer.infrastructure.ledger.events import LogsSubscriptionEventSource
from kingtiles_relayer.infrastructure.ledger.explorer import ExplorerLinks
from kingtiles_relayer.infrastructure.ledger.instructions import GameProgram
from kingtiles_relayer.infrastructure.ledger.keypair import load_custody_keypair
from kingtiles_relayer.infrastructure.ledger.rpc import SolanaRpcClient
from kingtiles_relayer.infrastructure.state.completed_games import InMemoryCompletedGameStore
from kingtiles_relayer.infrastructure.state.session_registry import InMemorySessionRegistry
from kingtiles_relayer.infrastructure.state.status_cache import StatusCache
from kingtiles_relayer.runtime.settings import Settings

logger = logging.getLogger("kingtiles_relayer.runtime")


@dataclass(frozen=True, slots=True)
class RuntimeContext:
    """Aggregated runtime components for the relayer service."""

    settings: Settings
    custody: Keypair
    base_ledger: SolanaBaseLedger
    execution: SolanaExecutionLayer
    session_registry: InMemorySessionRegistry
    completed_games: InMemoryCompletedGameStore
    status_cache: StatusCache[StatusView]
    clock: LedgerClock
    tasks: BackgroundTasks
    scheduler: TickScheduler
    settlement: SettlementManager
    delegation: DelegationManager
    recovery: RecoveryManager
    session_creator: SessionCreator
    status_reader: StatusReader
    leaderboard: SupabaseLeaderboard
    event_source: LogsSubscriptionEventSource
    event_handler: GameStartedHandler
    route_deps_provider: Callable[[], SessionRouteDeps]


@dataclass(frozen=True, slots=True)
class InMemoryState:
    session_registry: InMemorySessionRegistry
    completed_games: InMemoryCompletedGameStore
    status_cache: StatusCache[StatusView]
    tasks: BackgroundTasks


def build_runtime(settings: Settings | None = None) -> RuntimeContext:
    """Construct the runtime context; an unusable custody key aborts startup."""
    resolved = settings or Settings.load()
    ledger_settings = resolved.ledger
    orchestrator = resolved.orchestrator

    custody = load_custody_keypair(ledger_settings.treasury_secret_value)
    program = GameProgram(
        program_id=Pubkey.from_string(ledger_settings.program_id),
        custody=custody.pubkey(),
        oracle_queue=Pubkey.from_string(ledger_settings.oracle_queue),
    )
    logger.info(
        "loaded custody key",
        extra={
            "data": {
                "custody_address": str(custody.pubkey()),
                "expected_custody": ledger_settings.treasury_pubkey,
                "program_id": ledger_settings.program_id,
            }
        },
    )
    if str(custody.pubkey()) != ledger_settings.treasury_pubkey:
        logger.warning(
            "custody key does not match the program treasury; session creation will be refused",
            extra={"data": {"custody_address": str(custody.pubkey()), "expected": ledger_settings.treasury_pubkey}},
        )

    state = _build_state()
    base_ledger, execution = _build_ledgers(resolved, program, custody)
    clock = LedgerClock(base_ledger)
    leaderboard = SupabaseLeaderboard(
        base_url=resolved.leaderboard.supabase_url,
        service_role_key=resolved.leaderboard.service_role_key_value,
        table=resolved.leaderboard.table,
        timeout_seconds=resolved.leaderboard.timeout_seconds,
    )
    explorer = ExplorerLinks(
        tx_base_url=ledger_settings.explorer_tx_base_url,
        cluster=ledger_settings.explorer_cluster,
    )

    scheduler = TickScheduler(execution=execution, periods=orchestrator.tick_periods())
    settlement = SettlementManager(
        registry=state.session_registry,
        completed=state.completed_games,
        status_cache=state.status_cache,
        base_ledger=base_ledger,
        execution=execution,
        clock=clock,
        scheduler=scheduler,
        leaderboard=leaderboard,
        tasks=state.tasks,
        explorer_url=explorer.transaction,
        config=orchestrator.settlement_config(),
    )
    scheduler.bind_expiry(settlement.end_session)
    delegation = DelegationManager(
        base_ledger=base_ledger,
        clock=clock,
        scheduler=scheduler,
        end_session=settlement.end_session,
        tasks=state.tasks,
        game_duration_seconds=orchestrator.game_duration_seconds,
    )
    recovery = RecoveryManager(
        base_ledger=base_ledger,
        registry=state.session_registry,
        clock=clock,
        scheduler=scheduler,
        end_session=settlement.end_session,
        tasks=state.tasks,
    )
    session_creator = SessionCreator(
        base_ledger=base_ledger,
        registry=state.session_registry,
        status_cache=state.status_cache,
        expected_custody=ledger_settings.treasury_pubkey,
    )
    status_reader = StatusReader(
        registry=state.session_registry,
        completed=state.completed_games,
        cache=state.status_cache,
        base_ledger=base_ledger,
        execution=execution,
        clock=clock,
        config=orchestrator.status_read_config(),
    )
    event_source = LogsSubscriptionEventSource(
        ws_url=ledger_settings.base_ws_url,
        program_id=ledger_settings.program_id,
        commitment=ledger_settings.commitment,
    )
    event_handler = GameStartedHandler(registry=state.session_registry, delegation=delegation)

    route_deps_provider = _make_route_provider(
        SessionRouteDeps(
            creator=session_creator,
            status_reader=status_reader,
            settlement=settlement,
            leaderboard=leaderboard,
            program_id=ledger_settings.program_id,
            custody_address=str(custody.pubkey()),
        )
    )

    return RuntimeContext(
        settings=resolved,
        custody=custody,
        base_ledger=base_ledger,
        execution=execution,
        session_registry=state.session_registry,
        completed_games=state.completed_games,
        status_cache=state.status_cache,
        clock=clock,
        tasks=state.tasks,
        scheduler=scheduler,
        settlement=settlement,
        delegation=delegation,
        recovery=recovery,
        session_creator=session_creator,
        status_reader=status_reader,
        leaderboard=leaderboard,
        event_source=event_source,
        event_handler=event_handler,
        route_deps_provider=route_deps_provider,
    )


def _build_state() -> InMemoryState:
    return InMemoryState(
        session_registry=InMemorySessionRegistry(),
        completed_games=InMemoryCompletedGameStore(),
        status_cache=StatusCache(),
        tasks=BackgroundTasks(),
    )


def _build_ledgers(
    settings: Settings,
    program: GameProgram,
    custody: Keypair,
) -> tuple[SolanaBaseLedger, SolanaExecutionLayer]:
    ledger_settings = settings.ledger

    def _rpc(endpoint: str, name: str) -> SolanaRpcClient:
        return SolanaRpcClient(
            endpoint=endpoint,
            name=name,
            commitment=ledger_settings.commitment,
            timeout=ledger_settings.http_timeout_seconds,
            confirm_timeout=ledger_settings.confirm_timeout_seconds,
        )

    base_ledger = SolanaBaseLedger(rpc=_rpc(ledger_settings.rpc_url, "base"), program=program, signer=custody)
    execution = SolanaExecutionLayer(
        rpc=_rpc(ledger_settings.er_endpoint, "execution"),
        program=program,
        signer=custody,
    )
    logger.info(
        "ledger clients configured",
        extra={"data": {"rpc_url": ledger_settings.rpc_url, "er_endpoint": ledger_settings.er_endpoint}},
    )
    return base_ledger, execution


def _make_route_provider(deps: SessionRouteDeps) -> Callable[[], SessionRouteDeps]:
    def provider() -> SessionRouteDeps:
        return deps

    return provider


async def close_runtime_resources(runtime: RuntimeContext) -> None:
    """Stop background work and close shared async clients."""

    async def _aclose(obj: _SupportsAclose | None) -> None:
        if obj is None:
            return
        try:
            await obj.aclose()
        except Exception as exc:  # pragma: no cover - best-effort cleanup
            logger.warning("resource close failed", extra={"data": {"resource": type(obj).__name__, "error": str(exc)}})

    runtime.event_source.close()
    await runtime.scheduler.aclose()
    await runtime.tasks.aclose()
    await _aclose(runtime.base_ledger)
    await _aclose(runtime.execution)
    await _aclose(runtime.leaderboard)


__all__ = ["RuntimeContext", "build_runtime", "close_runtime_resources"]


class _SupportsAclose(Protocol):
    async def aclose(self) -> None:
        ...
