"""HTTP route definitions for the relayer API."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, FastAPI, HTTPException, Query

from kingtiles_relayer.application.ports.leaderboard import LeaderboardPort
from kingtiles_relayer.application.services.session_creator import CreateSessionRequest, SessionCreator
from kingtiles_relayer.application.services.settlement import SettlementManager
from kingtiles_relayer.application.services.status import LiveSessionView, StatusReader, StatusView
from kingtiles_relayer.domain.board import BoardStatus
from kingtiles_relayer.domain.exceptions import (
    AccountNotFoundError,
    CustodyMismatchError,
    DuplicateSessionError,
    InvalidModeError,
    InvalidSessionConfigError,
    LeaderboardNotConfiguredError,
    LedgerRpcError,
    LedgerUnavailableError,
    RewardDistributionInFlightError,
    SessionStillActiveError,
)
from kingtiles_relayer.domain.session import CompletedGameSnapshot, TransactionTrace
from kingtiles_relayer.infrastructure.http.schemas import (
    BoardStatusModel,
    CompletedGameModel,
    CreateSessionBody,
    HealthResponse,
    LeaderboardEntryModel,
    LeaderboardResponse,
    LiveSessionModel,
    PlayerModel,
    RetryRewardBody,
    RetryRewardResponse,
    SessionCreatedResponse,
    SessionsResponse,
    StatusResponse,
    TraceModel,
)

logger = logging.getLogger("kingtiles_relayer.http")

SERVICE_NAME = "kingtiles-relayer"
ENDPOINTS = [
    "GET /",
    "POST /sessions",
    "GET /sessions",
    "GET /status?id=<session id>",
    "POST /retry-reward",
    "GET /leaderboard?limit=<n>",
]

_INPUT_ERRORS = (
    InvalidModeError,
    InvalidSessionConfigError,
    DuplicateSessionError,
    CustodyMismatchError,
    SessionStillActiveError,
)


@dataclass(frozen=True)
class SessionRouteDeps:
    creator: SessionCreator
    status_reader: StatusReader
    settlement: SettlementManager
    leaderboard: LeaderboardPort
    program_id: str
    custody_address: str


def add_session_routes(app: FastAPI, dependency_provider: Callable[[], SessionRouteDeps]) -> None:
    def get_dependencies() -> SessionRouteDeps:
        return dependency_provider()

    @app.get("/", response_model=HealthResponse, description="Service identity and live session ids.")
    def health(deps: SessionRouteDeps = Depends(get_dependencies)) -> HealthResponse:  # noqa: B008
        return HealthResponse(
            ok=True,
            service=SERVICE_NAME,
            program_id=deps.program_id,
            custody_address=deps.custody_address,
            live_session_ids=deps.status_reader.live_session_ids(),
            endpoints=list(ENDPOINTS),
        )

    @app.post(
        "/sessions",
        response_model=SessionCreatedResponse,
        description="Start a new session on the base ledger.",
    )
    async def create_session(
        payload: CreateSessionBody,
        deps: SessionRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> SessionCreatedResponse:
        request = CreateSessionRequest(
            session_id=payload.session_id,
            board_side_len=payload.board_side_len,
            max_players=payload.max_players,
            registration_fee=payload.registration_fee,
            reward_per_score=payload.reward_per_score,
        )
        try:
            session = await deps.creator.create(request)
        except _INPUT_ERRORS as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except LedgerRpcError as exc:
            _log_ledger_error("create_session", payload.session_id, exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return SessionCreatedResponse(
            ok=True,
            session_id=session.session_id,
            board_address=session.board_address,
            mode=session.config.mode.key,
            tx_hash=session.trace.start_tx,
        )

    @app.get(
        "/sessions",
        response_model=SessionsResponse,
        description="List live sessions and the latest completed game per mode.",
    )
    async def list_sessions(
        deps: SessionRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> SessionsResponse:
        overview = await deps.status_reader.overview()
        return SessionsResponse(
            sessions=[_serialize_live(view) for view in overview.live],
            last_completed=_serialize_completed(overview.last_completed) if overview.last_completed else None,
            last_completed_by_mode={
                mode: _serialize_completed(snapshot) for mode, snapshot in overview.last_completed_by_mode.items()
            },
        )

    @app.get(
        "/status",
        response_model=StatusResponse,
        description="Current board for one session, or the lowest live session when no id is given.",
    )
    async def status(
        session_id: int | None = Query(default=None, alias="id", ge=0),
        deps: SessionRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> StatusResponse:
        try:
            view = await deps.status_reader.get_status(session_id)
        except LedgerUnavailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except LedgerRpcError as exc:
            _log_ledger_error("status", session_id, exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return _serialize_status(view, deps.status_reader.live_session_ids())

    @app.post(
        "/retry-reward",
        response_model=RetryRewardResponse,
        description="Re-run reward distribution for an ended session.",
    )
    async def retry_reward(
        payload: RetryRewardBody,
        deps: SessionRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> RetryRewardResponse:
        try:
            await deps.settlement.retry_rewards(payload.session_id)
        except _INPUT_ERRORS as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except RewardDistributionInFlightError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except AccountNotFoundError as exc:
            raise HTTPException(status_code=404, detail=f"no board found for session {payload.session_id}") from exc
        except LedgerRpcError as exc:
            _log_ledger_error("retry_reward", payload.session_id, exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return RetryRewardResponse(
            ok=True,
            session_id=payload.session_id,
            message="reward distribution scheduled",
        )

    @app.get(
        "/leaderboard",
        response_model=LeaderboardResponse,
        description="Top wallets by best single-game score.",
    )
    async def leaderboard(
        limit: int = Query(default=5, ge=1, le=100),
        deps: SessionRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> LeaderboardResponse:
        try:
            entries = await deps.leaderboard.top(limit)
        except LeaderboardNotConfiguredError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except RuntimeError as exc:
            logger.warning("leaderboard read failed", extra={"data": {"error": str(exc)}})
            raise HTTPException(status_code=502, detail="leaderboard read failed") from exc
        return LeaderboardResponse(
            entries=[
                LeaderboardEntryModel(
                    wallet=entry.wallet,
                    best_score=entry.best_score,
                    last_game_score=entry.last_game_score,
                    last_game_id=entry.last_game_id,
                    games_played=entry.games_played,
                )
                for entry in entries
            ]
        )


# --- Helpers ---


def _log_ledger_error(route: str, session_id: int | None, exc: Exception) -> None:
    logger.warning(
        "ledger call failed while serving request",
        extra={"data": {"route": route, "session_id": session_id, "error": str(exc)}},
    )


def _serialize_trace(trace_state: TransactionTrace) -> TraceModel:
    return TraceModel(
        start_tx=trace_state.start_tx,
        delegate_tx=trace_state.delegate_tx,
        end_tx=trace_state.end_tx,
        reward_tx=trace_state.reward_tx,
        reward_explorer_url=trace_state.reward_explorer_url,
        reward_error=trace_state.reward_error,
    )


def _serialize_board(status: BoardStatus) -> BoardStatusModel:
    return BoardStatusModel(
        source=status.source,
        session_id=status.session_id,
        board_address=status.board_address,
        mode=status.mode.key,
        board_side_len=status.board_side_len,
        max_players=status.max_players,
        registration_fee=status.registration_fee,
        reward_per_score=status.reward_per_score,
        players_count=status.players_count,
        is_active=status.is_active,
        game_end_timestamp=status.game_end_timestamp,
        seconds_remaining=status.seconds_remaining,
        players=[
            PlayerModel(
                id=player.id,
                wallet=player.wallet,
                score=player.score,
                position=player.position,
                powerup_score=player.powerup_score,
            )
            for player in status.players
        ],
        board=[list(row) for row in status.board],
    )


def _serialize_completed(snapshot: CompletedGameSnapshot) -> CompletedGameModel:
    return CompletedGameModel(
        session_id=snapshot.session_id,
        mode=snapshot.mode_key,
        completed_at=snapshot.completed_at.isoformat(),
        status=_serialize_board(snapshot.status),
        trace=_serialize_trace(snapshot.trace),
    )


def _serialize_live(view: LiveSessionView) -> LiveSessionModel:
    session = view.session
    config = session.config
    return LiveSessionModel(
        session_id=session.session_id,
        board_address=session.board_address,
        mode=config.mode.key,
        board_side_len=config.board_side_len,
        max_players=config.max_players,
        registration_fee=config.registration_fee,
        reward_per_score=config.reward_per_score,
        is_active=view.is_active,
        players_count=view.players_count,
        game_end_timestamp=view.game_end_timestamp,
        trace=_serialize_trace(session.trace),
    )


def _serialize_status(view: StatusView, live_session_ids: list[int]) -> StatusResponse:
    return StatusResponse(
        ok=True,
        session_id=view.session_id,
        live_session_ids=live_session_ids,
        message=view.message,
        status=_serialize_board(view.status) if view.status is not None else None,
        trace=_serialize_trace(view.trace) if view.trace is not None else None,
        completed_at=view.completed_at.isoformat() if view.completed_at is not None else None,
    )


__all__ = ["SessionRouteDeps", "add_session_routes"]
