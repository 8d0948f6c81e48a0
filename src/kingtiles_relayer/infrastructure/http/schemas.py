"""Request models and dataclass response schemas for the relayer HTTP API."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field

from kingtiles_relayer.domain.board import BOARD_LEGEND


class CreateSessionBody(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    session_id: int = Field(ge=0)
    board_side_len: int
    max_players: int
    registration_fee: int
    reward_per_score: int


class RetryRewardBody(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    session_id: int = Field(ge=0)


@dataclass(frozen=True, slots=True)
class TraceModel:
    start_tx: str | None = None
    delegate_tx: str | None = None
    end_tx: str | None = None
    reward_tx: str | None = None
    reward_explorer_url: str | None = None
    reward_error: str | None = None


@dataclass(frozen=True, slots=True)
class PlayerModel:
    id: int
    wallet: str
    score: int
    position: int
    powerup_score: int


@dataclass(frozen=True, slots=True)
class BoardStatusModel:
    source: str
    session_id: int
    board_address: str
    mode: str
    board_side_len: int
    max_players: int
    registration_fee: int
    reward_per_score: int
    players_count: int
    is_active: bool
    game_end_timestamp: int
    seconds_remaining: int
    players: list[PlayerModel]
    board: list[list[int]]


@dataclass(frozen=True, slots=True)
class CompletedGameModel:
    session_id: int
    mode: str
    completed_at: str
    status: BoardStatusModel
    trace: TraceModel


@dataclass(frozen=True, slots=True)
class SessionCreatedResponse:
    ok: bool
    session_id: int
    board_address: str
    mode: str
    tx_hash: str | None


@dataclass(frozen=True, slots=True)
class LiveSessionModel:
    session_id: int
    board_address: str
    mode: str
    board_side_len: int
    max_players: int
    registration_fee: int
    reward_per_score: int
    is_active: bool
    players_count: int
    game_end_timestamp: int
    trace: TraceModel


@dataclass(frozen=True, slots=True)
class SessionsResponse:
    sessions: list[LiveSessionModel]
    last_completed: CompletedGameModel | None
    last_completed_by_mode: dict[str, CompletedGameModel]


@dataclass(frozen=True, slots=True)
class StatusResponse:
    ok: bool
    session_id: int | None
    live_session_ids: list[int]
    message: str | None = None
    status: BoardStatusModel | None = None
    trace: TraceModel | None = None
    completed_at: str | None = None
    board_legend: dict[str, str] = field(default_factory=lambda: dict(BOARD_LEGEND))


@dataclass(frozen=True, slots=True)
class RetryRewardResponse:
    ok: bool
    session_id: int
    message: str


@dataclass(frozen=True, slots=True)
class LeaderboardEntryModel:
    wallet: str
    best_score: int
    last_game_score: int
    last_game_id: int
    games_played: int


@dataclass(frozen=True, slots=True)
class LeaderboardResponse:
    entries: list[LeaderboardEntryModel]


@dataclass(frozen=True, slots=True)
class HealthResponse:
    ok: bool
    service: str
    program_id: str
    custody_address: str
    live_session_ids: list[int]
    endpoints: list[str]


__all__ = [
    "BoardStatusModel",
    "CompletedGameModel",
    "CreateSessionBody",
    "HealthResponse",
    "LeaderboardEntryModel",
    "LeaderboardResponse",
    "LiveSessionModel",
    "PlayerModel",
    "RetryRewardBody",
    "RetryRewardResponse",
    "SessionCreatedResponse",
    "SessionsResponse",
    "StatusResponse",
    "TraceModel",
]
