"""Live session model, transaction trace and completed-game snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime

from kingtiles_relayer.domain.board import BoardStatus
from kingtiles_relayer.domain.modes import GameMode


@dataclass(frozen=True, slots=True)
class TransactionTrace:
    """Append-only record of the hashes produced at each lifecycle phase."""

    start_tx: str | None = None
    delegate_tx: str | None = None
    end_tx: str | None = None
    reward_tx: str | None = None
    reward_explorer_url: str | None = None
    reward_error: str | None = None

    def with_start(self, tx_hash: str) -> TransactionTrace:
        return replace(self, start_tx=tx_hash)

    def with_delegate(self, tx_hash: str) -> TransactionTrace:
        return replace(self, delegate_tx=tx_hash)

    def with_end(self, tx_hash: str) -> TransactionTrace:
        return replace(self, end_tx=tx_hash)

    def with_reward(self, tx_hash: str, explorer_url: str | None) -> TransactionTrace:
        # a confirmed reward supersedes any earlier failure
        return replace(self, reward_tx=tx_hash, reward_explorer_url=explorer_url, reward_error=None)

    def with_reward_error(self, message: str) -> TransactionTrace:
        return replace(self, reward_error=message)


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Per-session parameters fixed at creation."""

    board_side_len: int
    max_players: int
    registration_fee: int
    reward_per_score: int

    @property
    def mode(self) -> GameMode:
        return GameMode(board_side_len=self.board_side_len, max_players=self.max_players)


@dataclass(slots=True)
class Session:
    """Orchestrator-side view of one live game instance."""

    session_id: int
    board_address: str
    config: SessionConfig
    trace: TransactionTrace = field(default_factory=TransactionTrace)

    def record_delegate(self, tx_hash: str) -> None:
        self.trace = self.trace.with_delegate(tx_hash)

    def record_end(self, tx_hash: str) -> None:
        self.trace = self.trace.with_end(tx_hash)

    def record_reward(self, tx_hash: str, explorer_url: str | None) -> None:
        self.trace = self.trace.with_reward(tx_hash, explorer_url)


@dataclass(frozen=True, slots=True)
class CompletedGameSnapshot:
    """Point-in-time capture of a finished board plus its trace."""

    status: BoardStatus
    trace: TransactionTrace
    completed_at: datetime

    @property
    def session_id(self) -> int:
        return self.status.session_id

    @property
    def mode_key(self) -> str:
        return self.status.mode.key

    def rank(self) -> tuple[float, int]:
        return (self.completed_at.timestamp(), self.session_id)

    def with_reward_error(self, message: str) -> CompletedGameSnapshot:
        return replace(self, trace=self.trace.with_reward_error(message))


__all__ = ["CompletedGameSnapshot", "Session", "SessionConfig", "TransactionTrace"]
