"""Board account state and the status payload derived from it."""

from __future__ import annotations

from dataclasses import dataclass

from kingtiles_relayer.domain.modes import GameMode

EMPTY_MARK = 0
BOMB_MARK = 253
POWERUP_MARK = 254
KING_MARK = 255

BOARD_LEGEND: dict[str, str] = {
    "0": "empty",
    "1-max": "player id",
    str(BOMB_MARK): "bomb",
    str(POWERUP_MARK): "powerup",
    str(KING_MARK): "king",
}


@dataclass(frozen=True, slots=True)
class PlayerState:
    wallet: str
    score: int
    position: int
    player_id: int
    powerup_score: int


@dataclass(frozen=True, slots=True)
class BoardState:
    """Decoded on-chain board account for one session."""

    session_id: int
    players: tuple[PlayerState, ...]
    is_active: bool
    cells: bytes
    board_side_len: int
    max_players: int
    registration_fee: int
    reward_per_score: int
    players_count: int
    king_position: int
    last_move_timestamp: int
    game_end_timestamp: int
    powerup_position: int
    bomb_position: int

    @property
    def mode(self) -> GameMode:
        return GameMode(board_side_len=self.board_side_len, max_players=self.max_players)

    @property
    def is_waiting_for_players(self) -> bool:
        """Inactive with no end timestamp: registered but never started."""
        return not self.is_active and self.game_end_timestamp == 0

    def registered_players(self) -> tuple[PlayerState, ...]:
        return self.players[: self.players_count]

    def seconds_remaining(self, now: int) -> int:
        return max(0, self.game_end_timestamp - now)

    def is_over(self, now: int) -> bool:
        """True when the ledger clock has passed a non-zero end timestamp."""
        return not (self.game_end_timestamp > 0 and now < self.game_end_timestamp)

    def grid(self) -> list[list[int]]:
        side = self.board_side_len
        if side <= 0:
            return []
        flat = list(self.cells[: side * side])
        return [flat[row * side : row * side + side] for row in range(side)]


@dataclass(frozen=True, slots=True)
class PlayerStatus:
    id: int
    wallet: str
    score: int
    position: int
    powerup_score: int


@dataclass(frozen=True, slots=True)
class BoardStatus:
    """Client-facing view of one board, tagged with the ledger it was read from."""

    source: str
    session_id: int
    board_address: str
    board_side_len: int
    max_players: int
    registration_fee: int
    reward_per_score: int
    players_count: int
    is_active: bool
    game_end_timestamp: int
    seconds_remaining: int
    players: tuple[PlayerStatus, ...]
    board: tuple[tuple[int, ...], ...]

    @property
    def mode(self) -> GameMode:
        return GameMode(board_side_len=self.board_side_len, max_players=self.max_players)

    @classmethod
    def from_board(
        cls,
        board: BoardState,
        *,
        session_id: int,
        board_address: str,
        source: str,
        now: int,
    ) -> BoardStatus:
        return cls(
            source=source,
            session_id=session_id,
            board_address=board_address,
            board_side_len=board.board_side_len,
            max_players=board.max_players,
            registration_fee=board.registration_fee,
            reward_per_score=board.reward_per_score,
            players_count=board.players_count,
            is_active=board.is_active,
            game_end_timestamp=board.game_end_timestamp,
            seconds_remaining=board.seconds_remaining(now) if board.is_active else 0,
            players=tuple(
                PlayerStatus(
                    id=player.player_id,
                    wallet=player.wallet,
                    score=player.score,
                    position=player.position,
                    powerup_score=player.powerup_score,
                )
                for player in board.players
            ),
            board=tuple(tuple(row) for row in board.grid()),
        )


__all__ = [
    "BOARD_LEGEND",
    "BOMB_MARK",
    "BoardState",
    "BoardStatus",
    "EMPTY_MARK",
    "KING_MARK",
    "POWERUP_MARK",
    "PlayerState",
    "PlayerStatus",
]
