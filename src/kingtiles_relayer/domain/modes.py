"""Supported board/player combinations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class GameMode:
    """A board side length paired with the number of registration slots."""

    board_side_len: int
    max_players: int

    @property
    def key(self) -> str:
        return f"{self.board_side_len}x{self.max_players}"

    @property
    def cell_count(self) -> int:
        return self.board_side_len * self.board_side_len


GAME_MODES: tuple[GameMode, ...] = (
    GameMode(board_side_len=8, max_players=2),
    GameMode(board_side_len=10, max_players=4),
    GameMode(board_side_len=12, max_players=6),
)


def is_supported_mode(board_side_len: int, max_players: int) -> bool:
    return GameMode(board_side_len=board_side_len, max_players=max_players) in GAME_MODES


def describe_modes() -> str:
    return ", ".join(
        f"{mode.board_side_len}x{mode.board_side_len}/{mode.max_players} players" for mode in GAME_MODES
    )


__all__ = ["GAME_MODES", "GameMode", "describe_modes", "is_supported_mode"]
