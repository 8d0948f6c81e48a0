"""Port definition for the persistent leaderboard read model."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    wallet: str
    best_score: int
    last_game_score: int
    last_game_id: int
    games_played: int


class LeaderboardPort(Protocol):
    """Upsert-by-wallet store fed from final session snapshots."""

    @property
    def enabled(self) -> bool:
        """Whether a backing store is configured."""

    async def upsert(self, wallet: str, score: int, session_id: int) -> None:
        """Record ``score`` for ``wallet`` keeping the best score seen so far."""

    async def top(self, limit: int) -> Sequence[LeaderboardEntry]:
        """Return the best ``limit`` entries ordered by best score."""


__all__ = ["LeaderboardEntry", "LeaderboardPort"]
