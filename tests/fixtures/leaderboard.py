from __future__ import annotations

from kingtiles_relayer.application.ports.leaderboard import LeaderboardEntry, LeaderboardPort
from kingtiles_relayer.domain.exceptions import LeaderboardNotConfiguredError


class RecordingLeaderboard(LeaderboardPort):
    """In-memory leaderboard with the same keep-best semantics as the real store."""

    def __init__(self, *, enabled: bool = True) -> None:
        self._enabled = enabled
        self.upserts: list[tuple[str, int, int]] = []
        self._rows: dict[str, LeaderboardEntry] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def upsert(self, wallet: str, score: int, session_id: int) -> None:
        if not self._enabled:
            return
        self.upserts.append((wallet, score, session_id))
        existing = self._rows.get(wallet)
        self._rows[wallet] = LeaderboardEntry(
            wallet=wallet,
            best_score=max(score, existing.best_score if existing else score),
            last_game_score=score,
            last_game_id=session_id,
            games_played=(existing.games_played if existing else 0) + 1,
        )

    async def top(self, limit: int) -> list[LeaderboardEntry]:
        if not self._enabled:
            raise LeaderboardNotConfiguredError("leaderboard store is not configured")
        return sorted(self._rows.values(), key=lambda entry: entry.best_score, reverse=True)[:limit]
