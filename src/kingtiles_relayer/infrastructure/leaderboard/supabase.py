"""Leaderboard backed by the Supabase PostgREST API."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx

from kingtiles_relayer.application.ports.leaderboard import LeaderboardEntry, LeaderboardPort
from kingtiles_relayer.domain.exceptions import LeaderboardNotConfiguredError

logger = logging.getLogger("kingtiles_relayer.leaderboard")


class LeaderboardClientError(RuntimeError):
    """Raised when Supabase responds with an unexpected status."""


class SupabaseLeaderboard(LeaderboardPort):
    """Upserts one row per wallet in ``table``; disabled when URL or key is missing."""

    def __init__(
        self,
        *,
        base_url: str | None,
        service_role_key: str | None,
        table: str = "leaderboard",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._table = table
        self._enabled = bool(base_url and service_role_key)
        self._client: httpx.AsyncClient | None = None
        if self._enabled:
            assert base_url is not None and service_role_key is not None
            self._client = httpx.AsyncClient(
                base_url=f"{base_url.rstrip('/')}/rest/v1",
                timeout=timeout_seconds,
                transport=transport,
                headers={
                    "apikey": service_role_key,
                    "Authorization": f"Bearer {service_role_key}",
                    "Accept": "application/json",
                },
            )

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def upsert(self, wallet: str, score: int, session_id: int) -> None:
        client = self._client
        if client is None:
            logger.info(
                "leaderboard not configured; skipping upsert",
                extra={"data": {"wallet": wallet, "session_id": session_id}},
            )
            return

        existing = await self._get_row(client, wallet)
        if existing is None:
            row = {
                "wallet": wallet,
                "best_score": score,
                "last_game_score": score,
                "last_game_id": session_id,
                "games_played": 1,
            }
            response = await _send(
                client.post,
                f"/{self._table}",
                json=row,
                headers={"Prefer": "return=minimal"},
            )
        else:
            row = {
                "best_score": max(int(existing.get("best_score") or 0), score),
                "last_game_score": score,
                "last_game_id": session_id,
                "games_played": int(existing.get("games_played") or 0) + 1,
            }
            response = await _send(
                client.patch,
                f"/{self._table}",
                params={"wallet": f"eq.{wallet}"},
                json=row,
                headers={"Prefer": "return=minimal"},
            )
        _raise_for_status(response, f"upsert {wallet}")
        logger.debug(
            "leaderboard row written",
            extra={"data": {"wallet": wallet, "score": score, "session_id": session_id}},
        )

    async def top(self, limit: int) -> list[LeaderboardEntry]:
        client = self._client
        if client is None:
            raise LeaderboardNotConfiguredError("leaderboard store is not configured")
        response = await _send(
            client.get,
            f"/{self._table}",
            params={"select": "*", "order": "best_score.desc", "limit": str(limit)},
        )
        _raise_for_status(response, "top")
        return [_parse_entry(row) for row in _rows(response)]

    async def _get_row(self, client: httpx.AsyncClient, wallet: str) -> dict[str, Any] | None:
        response = await _send(
            client.get,
            f"/{self._table}",
            params={"select": "*", "wallet": f"eq.{wallet}", "limit": "1"},
        )
        _raise_for_status(response, f"lookup {wallet}")
        rows = _rows(response)
        return rows[0] if rows else None


async def _send(method: Callable[..., Awaitable[httpx.Response]], path: str, **kwargs: Any) -> httpx.Response:
    try:
        return await method(path, **kwargs)
    except httpx.HTTPError as exc:
        raise LeaderboardClientError(f"supabase request to {path} failed: {exc}") from exc


def _raise_for_status(response: httpx.Response, action: str) -> None:
    if response.status_code not in (httpx.codes.OK, httpx.codes.CREATED, httpx.codes.NO_CONTENT):
        raise LeaderboardClientError(f"supabase returned {response.status_code} for {action}")


def _rows(response: httpx.Response) -> Sequence[dict[str, Any]]:
    payload = response.json()
    if not isinstance(payload, list):
        raise LeaderboardClientError("supabase returned a non-list payload")
    return payload


def _parse_entry(row: dict[str, Any]) -> LeaderboardEntry:
    return LeaderboardEntry(
        wallet=str(row["wallet"]),
        best_score=int(row.get("best_score") or 0),
        last_game_score=int(row.get("last_game_score") or 0),
        last_game_id=int(row.get("last_game_id") or 0),
        games_played=int(row.get("games_played") or 0),
    )


__all__ = ["LeaderboardClientError", "SupabaseLeaderboard"]
