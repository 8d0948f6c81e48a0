from __future__ import annotations

import json

import httpx
import pytest

from kingtiles_relayer.domain.exceptions import LeaderboardNotConfiguredError
from kingtiles_relayer.infrastructure.leaderboard.supabase import LeaderboardClientError, SupabaseLeaderboard

pytestmark = pytest.mark.anyio("asyncio")

WALLET = "AN5cqzkh1fMg631UP9NcwDCaDBu1idTyJqcDqyYA9g5M"


class FakeSupabase:
    def __init__(self, rows: list[dict]) -> None:
        self.rows = rows
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            return httpx.Response(200, json=self.rows)
        return httpx.Response(201 if request.method == "POST" else 204)


def _leaderboard(fake) -> SupabaseLeaderboard:
    return SupabaseLeaderboard(
        base_url="https://project.supabase.test/",
        service_role_key="service-key",
        transport=httpx.MockTransport(fake),
    )


async def test_new_wallet_is_inserted() -> None:
    fake = FakeSupabase(rows=[])
    leaderboard = _leaderboard(fake)

    await leaderboard.upsert(WALLET, 12, 3)
    await leaderboard.aclose()

    lookup, insert = fake.requests
    assert lookup.url.path == "/rest/v1/leaderboard"
    assert lookup.url.params["wallet"] == f"eq.{WALLET}"
    assert lookup.headers["apikey"] == "service-key"
    assert lookup.headers["authorization"] == "Bearer service-key"
    assert insert.method == "POST"
    assert json.loads(insert.content) == {
        "wallet": WALLET,
        "best_score": 12,
        "last_game_score": 12,
        "last_game_id": 3,
        "games_played": 1,
    }


async def test_existing_wallet_keeps_best_score() -> None:
    fake = FakeSupabase(rows=[{"wallet": WALLET, "best_score": 30, "games_played": 4}])
    leaderboard = _leaderboard(fake)

    await leaderboard.upsert(WALLET, 12, 9)
    await leaderboard.aclose()

    update = fake.requests[1]
    assert update.method == "PATCH"
    assert update.url.params["wallet"] == f"eq.{WALLET}"
    assert json.loads(update.content) == {
        "best_score": 30,
        "last_game_score": 12,
        "last_game_id": 9,
        "games_played": 5,
    }


async def test_top_orders_by_best_score() -> None:
    fake = FakeSupabase(
        rows=[{"wallet": WALLET, "best_score": 30, "last_game_score": 12, "last_game_id": 9, "games_played": 5}]
    )
    leaderboard = _leaderboard(fake)

    entries = await leaderboard.top(5)
    await leaderboard.aclose()

    assert fake.requests[0].url.params["order"] == "best_score.desc"
    assert fake.requests[0].url.params["limit"] == "5"
    assert entries[0].wallet == WALLET
    assert entries[0].best_score == 30


async def test_error_status_is_raised() -> None:
    leaderboard = _leaderboard(lambda request: httpx.Response(500, json={"message": "down"}))

    with pytest.raises(LeaderboardClientError):
        await leaderboard.top(5)
    await leaderboard.aclose()


async def test_transport_error_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    leaderboard = _leaderboard(handler)

    with pytest.raises(LeaderboardClientError):
        await leaderboard.upsert(WALLET, 1, 1)
    await leaderboard.aclose()


async def test_unconfigured_store_is_disabled() -> None:
    leaderboard = SupabaseLeaderboard(base_url="https://project.supabase.test", service_role_key=None)

    assert not leaderboard.enabled
    await leaderboard.upsert(WALLET, 1, 1)
    with pytest.raises(LeaderboardNotConfiguredError):
        await leaderboard.top(5)
