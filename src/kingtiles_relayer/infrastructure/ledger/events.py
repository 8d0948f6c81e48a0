"""Game event subscription over the base ledger's websocket log stream."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import websockets

from kingtiles_relayer.application.ports.events import GameEventSource, GameStartedEvent
from kingtiles_relayer.application.retry import RetryPolicy
from kingtiles_relayer.infrastructure.ledger.codec import decode_game_started

logger = logging.getLogger("kingtiles_relayer.events")


def logs_subscribe_request(program_id: str, *, commitment: str, request_id: int = 1) -> str:
    return json.dumps(
        {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "logsSubscribe",
            "params": [{"mentions": [program_id]}, {"commitment": commitment}],
        }
    )


def parse_logs_notification(message: str | bytes) -> list[GameStartedEvent]:
    """Return the game-started events carried by one websocket frame."""
    try:
        payload: dict[str, Any] = json.loads(message)
    except ValueError:
        logger.debug("ignoring non-JSON websocket frame")
        return []
    if payload.get("method") != "logsNotification":
        return []
    value = ((payload.get("params") or {}).get("result") or {}).get("value") or {}
    if value.get("err") is not None:
        return []
    return decode_game_started(list(value.get("logs") or ()), signature=value.get("signature"))


class LogsSubscriptionEventSource(GameEventSource):
    """Yields ``GameStartedEvent`` from ``logsSubscribe``; reconnects with backoff until closed."""

    def __init__(
        self,
        *,
        ws_url: str,
        program_id: str,
        commitment: str = "confirmed",
        reconnect_policy: RetryPolicy | None = None,
    ) -> None:
        self._ws_url = ws_url
        self._program_id = program_id
        self._commitment = commitment
        self._reconnect = reconnect_policy or RetryPolicy(
            max_attempts=1_000_000, base_delay=1.0, max_delay=30.0, jitter_ratio=0.2
        )
        self._closed = asyncio.Event()

    def close(self) -> None:
        self._closed.set()

    async def subscribe(self) -> AsyncIterator[GameStartedEvent]:
        failures = 0
        while not self._closed.is_set():
            try:
                async with websockets.connect(self._ws_url) as connection:
                    await connection.send(logs_subscribe_request(self._program_id, commitment=self._commitment))
                    logger.info(
                        "subscribed to program logs",
                        extra={"data": {"ws_url": self._ws_url, "program_id": self._program_id}},
                    )
                    failures = 0
                    async for message in connection:
                        for event in parse_logs_notification(message):
                            yield event
                        if self._closed.is_set():
                            return
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                reason = str(exc)
            else:
                reason = "closed by server"
            failures += 1
            delay = self._reconnect.delay_for(min(failures, 16))
            logger.warning(
                "log subscription dropped; reconnecting",
                extra={"data": {"ws_url": self._ws_url, "error": reason, "delay_seconds": round(delay, 3)}},
            )
            try:
                await asyncio.wait_for(self._closed.wait(), timeout=delay)
            except TimeoutError:
                continue


__all__ = ["LogsSubscriptionEventSource", "logs_subscribe_request", "parse_logs_notification"]
