"""Port definition for ledger-emitted game events."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class GameStartedEvent:
    """Emitted by the game program once every registration slot is filled."""

    session_id: int
    signature: str | None = None


class GameEventSource(Protocol):
    """Subscription yielding typed game events until closed."""

    def subscribe(self) -> AsyncIterator[GameStartedEvent]:
        """Yield events as they arrive; reconnects are the source's concern."""

    def close(self) -> None:
        """Stop yielding; a pending subscription returns at its next wake-up."""


__all__ = ["GameEventSource", "GameStartedEvent"]
