"""Routing of ledger-emitted game events to lifecycle actions."""

from __future__ import annotations

import logging

from kingtiles_relayer.application.ports.events import GameStartedEvent
from kingtiles_relayer.application.ports.state import SessionRegistryPort
from kingtiles_relayer.application.services.delegation import DelegationManager
from kingtiles_relayer.domain.session import Session

logger = logging.getLogger("kingtiles_relayer.events")


def route_game_started(event: GameStartedEvent, registry: SessionRegistryPort) -> Session | None:
    """Return the live session the event refers to, or ``None`` when it is not tracked here."""
    return registry.get(event.session_id)


class GameStartedHandler:
    def __init__(self, *, registry: SessionRegistryPort, delegation: DelegationManager) -> None:
        self._registry = registry
        self._delegation = delegation

    async def handle(self, event: GameStartedEvent) -> None:
        logger.info(
            "game started event",
            extra={"data": {"session_id": event.session_id, "signature": event.signature}},
        )
        session = route_game_started(event, self._registry)
        if session is None:
            logger.info("event for untracked session skipped", extra={"data": {"session_id": event.session_id}})
            return
        await self._delegation.ensure_active(session)


__all__ = ["GameStartedHandler", "route_game_started"]
