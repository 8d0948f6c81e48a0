"""Ledger-time source with a wall-clock fallback."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from kingtiles_relayer.application.ports.ledger import BaseLedgerPort

logger = logging.getLogger("kingtiles_relayer.ledger")


class LedgerClock:
    """Reads "now" from the base ledger so end-of-game checks share its clock.

    When the ledger read fails the local wall clock is used instead. That
    fallback can reintroduce skew, so every use of it is logged at WARNING.
    """

    def __init__(
        self,
        ledger: BaseLedgerPort,
        *,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._ledger = ledger
        self._wall_clock = wall_clock

    async def now(self) -> int:
        try:
            return await self._ledger.now()
        except Exception as exc:
            fallback = int(self._wall_clock())
            logger.warning(
                "ledger clock unavailable; using local wall clock",
                extra={"data": {"error": str(exc), "fallback_now": fallback}},
            )
            return fallback


__all__ = ["LedgerClock"]
