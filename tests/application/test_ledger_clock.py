from __future__ import annotations

import pytest

from kingtiles_relayer.application.clock import LedgerClock
from tests.fixtures.ledger import FakeBaseLedger, unreachable

pytestmark = pytest.mark.anyio("asyncio")


async def test_clock_reads_ledger_time() -> None:
    base = FakeBaseLedger(now=5_000)
    clock = LedgerClock(base, wall_clock=lambda: 1.0)

    assert await clock.now() == 5_000


async def test_clock_falls_back_to_wall_clock() -> None:
    base = FakeBaseLedger(now=5_000)
    base.now_error = unreachable("base")
    clock = LedgerClock(base, wall_clock=lambda: 42.9)

    assert await clock.now() == 42
