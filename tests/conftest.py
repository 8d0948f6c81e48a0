from __future__ import annotations

import pytest


@pytest.fixture
def anyio_backend() -> str:
    # the relayer runs on a single asyncio loop; keep AnyIO-managed tests there too
    return "asyncio"
