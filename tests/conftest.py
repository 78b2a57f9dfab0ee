from __future__ import annotations

import pytest


@pytest.fixture
def anyio_backend() -> str:
    # AnyIO-managed tests run on asyncio only
    return "asyncio"
