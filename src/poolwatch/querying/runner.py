from __future__ import annotations

import asyncio
from typing import Any

from poolwatch.core.errors import StoreUnavailable
from poolwatch.core.interfaces import ILogQuery


async def run_query(query: ILogQuery, *, timeout_s: float | None = None) -> list[dict[str, Any]]:
    """Execute `query`, reporting an expired timeout as `StoreUnavailable`."""
    try:
        return await asyncio.wait_for(query.execute(), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise StoreUnavailable(f"store call timed out after {timeout_s}s") from e
