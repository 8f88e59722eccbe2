import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from poolwatch.core.errors import StoreError
from poolwatch.core.models import Log
from poolwatch.storage.duckdb_store import DuckDBLogStore

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_log(**kwargs: Any) -> Log:
    defaults: dict[str, Any] = {
        "network": "ethereum",
        "exchange": "uniswap",
        "block_number": 1,
        "strategy": "uniswap_v3",
        "transaction_hash": "0x01",
        "transaction_index": 0,
        "log_index": 0,
        "removed": False,
        "created_at": T0,
    }
    defaults.update(kwargs)
    return Log(**defaults)


@pytest.fixture
def sample_logs() -> list[Log]:
    """0xA once, 0xB three times, plus one row full of nulls."""
    return [
        make_log(network="ethereum", strategy="uniswap_v3", block_number=100, transaction_hash="0xA",
                 removed=False, created_at=T0),
        make_log(network="base", strategy="aerodrome", block_number=200, transaction_hash="0xB",
                 log_index=0, removed=False, created_at=T0 + timedelta(hours=1)),
        make_log(network="base", strategy="aerodrome", block_number=200, transaction_hash="0xB",
                 log_index=1, removed=True, created_at=T0 + timedelta(hours=2)),
        make_log(network="ethereum", strategy="uniswap_v2", block_number=300, transaction_hash="0xB",
                 log_index=2, removed=None, created_at=T0 + timedelta(hours=3)),
        make_log(network=None, strategy=None, exchange=None, block_number=400, transaction_hash=None,
                 removed=False, created_at=T0 - timedelta(days=1)),
    ]


@pytest.fixture
def duckdb_store(sample_logs: list[Log]) -> DuckDBLogStore:
    return DuckDBLogStore.from_logs(sample_logs)


# ---------------------------------------------------------------------------
# In-memory fake store
# ---------------------------------------------------------------------------


class FakeQuery:
    """Evaluates predicates in Python; can be held back by a gate or made to fail."""

    def __init__(self, store: "FakeLogStore", table: str, columns: str | Sequence[str]) -> None:
        self.store = store
        self.table = table
        self.columns = columns if isinstance(columns, str) else ",".join(columns)
        self.ops: list[tuple[Any, ...]] = []

    def equals(self, field: str, value: Any) -> "FakeQuery":
        self.ops.append(("eq", field, value))
        return self

    def substring_match(self, field: str, pattern: str) -> "FakeQuery":
        self.ops.append(("ilike", field, pattern))
        return self

    def greater_or_equal(self, field: str, value: Any) -> "FakeQuery":
        self.ops.append(("gte", field, value))
        return self

    def in_(self, field: str, values: Iterable[Any]) -> "FakeQuery":
        self.ops.append(("in", field, tuple(values)))
        return self

    def not_null(self, field: str) -> "FakeQuery":
        self.ops.append(("not_null", field))
        return self

    def order(self, field: str, *, ascending: bool = True) -> "FakeQuery":
        self.ops.append(("order", field, ascending))
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        for op in self.ops:
            kind, field = op[0], op[1]
            v = row.get(field)
            if kind == "eq" and not (v is not None and v == op[2]):
                return False
            if kind == "ilike" and not (isinstance(v, str) and op[2].lower() in v.lower()):
                return False
            if kind == "gte" and not (v is not None and v >= op[2]):
                return False
            if kind == "in" and v not in op[2]:
                return False
            if kind == "not_null" and v is None:
                return False
        return True

    async def execute(self) -> list[dict[str, Any]]:
        self.store.executed.append(self)
        for op in self.ops:
            if op[0] == "eq" and op[1] == "network" and op[2] in self.store.gates:
                await self.store.gates[op[2]].wait()
        failure = self.store.failures.get(self.columns)
        if failure is not None:
            raise failure

        rows = [r for r in self.store.rows if self._matches(r)]
        for op in reversed([op for op in self.ops if op[0] == "order"]):
            _, field, ascending = op
            present = [r for r in rows if r.get(field) is not None]
            missing = [r for r in rows if r.get(field) is None]
            rows = sorted(present, key=lambda r: r[field], reverse=not ascending) + missing
        if self.columns == "*":
            return [dict(r) for r in rows]
        names = self.columns.split(",")
        return [{n: r.get(n) for n in names} for r in rows]


class FakeLogStore:
    """In-memory store.

    - `gates`: network value -> event the matching main query waits on
    - `failures`: selected columns ("*", "network", ...) -> error to raise
    """

    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self.rows = rows
        self.gates: dict[str, asyncio.Event] = {}
        self.failures: dict[str, StoreError] = {}
        self.executed: list[FakeQuery] = []

    def select(self, table: str, columns: str | Sequence[str] = "*") -> FakeQuery:
        return FakeQuery(self, table, columns)


@pytest.fixture
def fake_store(sample_logs: list[Log]) -> FakeLogStore:
    return FakeLogStore([asdict(log) for log in sample_logs])
