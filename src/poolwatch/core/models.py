"""Core data models for the pool-creation log browser.

This module defines:
- `Log`: one stored pool-creation event row, validated from store output.
- `FilterState`: the operator's current filter criteria.
- Constraint variants (`Equals`, `Substring`, `GreaterOrEqual`, `InSet`).
- `ErrorInfo` / `BrowserView`: what the orchestrator publishes.

Design notes
------------
- Store rows may carry nulls in any column, so every `Log` field is nullable.
- Timestamps are always aware UTC datetimes in memory; the columnar form
  stores them as naive UTC microseconds.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Annotated, Any, Literal

import pyarrow as pa
from pydantic import AfterValidator, TypeAdapter, ValidationError

from poolwatch.core.errors import MalformedRow


def to_utc(value: datetime) -> datetime:
    """Return `value` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(to_utc)]

# === Base schema (Arrow) ===

LOG_ARROW_SCHEMA = pa.schema(
    [
        ("network", pa.string()),
        ("exchange", pa.string()),
        ("block_number", pa.int64()),
        ("strategy", pa.string()),
        ("transaction_hash", pa.string()),
        ("transaction_index", pa.int64()),
        ("log_index", pa.int64()),
        ("removed", pa.bool_()),
        ("created_at", pa.timestamp("us")),
    ]
)


# === Store record ===


@dataclass(slots=True, frozen=True)
class Log:
    """A pool-creation event row as returned by the store."""

    network: str | None = None
    exchange: str | None = None
    block_number: int | None = None
    strategy: str | None = None
    transaction_hash: str | None = None
    transaction_index: int | None = None
    log_index: int | None = None
    removed: bool | None = None
    created_at: UtcDatetime | None = None

    @staticmethod
    def from_row(row: dict[str, Any]) -> Log:
        """Validate a raw store row; unknown keys are ignored."""
        picked = {name: row.get(name) for name in LOG_FIELDS}
        try:
            return _LOG_ADAPTER.validate_python(picked)
        except ValidationError as e:
            raise MalformedRow(f"invalid log row: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e

    def to_row(self) -> dict[str, Any]:
        """Row dict matching `LOG_ARROW_SCHEMA` (created_at as naive UTC)."""
        row = asdict(self)
        if self.created_at is not None:
            row["created_at"] = self.created_at.replace(tzinfo=None)
        return row


LOG_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(Log))

_LOG_ADAPTER: TypeAdapter[Log] = TypeAdapter(Log)


def logs_to_arrow_table(logs: list[Log]) -> pa.Table:
    """Convert logs to an Arrow table with the deterministic log schema."""
    return pa.Table.from_pylist([log.to_row() for log in logs], schema=LOG_ARROW_SCHEMA)


# === Filter state ===


@dataclass
class FilterState:
    """Current operator-controlled filter criteria.

    Every field may be unset (None or empty), meaning "no constraint".
    `removed` is tri-state: None, True and False are distinct outcomes.
    `created_at` is an inclusive lower bound; naive values are taken as UTC.
    """

    network: str | None = None
    strategy: str | None = None
    block_number: int | None = None
    transaction_hash: str | None = None
    removed: bool | None = None
    created_at: datetime | None = None
    show_duplicates: bool = False


# === Constraints ===


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class Substring:
    """Case-insensitive containment of `pattern` in `field`."""

    field: str
    pattern: str


@dataclass(frozen=True)
class GreaterOrEqual:
    field: str
    value: Any


@dataclass(frozen=True)
class InSet:
    """Membership in `values`; an empty tuple matches nothing."""

    field: str
    values: tuple[str, ...]


Constraint = Equals | Substring | GreaterOrEqual | InSet


# === Published state ===

ErrorKind = Literal["StoreUnavailable", "QueryRejected", "PartialOptionsFailure", "MalformedRow"]
Stage = Literal["logs", "duplicates", "options"]


@dataclass(frozen=True)
class ErrorInfo:
    """Error reported on the orchestrator's error channel."""

    kind: ErrorKind
    message: str
    stage: Stage
    column: str | None = None


@dataclass(frozen=True)
class BrowserView:
    """Snapshot handed to listeners after every publication."""

    generation: int
    logs: list[Log] = field(default_factory=list)
    network_options: list[str] = field(default_factory=list)
    strategy_options: list[str] = field(default_factory=list)
    error: ErrorInfo | None = None
    option_errors: dict[str, ErrorInfo] = field(default_factory=dict)
