"""
duckdb_store.py
---------------

Local log store backed by DuckDB.

A store maps table names to sources:
    - a parquet path or glob (read with `read_parquet(..., union_by_name=true)`)
    - a pyarrow Table
    - a pandas DataFrame

Each query opens its own DuckDB connection with the configured PRAGMAs and
runs in a worker thread, so the event loop is never blocked. Sessions run in
UTC and timestamps are compared as naive UTC: aware filter values are
converted before binding, and aware source columns are normalised on load.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Union

import duckdb
import pandas as pd
import pyarrow as pa

from poolwatch.core.config import DuckDBStoreConfig
from poolwatch.core.errors import QueryRejected, StoreUnavailable
from poolwatch.core.models import Log, logs_to_arrow_table, to_utc

from . import sql_queries

Source = Union[str, Path, pa.Table, pd.DataFrame]

# Engine errors caused by the query itself rather than by the engine or IO.
_REJECTED_ERRORS = (
    duckdb.BinderException,
    duckdb.CatalogException,
    duckdb.ParserException,
    duckdb.ConversionException,
    duckdb.InvalidInputException,
)


# =====================================================================
# DuckDB connection setup
# =====================================================================

@contextmanager
def get_connection(config: DuckDBStoreConfig) -> Iterator[duckdb.DuckDBPyConnection]:
    """Context manager for DuckDB connections with the configured PRAGMAs.

    Args:
        config: Memory limit and thread count for the connection.

    Yields:
        DuckDB connection, closed on exit.
    """
    con = duckdb.connect()
    try:
        con.execute(f"PRAGMA threads={int(config.threads)}")
        con.execute(f"PRAGMA memory_limit='{config.memory_limit}'")
        con.execute("SET TimeZone='UTC'")
        yield con
    finally:
        con.close()


def quote_ident(name: str) -> str:
    """Double-quote an SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


def _bind(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is not None:
        return to_utc(value).replace(tzinfo=None)
    return value


def _naive_utc_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """Copy of `frame` with tz-aware datetime columns converted to naive UTC."""
    out = frame.copy()
    for col in out.columns:
        if isinstance(out[col].dtype, pd.DatetimeTZDtype):
            out[col] = out[col].dt.tz_convert("UTC").dt.tz_localize(None)
    return out


def _naive_utc_table(table: pa.Table) -> pa.Table:
    """`table` with tz-aware timestamp columns cast to naive UTC."""
    fields = []
    changed = False
    for field in table.schema:
        if pa.types.is_timestamp(field.type) and field.type.tz is not None:
            field = field.with_type(pa.timestamp(field.type.unit))
            changed = True
        fields.append(field)
    if not changed:
        return table
    return table.cast(pa.schema(fields, metadata=table.schema.metadata))


# =====================================================================
# Query
# =====================================================================

class DuckDBLogQuery:
    """Pending query; predicates accumulate as parameterized SQL clauses."""

    def __init__(self, store: DuckDBLogStore, table: str, columns: str | Sequence[str]) -> None:
        self._store = store
        self.table = table
        self.columns = columns
        self.where: list[str] = []
        self.params: list[Any] = []
        self.orders: list[str] = []

    def equals(self, field: str, value: Any) -> DuckDBLogQuery:
        self.where.append(sql_queries.EQUALS_PREDICATE.format(column=quote_ident(field)))
        self.params.append(_bind(value))
        return self

    def substring_match(self, field: str, pattern: str) -> DuckDBLogQuery:
        self.where.append(sql_queries.SUBSTRING_PREDICATE.format(column=quote_ident(field)))
        self.params.append(pattern)
        return self

    def greater_or_equal(self, field: str, value: Any) -> DuckDBLogQuery:
        self.where.append(sql_queries.GREATER_OR_EQUAL_PREDICATE.format(column=quote_ident(field)))
        self.params.append(_bind(value))
        return self

    def in_(self, field: str, values: Iterable[Any]) -> DuckDBLogQuery:
        values = [_bind(v) for v in values]
        if not values:
            self.where.append(sql_queries.MATCH_NONE)
            return self
        placeholders = ", ".join("?" for _ in values)
        self.where.append(
            sql_queries.IN_PREDICATE.format(column=quote_ident(field), placeholders=placeholders)
        )
        self.params.extend(values)
        return self

    def not_null(self, field: str) -> DuckDBLogQuery:
        self.where.append(sql_queries.NOT_NULL_PREDICATE.format(column=quote_ident(field)))
        return self

    def order(self, field: str, *, ascending: bool = True) -> DuckDBLogQuery:
        self.orders.append(f"{quote_ident(field)} {'ASC' if ascending else 'DESC'}")
        return self

    def to_sql(self) -> tuple[str, list[Any]]:
        """Render the final SQL and its parameters (relation parameters first)."""
        relation, relation_params = self._store.relation(self.table)
        if isinstance(self.columns, str):
            columns = self.columns if self.columns == "*" else quote_ident(self.columns)
        else:
            columns = ", ".join(quote_ident(c) for c in self.columns)
        sql = sql_queries.SELECT_LOGS_QUERY.format(
            columns=columns,
            relation=relation,
            where=" AND ".join(self.where) if self.where else sql_queries.MATCH_ALL,
            order_by=f"ORDER BY {', '.join(self.orders)}" if self.orders else "",
        )
        return sql, [*relation_params, *self.params]

    async def execute(self) -> list[dict[str, Any]]:
        sql, params = self.to_sql()
        return await asyncio.to_thread(self._store.fetch_rows, self.table, sql, params)


# =====================================================================
# Store
# =====================================================================

class DuckDBLogStore:
    """Log store over parquet files, Arrow tables or pandas DataFrames.

    Args:
        sources: Mapping of table name to source.
        config: Per-connection PRAGMA settings.
    """

    def __init__(self, sources: Mapping[str, Source], config: DuckDBStoreConfig | None = None) -> None:
        self.config = config or DuckDBStoreConfig()
        self._sources: dict[str, Source] = {}
        for table, source in sources.items():
            if isinstance(source, pd.DataFrame):
                source = _naive_utc_frame(source)
            elif isinstance(source, pa.Table):
                source = _naive_utc_table(source)
            elif isinstance(source, Path):
                source = source.as_posix()
            self._sources[table] = source

    @classmethod
    def from_logs(cls, logs: list[Log], *, table: str = "logs") -> DuckDBLogStore:
        """In-memory store over `logs`."""
        return cls({table: logs_to_arrow_table(logs)})

    @classmethod
    def from_parquet(cls, path: str | Path, *, table: str = "logs") -> DuckDBLogStore:
        """Store reading `path` (file or glob) on every query."""
        return cls({table: path})

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, *, table: str = "logs") -> DuckDBLogStore:
        """In-memory store over a pandas DataFrame."""
        return cls({table: frame})

    def select(self, table: str, columns: str | Sequence[str] = "*") -> DuckDBLogQuery:
        return DuckDBLogQuery(self, table, columns)

    def relation(self, table: str) -> tuple[str, list[Any]]:
        """SQL relation for `table` and the parameters it binds."""
        source = self._sources.get(table)
        if source is None:
            raise QueryRejected(f"unknown table {table!r}")
        if isinstance(source, str):
            return sql_queries.PARQUET_RELATION, [source]
        return quote_ident(table), []

    def fetch_rows(self, table: str, sql: str, params: list[Any]) -> list[dict[str, Any]]:
        """Run `sql` on a fresh connection and return rows as dicts (blocking)."""
        source = self._sources[table]
        try:
            with get_connection(self.config) as con:
                if not isinstance(source, str):
                    con.register(table, source)
                # TIMESTAMPTZ parquet columns come back aware; hand out naive UTC.
                result = con.execute(sql, params).fetch_arrow_table()
                return _naive_utc_table(result).to_pylist()
        except _REJECTED_ERRORS as e:
            raise QueryRejected(str(e)) from e
        except duckdb.Error as e:
            raise StoreUnavailable(f"{type(e).__name__}: {e}") from e
