from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, Protocol, runtime_checkable


# ---------------------------------------------------------------------------
# ILogQuery
# ---------------------------------------------------------------------------

@runtime_checkable
class ILogQuery(Protocol):
    """
    A pending query against one table of a log store.

    Domain expectations:
    - Predicate methods combine with logical AND and return the query itself,
      so calls can be chained.
    - Nothing touches the store until `execute()` is awaited.
    - An empty `in_` value set matches no rows.
    """

    def equals(self, field: str, value: Any) -> ILogQuery: ...

    def substring_match(self, field: str, pattern: str) -> ILogQuery:
        """Case-insensitive containment of `pattern`."""
        ...

    def greater_or_equal(self, field: str, value: Any) -> ILogQuery: ...

    def in_(self, field: str, values: Iterable[Any]) -> ILogQuery: ...

    def not_null(self, field: str) -> ILogQuery: ...

    def order(self, field: str, *, ascending: bool = True) -> ILogQuery: ...

    async def execute(self) -> list[dict[str, Any]]:
        """
        Run the query and return the selected rows as dicts.

        Raises
        ------
        StoreUnavailable
            The store could not be reached or failed server-side.
        QueryRejected
            The store reported the query as invalid.
        """
        ...


# ---------------------------------------------------------------------------
# ILogStore
# ---------------------------------------------------------------------------

@runtime_checkable
class ILogStore(Protocol):
    """
    Abstract queryable collection of log rows.

    Implementations:
    - PostgREST / Supabase over HTTP (`RestLogStore`)
    - Parquet, Arrow or pandas data through DuckDB (`DuckDBLogStore`)
    - In-memory fakes for testing
    """

    def select(self, table: str, columns: str | Sequence[str] = "*") -> ILogQuery:
        """Start a query over `table` projecting `columns` ("*" for all)."""
        ...
