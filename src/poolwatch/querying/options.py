from __future__ import annotations

from poolwatch.core.interfaces import ILogStore
from poolwatch.querying.runner import run_query

FILTER_OPTION_COLUMNS: tuple[str, ...] = ("network", "strategy")


async def distinct_values(
    store: ILogStore,
    column: str,
    *,
    table: str = "logs",
    timeout_s: float | None = None,
) -> list[str]:
    """Return the sorted distinct string values of a choice column.

    Null and non-string values are dropped silently. The full column is
    scanned on every call; nothing is cached between calls.

    Raises
    ------
    ValueError
        `column` is not one of FILTER_OPTION_COLUMNS.
    StoreError
        The column scan failed.
    """
    if column not in FILTER_OPTION_COLUMNS:
        raise ValueError(f"no filter options for column {column!r}")

    query = store.select(table, [column]).order(column, ascending=True)
    rows = await run_query(query, timeout_s=timeout_s)
    return sorted({v for row in rows if isinstance(v := row.get(column), str)})
