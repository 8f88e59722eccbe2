"""Local storage backends for pool-creation logs.

This package provides:
- DuckDBLogStore: log store over parquet files, Arrow tables or pandas DataFrames
"""

from poolwatch.storage.duckdb_store import DuckDBLogQuery, DuckDBLogStore

__all__ = [
    "DuckDBLogQuery",
    "DuckDBLogStore",
]
