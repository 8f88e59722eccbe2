"""
sql_queries.py
--------------

SQL fragments for the DuckDB log store.

Queries are assembled from these constants by `duckdb_store.DuckDBLogQuery`.
Values are always bound as `?` parameters; only quoted identifiers are
interpolated.
"""

# =====================================================================
# RELATIONS
# =====================================================================

PARQUET_RELATION = "read_parquet(?, union_by_name=true)"


# =====================================================================
# SELECT
# =====================================================================

SELECT_LOGS_QUERY = """
SELECT {columns}
FROM {relation}
WHERE {where}
{order_by};
"""


# =====================================================================
# PREDICATES
# =====================================================================

EQUALS_PREDICATE = "{column} = ?"
SUBSTRING_PREDICATE = "contains(lower({column}), lower(?))"
GREATER_OR_EQUAL_PREDICATE = "{column} >= ?"
IN_PREDICATE = "{column} IN ({placeholders})"
NOT_NULL_PREDICATE = "{column} IS NOT NULL"
MATCH_ALL = "TRUE"
MATCH_NONE = "FALSE"
