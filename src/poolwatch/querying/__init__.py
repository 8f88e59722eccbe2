"""Query derivation: constraints, duplicate detection and filter options.

This package provides:
- build_constraints / apply_constraints: FilterState -> store predicates
- find_duplicate_hashes / duplicate_hashes_constraint: full-table duplicate scan
- distinct_values: choice lists for the network and strategy filters
- run_query: store execution with a timeout
"""

from poolwatch.querying.builder import apply_constraint, apply_constraints, build_constraints
from poolwatch.querying.duplicates import duplicate_hashes_constraint, find_duplicate_hashes
from poolwatch.querying.options import FILTER_OPTION_COLUMNS, distinct_values
from poolwatch.querying.runner import run_query

__all__ = [
    "apply_constraint",
    "apply_constraints",
    "build_constraints",
    "duplicate_hashes_constraint",
    "find_duplicate_hashes",
    "FILTER_OPTION_COLUMNS",
    "distinct_values",
    "run_query",
]
