"""Duplicate transaction hash detection.

The scan always covers the whole table, not the currently filtered view:
1) fetch every non-null `transaction_hash`,
2) count occurrences in one pass,
3) keep the hashes seen more than once.

The result narrows the main query through an `InSet` constraint. An empty
result therefore selects no rows at all.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from poolwatch.core.errors import DuplicateScanError, StoreError
from poolwatch.core.interfaces import ILogStore
from poolwatch.core.models import InSet
from poolwatch.querying.runner import run_query

logger = logging.getLogger(__name__)

HASH_COLUMN = "transaction_hash"


async def find_duplicate_hashes(
    store: ILogStore,
    *,
    table: str = "logs",
    timeout_s: float | None = None,
) -> set[str]:
    """Return the transaction hashes occurring in more than one row.

    Raises
    ------
    DuplicateScanError
        The hash scan failed; callers must not drop the duplicate filter.
    """
    query = store.select(table, [HASH_COLUMN]).not_null(HASH_COLUMN)
    try:
        rows = await run_query(query, timeout_s=timeout_s)
    except StoreError as e:
        raise DuplicateScanError(e) from e

    counts: dict[str, int] = defaultdict(int)
    for row in rows:
        tx_hash = row.get(HASH_COLUMN)
        if tx_hash is None:
            continue
        counts[tx_hash] += 1

    duplicates = {h for h, n in counts.items() if n > 1}
    logger.debug("duplicate scan: %d rows, %d distinct, %d duplicated", len(rows), len(counts), len(duplicates))
    return duplicates


def duplicate_hashes_constraint(hashes: Iterable[str]) -> InSet:
    """Membership constraint restricting rows to `hashes` (sorted, deterministic)."""
    return InSet(HASH_COLUMN, tuple(sorted(set(hashes))))
