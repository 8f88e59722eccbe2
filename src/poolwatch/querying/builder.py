"""Filter state to store constraint translation.

- build_constraints: FilterState -> ordered list of constraints (pure).
- apply_constraints: push constraints onto a pending store query.
"""

from __future__ import annotations

from collections.abc import Iterable

from poolwatch.core.interfaces import ILogQuery
from poolwatch.core.models import (
    Constraint,
    Equals,
    FilterState,
    GreaterOrEqual,
    InSet,
    Substring,
    to_utc,
)


def build_constraints(state: FilterState) -> list[Constraint]:
    """Translate a filter state into constraints, in fixed field order.

    Order: network, strategy, block_number, transaction_hash, removed,
    created_at. Unset fields are skipped. A block number of 0 counts as unset,
    so block 0 cannot be filtered on.
    """
    out: list[Constraint] = []
    if state.network:
        out.append(Equals("network", state.network))
    if state.strategy:
        out.append(Equals("strategy", state.strategy))
    if state.block_number:
        out.append(Equals("block_number", state.block_number))
    if state.transaction_hash:
        out.append(Substring("transaction_hash", state.transaction_hash))
    if state.removed is not None:
        out.append(Equals("removed", state.removed))
    if state.created_at is not None:
        out.append(GreaterOrEqual("created_at", to_utc(state.created_at)))
    return out


def apply_constraint(query: ILogQuery, constraint: Constraint) -> ILogQuery:
    """Apply a single constraint to `query`."""
    match constraint:
        case Equals():
            return query.equals(constraint.field, constraint.value)
        case Substring():
            return query.substring_match(constraint.field, constraint.pattern)
        case GreaterOrEqual():
            return query.greater_or_equal(constraint.field, constraint.value)
        case InSet():
            return query.in_(constraint.field, constraint.values)
    raise RuntimeError(f"Unsupported constraint type: {type(constraint).__name__}")


def apply_constraints(query: ILogQuery, constraints: Iterable[Constraint]) -> ILogQuery:
    """Apply every constraint to `query` (logical AND)."""
    for c in constraints:
        query = apply_constraint(query, c)
    return query
