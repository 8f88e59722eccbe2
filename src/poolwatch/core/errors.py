"""Store error hierarchy.

Every failure a log store can report derives from `StoreError` and carries a
`kind` string that is copied verbatim onto the published `ErrorInfo`.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for failures reported by a log store."""

    kind = "StoreUnavailable"


class StoreUnavailable(StoreError):
    """Transport failure, timeout or server-side outage reaching the store."""

    kind = "StoreUnavailable"


class QueryRejected(StoreError):
    """The store rejected the query (unknown table/column, bad value...)."""

    kind = "QueryRejected"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class MalformedRow(StoreError):
    """A returned row could not be validated into a `Log`."""

    kind = "MalformedRow"


class DuplicateScanError(StoreError):
    """The full-table transaction hash scan failed.

    The kind of the underlying store error is preserved so callers can still
    tell an outage from a rejected query.
    """

    def __init__(self, cause: StoreError) -> None:
        super().__init__(f"duplicate hash scan failed: {cause}")
        self.cause = cause
        self.kind = cause.kind
