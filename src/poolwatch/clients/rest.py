"""PostgREST-compatible log store (Supabase REST API).

This module provides:
- `RestLogStore`: an async store with sane timeouts/connection limits
- `RestLogQuery`: a chainable query rendered to PostgREST query parameters

Errors are mapped onto the store error hierarchy:
failed requests (decode errors included), timeouts and 5xx -> StoreUnavailable; 4xx -> QueryRejected.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

import httpx

from poolwatch.core.config import RestStoreConfig
from poolwatch.core.errors import QueryRejected, StoreUnavailable


def format_value(value: Any) -> str:
    """Render a filter value the way PostgREST parses it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        text = value.isoformat()
        return text[:-6] + "Z" if text.endswith("+00:00") else text
    return str(value)


def format_in_list(values: Iterable[Any]) -> str:
    """Render an `in.(...)` operand, double-quoting every item."""
    items = []
    for v in values:
        s = format_value(v).replace("\\", "\\\\").replace('"', '\\"')
        items.append(f'"{s}"')
    return "(" + ",".join(items) + ")"


def escape_like(pattern: str) -> str:
    """Escape LIKE metacharacters so `pattern` matches literally.

    PostgREST rewrites every `*` to `%` before Postgres sees it, so a `*` in
    the pattern still acts as a wildcard.
    """
    return pattern.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def select_param(columns: str | Sequence[str]) -> str:
    if isinstance(columns, str):
        return columns
    return ",".join(columns)


class RestLogQuery:
    """Pending PostgREST query; every predicate becomes one query parameter."""

    def __init__(self, store: RestLogStore, table: str, columns: str | Sequence[str]) -> None:
        self._store = store
        self.table = table
        self.params: list[tuple[str, str]] = [("select", select_param(columns))]
        self._orders: list[str] = []
        self._empty = False

    def equals(self, field: str, value: Any) -> RestLogQuery:
        self.params.append((field, f"eq.{format_value(value)}"))
        return self

    def substring_match(self, field: str, pattern: str) -> RestLogQuery:
        self.params.append((field, f"ilike.*{escape_like(pattern)}*"))
        return self

    def greater_or_equal(self, field: str, value: Any) -> RestLogQuery:
        self.params.append((field, f"gte.{format_value(value)}"))
        return self

    def in_(self, field: str, values: Iterable[Any]) -> RestLogQuery:
        values = list(values)
        if not values:
            self._empty = True
        self.params.append((field, f"in.{format_in_list(values)}"))
        return self

    def not_null(self, field: str) -> RestLogQuery:
        self.params.append((field, "not.is.null"))
        return self

    def order(self, field: str, *, ascending: bool = True) -> RestLogQuery:
        self._orders.append(f"{field}.{'asc' if ascending else 'desc'}")
        return self

    def query_params(self) -> list[tuple[str, str]]:
        """Final query parameters, order clause last."""
        if not self._orders:
            return list(self.params)
        return [*self.params, ("order", ",".join(self._orders))]

    async def execute(self) -> list[dict[str, Any]]:
        # An empty membership set can never match; skip the round trip.
        if self._empty:
            return []
        return await self._store.fetch_rows(self.table, self.query_params())


class RestLogStore:
    """Async PostgREST client.

    Parameters
    ----------
    config : RestStoreConfig
        REST root URL, API key, per-operation timeout and pool size.
    transport : httpx.AsyncBaseTransport | None
        Optional transport override (e.g. `httpx.MockTransport` in tests).
    """

    def __init__(self, config: RestStoreConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config
        headers = {"Accept": "application/json"}
        if config.api_key:
            headers["apikey"] = config.api_key
            headers["Authorization"] = f"Bearer {config.api_key}"
        timeout_s = config.timeout_s
        self.client = httpx.AsyncClient(
            base_url=config.url.rstrip("/") + "/",
            headers=headers,
            timeout=httpx.Timeout(
                connect=timeout_s,
                read=timeout_s,
                write=timeout_s,
                pool=max(30, timeout_s * 3),
            ),
            limits=httpx.Limits(
                max_connections=config.max_connections,
                max_keepalive_connections=max(1, config.max_connections // 2),
            ),
            transport=transport,
            http2=True,
        )

    def select(self, table: str, columns: str | Sequence[str] = "*") -> RestLogQuery:
        return RestLogQuery(self, table, columns)

    async def fetch_rows(self, table: str, params: list[tuple[str, str]]) -> list[dict[str, Any]]:
        """GET `table` with PostgREST filter parameters and return the JSON rows."""
        try:
            r = await self.client.get(table, params=params)
        except httpx.RequestError as e:
            raise StoreUnavailable(f"{type(e).__name__}: {e}") from e

        if r.status_code >= 500:
            raise StoreUnavailable(f"store returned HTTP {r.status_code}")
        if r.status_code >= 400:
            message, code = _error_details(r)
            raise QueryRejected(message, code=code)

        try:
            data = r.json()
        except ValueError as e:
            raise StoreUnavailable(f"invalid JSON from store: {e}") from e
        if not isinstance(data, list):
            raise StoreUnavailable(f"expected a JSON array, got {type(data).__name__}")
        return data

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()


def _error_details(r: httpx.Response) -> tuple[str, str | None]:
    """Extract (message, code) from a PostgREST error body."""
    try:
        body = r.json()
    except ValueError:
        return f"HTTP {r.status_code}: {r.text[:200]}", None
    if not isinstance(body, dict):
        return f"HTTP {r.status_code}", None
    message = body.get("message") or f"HTTP {r.status_code}"
    return str(message), body.get("code")
