"""Query orchestrator: filter state -> constraints -> store -> published view.

Every refresh draws a new generation number. Results (logs, errors, option
lists) are only published while their generation is still the latest one,
so a slow, superseded refresh can never overwrite a newer result. Superseded
fetches are allowed to drain; their output is dropped.

Failure policy:
- A failed log fetch (or duplicate scan) publishes an `ErrorInfo` and keeps
  the previously published logs.
- A failed option column publishes a `PartialOptionsFailure` for that column
  only and keeps its previous options.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace

from poolwatch.core.config import OrchestratorConfig
from poolwatch.core.errors import DuplicateScanError, StoreError
from poolwatch.core.interfaces import ILogStore
from poolwatch.core.models import BrowserView, ErrorInfo, FilterState, Log
from poolwatch.querying.builder import apply_constraints, build_constraints
from poolwatch.querying.duplicates import duplicate_hashes_constraint, find_duplicate_hashes
from poolwatch.querying.options import FILTER_OPTION_COLUMNS, distinct_values
from poolwatch.querying.runner import run_query

logger = logging.getLogger(__name__)

Listener = Callable[[BrowserView], None]

ORDER_FIELD = "created_at"


class QueryOrchestrator:
    """Runs filter refreshes against a log store and publishes the results.

    Parameters
    ----------
    store : ILogStore
        Store the queries are executed against.
    config : OrchestratorConfig
        Table name and per-call timeout.
    """

    def __init__(self, store: ILogStore, config: OrchestratorConfig | None = None) -> None:
        self._store = store
        self._config = config or OrchestratorConfig()
        self._generation = 0
        self._pending: set[asyncio.Task[list[Log]]] = set()
        self._listeners: list[Listener] = []

        self.current_logs: list[Log] = []
        self.network_options: list[str] = []
        self.strategy_options: list[str] = []
        self.error: ErrorInfo | None = None
        self.option_errors: dict[str, ErrorInfo] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        """Generation number of the most recently requested refresh."""
        return self._generation

    def subscribe(self, listener: Listener) -> None:
        """Register a callable invoked with a `BrowserView` after each publication."""
        self._listeners.append(listener)

    def view(self) -> BrowserView:
        """Snapshot of everything currently published."""
        return BrowserView(
            generation=self._generation,
            logs=list(self.current_logs),
            network_options=list(self.network_options),
            strategy_options=list(self.strategy_options),
            error=self.error,
            option_errors=dict(self.option_errors),
        )

    def on_filter_state_change(self, state: FilterState) -> asyncio.Task[list[Log]]:
        """Schedule a refresh for `state` on the running loop and return its task.

        The generation and the state snapshot are taken immediately, so the
        latest call wins regardless of when the scheduled tasks start.
        """
        generation = self._next_generation()
        task = asyncio.create_task(self._refresh(generation, replace(state)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait until every scheduled refresh has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def refresh(self, state: FilterState) -> list[Log]:
        """Re-query the store for `state` and publish the outcome.

        The log query and both option scans run concurrently. Returns the log
        sequence published once this refresh is done, which belongs to a newer
        refresh if this one was superseded meanwhile.
        """
        return await self._refresh(self._next_generation(), replace(state))

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _refresh(self, generation: int, state: FilterState) -> list[Log]:
        options_task = asyncio.create_task(self._refresh_options(generation))
        try:
            await self._refresh_logs(generation, state)
        finally:
            await options_task
        return list(self.current_logs)

    async def _fetch_logs(self, state: FilterState) -> list[Log]:
        constraints = build_constraints(state)
        if state.show_duplicates:
            hashes = await find_duplicate_hashes(
                self._store,
                table=self._config.table,
                timeout_s=self._config.timeout_s,
            )
            constraints.append(duplicate_hashes_constraint(hashes))
        logger.debug("constraints: %s", constraints)

        query = apply_constraints(self._store.select(self._config.table), constraints)
        query = query.order(ORDER_FIELD, ascending=False)
        rows = await run_query(query, timeout_s=self._config.timeout_s)
        return [Log.from_row(row) for row in rows]

    async def _refresh_logs(self, generation: int, state: FilterState) -> None:
        try:
            logs = await self._fetch_logs(state)
        except StoreError as e:
            if not self._is_current(generation):
                logger.debug("dropping failure of stale generation %d: %s", generation, e)
                return
            stage = "duplicates" if isinstance(e, DuplicateScanError) else "logs"
            self.error = ErrorInfo(kind=e.kind, message=str(e), stage=stage)
            logger.warning("log refresh failed (%s, %s): %s", stage, e.kind, e)
            self._notify()
            return

        if not self._is_current(generation):
            logger.debug("dropping %d logs of stale generation %d", len(logs), generation)
            return
        self.current_logs = logs
        self.error = None
        logger.info("published %d logs (generation %d)", len(logs), generation)
        self._notify()

    # ------------------------------------------------------------------
    # Filter options
    # ------------------------------------------------------------------

    async def _refresh_options(self, generation: int) -> None:
        await asyncio.gather(
            *(self._refresh_option_column(generation, column) for column in FILTER_OPTION_COLUMNS)
        )

    async def _refresh_option_column(self, generation: int, column: str) -> None:
        try:
            values = await distinct_values(
                self._store,
                column,
                table=self._config.table,
                timeout_s=self._config.timeout_s,
            )
        except StoreError as e:
            if not self._is_current(generation):
                return
            self.option_errors[column] = ErrorInfo(
                kind="PartialOptionsFailure",
                message=f"{e.kind}: {e}",
                stage="options",
                column=column,
            )
            logger.warning("%s options refresh failed: %s", column, e)
            self._notify()
            return

        if not self._is_current(generation):
            return
        if column == "network":
            self.network_options = values
        else:
            self.strategy_options = values
        self.option_errors.pop(column, None)
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        view = self.view()
        for listener in self._listeners:
            listener(view)
