import asyncio
import logging
from datetime import datetime

import click
import pyarrow.parquet as pq
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from poolwatch.clients.rest import RestLogStore
from poolwatch.core.config import OrchestratorConfig, RestStoreConfig
from poolwatch.core.errors import StoreError
from poolwatch.core.interfaces import ILogStore
from poolwatch.core.models import BrowserView, FilterState, Log, logs_to_arrow_table
from poolwatch.orchestration.orchestrator import QueryOrchestrator
from poolwatch.querying.options import FILTER_OPTION_COLUMNS, distinct_values
from poolwatch.storage.duckdb_store import DuckDBLogStore

console = Console()

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


def store_options(f):
    """Shared options selecting and configuring the log store."""
    f = click.option("--table", default="logs", show_default=True, help="Table holding the logs")(f)
    f = click.option("--timeout", type=float, default=20.0, show_default=True, help="Per-call timeout (s)")(f)
    f = click.option("--parquet", type=str, default=None, help="Parquet file or glob to query locally")(f)
    f = click.option("--api-key", envvar="POOLWATCH_API_KEY", default=None, help="REST API key")(f)
    f = click.option("--store-url", envvar="POOLWATCH_STORE_URL", default=None, help="PostgREST root URL")(f)
    return f


def open_store(store_url: str | None, api_key: str | None, parquet: str | None, timeout: float, table: str) -> ILogStore:
    if parquet:
        return DuckDBLogStore.from_parquet(parquet, table=table)
    if store_url:
        return RestLogStore(RestStoreConfig(url=store_url, api_key=api_key, timeout_s=timeout))
    raise click.UsageError("Pass --store-url (or POOLWATCH_STORE_URL) or --parquet")


async def close_store(store: ILogStore) -> None:
    if isinstance(store, RestLogStore):
        await store.aclose()


def render_logs(logs: list[Log], limit: int) -> Table:
    table = Table(show_lines=False, expand=True)
    for header in (
        "Created At",
        "Network",
        "Exchange",
        "Block Number",
        "Strategy",
        "Transaction Hash",
        "Transaction Index",
        "Log Index",
        "Removed",
    ):
        table.add_column(header)
    for log in logs[:limit]:
        table.add_row(
            log.created_at.strftime("%m/%d %H:%M") if log.created_at else "",
            log.network or "",
            log.exchange or "",
            "" if log.block_number is None else str(log.block_number),
            log.strategy or "",
            log.transaction_hash or "",
            "" if log.transaction_index is None else str(log.transaction_index),
            "" if log.log_index is None else str(log.log_index),
            "Yes" if log.removed else "No",
        )
    return table


@click.group()
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """poolwatch: browse pool-creation logs and spot duplicate transactions."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@cli.command("logs")
@store_options
@click.option("--network", default=None, help="Exact network")
@click.option("--strategy", default=None, help="Exact strategy")
@click.option("--block-number", type=int, default=None, help="Exact block number (0 means no filter)")
@click.option("--tx-hash", default=None, help="Case-insensitive transaction hash fragment")
@click.option("--removed/--not-removed", default=None, help="Only removed / only non-removed logs")
@click.option("--since", type=click.DateTime(formats=_DATE_FORMATS), default=None, help="Created at or after (UTC)")
@click.option("--duplicates", is_flag=True, default=False, help="Only logs whose transaction hash repeats")
@click.option("--limit", type=int, default=50, show_default=True, help="Rows to display")
@click.option("--export", "export_path", type=click.Path(dir_okay=False), default=None, help="Write logs to parquet")
def logs_cmd(
    store_url: str | None,
    api_key: str | None,
    parquet: str | None,
    timeout: float,
    table: str,
    network: str | None,
    strategy: str | None,
    block_number: int | None,
    tx_hash: str | None,
    removed: bool | None,
    since: datetime | None,
    duplicates: bool,
    limit: int,
    export_path: str | None,
) -> None:
    """Query logs through the filters and print them newest first."""
    state = FilterState(
        network=network,
        strategy=strategy,
        block_number=block_number,
        transaction_hash=tx_hash,
        removed=removed,
        created_at=since,
        show_duplicates=duplicates,
    )
    store = open_store(store_url, api_key, parquet, timeout, table)

    async def run() -> BrowserView:
        orchestrator = QueryOrchestrator(store, OrchestratorConfig(table=table, timeout_s=timeout))
        try:
            await orchestrator.refresh(state)
        finally:
            await close_store(store)
        return orchestrator.view()

    view = asyncio.run(run())
    if view.error is not None:
        raise click.ClickException(f"{view.error.kind} ({view.error.stage}): {view.error.message}")

    console.print(render_logs(view.logs, limit))
    console.print(f"[bold]rows[/]: {len(view.logs)} (showing {min(limit, len(view.logs))})")
    for column, err in view.option_errors.items():
        console.print(f"[yellow]{column} options unavailable[/]: {err.message}")

    if export_path:
        pq.write_table(logs_to_arrow_table(view.logs), export_path)
        console.print(f"[bold]exported[/]: {export_path}")


@cli.command("options")
@store_options
def options_cmd(
    store_url: str | None,
    api_key: str | None,
    parquet: str | None,
    timeout: float,
    table: str,
) -> None:
    """Print the distinct networks and strategies available as filters."""
    store = open_store(store_url, api_key, parquet, timeout, table)

    async def fetch(column: str) -> list[str] | StoreError:
        try:
            return await distinct_values(store, column, table=table, timeout_s=timeout)
        except StoreError as e:
            return e

    async def run() -> list[list[str] | StoreError]:
        try:
            return await asyncio.gather(*(fetch(c) for c in FILTER_OPTION_COLUMNS))
        finally:
            await close_store(store)

    results = asyncio.run(run())
    failed = 0
    for column, result in zip(FILTER_OPTION_COLUMNS, results):
        if isinstance(result, StoreError):
            failed += 1
            console.print(f"[red]{column}[/]: {result.kind}: {result}")
            continue
        console.print(f"[bold]{column}[/] ({len(result)}): {', '.join(result) or '-'}")
    if failed == len(FILTER_OPTION_COLUMNS):
        raise click.ClickException("no filter options could be fetched")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
