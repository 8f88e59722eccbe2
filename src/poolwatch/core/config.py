from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RestStoreConfig:
    """Configuration for the PostgREST-compatible log store."""

    url: str  # REST root, e.g. https://<project>.supabase.co/rest/v1
    api_key: str | None = None
    timeout_s: float = 20.0
    max_connections: int = 16


@dataclass(frozen=True)
class DuckDBStoreConfig:
    """Per-connection settings for the local DuckDB log store."""

    memory_limit: str = "1GB"
    threads: int = 4


@dataclass(frozen=True)
class OrchestratorConfig:
    """Configuration for the query orchestrator."""

    table: str = "logs"
    timeout_s: float = 20.0  # per store call
