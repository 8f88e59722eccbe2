"""Core data models, configurations, errors and store interfaces.

This package provides:
- Data models (Log, FilterState, constraint variants, ErrorInfo, BrowserView)
- Configuration classes (RestStoreConfig, DuckDBStoreConfig, OrchestratorConfig)
- Store error hierarchy
- Store protocols (ILogStore, ILogQuery)
"""

from poolwatch.core.config import DuckDBStoreConfig, OrchestratorConfig, RestStoreConfig
from poolwatch.core.errors import (
    DuplicateScanError,
    MalformedRow,
    QueryRejected,
    StoreError,
    StoreUnavailable,
)
from poolwatch.core.interfaces import ILogQuery, ILogStore
from poolwatch.core.models import (
    BrowserView,
    Constraint,
    Equals,
    ErrorInfo,
    FilterState,
    GreaterOrEqual,
    InSet,
    Log,
    Substring,
)

__all__ = [
    "DuckDBStoreConfig",
    "OrchestratorConfig",
    "RestStoreConfig",
    "DuplicateScanError",
    "MalformedRow",
    "QueryRejected",
    "StoreError",
    "StoreUnavailable",
    "ILogQuery",
    "ILogStore",
    "BrowserView",
    "Constraint",
    "Equals",
    "ErrorInfo",
    "FilterState",
    "GreaterOrEqual",
    "InSet",
    "Log",
    "Substring",
]
