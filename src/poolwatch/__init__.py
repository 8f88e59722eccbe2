from __future__ import annotations

from .core.models import BrowserView, ErrorInfo, FilterState, Log
from .orchestration.orchestrator import QueryOrchestrator
from .querying.builder import build_constraints
from .querying.duplicates import find_duplicate_hashes
from .querying.options import distinct_values

__all__ = [
    "QueryOrchestrator",
    "build_constraints",
    "find_duplicate_hashes",
    "distinct_values",
    "FilterState",
    "Log",
    "ErrorInfo",
    "BrowserView",
]
