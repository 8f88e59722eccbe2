"""Orchestration of filter refreshes against a log store.

This package provides:
- QueryOrchestrator: generation-guarded refresh of logs and filter options
"""

from poolwatch.orchestration.orchestrator import QueryOrchestrator

__all__ = [
    "QueryOrchestrator",
]
