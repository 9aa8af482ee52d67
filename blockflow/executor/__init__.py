"""Block execution: orchestrator, result cache and staleness propagation."""

from __future__ import annotations

from blockflow.executor.orchestrator import ExecutionOrchestrator
from blockflow.executor.result_store import ResultStore
from blockflow.executor.staleness import StalenessTracker

__all__ = [
    "ExecutionOrchestrator",
    "ResultStore",
    "StalenessTracker",
]
