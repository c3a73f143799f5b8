"""
Dashboard package -- filter state, query orchestration and table rendering.

Re-exports key entry points so callers can do::

    from dashboard import QueryOrchestrator, TableEngine, build_controllers
"""

from dashboard.controller import DashboardController, Operation
from dashboard.filters import FilterStateManager
from dashboard.modules import build_controllers
from dashboard.orchestrator import (
    FetchPolicy,
    Invalidate,
    QueryOrchestrator,
    QueryResult,
    QuerySlot,
)
from dashboard.table import Column, TableEngine, TablePage

__all__ = [
    "DashboardController",
    "Operation",
    "FilterStateManager",
    "build_controllers",
    "FetchPolicy",
    "Invalidate",
    "QueryOrchestrator",
    "QueryResult",
    "QuerySlot",
    "Column",
    "TableEngine",
    "TablePage",
]
