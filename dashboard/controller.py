"""
Generic dashboard controller.

One controller drives one module view.  It owns the view's filter state,
one QuerySlot per operation (KPIs, chart series, table page) and the
TableEngine fed by the table operation's rows.  Every operation is keyed on
the same committed filter snapshot but keeps its own status, so a failing
chart never blanks the KPI cards next to it.

Flow::

    apply_filters(patch) ─► commit event ─► server page = 1 ─► refresh()
    refresh() ─► QuerySlot.request(key, fetch) per operation
    mutate(fn) ─► Invalidate(namespace) ─► refresh()
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping

from pydantic import BaseModel

from client.base import ApiClient
from client.errors import DashboardError
from client.models import TablaResponse
from dashboard.filters import FilterStateManager
from dashboard.orchestrator import (
    FetchPolicy,
    Invalidate,
    QueryOrchestrator,
    QueryResult,
    QuerySlot,
)
from dashboard.table import Column, TableEngine
from utils.query import FilterState, QueryKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Operation:
    """One remote read a dashboard performs on every refresh.

    Attributes:
        name: Operation id, also the QueryKey operation component.
        fetch: ``fetch(client, filters)`` or, when ``paginated``,
            ``fetch(client, filters, page, page_size)``.
        paginated: Whether the server page and page size are part of the key.
        policy: Overrides the controller's default FetchPolicy.
        requires: Filter keys that must be set for the operation to run;
            while any is missing the operation stays idle.
    """

    name: str
    fetch: Callable[..., Awaitable[Any]]
    paginated: bool = False
    policy: FetchPolicy | None = None
    requires: tuple[str, ...] = ()


@dataclass
class OperationState:
    name: str
    status: str
    data: Any = None
    error: dict[str, Any] | None = None
    is_stale: bool = False
    is_fetching: bool = False
    key: str | None = None

    @classmethod
    def from_result(cls, name: str, result: QueryResult) -> "OperationState":
        return cls(
            name=name,
            status=result.status,
            data=_plain(result.data),
            error=_error_dict(result.error),
            is_stale=result.is_stale,
            is_fetching=result.is_fetching,
            key=str(result.key) if result.key is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "data": self.data,
            "error": self.error,
            "is_stale": self.is_stale,
            "is_fetching": self.is_fetching,
            "key": self.key,
        }


def _plain(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return data


def _error_dict(error: BaseException | None) -> dict[str, Any] | None:
    if error is None:
        return None
    if isinstance(error, DashboardError):
        return error.to_dict()
    return {"error": type(error).__name__, "message": str(error), "retryable": False}


def _rows_of(data: Any) -> list[dict]:
    if isinstance(data, TablaResponse):
        return data.rows
    if isinstance(data, list):
        return data
    return []


class DashboardController:
    """Filter-driven view over one module's operations."""

    def __init__(
        self,
        namespace: str,
        operations: Iterable[Operation],
        client: ApiClient,
        orchestrator: QueryOrchestrator,
        *,
        columns: Iterable[Column] = (),
        table_operation: str | None = "tabla",
        initial_filters: Mapping[str, Any] | None = None,
        policy: FetchPolicy | None = None,
        page_size: int = 20,
        view_page_size: int = 10,
    ) -> None:
        self.namespace = namespace
        self.operations = {op.name: op for op in operations}
        self.client = client
        self.orchestrator = orchestrator
        self.policy = policy or orchestrator.default_policy
        self.page = 1
        self.page_size = page_size
        self._initial_filters = copy.deepcopy(dict(initial_filters or {}))

        self.filters = FilterStateManager(self._initial_filters)
        self.filters.on_commit(self._on_commit)

        self.slots = {name: QuerySlot(orchestrator, f"{namespace}.{name}")
                      for name in self.operations}

        self.table_operation = table_operation if table_operation in self.operations else None
        self.table = TableEngine(columns, page_size=view_page_size)
        if self.table_operation is not None:
            self.slots[self.table_operation].subscribe(self._feed_table)

    # ── Keys and fetches ──────────────────────────────────────────────────

    def key_for(self, name: str, filters: FilterState | None = None) -> QueryKey:
        op = self.operations[name]
        snapshot = self.filters.committed if filters is None else filters
        if op.paginated:
            return QueryKey.build(self.namespace, name, snapshot,
                                  page=self.page, page_size=self.page_size)
        return QueryKey.build(self.namespace, name, snapshot)

    def _fetch_fn(self, op: Operation, filters: FilterState) -> Callable[[], Awaitable[Any]]:
        client = self.client
        page, page_size = self.page, self.page_size

        if op.paginated:
            async def _fetch() -> Any:
                return await op.fetch(client, filters, page, page_size)
        else:
            async def _fetch() -> Any:
                return await op.fetch(client, filters)
        return _fetch

    def _enabled(self, op: Operation, filters: FilterState) -> bool:
        return all(filters.get(k) not in (None, "", []) for k in op.requires)

    def _request(self, name: str) -> QueryResult:
        op = self.operations[name]
        slot = self.slots[name]
        snapshot = self.filters.committed
        if not self._enabled(op, snapshot):
            return slot.reset()
        return slot.request(self.key_for(name, snapshot),
                            self._fetch_fn(op, copy.deepcopy(snapshot)),
                            op.policy or self.policy)

    # ── Commands ──────────────────────────────────────────────────────────

    def refresh(self, names: Iterable[str] | None = None) -> None:
        """Resolve every operation (or just *names*) for the committed filters."""
        for name in (self.operations if names is None else names):
            self._request(name)

    def _on_commit(self, committed: FilterState) -> None:
        self.page = 1
        self.refresh()

    def apply_filters(self, patch: Mapping[str, Any]) -> FilterState:
        return self.filters.apply_filters(patch)

    def clear_filters(self) -> FilterState:
        return self.filters.clear_filters()

    def reset_filters(self) -> FilterState:
        """Return to the module's default filters (e.g. the current year)."""
        return self.filters.reset(self._initial_filters)

    def set_page(self, page: int) -> None:
        """Move to a 1-based server page and refetch the paginated operations."""
        if page < 1:
            raise ValueError("page must be >= 1")
        self.page = page
        self.refresh([n for n, op in self.operations.items() if op.paginated])

    def retry(self, name: str) -> QueryResult:
        """Force a refetch of one operation, typically after an error."""
        if name not in self.operations:
            raise KeyError(f"Unknown operation '{name}' for {self.namespace}")
        self.orchestrator.invalidate(self.key_for(name))
        return self._request(name)

    async def mutate(self, fn: Callable[..., Awaitable[Any]], *args: Any,
                     also_invalidate: Iterable[str] = (), **kwargs: Any) -> Any:
        """Run a create/update call; on success invalidate and refresh.

        Errors from *fn* propagate unchanged and nothing is invalidated.
        """
        result = await fn(self.client, *args, **kwargs)
        reason = f"{self.namespace} {getattr(fn, '__name__', 'mutation')}"
        for target in (self.namespace, *also_invalidate):
            self.orchestrator.handle(Invalidate(target, reason=reason))
        self.refresh()
        return result

    async def lookup(self, operation: str, fetch: Callable[[], Awaitable[Any]],
                     **ident: Any) -> Any:
        """Cached one-off read (detail, drill-down) outside the refresh cycle.

        Raises the stored error when the read fails.
        """
        key = QueryKey.build(self.namespace, operation, ident)
        result = await self.orchestrator.resolve_settled(key, fetch, self.policy)
        if result.is_error and result.error is not None:
            raise result.error
        return result.data

    async def settled(self) -> dict[str, Any]:
        """Wait for every in-flight operation, then return the state."""
        while True:
            tasks = {s.result.pending for s in self.slots.values()
                     if s.result.pending is not None and not s.result.pending.done()}
            if not tasks:
                break
            await asyncio.wait(tasks)
        for slot in self.slots.values():
            slot.sync()
        return self.state()

    # ── Views ─────────────────────────────────────────────────────────────

    def _feed_table(self, slot: QuerySlot, result: QueryResult) -> None:
        self.table.set_rows(_rows_of(result.data))

    def operation_state(self, name: str) -> OperationState:
        return OperationState.from_result(name, self.slots[name].result)

    def state(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "filters": {
                "draft": self.filters.draft,
                "committed": self.filters.committed,
            },
            "page": self.page,
            "page_size": self.page_size,
            "operations": {name: self.operation_state(name).to_dict()
                           for name in self.operations},
            "table": self.table.snapshot().to_dict() if self.table_operation else None,
        }
