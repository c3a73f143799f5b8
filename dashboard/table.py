"""
Client-side table engine: stable sorting and bounded pagination.

Works on whatever rows the current server page returned.  Rows are never
mutated; sorting produces a new ordering and pagination slices it.

Rules:
    * sort is stable; ``None`` and NaN sink to the end in both directions
    * ``page_count = max(1, ceil(len(rows) / page_size))``
    * the page index is clamped whenever rows or page size change
    * navigation outside ``[0, page_count)`` is a no-op
    * the page-number window shows at most five pages around the current one
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

logger = logging.getLogger(__name__)

ASC = "asc"
DESC = "desc"

PAGE_WINDOW = 5

Row = dict[str, Any]


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


@dataclass(frozen=True)
class Column:
    """Column definition.

    ``accessor`` defaults to ``row.get(id)``; ``formatter`` renders a cell
    value to text (missing values render as an em dash when omitted).
    """

    id: str
    label: str
    accessor: Callable[[Row], Any] | None = None
    sortable: bool = True
    formatter: Callable[[Any], str] | None = None

    def value(self, row: Row) -> Any:
        if self.accessor is not None:
            return self.accessor(row)
        return row.get(self.id)

    def render(self, row: Row) -> str:
        value = self.value(row)
        if self.formatter is not None:
            return self.formatter(value)
        return "—" if _is_missing(value) else str(value)


@dataclass
class TablePage:
    """Everything a view needs to draw the current page."""

    columns: list[dict[str, Any]]
    rows: list[Row]
    cells: list[list[str]]
    page_index: int
    page_count: int
    page_size: int
    total_rows: int
    start_row: int
    end_row: int
    can_previous: bool
    can_next: bool
    page_window: list[int] = field(default_factory=list)
    sort: tuple[str, str] | None = None

    @property
    def summary(self) -> str:
        return f"Mostrando {self.start_row} a {self.end_row} de {self.total_rows}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "columns": self.columns,
            "rows": self.rows,
            "cells": self.cells,
            "page_index": self.page_index,
            "page_count": self.page_count,
            "page_size": self.page_size,
            "total_rows": self.total_rows,
            "start_row": self.start_row,
            "end_row": self.end_row,
            "can_previous": self.can_previous,
            "can_next": self.can_next,
            "page_window": self.page_window,
            "sort": list(self.sort) if self.sort else None,
            "summary": self.summary,
        }


def stable_sort(rows: Sequence[Row], column: Column, direction: str) -> list[Row]:
    """Sort *rows* by *column* keeping ties in input order, missing values last."""
    if direction not in (ASC, DESC):
        raise ValueError(f"Unknown sort direction: {direction!r}")
    present = [r for r in rows if not _is_missing(column.value(r))]
    missing = [r for r in rows if _is_missing(column.value(r))]
    # sorted(reverse=True) preserves the relative order of equal elements
    ordered = sorted(present, key=column.value, reverse=(direction == DESC))
    return ordered + missing


def page_window(page_index: int, page_count: int, width: int = PAGE_WINDOW) -> list[int]:
    """Zero-based page numbers to show, centred on *page_index* where possible."""
    start = max(0, page_index - width // 2)
    end = min(page_count, start + width)
    start = max(0, end - width)
    return list(range(start, end))


class TableEngine:
    """Sort and paginate an in-memory row set.

    Usage::

        engine = TableEngine(columns, rows, page_size=10)
        engine.toggle_sort("monto")
        engine.next()
        page = engine.snapshot()
    """

    def __init__(self, columns: Iterable[Column], rows: Iterable[Row] = (),
                 page_size: int = 10) -> None:
        self.columns = list(columns)
        self._by_id = {c.id: c for c in self.columns}
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._page_size = page_size
        self._rows: list[Row] = list(rows)
        self._sort: tuple[str, str] | None = None
        self._page_index = 0

    # ── Data ──────────────────────────────────────────────────────────────

    @property
    def rows(self) -> list[Row]:
        return list(self._rows)

    def set_rows(self, rows: Iterable[Row]) -> None:
        self._rows = list(rows)
        self._clamp()

    @property
    def page_size(self) -> int:
        return self._page_size

    def set_page_size(self, page_size: int) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._page_size = page_size
        self._clamp()

    # ── Sorting ───────────────────────────────────────────────────────────

    @property
    def sort(self) -> tuple[str, str] | None:
        return self._sort

    def sort_by(self, column_id: str, direction: str = ASC) -> None:
        column = self._by_id.get(column_id)
        if column is None:
            raise KeyError(f"Unknown column: {column_id}")
        if direction not in (ASC, DESC):
            raise ValueError(f"Unknown sort direction: {direction!r}")
        if not column.sortable:
            return
        self._sort = (column_id, direction)
        self._page_index = 0

    def toggle_sort(self, column_id: str) -> tuple[str, str] | None:
        """Cycle asc → desc → none for *column_id*.

        Returns:
            The new sort state, or None when sorting was cleared.
        """
        column = self._by_id.get(column_id)
        if column is None or not column.sortable:
            return self._sort
        if self._sort is None or self._sort[0] != column_id:
            self._sort = (column_id, ASC)
        elif self._sort[1] == ASC:
            self._sort = (column_id, DESC)
        else:
            self._sort = None
        self._page_index = 0
        return self._sort

    def clear_sort(self) -> None:
        self._sort = None

    def sorted_rows(self) -> list[Row]:
        if self._sort is None:
            return list(self._rows)
        column_id, direction = self._sort
        return stable_sort(self._rows, self._by_id[column_id], direction)

    # ── Pagination ────────────────────────────────────────────────────────

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(len(self._rows) / self._page_size))

    @property
    def page_index(self) -> int:
        return self._page_index

    def _clamp(self) -> None:
        self._page_index = min(max(self._page_index, 0), self.page_count - 1)

    def can_previous(self) -> bool:
        return self._page_index > 0

    def can_next(self) -> bool:
        return self._page_index < self.page_count - 1

    def next(self) -> None:
        if self.can_next():
            self._page_index += 1

    def previous(self) -> None:
        if self.can_previous():
            self._page_index -= 1

    def go_to(self, page_index: int) -> None:
        """Jump to a zero-based page; out-of-range targets are ignored."""
        if 0 <= page_index < self.page_count:
            self._page_index = page_index
        else:
            logger.debug("ignoring go_to(%d) with %d page(s)", page_index, self.page_count)

    def visible_rows(self) -> list[Row]:
        start = self._page_index * self._page_size
        return self.sorted_rows()[start:start + self._page_size]

    def snapshot(self) -> TablePage:
        visible = self.visible_rows()
        total = len(self._rows)
        start_row = self._page_index * self._page_size + 1 if total else 0
        end_row = min((self._page_index + 1) * self._page_size, total)
        return TablePage(
            columns=[{"id": c.id, "label": c.label, "sortable": c.sortable}
                     for c in self.columns],
            rows=visible,
            cells=[[c.render(r) for c in self.columns] for r in visible],
            page_index=self._page_index,
            page_count=self.page_count,
            page_size=self._page_size,
            total_rows=total,
            start_row=start_row,
            end_row=end_row,
            can_previous=self.can_previous(),
            can_next=self.can_next(),
            page_window=page_window(self._page_index, self.page_count),
            sort=self._sort,
        )
