"""
Pydantic request/response models for the dashboard service.

Request bodies are validated strictly; response models describe the state
documents the controllers produce so they show up in the OpenAPI docs.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


# ── Request bodies ────────────────────────────────────────────────────────────

class FiltersIn(BaseModel):
    """Patch merged into the committed filters."""
    filters: dict[str, Any] = Field(
        default_factory=dict,
        description="Filter keys to set; keys not present keep their value",
        examples=[{"anio": 2026, "ue_id": "3"}],
    )


class PageIn(BaseModel):
    page: int = Field(..., ge=1, description="1-based server page", examples=[2])


class SortIn(BaseModel):
    column: str = Field(..., description="Column id", examples=["monto_estimado"])
    direction: Literal["asc", "desc"] | None = Field(
        None, description="Explicit direction; omit to cycle asc → desc → none",
    )


class TableNavIn(BaseModel):
    action: Literal["next", "previous", "go_to"]
    page_index: int | None = Field(None, description="Zero-based target for go_to")


class InvalidateIn(BaseModel):
    namespace: str = Field(..., description="Module namespace", examples=["contratos-menores"])
    operation: str | None = Field(None, description="Restrict to one operation")


# ── Responses ─────────────────────────────────────────────────────────────────

class OperationStateOut(BaseModel):
    """Status of one dashboard operation (KPIs, a chart, the table page)."""
    name: str
    status: Literal["idle", "loading", "success", "error"]
    data: Any = None
    error: dict[str, Any] | None = None
    is_stale: bool = False
    is_fetching: bool = False
    key: str | None = None


class TablePageOut(BaseModel):
    columns: list[dict[str, Any]]
    rows: list[dict[str, Any]]
    cells: list[list[str]]
    page_index: int = Field(..., ge=0)
    page_count: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_rows: int = Field(..., ge=0)
    start_row: int
    end_row: int
    can_previous: bool
    can_next: bool
    page_window: list[int]
    sort: list[str] | None = None
    summary: str = Field(..., examples=["Mostrando 1 a 10 de 37"])


class DashboardStateOut(BaseModel):
    namespace: str
    filters: dict[str, dict[str, Any]]
    page: int
    page_size: int
    operations: dict[str, OperationStateOut]
    table: TablePageOut | None = None
    last_upload: dict[str, Any] | None = None


class CacheStatsOut(BaseModel):
    hits: int
    misses: int
    size: int
    stale: int
    in_flight: int


class InvalidateOut(BaseModel):
    invalidated: int


class ErrorOut(BaseModel):
    error: str
    detail: Any = None
    status_code: int
