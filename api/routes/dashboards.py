"""
Dashboard endpoints.

Every module shares the same surface:

    GET    /dashboards                          list of modules
    GET    /dashboards/{module}                 resolve + state
    POST   /dashboards/{module}/filters         merge into committed filters
    DELETE /dashboards/{module}/filters         clear committed filters
    POST   /dashboards/{module}/filters/reset   back to module defaults
    POST   /dashboards/{module}/page            server page (1-based)
    POST   /dashboards/{module}/table/sort      client-side sort
    POST   /dashboards/{module}/table/page      client-side page navigation
    POST   /dashboards/{module}/operations/{operation}/retry

``wait=true`` (default) returns after every in-flight fetch has settled;
``wait=false`` returns immediately with loading/stale flags.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from api.models import DashboardStateOut, FiltersIn, PageIn, SortIn, TableNavIn, TablePageOut
from api.runtime import DashboardRuntime, get_controller, get_runtime
from dashboard.controller import DashboardController

router = APIRouter(prefix="/dashboards", tags=["dashboards"])

_WAIT = Query(True, description="Wait for in-flight fetches before responding")


async def _respond(controller: DashboardController, wait: bool) -> dict[str, Any]:
    if wait:
        return await controller.settled()
    return controller.state()


@router.get("", summary="List dashboard modules")
async def list_dashboards(runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    return {"modules": sorted(runtime.controllers)}


@router.get("/{module}", response_model=DashboardStateOut, summary="Dashboard state")
async def get_dashboard(
    controller: DashboardController = Depends(get_controller),
    wait: bool = _WAIT,
) -> dict:
    """Resolve every operation for the committed filters and return the state.

    Fresh cache entries are served without a network call; stale ones are
    returned with ``is_stale`` set while a single background refetch runs.
    """
    controller.refresh()
    return await _respond(controller, wait)


@router.post("/{module}/filters", response_model=DashboardStateOut,
             summary="Apply filters")
async def apply_filters(
    body: FiltersIn,
    controller: DashboardController = Depends(get_controller),
    wait: bool = _WAIT,
) -> dict:
    controller.apply_filters(body.filters)
    return await _respond(controller, wait)


@router.delete("/{module}/filters", response_model=DashboardStateOut,
               summary="Clear filters")
async def clear_filters(
    controller: DashboardController = Depends(get_controller),
    wait: bool = _WAIT,
) -> dict:
    controller.clear_filters()
    return await _respond(controller, wait)


@router.post("/{module}/filters/reset", response_model=DashboardStateOut,
             summary="Reset filters to module defaults")
async def reset_filters(
    controller: DashboardController = Depends(get_controller),
    wait: bool = _WAIT,
) -> dict:
    controller.reset_filters()
    return await _respond(controller, wait)


@router.post("/{module}/page", response_model=DashboardStateOut,
             summary="Change server page")
async def set_page(
    body: PageIn,
    controller: DashboardController = Depends(get_controller),
    wait: bool = _WAIT,
) -> dict:
    controller.set_page(body.page)
    return await _respond(controller, wait)


def _require_table(controller: DashboardController) -> None:
    if controller.table_operation is None:
        raise HTTPException(status_code=404,
                            detail=f"{controller.namespace} has no table")


@router.post("/{module}/table/sort", response_model=TablePageOut,
             summary="Sort the table page")
async def sort_table(
    body: SortIn,
    controller: DashboardController = Depends(get_controller),
) -> dict:
    _require_table(controller)
    if body.column not in {c.id for c in controller.table.columns}:
        raise ValueError(f"Unknown column: {body.column}")
    if body.direction is None:
        controller.table.toggle_sort(body.column)
    else:
        controller.table.sort_by(body.column, body.direction)
    return controller.table.snapshot().to_dict()


@router.post("/{module}/table/page", response_model=TablePageOut,
             summary="Navigate the table page")
async def navigate_table(
    body: TableNavIn,
    controller: DashboardController = Depends(get_controller),
) -> dict:
    _require_table(controller)
    if body.action == "next":
        controller.table.next()
    elif body.action == "previous":
        controller.table.previous()
    else:
        if body.page_index is None:
            raise ValueError("page_index is required for go_to")
        controller.table.go_to(body.page_index)
    return controller.table.snapshot().to_dict()


@router.post("/{module}/operations/{operation}/retry", response_model=DashboardStateOut,
             summary="Retry one operation")
async def retry_operation(
    operation: str,
    controller: DashboardController = Depends(get_controller),
    wait: bool = _WAIT,
) -> dict:
    if operation not in controller.operations:
        raise HTTPException(status_code=404,
                            detail=f"Unknown operation '{operation}' for {controller.namespace}")
    controller.retry(operation)
    return await _respond(controller, wait)
