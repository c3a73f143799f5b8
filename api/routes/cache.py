"""Cache inspection and manual invalidation."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import CacheStatsOut, InvalidateIn, InvalidateOut
from api.runtime import DashboardRuntime, get_runtime
from dashboard.orchestrator import Invalidate

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/stats", response_model=CacheStatsOut, summary="Query cache statistics")
def cache_stats(runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    return runtime.cache.stats()


@router.post("/invalidate", response_model=InvalidateOut, summary="Mark entries stale")
def invalidate(body: InvalidateIn, runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    target = body.namespace if body.operation is None else (body.namespace, body.operation)
    count = runtime.orchestrator.handle(Invalidate(target, reason="manual"))
    return {"invalidated": count}
