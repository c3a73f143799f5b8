"""
Dashboard runtime owned by the service lifespan.

One DashboardRuntime holds the QueryCache, the remote ApiClient, the
QueryOrchestrator and one controller per module.  ``create_app`` builds it
on startup and disposes it on shutdown (cache cleared, HTTP session
closed).  Routes reach it through the ``get_runtime`` / ``get_controller``
dependencies.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from fastapi import Depends, HTTPException, Request

from client.base import ApiClient
from dashboard.controller import DashboardController
from dashboard.modules import build_controllers
from dashboard.orchestrator import FetchPolicy, QueryOrchestrator, SleepFn
from utils.cache import QueryCache
from utils.config import AppConfig

logger = logging.getLogger(__name__)


class DashboardRuntime:
    """Application-scoped cache, client, orchestrator and controllers."""

    def __init__(
        self,
        config: AppConfig,
        client: ApiClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.config = config
        self.cache = QueryCache(clock=clock)
        self.client = client if client is not None else ApiClient.from_config(config)
        self.orchestrator = QueryOrchestrator(
            self.cache,
            default_policy=FetchPolicy(
                max_retries=config.max_retries,
                stale_time_ms=config.stale_time_ms,
            ),
            sleep=sleep,
        )
        self.controllers = build_controllers(self.client, self.orchestrator, config)
        self.started_at = time.time()
        logger.info("dashboard runtime ready for %s (%d modules)",
                    config.api_base_url, len(self.controllers))

    def controller(self, module: str) -> DashboardController:
        try:
            return self.controllers[module]
        except KeyError:
            raise KeyError(f"Unknown dashboard module: {module}") from None

    def close(self) -> None:
        """Dispose the cache and close the HTTP session."""
        self.cache.dispose()
        self.client.close()
        logger.info("dashboard runtime closed")


def get_runtime(request: Request) -> DashboardRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Dashboard runtime is not running")
    return runtime


def get_controller(module: str,
                   runtime: DashboardRuntime = Depends(get_runtime)) -> DashboardController:
    """Resolve the ``{module}`` path parameter to its controller (404 if unknown)."""
    try:
        return runtime.controller(module)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0])) from exc
