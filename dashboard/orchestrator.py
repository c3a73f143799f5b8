"""
Query orchestration: dedup, staleness, retry and race-safe slots.

``QueryOrchestrator.resolve`` is synchronous.  It reads the shared
QueryCache, returns the best-known result immediately and, when the entry
is missing, stale or invalidated, schedules exactly one fetch task on the
running event loop.  A second resolve for the same key while that task is
in flight shares it (single-flight), unless the entry was invalidated after
that fetch was issued: then a new fetch supersedes it and only the newest
fetch may write the entry.

Fetch tasks never raise into the loop: terminal errors are stored on the
cache entry and surface as ``QueryResult.status == "error"``.

``QuerySlot`` is what a view binds to.  It remembers the key it currently
wants; a response that settles for any other key stays in the cache but is
never written into the slot, so an older slow response cannot overwrite a
newer one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from client.errors import ContractViolationError, DashboardError
from utils.cache import CacheEntry, QueryCache
from utils.http import RetryStrategy
from utils.query import QueryKey

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[Any]]

IDLE = "idle"
LOADING = "loading"
SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class FetchPolicy:
    """Per-query fetch behaviour.

    Attributes:
        max_retries: Extra attempts after the first, for retryable errors only.
        stale_time_ms: Data is fresh while its age is strictly below this.
        backoff: Delay schedule between attempts.
    """

    max_retries: int = 1
    stale_time_ms: float = 180_000
    backoff: RetryStrategy = field(default_factory=RetryStrategy)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.stale_time_ms < 0:
            raise ValueError("stale_time_ms must be >= 0")


@dataclass(frozen=True)
class Invalidate:
    """Event asking the orchestrator to mark entries stale.

    ``target`` is an exact QueryKey, a namespace string or a tuple prefix.
    """

    target: QueryKey | str | tuple
    reason: str = ""


@dataclass
class QueryResult:
    key: QueryKey | None
    status: str = IDLE
    data: Any = None
    error: BaseException | None = None
    is_stale: bool = False
    is_fetching: bool = False
    updated_at: float | None = None
    pending: asyncio.Task | None = field(default=None, repr=False, compare=False)

    @property
    def is_success(self) -> bool:
        return self.status == SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == ERROR


class QueryOrchestrator:
    """Resolves QueryKeys against a QueryCache with single-flight fetches."""

    def __init__(
        self,
        cache: QueryCache,
        default_policy: FetchPolicy | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.cache = cache
        self.default_policy = default_policy or FetchPolicy()
        self._sleep = sleep

    # ── Read side ─────────────────────────────────────────────────────────

    def _snapshot(self, entry: CacheEntry | None, key: QueryKey,
                  policy: FetchPolicy) -> QueryResult:
        if entry is None:
            return QueryResult(key=key)
        task = entry.in_flight if entry.in_flight is not None and not entry.in_flight.done() else None
        fetching = task is not None
        if entry.error is not None:
            status = ERROR
        elif entry.has_data:
            status = SUCCESS
        elif fetching:
            status = LOADING
        else:
            status = IDLE
        now = self.cache.now()
        return QueryResult(
            key=key,
            status=status,
            data=entry.data,
            error=entry.error,
            is_stale=entry.has_data and not entry.is_fresh(now, policy.stale_time_ms),
            is_fetching=fetching,
            updated_at=entry.fetched_at,
            pending=task,
        )

    def peek(self, key: QueryKey, policy: FetchPolicy | None = None) -> QueryResult:
        """Current cached view of *key* without scheduling anything."""
        return self._snapshot(self.cache.get(key), key, policy or self.default_policy)

    def pending(self, key: QueryKey) -> asyncio.Task | None:
        """The in-flight task for *key*, if any."""
        entry = self.cache.find(key)
        if entry is None or entry.in_flight is None or entry.in_flight.done():
            return None
        return entry.in_flight

    # ── Resolve ───────────────────────────────────────────────────────────

    def resolve(self, key: QueryKey, fetch_fn: FetchFn,
                policy: FetchPolicy | None = None) -> QueryResult:
        """Return cached data for *key* and start a fetch if one is needed.

        Must be called from a coroutine running on the event loop when a
        fetch may be scheduled.

        Args:
            key: Canonical query identity.
            fetch_fn: Zero-argument coroutine function performing the request.
            policy: Retry and staleness policy (defaults to the orchestrator's).

        Returns:
            QueryResult whose ``pending`` task is set while a fetch runs.
        """
        policy = policy or self.default_policy
        entry = self.cache.entry(key)

        if entry.in_flight is not None and not entry.in_flight.done():
            if entry.fetch_generation == entry.generation:
                logger.debug("sharing in-flight fetch for %s", key,
                             extra={"query_key": str(key)})
                return self._snapshot(entry, key, policy)
            logger.debug("superseding fetch for %s issued before invalidation", key,
                         extra={"query_key": str(key)})
        elif entry.is_fresh(self.cache.now(), policy.stale_time_ms):
            return self._snapshot(entry, key, policy)

        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run(key, fetch_fn, policy, entry.generation),
                                name=f"query:{key}")
        entry.in_flight = task
        entry.fetch_generation = entry.generation
        task.add_done_callback(lambda t, k=key: self._clear_in_flight(k, t))
        return self._snapshot(entry, key, policy)

    async def resolve_settled(self, key: QueryKey, fetch_fn: FetchFn,
                              policy: FetchPolicy | None = None) -> QueryResult:
        """Resolve *key* and wait until any fetch for it has settled."""
        policy = policy or self.default_policy
        result = self.resolve(key, fetch_fn, policy)
        if result.pending is not None:
            await asyncio.wait({result.pending})
        return self.peek(key, policy)

    def _clear_in_flight(self, key: QueryKey, task: asyncio.Task) -> None:
        entry = self.cache.find(key)
        if entry is not None and entry.in_flight is task:
            entry.in_flight = None

    def _current(self, key: QueryKey) -> bool:
        """Whether the running task is still the fetch that owns *key*."""
        entry = self.cache.find(key)
        if entry is None:
            logger.debug("dropping response for removed key %s", key)
            return False
        if entry.in_flight is not asyncio.current_task():
            logger.debug("dropping superseded response for %s", key)
            return False
        return True

    async def _run(self, key: QueryKey, fetch_fn: FetchFn, policy: FetchPolicy,
                   generation: int) -> None:
        log_extra = {
            "namespace": key.namespace,
            "operation": key.operation,
            "query_key": str(key),
        }
        attempt = 0
        while True:
            attempt += 1
            try:
                data = await fetch_fn()
            except DashboardError as exc:
                if exc.retryable and attempt <= policy.max_retries:
                    delay = policy.backoff.delay(attempt)
                    logger.warning(
                        "fetch %s failed (attempt %d/%d), retrying in %.2fs: %s",
                        key, attempt, policy.max_retries + 1, delay, exc,
                        extra={**log_extra, "attempt": attempt},
                    )
                    await self._sleep(delay)
                    continue
                if isinstance(exc, ContractViolationError):
                    logger.error("fetch %s violated the response contract: %s",
                                 key, exc, exc_info=exc,
                                 extra={**log_extra, "attempt": attempt})
                else:
                    logger.warning("fetch %s failed after %d attempt(s): %s",
                                   key, attempt, exc,
                                   extra={**log_extra, "attempt": attempt})
                self._settle_error(key, exc)
                return
            except Exception as exc:
                logger.exception("unexpected error fetching %s", key,
                                 extra={**log_extra, "attempt": attempt})
                self._settle_error(key, exc)
                return

            if not self._current(key):
                return
            self.cache.store(key, data, generation=generation)
            logger.debug("fetched %s in %d attempt(s)", key, attempt,
                         extra={**log_extra, "attempt": attempt})
            return

    def _settle_error(self, key: QueryKey, exc: BaseException) -> None:
        if self._current(key):
            self.cache.record_error(key, exc)

    # ── Invalidation ──────────────────────────────────────────────────────

    def invalidate(self, target: QueryKey | str | tuple) -> int:
        """Mark entries addressed by *target* stale; returns the count."""
        return self.cache.invalidate(target)

    def handle(self, event: Invalidate) -> int:
        count = self.invalidate(event.target)
        if event.reason:
            logger.info("invalidated %d entries for %s (%s)",
                        count, event.target, event.reason)
        return count


SlotListener = Callable[["QuerySlot", QueryResult], None]


class QuerySlot:
    """Display slot bound to whichever key a view currently wants.

    Usage::

        slot = QuerySlot(orchestrator, "kpis")
        slot.request(key_2026, fetch_2026)
        slot.request(key_2025, fetch_2025)   # supersedes 2026
        # whatever order the fetches finish in, slot.result ends on 2025
    """

    def __init__(self, orchestrator: QueryOrchestrator, name: str = "") -> None:
        self.orchestrator = orchestrator
        self.name = name
        self.desired_key: QueryKey | None = None
        self.policy: FetchPolicy | None = None
        self.result = QueryResult(key=None)
        self._listeners: list[SlotListener] = []

    def request(self, key: QueryKey, fetch_fn: FetchFn,
                policy: FetchPolicy | None = None) -> QueryResult:
        """Make *key* the desired key and resolve it."""
        self.desired_key = key
        self.policy = policy
        result = self.orchestrator.resolve(key, fetch_fn, policy)
        self._accept(result)
        if result.pending is not None:
            result.pending.add_done_callback(lambda t, k=key: self._settled(k))
        return self.result

    def _settled(self, key: QueryKey) -> None:
        if key != self.desired_key:
            logger.debug("slot %s discarded superseded response for %s", self.name, key)
            return
        result = self.orchestrator.peek(key, self.policy)
        self._accept(result)
        # a superseding fetch for the same key is still running
        if result.pending is not None:
            result.pending.add_done_callback(lambda t, k=key: self._settled(k))

    def reset(self) -> QueryResult:
        """Stop wanting any key and publish an idle result to listeners."""
        self.desired_key = None
        self.policy = None
        self._accept(QueryResult(key=None))
        return self.result

    def sync(self) -> QueryResult:
        """Re-read the desired key from the cache into the slot."""
        if self.desired_key is not None:
            self._accept(self.orchestrator.peek(self.desired_key, self.policy))
        return self.result

    def _accept(self, result: QueryResult) -> None:
        self.result = result
        for listener in list(self._listeners):
            listener(self, result)

    def subscribe(self, listener: SlotListener) -> None:
        self._listeners.append(listener)
