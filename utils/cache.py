"""In-memory query cache shared by every dashboard controller.

Provides the QueryCache store that the query orchestrator resolves against.
Entries are addressed by QueryKey (see utils/query.py) and grouped by
namespace, so invalidating ``"contratos-menores"`` after a create marks every
contratos-menores entry stale without touching the other modules.

The cache is constructed explicitly by the application root (the FastAPI
lifespan, or a test) and injected into controllers; there is no module-level
singleton.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from utils.query import QueryKey

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Last-known state for one QueryKey.

    ``fetched_at`` is a monotonic timestamp in seconds and stays ``None``
    until the first successful fetch.  ``stale`` is set by explicit
    invalidation and cleared by the next successful fetch issued after it.

    ``generation`` counts invalidations; ``fetch_generation`` is the
    generation the in-flight fetch was issued at.  A fetch issued before the
    latest invalidation cannot clear ``stale``.
    """

    key: QueryKey
    data: Any = None
    fetched_at: float | None = None
    stale: bool = False
    error: BaseException | None = None
    error_at: float | None = None
    generation: int = 0
    fetch_generation: int | None = None
    in_flight: asyncio.Task | None = field(default=None, repr=False)

    @property
    def has_data(self) -> bool:
        return self.fetched_at is not None

    def age_ms(self, now: float) -> float | None:
        """Milliseconds since the last successful fetch, or None."""
        if self.fetched_at is None:
            return None
        return (now - self.fetched_at) * 1000.0

    def is_fresh(self, now: float, stale_time_ms: float) -> bool:
        """True when data exists, was not invalidated and is younger than the window."""
        if self.stale or self.fetched_at is None:
            return False
        return self.age_ms(now) < stale_time_ms


class QueryCache:
    """Process-wide store of CacheEntry objects keyed by QueryKey.

    Mutation happens only on the event loop thread, so no locking is needed;
    namespacing keeps modules from colliding.

    Usage::

        cache = QueryCache()
        entry = cache.entry(key)          # created on first use
        cache.store(key, data, now)       # successful fetch
        cache.invalidate("presupuesto")   # mark a namespace stale
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialise the cache.

        Args:
            clock: Monotonic clock in seconds (injectable for tests).
        """
        self._clock = clock
        self._store: dict[QueryKey, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._closed = False

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    def now(self) -> float:
        return self._clock()

    def get(self, key: QueryKey) -> CacheEntry | None:
        """Return the entry for *key*, or ``None`` if it was never created."""
        entry = self._store.get(key)
        if entry is None or not entry.has_data:
            self._misses += 1
        else:
            self._hits += 1
        return entry

    def find(self, key: QueryKey) -> CacheEntry | None:
        """Like get() but without touching hit/miss statistics."""
        return self._store.get(key)

    def entry(self, key: QueryKey) -> CacheEntry:
        """Return the entry for *key*, creating an empty one on first use."""
        entry = self._store.get(key)
        if entry is None:
            if self._closed:
                raise RuntimeError("QueryCache has been disposed")
            entry = CacheEntry(key=key)
            self._store[key] = entry
        return entry

    def store(self, key: QueryKey, data: Any, fetched_at: float | None = None,
              generation: int | None = None) -> CacheEntry:
        """Record a successful fetch for *key* (updates the entry in place).

        Args:
            key: Entry to update.
            data: Response payload.
            fetched_at: Monotonic timestamp (default: now).
            generation: Invalidation generation the fetch was issued at.  When
                the entry was invalidated since, the data is kept but stays
                stale.
        """
        entry = self.entry(key)
        entry.data = data
        entry.fetched_at = self.now() if fetched_at is None else fetched_at
        entry.stale = generation is not None and generation != entry.generation
        entry.error = None
        entry.error_at = None
        return entry

    def record_error(self, key: QueryKey, error: BaseException) -> CacheEntry:
        """Record a terminal fetch error; last-known data is kept."""
        entry = self.entry(key)
        entry.error = error
        entry.error_at = self.now()
        return entry

    def matching(self, target: QueryKey | str | tuple) -> Iterator[CacheEntry]:
        """Yield entries addressed by an exact key, namespace or tuple prefix."""
        for key, entry in list(self._store.items()):
            if key.matches(target):
                yield entry

    def invalidate(self, target: QueryKey | str | tuple) -> int:
        """Mark every matching entry stale.

        Args:
            target: Exact QueryKey, namespace string, or tuple prefix.

        Returns:
            Number of entries marked stale.
        """
        count = 0
        for entry in self.matching(target):
            entry.stale = True
            entry.generation += 1
            count += 1
        logger.debug("invalidated %d cache entries for %s", count, target)
        return count

    def remove(self, target: QueryKey | str | tuple) -> int:
        """Delete matching entries outright (no-op if none match)."""
        keys = [e.key for e in self.matching(target)]
        for key in keys:
            del self._store[key]
        return len(keys)

    def keys(self) -> list[QueryKey]:
        return list(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def clear(self) -> None:
        """Remove all entries and reset statistics."""
        self._store.clear()
        self._hits = 0
        self._misses = 0

    def dispose(self) -> None:
        """Clear the store and refuse new entries (application shutdown)."""
        self.clear()
        self._closed = True

    def stats(self) -> dict[str, int]:
        """Return cache statistics.

        Returns:
            Dict with keys ``hits``, ``misses``, ``size``, ``stale`` and
            ``in_flight``.
        """
        return {
            "hits": self._hits,
            "misses": self._misses,
            "size": len(self._store),
            "stale": sum(1 for e in self._store.values() if e.stale),
            "in_flight": sum(
                1 for e in self._store.values()
                if e.in_flight is not None and not e.in_flight.done()
            ),
        }
