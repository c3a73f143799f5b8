"""HTTP utilities for the dashboard API client.

Provides reusable pieces for:
- Retry backoff and retryable-status classification (RetryStrategy)
- Connection pooling and session management (SessionManager)

Retries themselves are driven by the query orchestrator (see
dashboard/orchestrator.py) so that every attempt is visible to the cache and
counted against the operation's FetchPolicy; the requests session therefore
mounts adapters without transport-level retries.
"""

from __future__ import annotations

from typing import Optional, List

import requests
from requests.adapters import HTTPAdapter


class RetryStrategy:
    """Defines backoff timing and which HTTP statuses are transient."""

    def __init__(self, backoff_factor: float = 0.5, max_backoff: float = 30.0,
                 status_forcelist: Optional[List[int]] = None):
        """Initialize retry strategy.

        Args:
            backoff_factor: Exponential backoff multiplier (default: 0.5)
                           delays: 0.5s, 1s, 2s, 4s, etc.
            max_backoff: Upper bound for a single delay in seconds
            status_forcelist: HTTP status codes treated as transient
                            (default: [408, 429, 500, 502, 503, 504])
        """
        if backoff_factor < 0:
            raise ValueError("backoff_factor must be >= 0")
        self.backoff_factor = backoff_factor
        self.max_backoff = max_backoff
        self.status_forcelist = status_forcelist or [408, 429, 500, 502, 503, 504]

    def delay(self, attempt: int) -> float:
        """Seconds to wait before retry number *attempt* (1-based).

        Args:
            attempt: Retry number, 1 for the first retry

        Returns:
            Delay in seconds, capped at ``max_backoff``
        """
        if attempt < 1:
            return 0.0
        return min(self.backoff_factor * (2 ** (attempt - 1)), self.max_backoff)

    def is_retryable_status(self, status_code: int) -> bool:
        """Return True for statuses worth retrying (5xx and the forcelist)."""
        return status_code in self.status_forcelist or 500 <= status_code < 600

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RetryStrategy):
            return NotImplemented
        return (self.backoff_factor, self.max_backoff, self.status_forcelist) == (
            other.backoff_factor, other.max_backoff, other.status_forcelist)

    def __hash__(self) -> int:
        return hash((self.backoff_factor, self.max_backoff, tuple(self.status_forcelist)))

    def __repr__(self) -> str:
        return (f"RetryStrategy(backoff_factor={self.backoff_factor}, "
                f"max_backoff={self.max_backoff})")


class SessionManager:
    """Manages HTTP sessions with connection pooling."""

    def __init__(self, pool_connections: int = 10, pool_maxsize: int = 20,
                 headers: Optional[dict] = None):
        """Initialize session manager.

        Args:
            pool_connections: Number of connection pools to cache
            pool_maxsize: Maximum number of connections per pool
            headers: Default headers added to every request
        """
        self.pool_connections = pool_connections
        self.pool_maxsize = pool_maxsize
        self.headers = dict(headers or {})
        self._session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        """Get or create HTTP session with pooling.

        Returns:
            requests.Session object
        """
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(self.headers)

            adapter = HTTPAdapter(
                max_retries=0,
                pool_connections=self.pool_connections,
                pool_maxsize=self.pool_maxsize
            )
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)

        return self._session

    def close(self) -> None:
        """Close the session and release resources."""
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
