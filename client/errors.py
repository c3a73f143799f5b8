"""
Error taxonomy for remote fetches.

    DashboardError            base for everything raised by client/ code
    ├── TransientFetchError   network failure, timeout, 5xx/429 — retryable
    ├── ClientRequestError    4xx or client-side validation — not retryable
    └── ContractViolationError  response shape mismatch — not retryable

The query orchestrator reads ``retryable`` to decide whether an attempt
counts against the FetchPolicy retry budget or ends the fetch immediately.
"""

from __future__ import annotations


class DashboardError(Exception):
    """Base exception for all dashboard client errors."""

    retryable: bool = False

    def __init__(self, message: str, *, status_code: int | None = None,
                 detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail

    def to_dict(self) -> dict:
        """JSON-friendly description used by the dashboard service."""
        d = {"error": type(self).__name__, "message": self.message,
             "retryable": self.retryable}
        if self.status_code is not None:
            d["status_code"] = self.status_code
        if self.detail:
            d["detail"] = self.detail
        return d


class TransientFetchError(DashboardError):
    """Network error, timeout or 5xx — safe to retry."""

    retryable = True


class ClientRequestError(DashboardError):
    """The request itself is wrong (4xx, failed validation); retrying won't help."""

    retryable = False


class ContractViolationError(DashboardError):
    """The response does not have the shape the client expects.

    This is a programming error between client and backend; it is never
    retried and never replaced with default data.
    """

    retryable = False


def is_retryable(exc: BaseException) -> bool:
    """Return True only for errors explicitly classified as transient."""
    return bool(getattr(exc, "retryable", False))
