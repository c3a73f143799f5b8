"""
Client package -- access to the remote reporting API.

Re-exports the pieces most callers need::

    from client import ApiClient, DashboardError, TablaResponse
"""

from client.base import ApiClient
from client.errors import (
    ClientRequestError,
    ContractViolationError,
    DashboardError,
    TransientFetchError,
    is_retryable,
)
from client.models import ImportResult, TablaResponse, parse_contract, parse_list

__all__ = [
    "ApiClient",
    "ClientRequestError",
    "ContractViolationError",
    "DashboardError",
    "TransientFetchError",
    "is_retryable",
    "ImportResult",
    "TablaResponse",
    "parse_contract",
    "parse_list",
]
