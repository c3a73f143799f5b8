"""Shared utilities for the budget and procurement dashboards.

Import from the package root or from the individual modules::

    from utils import QueryKey, QueryCache, format_monto
    from utils.http import SessionManager
"""

# Query keys and parameter flattening
from utils.query import (
    FilterState,
    QueryKey,
    canonical_filters,
    flatten_params,
    select_params,
    serialize_filters,
)

# Query cache
from utils.cache import CacheEntry, QueryCache

# HTTP utilities
from utils.http import RetryStrategy, SessionManager

# Output formatting
from utils.formatting import (
    format_fecha,
    format_fecha_hora,
    format_monto,
    format_monto_completo,
    format_number,
    format_percent,
    semaforo_color,
    truncate_text,
)

# Configuration
from utils.config import (
    ANIO_ACTUAL,
    UIT_2026,
    UMBRAL_8_UIT,
    AppConfig,
    Config,
)

# Logging
from utils.logging import JsonFormatter, configure_logging

__all__ = [
    # Query keys
    "FilterState",
    "QueryKey",
    "canonical_filters",
    "flatten_params",
    "select_params",
    "serialize_filters",
    # Cache
    "CacheEntry",
    "QueryCache",
    # HTTP
    "RetryStrategy",
    "SessionManager",
    # Formatting
    "format_fecha",
    "format_fecha_hora",
    "format_monto",
    "format_monto_completo",
    "format_number",
    "format_percent",
    "semaforo_color",
    "truncate_text",
    # Config
    "ANIO_ACTUAL",
    "UIT_2026",
    "UMBRAL_8_UIT",
    "AppConfig",
    "Config",
    # Logging
    "JsonFormatter",
    "configure_logging",
]
