"""Shared query-key and parameter utilities for the dashboard modules.

Every module (presupuesto, adquisiciones, contratos menores, actividades
operativas, alertas, importacion) builds its cache identities and its HTTP
query strings here so the four dashboards never disagree on how a filter
snapshot is spelled.

A QueryKey is the cache/dedup identity of one request::

    key = QueryKey.build("contratos-menores", "tabla", {"anio": "2026"},
                         page=1, page_size=20)

Two keys are equal iff every component is equal after canonical
serialisation of the filters (sorted keys, values rendered as strings,
empty values dropped).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Union

FilterValue = Union[str, list[str]]
FilterState = dict[str, FilterValue]

# Values treated as "unfiltered" and therefore omitted from keys and params.
_EMPTY_VALUES = (None, "")


def _is_empty(value: Any) -> bool:
    if value in _EMPTY_VALUES:
        return True
    return isinstance(value, (list, tuple)) and len(value) == 0


def _canonical_value(value: Any) -> str | list[str]:
    """Render a filter value in its stable string form.

    Lists keep their order; scalars (including ints such as ``anio=2026``)
    become strings so ``2026`` and ``"2026"`` produce the same key.
    """
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v not in _EMPTY_VALUES]
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def canonical_filters(filters: Mapping[str, Any] | None) -> dict[str, str | list[str]]:
    """Return a new, sorted, fully-resolved copy of *filters*.

    Args:
        filters: Committed filter snapshot (may be None).

    Returns:
        Dict with keys in sorted order, empty values removed and every value
        rendered as a string or list of strings.
    """
    if not filters:
        return {}
    result: dict[str, str | list[str]] = {}
    for key in sorted(filters):
        value = filters[key]
        if _is_empty(value):
            continue
        canon = _canonical_value(value)
        if canon == []:
            continue
        result[str(key)] = canon
    return result


def serialize_filters(filters: Mapping[str, Any] | None) -> str:
    """Serialise *filters* to the compact JSON string stored in a QueryKey."""
    return json.dumps(canonical_filters(filters), sort_keys=True,
                      separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class QueryKey:
    """Immutable cache identity: (namespace, operation, filters, page, page_size)."""

    namespace: str
    operation: str
    filters: str = "{}"
    page: int | None = None
    page_size: int | None = None

    @classmethod
    def build(
        cls,
        namespace: str,
        operation: str,
        filters: Mapping[str, Any] | None = None,
        page: int | None = None,
        page_size: int | None = None,
    ) -> "QueryKey":
        """Build a key from a raw committed filter snapshot."""
        if not namespace:
            raise ValueError("QueryKey namespace must be a non-empty string")
        if not operation:
            raise ValueError("QueryKey operation must be a non-empty string")
        return cls(
            namespace=namespace,
            operation=operation,
            filters=serialize_filters(filters),
            page=page,
            page_size=page_size,
        )

    def as_tuple(self) -> tuple:
        return (self.namespace, self.operation, self.filters, self.page, self.page_size)

    def filter_dict(self) -> dict[str, str | list[str]]:
        """Decode the serialised filter snapshot back into a dict."""
        return json.loads(self.filters)

    def matches(self, target: "QueryKey | str | tuple") -> bool:
        """Return True if this key is addressed by *target*.

        Args:
            target: An exact QueryKey, a namespace string, or a tuple prefix
                such as ``("presupuesto", "kpis")``.
        """
        if isinstance(target, QueryKey):
            return self == target
        if isinstance(target, str):
            return self.namespace == target
        prefix = tuple(target)
        return self.as_tuple()[: len(prefix)] == prefix

    def __str__(self) -> str:
        parts = [self.namespace, self.operation, self.filters]
        if self.page is not None:
            parts.append(f"page={self.page}")
        if self.page_size is not None:
            parts.append(f"page_size={self.page_size}")
        return "/".join(parts)


def flatten_params(
    filters: Mapping[str, Any] | None,
    page: int | None = None,
    page_size: int | None = None,
    extra: Mapping[str, Any] | None = None,
) -> list[tuple[str, str]]:
    """Flatten a filter snapshot into flat (key, value) query parameters.

    List-valued filters become repeated keys (``estado=A&estado=B``), which
    ``requests`` transmits as-is when given a list of tuples.

    Args:
        filters: Committed filter snapshot.
        page: 1-based server page (omitted when None).
        page_size: Server page size (omitted when None).
        extra: Additional scalar params appended after the filters.

    Returns:
        List of (key, value) string pairs in canonical order.
    """
    params: list[tuple[str, str]] = []
    for key, value in canonical_filters(filters).items():
        if isinstance(value, list):
            params.extend((key, v) for v in value)
        else:
            params.append((key, value))
    for key, value in canonical_filters(extra).items():
        if isinstance(value, list):
            params.extend((key, v) for v in value)
        else:
            params.append((key, value))
    if page is not None:
        params.append(("page", str(page)))
    if page_size is not None:
        params.append(("page_size", str(page_size)))
    return params


def select_params(filters: Mapping[str, Any] | None, allowed: Iterable[str]) -> dict[str, Any]:
    """Keep only the filter keys a given endpoint accepts.

    Mirrors the backend's per-router ``_filter_params``: unknown keys are
    dropped rather than forwarded.
    """
    allowed_set = set(allowed)
    return {k: v for k, v in (filters or {}).items() if k in allowed_set}
