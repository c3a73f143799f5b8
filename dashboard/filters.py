"""
Filter state for one dashboard view.

Two snapshots are held: the *draft* the user is editing and the *committed*
state that drives query keys.  Only ``apply_filters``, ``clear_filters`` and
``reset`` change the committed state; each notifies ``on_commit`` listeners
once with a deep copy, so nothing downstream can mutate what the manager
holds.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Mapping

from utils.query import FilterState

logger = logging.getLogger(__name__)

CommitListener = Callable[[FilterState], None]


class FilterStateManager:
    """Draft/committed filter pair with explicit commit events."""

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._committed: FilterState = copy.deepcopy(dict(initial or {}))
        self._draft: FilterState = copy.deepcopy(self._committed)
        self._listeners: list[CommitListener] = []

    @property
    def committed(self) -> FilterState:
        return copy.deepcopy(self._committed)

    @property
    def draft(self) -> FilterState:
        return copy.deepcopy(self._draft)

    def set_filter(self, key: str, value: Any) -> None:
        """Edit one draft key; ``None`` removes it.  Committed is untouched."""
        if value is None:
            self._draft.pop(key, None)
        else:
            self._draft[key] = copy.deepcopy(value)

    def apply_filters(self, patch: Mapping[str, Any]) -> FilterState:
        """Merge *patch* into the committed state key by key.

        Keys absent from *patch* keep their committed value.  Always
        succeeds; values are not validated.

        Returns:
            The new committed snapshot.
        """
        for key, value in patch.items():
            self._committed[key] = copy.deepcopy(value)
        self._draft = copy.deepcopy(self._committed)
        logger.debug("filters committed: %s", self._committed)
        return self._notify()

    def commit_draft(self) -> FilterState:
        return self.apply_filters(self._draft)

    def clear_filters(self) -> FilterState:
        """Reset committed and draft to empty (idempotent)."""
        self._committed = {}
        self._draft = {}
        return self._notify()

    def reset(self, initial: Mapping[str, Any] | None = None) -> FilterState:
        """Replace committed and draft with *initial* in a single commit."""
        self._committed = copy.deepcopy(dict(initial or {}))
        self._draft = copy.deepcopy(self._committed)
        return self._notify()

    def on_commit(self, callback: CommitListener) -> Callable[[], None]:
        """Register *callback*; returns a function that unregisters it."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _notify(self) -> FilterState:
        snapshot = self.committed
        for listener in list(self._listeners):
            listener(copy.deepcopy(snapshot))
        return snapshot
