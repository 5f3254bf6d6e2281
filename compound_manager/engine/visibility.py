"""
compound_manager/engine/visibility.py - Visibility Store.

The authoritative record of which elements are hidden, independent of any
rendering layer. An element is hidden iff it carries at least one hide
reason. The engine only ever adds and removes the COLLAPSE reason, so an
element hidden by another feature stays hidden when a collapse is undone.
"""

from __future__ import annotations

import logging
from typing import Callable

from compound_manager.graph.elements import ElementRef, element_id

logger = logging.getLogger(__name__)

COLLAPSE = "collapse"


class VisibilityStore:
    """
    Hidden-set bookkeeping keyed by element id.

    Args:
        on_change: Optional callback(element_id, hidden) invoked whenever the
                   effective visibility of an element flips. Used to mirror
                   visibility onto a store's cosmetic flag.
    """

    def __init__(self, on_change: Callable[[str, bool], None] | None = None) -> None:
        self._reasons: dict[str, set[str]] = {}
        self._on_change = on_change

    def hide(self, element: ElementRef, reason: str = COLLAPSE) -> None:
        eid = element_id(element)
        reasons = self._reasons.setdefault(eid, set())
        was_hidden = bool(reasons)
        reasons.add(reason)
        if not was_hidden and self._on_change is not None:
            self._on_change(eid, True)

    def show(self, element: ElementRef, reason: str = COLLAPSE) -> None:
        eid = element_id(element)
        reasons = self._reasons.get(eid)
        if not reasons or reason not in reasons:
            return
        reasons.discard(reason)
        if not reasons:
            del self._reasons[eid]
            if self._on_change is not None:
                self._on_change(eid, False)

    def is_hidden(self, element: ElementRef) -> bool:
        return element_id(element) in self._reasons

    def reasons(self, element: ElementRef) -> frozenset[str]:
        return frozenset(self._reasons.get(element_id(element), ()))

    def hidden_ids(self) -> frozenset[str]:
        return frozenset(self._reasons)

    def forget(self, element: ElementRef) -> None:
        """Drop every record of an element (used when it is deleted)."""
        self._reasons.pop(element_id(element), None)

    def __len__(self) -> int:
        return len(self._reasons)
