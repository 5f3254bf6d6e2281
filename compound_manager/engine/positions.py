"""
compound_manager/engine/positions.py - Position Memory.

Positions are saved relative to the collapsing parent, not absolutely. If a
layout moves the collapsed node before it is expanded, its subtree reappears
in the same shape anchored at the parent's new location.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from compound_manager.graph.model import GraphModel

logger = logging.getLogger(__name__)

LocalPositions = dict[str, tuple[float, float]]


class PositionMemory:
    def __init__(self, graph: GraphModel) -> None:
        self.graph = graph
        self._saved: dict[str, LocalPositions] = {}

    def save_local(self, parent_id: str, descendant_ids: Iterable[str]) -> LocalPositions:
        """
        Record every descendant's offset from the parent, keyed by parent id.

        Any previous record for the same parent is overwritten.

        Returns:
            The stored mapping descendant id -> (lx, ly).
        """
        px, py = self.graph.position(parent_id)
        local: LocalPositions = {}
        for d in descendant_ids:
            x, y = self.graph.position(d)
            local[d] = (x - px, y - py)
        self._saved[parent_id] = local
        logger.debug("Saved %d local positions for '%s'.", len(local), parent_id)
        return local

    def restore_local(
        self,
        parent_id: str,
        is_collapsed: Callable[[str], bool] = lambda _: False,
    ) -> int:
        """
        Re-anchor the parent's children at its current position.

        Direct children receive parent_position + local. Restoration then
        continues into children that are expanded compounds (their children
        are offsets from the same parent) and stops at children that are
        still collapsed: those keep their own record until their own expand.
        The record is consumed.

        Args:
            parent_id:    Node being expanded.
            is_collapsed: Predicate telling which nodes are still collapsed.

        Returns:
            Number of nodes repositioned.
        """
        local = self._saved.pop(parent_id, None)
        if local is None:
            return 0

        px, py = self.graph.position(parent_id)
        restored = 0
        frontier = list(self.graph.children(parent_id))
        while frontier:
            child = frontier.pop()
            if not self.graph.has_node(child):
                continue
            offset = local.get(child)
            if offset is not None:
                self.graph.set_position(child, px + offset[0], py + offset[1])
                restored += 1
            if not is_collapsed(child):
                frontier.extend(self.graph.children(child))

        logger.debug("Restored %d positions under '%s'.", restored, parent_id)
        return restored

    def has_record(self, parent_id: str) -> bool:
        return parent_id in self._saved

    def discard(self, parent_id: str) -> None:
        self._saved.pop(parent_id, None)
