"""
compound_manager/engine/overlap.py - Overlap Resolver.

Bounding-box collision detection and iterative pairwise separation among the
visible non-compound nodes. Compound nodes, expanded or collapsed, are
skipped: their extent is derived from their children, so it is not a
meaningful standalone box.

Termination is guaranteed by the pass cap (config.max_overlap_iterations).
When the cap is reached with overlaps left, a 'layoutResetRequired'
notification asks the caller to run a full layout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from compound_manager.config import DEFAULT_CONFIG, CompoundManagerConfig
from compound_manager.engine.visibility import VisibilityStore
from compound_manager.events import EVENT_LAYOUT_RESET_REQUIRED, NotificationSink
from compound_manager.graph.model import GraphModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundingBox:
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2


@dataclass(frozen=True)
class Overlap:
    """Intersection extent on each axis plus the centre-to-centre vector."""

    overlap_x: float
    overlap_y: float
    dx: float
    dy: float


def bounding_box(graph: GraphModel, node_id: str) -> BoundingBox:
    x, y = graph.position(node_id)
    w, h = graph.size(node_id)
    return BoundingBox(x - w / 2, y - h / 2, x + w / 2, y + h / 2)


def boxes_overlap(bb1: BoundingBox, bb2: BoundingBox) -> bool:
    """Touching edges count as overlapping."""
    return not (
        bb1.x2 < bb2.x1 or bb1.x1 > bb2.x2 or bb1.y2 < bb2.y1 or bb1.y1 > bb2.y2
    )


def calculate_overlap(bb1: BoundingBox, bb2: BoundingBox) -> Overlap | None:
    if not boxes_overlap(bb1, bb2):
        return None
    (c1x, c1y), (c2x, c2y) = bb1.center, bb2.center
    return Overlap(
        overlap_x=min(bb1.x2, bb2.x2) - max(bb1.x1, bb2.x1),
        overlap_y=min(bb1.y2, bb2.y2) - max(bb1.y1, bb2.y1),
        dx=c1x - c2x,
        dy=c1y - c2y,
    )


def separate_nodes(
    graph: GraphModel,
    n1: str,
    n2: str,
    overlap: Overlap,
    padding: float,
) -> None:
    """
    Push two overlapping nodes apart along the cheaper axis.

    The axis with the smaller overlap is chosen. n1 moves overlap/2 + padding
    along the centre vector, n2 the same distance the opposite way; the
    other axis is left untouched. Coincident centres push n1 towards +x/+y.
    """
    move_x = move_y = 0.0
    if overlap.overlap_x < overlap.overlap_y:
        move_x = (overlap.overlap_x / 2 + padding) * (1 if overlap.dx >= 0 else -1)
    else:
        move_y = (overlap.overlap_y / 2 + padding) * (1 if overlap.dy >= 0 else -1)

    x1, y1 = graph.position(n1)
    x2, y2 = graph.position(n2)
    graph.set_position(n1, x1 + move_x, y1 + move_y)
    graph.set_position(n2, x2 - move_x, y2 - move_y)


class OverlapResolver:
    def __init__(
        self,
        graph: GraphModel,
        visibility: VisibilityStore,
        sink: NotificationSink,
        config: CompoundManagerConfig = DEFAULT_CONFIG,
    ) -> None:
        self.graph = graph
        self.visibility = visibility
        self.sink = sink
        self.config = config

    def candidate_nodes(self) -> list[str]:
        """Visible leaf nodes."""
        return [
            node.id for node in self.graph.nodes()
            if not self.visibility.is_hidden(node.id) and not self.graph.is_parent(node.id)
        ]

    def _pairs(self, nodes: list[str]):
        for i, a in enumerate(nodes):
            for b in nodes[i + 1:]:
                if self.graph.is_ancestor(a, b) or self.graph.is_ancestor(b, a):
                    continue
                yield a, b

    def has_overlaps(self) -> bool:
        """Non-destructive pairwise scan."""
        nodes = self.candidate_nodes()
        for a, b in self._pairs(nodes):
            if calculate_overlap(bounding_box(self.graph, a), bounding_box(self.graph, b)):
                return True
        return False

    def resolve_overlaps(
        self,
        max_iterations: int | None = None,
        padding: float | None = None,
    ) -> bool:
        """
        Iteratively separate every overlapping pair of candidate nodes.

        Algorithm:
            Repeat up to max_iterations passes. Each pass re-scans all pairs
            (boxes are recomputed, since earlier moves in the same pass shift
            nodes) and separates each overlapping pair once. A pass that finds
            no overlap ends the loop early.

        Args:
            max_iterations: Pass cap (default config.max_overlap_iterations).
            padding:        Separation padding (default config.overlap_padding).

        Returns:
            True if no overlaps remain. False if the cap was reached with
            overlaps left; a 'layoutResetRequired' notification is emitted.
        """
        max_iterations = (
            self.config.max_overlap_iterations if max_iterations is None else max_iterations
        )
        padding = self.config.overlap_padding if padding is None else padding

        iterations = 0
        found = True
        while found and iterations < max_iterations:
            found = False
            iterations += 1
            nodes = self.candidate_nodes()
            for a, b in self._pairs(nodes):
                overlap = calculate_overlap(
                    bounding_box(self.graph, a), bounding_box(self.graph, b)
                )
                if overlap is not None:
                    separate_nodes(self.graph, a, b, overlap, padding)
                    found = True

        if iterations >= max_iterations and self.has_overlaps():
            logger.warning(
                "Overlap resolution gave up after %d passes; full layout required.",
                iterations,
            )
            self.sink.emit(
                EVENT_LAYOUT_RESET_REQUIRED,
                {
                    "message": "Layout needs to be recomputed",
                    "reason": "overlap_resolution_failed",
                    "iterations": iterations,
                },
            )
            return False

        logger.debug("Overlaps resolved in %d passes.", iterations)
        return True
