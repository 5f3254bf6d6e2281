"""
compound_manager/engine/projection.py - Projection Builder.

When a compound P collapses, every edge crossing the boundary of its subtree
is superseded by a synthetic projection edge attached to P. Boundary edges
are aggregated by (direction, external node): however many children of P
point at X, the collapsed P shows exactly one P -> X edge. Edges that stay
inside the subtree carry no information for the outside world and are hidden
without a projection.

Superseded edges are hidden, never deleted, so expand can bring them back
verbatim.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Iterable

from compound_manager.engine.visibility import COLLAPSE, VisibilityStore
from compound_manager.graph.elements import Edge
from compound_manager.graph.model import GraphModel

logger = logging.getLogger(__name__)

PROJECTION_CLASS = "compound-projection"

OUTGOING = "out"
INCOMING = "in"


@dataclass
class EdgeClassification:
    internal: list[Edge] = field(default_factory=list)
    boundary: list[Edge] = field(default_factory=list)


@dataclass
class ProjectionRecord:
    """Projection edges created for one collapsed node."""

    projection_ids: list[str] = field(default_factory=list)
    original_ids: list[str] = field(default_factory=list)


def classify_edges(
    graph: GraphModel,
    parent_id: str,
    descendant_ids: Iterable[str],
) -> EdgeClassification:
    """
    Split the edges connected to a subtree into internal and boundary edges.

    Membership is tested against descendants + parent. Edges connected only to
    the parent itself are not examined: they stay attached to the collapsed
    node as they are.
    """
    descendants = list(descendant_ids)
    inside = set(descendants)
    inside.add(parent_id)

    result = EdgeClassification()
    for edge in graph.connected_edges(descendants):
        source_in = edge.source in inside
        target_in = edge.target in inside
        if source_in and target_in:
            result.internal.append(edge)
        elif source_in != target_in:
            result.boundary.append(edge)
    return result


def group_boundary_edges(
    boundary: Iterable[Edge],
    inside: set[str],
) -> dict[tuple[str, str], list[Edge]]:
    """
    Group boundary edges by (direction, external node id).

    Insertion order follows the first edge seen for each group, so projection
    ids are assigned deterministically.
    """
    groups: dict[tuple[str, str], list[Edge]] = {}
    for edge in boundary:
        if edge.source in inside:
            key = (OUTGOING, edge.target)
        else:
            key = (INCOMING, edge.source)
        groups.setdefault(key, []).append(edge)
    return groups


class ProjectionBuilder:
    def __init__(self, graph: GraphModel, visibility: VisibilityStore) -> None:
        self.graph = graph
        self.visibility = visibility
        self._records: dict[str, ProjectionRecord] = {}
        self._owners: dict[str, str] = {}
        self._counter = itertools.count()

    def build(self, parent_id: str, descendant_ids: Iterable[str]) -> ProjectionRecord:
        """
        Create the projection edges for a collapsing compound.

        Algorithm:
            1. Classify edges connected to the subtree (classify_edges).
            2. Hide internal edges; they are never projected.
            3. Group boundary edges by (direction, external node).
            4. Per group add one edge P -> X (outgoing) or X -> P (incoming),
               flagged is_projection and tagged PROJECTION_CLASS. A projection
               whose external endpoint is hidden starts hidden.
            5. Hide all original boundary edges.

        Args:
            parent_id:      The compound being collapsed.
            descendant_ids: Its full descendant set.

        Returns:
            The ProjectionRecord stored for parent_id.
        """
        descendants = list(descendant_ids)
        inside = set(descendants)
        inside.add(parent_id)

        classified = classify_edges(self.graph, parent_id, descendants)
        for edge in classified.internal:
            self.visibility.hide(edge, COLLAPSE)

        record = ProjectionRecord(original_ids=[e.id for e in classified.boundary])
        for (direction, external_id), edges in group_boundary_edges(
            classified.boundary, inside
        ).items():
            if direction == OUTGOING:
                source, target = parent_id, external_id
            else:
                source, target = external_id, parent_id

            projection = self.graph.add_edge(
                source,
                target,
                edge_id=self._next_id(parent_id),
                is_projection=True,
                represents=[e.id for e in edges],
            )
            self.graph.add_class(projection.id, PROJECTION_CLASS)
            if self.visibility.is_hidden(source) or self.visibility.is_hidden(target):
                self.visibility.hide(projection, COLLAPSE)

            record.projection_ids.append(projection.id)
            self._owners[projection.id] = parent_id

        for edge in classified.boundary:
            self.visibility.hide(edge, COLLAPSE)

        self._records[parent_id] = record
        logger.debug(
            "Projected '%s': %d boundary edges -> %d projections, %d internal hidden.",
            parent_id,
            len(classified.boundary),
            len(record.projection_ids),
            len(classified.internal),
        )
        return record

    def remove_projections(self, parent_id: str) -> int:
        """
        Delete every projection edge created for parent_id.

        Original boundary edges are left hidden: the controller re-shows each
        one once both of its endpoints are visible again.
        Projections of other collapsed nodes that aggregated the deleted ones
        are pruned.

        Returns:
            Number of projection edges deleted.
        """
        record = self._records.pop(parent_id, None)
        if record is None:
            return 0

        removed = 0
        for pid in record.projection_ids:
            self._owners.pop(pid, None)
            self.visibility.forget(pid)
            if self.graph.has_edge(pid):
                self.graph.remove_edge(pid)
                removed += 1
        self._prune(set(record.projection_ids))
        return removed

    def refresh(self, node_id: str) -> int:
        """
        Show live projections around a node that just became visible.

        A projection created while one of its endpoints was hidden starts
        hidden; it is shown once both endpoints are visible, whatever had
        hidden the endpoint.

        Returns:
            Number of projection edges shown.
        """
        shown = 0
        for edge in self.graph.connected_edges([node_id]):
            if not edge.is_projection or edge.id not in self._owners:
                continue
            if self.visibility.is_hidden(edge.source) or self.visibility.is_hidden(edge.target):
                continue
            if self.visibility.is_hidden(edge):
                self.visibility.show(edge, COLLAPSE)
                shown += 1
        return shown

    def record(self, parent_id: str) -> ProjectionRecord | None:
        return self._records.get(parent_id)

    def owner(self, edge_id: str) -> str | None:
        """The collapsed node a projection edge belongs to, if any."""
        return self._owners.get(edge_id)

    def _next_id(self, parent_id: str) -> str:
        while True:
            candidate = f"_proj_{parent_id}_{next(self._counter)}"
            if not self.graph.has_edge(candidate) and not self.graph.has_node(candidate):
                return candidate

    def _prune(self, gone: set[str]) -> None:
        """
        Drop deleted projection ids from the projections stacked on them.

        A projection of an outer collapse can aggregate an inner node's
        projection. Once the inner one is deleted, the outer one represents
        one edge fewer; with nothing left to represent it is deleted too.
        """
        for owner, record in self._records.items():
            kept: list[str] = []
            for pid in record.projection_ids:
                if not self.graph.has_edge(pid):
                    kept.append(pid)
                    continue
                data = self.graph.data(pid)
                represents = [r for r in data.get("represents", []) if r not in gone]
                if represents:
                    data["represents"] = represents
                    kept.append(pid)
                    continue
                self._owners.pop(pid, None)
                self.visibility.forget(pid)
                self.graph.remove_edge(pid)
                logger.debug("Projection '%s' of '%s' no longer represents anything.", pid, owner)
            record.projection_ids = kept
