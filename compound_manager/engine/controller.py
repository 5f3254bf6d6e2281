"""
compound_manager/engine/controller.py - Collapse/Expand Controller.

Per compound node there are two states, Expanded (initial) and Collapsed.
Invalid transitions (collapsing a leaf, collapsing twice, expanding a node
that is not collapsed, unknown ids) are no-ops that return False; nothing
in this module raises for control flow.

Ownership rule: every hidden descendant belongs to exactly one CollapseRecord
at a time. Nested collapses compose:
    - collapsing an outer node leaves descendants already owned by an inner
      collapsed node with that inner record;
    - collapsing a node that is itself hidden inside a collapsed ancestor
      takes its descendants over from the ancestor's record;
    - expanding a node that is itself hidden hands its descendants back to
      the collapsed ancestor, so they stay hidden until that ancestor expands.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from compound_manager.engine.positions import LocalPositions, PositionMemory
from compound_manager.engine.projection import ProjectionBuilder, ProjectionRecord
from compound_manager.engine.visibility import COLLAPSE, VisibilityStore
from compound_manager.events import EVENT_COLLAPSE, EVENT_EXPAND, NotificationSink
from compound_manager.graph.elements import Edge, ElementRef, Node
from compound_manager.graph.model import GraphModel

logger = logging.getLogger(__name__)

COLLAPSED_CLASS = "compound-collapsed"


@dataclass
class CollapseRecord:
    """Everything needed to undo one collapse."""

    node_id: str
    hidden_ids: set[str]
    local_positions: LocalPositions
    projection: ProjectionRecord


@dataclass
class EngineState:
    """Per-graph engine state. Lives exactly as long as its manager."""

    visibility: VisibilityStore
    collapsed: set[str] = field(default_factory=set)
    records: dict[str, CollapseRecord] = field(default_factory=dict)
    owners: dict[str, str] = field(default_factory=dict)
    # owners: hidden descendant id -> collapsed node whose record holds it.


class CollapseController:
    def __init__(self, graph: GraphModel, sink: NotificationSink) -> None:
        self.graph = graph
        self.sink = sink
        self.state = EngineState(visibility=VisibilityStore(on_change=self._visibility_changed))
        self.positions = PositionMemory(graph)
        self.projections = ProjectionBuilder(graph, self.state.visibility)

    @property
    def visibility(self) -> VisibilityStore:
        return self.state.visibility

    # ── Transitions ──────────────────────────────────────────────────────────

    def collapse(self, node_id: str) -> bool:
        """
        Collapse a compound node.

        Steps:
            1. Snapshot descendant positions relative to the node.
            2. Hide every descendant and every edge touching one.
            3. Replace boundary edges with aggregated projections.
            4. Record the collapse, tag the node, emit 'collapse'.

        Returns:
            True if the node changed state, False for a no-op.
        """
        if not self.graph.has_node(node_id):
            logger.debug("collapse: unknown node '%s' ignored.", node_id)
            return False
        if not self.graph.is_parent(node_id) or node_id in self.state.collapsed:
            return False

        descendants = self.graph.descendants(node_id)
        owned = self._claim(node_id, descendants)
        local = self.positions.save_local(node_id, descendants)

        for d in descendants:
            self.visibility.hide(d, COLLAPSE)
        for edge in self.graph.connected_edges(descendants):
            self.visibility.hide(edge, COLLAPSE)

        projection = self.projections.build(node_id, descendants)

        self.state.records[node_id] = CollapseRecord(node_id, owned, local, projection)
        self.state.collapsed.add(node_id)
        self.graph.add_class(node_id, COLLAPSED_CLASS)

        logger.info(
            "Collapsed '%s': %d descendants hidden, %d projection edges.",
            node_id,
            len(descendants),
            len(projection.projection_ids),
        )
        self.sink.emit(EVENT_COLLAPSE, {"node": Node(node_id)})
        return True

    def expand(self, node_id: str) -> bool:
        """
        Expand a collapsed node.

        Steps:
            1. Show every descendant held by this node's record, except those
               whose direct parent is another node that is still collapsed.
            2. Show each edge touching a newly shown node once both endpoints
               are visible (this node's own projections excluded).
            3. Delete this node's projection edges.
            4. Restore local positions around the node's current position.
            5. Drop the record, untag the node, emit 'expand'.

        Returns:
            True if the node changed state, False for a no-op.
        """
        if node_id not in self.state.collapsed:
            logger.debug("expand: '%s' is not collapsed; ignored.", node_id)
            return False
        if not self.graph.has_node(node_id):
            self._discard(node_id)
            return False

        record = self.state.records.pop(node_id)
        holder = self.state.owners.get(node_id)
        if holder is not None and holder in self.state.records:
            self._hand_over(record, holder)
            shown: list[str] = []
        else:
            shown = self._reveal(node_id, record)

        self._restore_edges(shown, node_id)
        self.projections.remove_projections(node_id)
        self.state.collapsed.discard(node_id)
        self.positions.restore_local(node_id, is_collapsed=self.is_collapsed)

        self.graph.remove_class(node_id, COLLAPSED_CLASS)

        logger.info("Expanded '%s': %d nodes shown.", node_id, len(shown))
        self.sink.emit(EVENT_EXPAND, {"node": Node(node_id)})
        return True

    def collapse_all(self) -> int:
        """
        Collapse every compound node, deepest first.

        Collapsing a shallow ancestor first would hide deeper compounds before
        their own bookkeeping ran; leaves-to-root order avoids that.

        Returns:
            Number of nodes collapsed by this call.
        """
        compounds = [n.id for n in self.graph.nodes() if self.graph.is_parent(n.id)]
        compounds.sort(key=lambda n: len(self.graph.ancestors(n)), reverse=True)
        return sum(1 for n in compounds if self.collapse(n))

    def expand_all(self) -> int:
        """
        Expand every collapsed node.

        The outcome does not depend on order. Outermost nodes go first so no
        record is handed over along the way.

        Returns:
            Number of nodes expanded by this call.
        """
        pending = list(self.state.collapsed)
        pending.sort(key=lambda n: self.graph.depth(n) if self.graph.has_node(n) else 0)
        return sum(1 for n in pending if self.expand(n))

    # ── Queries ──────────────────────────────────────────────────────────────

    def is_collapsed(self, node_id: str) -> bool:
        return node_id in self.state.collapsed

    def is_hidden(self, element: ElementRef) -> bool:
        return self.visibility.is_hidden(element)

    def collapsed_nodes(self) -> list[Node]:
        return [n for n in self.graph.nodes() if n.id in self.state.collapsed]

    def projected_edges(self, node_id: str) -> list[Edge]:
        """Live projection edges of a collapsed node; stale ids are skipped."""
        record = self.projections.record(node_id)
        if record is None:
            return []
        edges = [self.graph.edge(pid) for pid in record.projection_ids]
        return [e for e in edges if e is not None]

    # ── Internals ────────────────────────────────────────────────────────────

    def _claim(self, node_id: str, descendants: list[str]) -> set[str]:
        """Take ownership of the descendants a new record is responsible for."""
        owned: set[str] = set()
        for d in descendants:
            holder = self.state.owners.get(d)
            if holder is None:
                owned.add(d)
            elif self.graph.is_ancestor(holder, node_id):
                self.state.records[holder].hidden_ids.discard(d)
                owned.add(d)
        for d in owned:
            self.state.owners[d] = node_id
        return owned

    def _hand_over(self, record: CollapseRecord, holder: str) -> None:
        target = self.state.records[holder]
        target.hidden_ids |= record.hidden_ids
        for d in record.hidden_ids:
            self.state.owners[d] = holder
        logger.debug(
            "'%s' expanded while hidden: %d descendants handed to '%s'.",
            record.node_id,
            len(record.hidden_ids),
            holder,
        )

    def _reveal(self, node_id: str, record: CollapseRecord) -> list[str]:
        shown: list[str] = []
        order = [d for d in self.graph.descendants(node_id) if d in record.hidden_ids]
        for stale in record.hidden_ids.difference(order):
            self.state.owners.pop(stale, None)

        for d in order:
            parent = self.graph.parent(d)
            if parent is not None and parent != node_id and parent in self.state.collapsed:
                self.state.records[parent].hidden_ids.add(d)
                self.state.owners[d] = parent
                continue
            self.state.owners.pop(d, None)
            self.visibility.show(d, COLLAPSE)
            shown.append(d)
        return shown

    def _restore_edges(self, shown: list[str], expanding_id: str) -> None:
        for edge in self.graph.connected_edges(shown):
            if self.visibility.is_hidden(edge.source) or self.visibility.is_hidden(edge.target):
                continue
            if edge.is_projection:
                owner = self.projections.owner(edge.id)
                if owner is None or owner == expanding_id:
                    continue
            self.visibility.show(edge, COLLAPSE)

    def _discard(self, node_id: str) -> None:
        """Forget a collapsed node that was removed from the store."""
        record = self.state.records.pop(node_id, None)
        self.state.collapsed.discard(node_id)
        if record is not None:
            for d in record.hidden_ids:
                if self.state.owners.get(d) == node_id:
                    del self.state.owners[d]
        holder = self.state.owners.pop(node_id, None)
        if holder in self.state.records:
            self.state.records[holder].hidden_ids.discard(node_id)

        self.positions.discard(node_id)
        self.projections.remove_projections(node_id)
        for eid in self.visibility.hidden_ids():
            if not self.graph.has_node(eid) and not self.graph.has_edge(eid):
                self.visibility.forget(eid)
        logger.debug("expand: '%s' was removed from the graph; state dropped.", node_id)

    def _visibility_changed(self, eid: str, hidden: bool) -> None:
        self.graph.set_hidden(eid, hidden)
        if not hidden and self.graph.has_node(eid):
            self.projections.refresh(eid)
