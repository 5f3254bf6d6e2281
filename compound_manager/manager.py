"""
compound_manager/manager.py - Public facade.

A CompoundManager is attached to exactly one graph instance and owns all of
the engine state for it. Create one per graph; call dispose() when the graph
goes away so pending debounced layouts are dropped.

    G = build_graph_from_elements(elements)
    manager = CompoundManager(G)
    manager.collapse("parent1")
    manager.projected_edges("parent1")   # [Edge('_proj_parent1_0', ...)]
    manager.expand("parent1")

Every entry point taking nodes accepts a Node handle, a raw id, or an ordered
sequence of either.
"""

from __future__ import annotations

import logging
from typing import Iterable

from compound_manager.config import DEFAULT_CONFIG, CompoundManagerConfig
from compound_manager.engine.controller import CollapseController, EngineState
from compound_manager.engine.layout import (
    LayoutCapability,
    LayoutCoordinator,
    NetworkXLayout,
)
from compound_manager.engine.overlap import OverlapResolver
from compound_manager.events import EventBus, NotificationSink
from compound_manager.graph.elements import (
    Edge,
    ElementRef,
    Node,
    element_id,
    element_ids,
)
from compound_manager.graph.model import GraphModel

logger = logging.getLogger(__name__)

NodeRefs = ElementRef | Iterable[ElementRef]


class CompoundManager:
    """
    Collapse/expand, projection and layout reconciliation for one graph.

    Args:
        graph:  Graph store satisfying the GraphModel protocol.
        config: CompoundManagerConfig (defaults to DEFAULT_CONFIG).
        layout: LayoutCapability; defaults to NetworkXLayout seeded from
                config.layout_seed.
        sink:   NotificationSink; defaults to a fresh EventBus, exposed as
                self.events.
    """

    def __init__(
        self,
        graph: GraphModel,
        config: CompoundManagerConfig = DEFAULT_CONFIG,
        layout: LayoutCapability | None = None,
        sink: NotificationSink | None = None,
    ) -> None:
        self.graph = graph
        self.config = config
        self.events = sink if sink is not None else EventBus()
        self.controller = CollapseController(graph, self.events)
        self.resolver = OverlapResolver(
            graph, self.controller.visibility, self.events, config
        )
        self.layout = LayoutCoordinator(
            graph,
            self.controller.visibility,
            self.resolver,
            layout if layout is not None else NetworkXLayout(seed=config.layout_seed),
            config,
        )
        self._auto_layout = config.auto_layout
        self._disposed = False

    @property
    def state(self) -> EngineState:
        return self.controller.state

    # ── Collapse / expand ────────────────────────────────────────────────────

    def collapse(self, nodes: NodeRefs) -> bool:
        """
        Collapse one or more compound nodes.

        Returns:
            True if at least one node changed state. Leaves, already collapsed
            nodes and unknown ids are skipped silently.
        """
        changed = False
        for node_id in element_ids(nodes):
            if self.controller.collapse(node_id):
                changed = True
                self._after_change(node_id)
        return changed

    def expand(self, nodes: NodeRefs) -> bool:
        """
        Expand one or more collapsed nodes.

        Returns:
            True if at least one node changed state.
        """
        changed = False
        for node_id in element_ids(nodes):
            if self.controller.expand(node_id):
                changed = True
                self._after_change(node_id)
        return changed

    def collapse_all(self) -> int:
        """Collapse every compound, deepest first. Returns the count."""
        count = self.controller.collapse_all()
        if count and self._auto_layout and not self._disposed:
            self.layout.schedule()
        return count

    def expand_all(self) -> int:
        """Expand every collapsed node. Returns the count."""
        count = self.controller.expand_all()
        if count and self._auto_layout and not self._disposed:
            self.layout.schedule()
        return count

    def _after_change(self, node_id: str) -> None:
        if self._auto_layout and not self._disposed:
            self.layout.schedule(node_id)

    # ── Queries ──────────────────────────────────────────────────────────────

    def is_collapsed(self, node: ElementRef) -> bool:
        return self.controller.is_collapsed(element_id(node))

    def is_hidden(self, element: ElementRef) -> bool:
        return self.controller.is_hidden(element)

    def collapsed_nodes(self) -> list[Node]:
        return self.controller.collapsed_nodes()

    def projected_edges(self, node: ElementRef) -> list[Edge]:
        return self.controller.projected_edges(element_id(node))

    # ── Layout ───────────────────────────────────────────────────────────────

    async def run_layout(self) -> bool:
        return await self.layout.run_layout()

    async def run_local_layout(self, node: ElementRef) -> bool:
        return await self.layout.run_local_layout(element_id(node))

    def resolve_overlaps(self) -> bool:
        return self.resolver.resolve_overlaps()

    def has_overlaps(self) -> bool:
        return self.resolver.has_overlaps()

    def set_auto_layout(self, enabled: bool) -> CompoundManager:
        self._auto_layout = bool(enabled)
        return self

    def is_auto_layout_enabled(self) -> bool:
        return self._auto_layout

    async def wait_for_layouts(self) -> None:
        """Wait for every pending and running debounced layout."""
        await self.layout.debouncer.drain()

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def dispose(self) -> None:
        """Stop scheduling layouts and drop pending ones."""
        if self._disposed:
            return
        dropped = self.layout.debouncer.cancel_all()
        self._disposed = True
        logger.debug("Manager disposed; %d pending layouts dropped.", dropped)

    def __repr__(self) -> str:
        return (
            f"CompoundManager(graph={self.graph!r}, "
            f"collapsed={len(self.controller.state.collapsed)})"
        )
