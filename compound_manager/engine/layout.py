"""
compound_manager/engine/layout.py - Layout Coordinator and NetworkX layout
capability.

The coordinator decides *which* elements a layout may touch and delegates
the arrangement itself to a LayoutCapability. After the delegated layout
completes, remaining overlaps are resolved.

Locality: run_local_layout() snapshots every visible node outside the
affected neighbourhood and writes the snapshot back once the capability
finishes, so a local operation never visibly moves unrelated nodes even if
the underlying algorithm has global side effects.

NetworkXLayout is the bundled capability. It computes positions with the
NetworkX layout functions on the default executor and writes them back on
the event-loop thread; completion is the return of its awaitable.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from math import sqrt
from typing import Awaitable, Callable, Protocol, runtime_checkable

import networkx as nx
import numpy as np

from compound_manager.config import DEFAULT_CONFIG, CompoundManagerConfig
from compound_manager.engine.overlap import OverlapResolver
from compound_manager.engine.scheduling import Debouncer
from compound_manager.engine.visibility import VisibilityStore
from compound_manager.graph.model import GraphModel

logger = logging.getLogger(__name__)

GLOBAL_LAYOUT_KEY = "__global__"


@dataclass(frozen=True)
class LayoutOptions:
    name: str
    node_spacing: float
    edge_length: float
    fit: bool
    padding: float
    animate: bool
    animation_duration_ms: int


@runtime_checkable
class LayoutCapability(Protocol):
    def supports(self, name: str) -> bool: ...

    def run(
        self,
        graph: GraphModel,
        node_ids: list[str],
        edge_ids: list[str],
        options: LayoutOptions,
    ) -> Awaitable[None]: ...


# ── NetworkX capability ──────────────────────────────────────────────────────

_Algorithm = Callable[[nx.Graph, int], dict]

_ALGORITHMS: dict[str, _Algorithm] = {
    "spring": lambda G, seed: nx.spring_layout(G, seed=seed, k=2.0 / sqrt(len(G) + 1)),
    "circular": lambda G, seed: nx.circular_layout(G),
    "shell": lambda G, seed: nx.shell_layout(G),
    "spiral": lambda G, seed: nx.spiral_layout(G),
    "random": lambda G, seed: nx.random_layout(G, seed=seed),
}


def _compute_layout(
    G: nx.Graph,
    name: str,
    seed: int,
    spread: float,
) -> tuple[list[str], np.ndarray]:
    """
    Run a NetworkX layout and rescale it into pixel space.

    The raw layout is centred on the origin and scaled so that its largest
    coordinate magnitude equals spread. Pure function: safe to run off the
    event-loop thread.

    Returns:
        ids:    Node ids, row-aligned with coords.
        coords: (N, 2) array of centred pixel coordinates.
    """
    ids = list(G.nodes)
    if len(ids) == 1:
        return ids, np.zeros((1, 2))

    raw = _ALGORITHMS[name](G, seed)
    coords = np.array([raw[n] for n in ids], dtype=float)
    coords -= coords.mean(axis=0)
    extent = float(np.abs(coords).max())
    if extent > 0:
        coords *= spread / extent
    return ids, coords


class NetworkXLayout:
    """LayoutCapability backed by NetworkX layout functions."""

    def __init__(self, seed: int = DEFAULT_CONFIG.layout_seed) -> None:
        self.seed = seed

    def supports(self, name: str) -> bool:
        return name in _ALGORITHMS

    async def run(
        self,
        graph: GraphModel,
        node_ids: list[str],
        edge_ids: list[str],
        options: LayoutOptions,
    ) -> None:
        """
        Arrange node_ids, honouring edge_ids plus parent/child containment.

        Containment links (child -> parent, both in the subset) are added to
        the working graph so children settle around their container.

        With options.fit the arrangement is translated so its top-left
        corner sits at (padding, padding); otherwise it is centred on the
        current centroid of the arranged nodes.
        """
        if not node_ids:
            return

        subset = set(node_ids)
        G = nx.Graph()
        G.add_nodes_from(node_ids)
        for eid in edge_ids:
            edge = graph.edge(eid)
            if edge is not None and edge.source in subset and edge.target in subset:
                G.add_edge(edge.source, edge.target)
        for n in node_ids:
            parent = graph.parent(n)
            if parent in subset:
                G.add_edge(n, parent)

        spread = (options.edge_length + options.node_spacing) * sqrt(len(node_ids)) / 2
        loop = asyncio.get_running_loop()
        ids, coords = await loop.run_in_executor(
            None, _compute_layout, G, options.name, self.seed, spread
        )

        if options.fit:
            offset = options.padding - coords.min(axis=0)
        else:
            current = np.array([graph.position(n) for n in ids], dtype=float)
            offset = current.mean(axis=0)
        coords = coords + offset

        for n, (x, y) in zip(ids, coords):
            if graph.has_node(n):
                graph.set_position(n, float(x), float(y))

        logger.debug("NetworkX '%s' layout placed %d nodes.", options.name, len(ids))


# ── Coordinator ──────────────────────────────────────────────────────────────

class LayoutCoordinator:
    def __init__(
        self,
        graph: GraphModel,
        visibility: VisibilityStore,
        resolver: OverlapResolver,
        layout: LayoutCapability,
        config: CompoundManagerConfig = DEFAULT_CONFIG,
    ) -> None:
        self.graph = graph
        self.visibility = visibility
        self.resolver = resolver
        self.layout = layout
        self.config = config
        self.debouncer = Debouncer(config.layout_debounce_ms)

    def algorithm(self) -> str:
        """Configured algorithm, or the fallback if the capability lacks it."""
        name = self.config.layout_name
        if self.layout.supports(name):
            return name
        logger.info(
            "Layout '%s' unavailable; falling back to '%s'.",
            name,
            self.config.fallback_layout_name,
        )
        return self.config.fallback_layout_name

    def visible_nodes(self) -> list[str]:
        return [n.id for n in self.graph.nodes() if not self.visibility.is_hidden(n.id)]

    def visible_edges_within(self, node_ids: set[str]) -> list[str]:
        """Visible edges whose endpoints both lie in node_ids."""
        return [
            e.id for e in self.graph.connected_edges(node_ids)
            if not self.visibility.is_hidden(e.id)
            and e.source in node_ids and e.target in node_ids
        ]

    async def run_layout(self) -> bool:
        """
        Lay out every visible node, then resolve overlaps.

        Returns:
            Result of the overlap resolution (False means a full reset was
            requested via 'layoutResetRequired').
        """
        nodes = self.visible_nodes()
        edges = self.visible_edges_within(set(nodes))
        options = LayoutOptions(
            name=self.algorithm(),
            node_spacing=self.config.node_spacing,
            edge_length=self.config.edge_length,
            fit=self.config.fit,
            padding=self.config.fit_padding,
            animate=self.config.animate,
            animation_duration_ms=self.config.animation_duration_ms,
        )
        await self.layout.run(self.graph, nodes, edges, options)
        logger.info("Global layout complete: %d nodes, %d edges.", len(nodes), len(edges))
        return self.resolver.resolve_overlaps()

    def affected_nodes(self, node_id: str) -> list[str]:
        """The node, its visible 1-hop neighbours and its visible children."""
        if not self.graph.has_node(node_id) or self.visibility.is_hidden(node_id):
            return []
        affected = {node_id}
        affected.update(
            n for n in self.graph.neighbors(node_id) if not self.visibility.is_hidden(n)
        )
        affected.update(
            c for c in self.graph.children(node_id) if not self.visibility.is_hidden(c)
        )
        return [n.id for n in self.graph.nodes() if n.id in affected]

    async def run_local_layout(self, node_id: str) -> bool:
        """
        Lay out the neighbourhood of one node without moving anything else.

        Fewer than two affected nodes skip delegation and only resolve
        overlaps.

        Returns:
            Result of the overlap resolution.
        """
        affected = self.affected_nodes(node_id)
        if len(affected) < 2:
            return self.resolver.resolve_overlaps()

        affected_set = set(affected)
        snapshot = {
            n: self.graph.position(n)
            for n in self.visible_nodes()
            if n not in affected_set
        }
        options = LayoutOptions(
            name=self.algorithm(),
            node_spacing=self.config.local_node_spacing,
            edge_length=self.config.edge_length,
            fit=False,
            padding=self.config.fit_padding,
            animate=self.config.animate,
            animation_duration_ms=self.config.local_animation_duration_ms,
        )
        await self.layout.run(
            self.graph, affected, self.visible_edges_within(affected_set), options
        )

        for n, (x, y) in snapshot.items():
            if self.graph.has_node(n):
                self.graph.set_position(n, x, y)

        logger.info(
            "Local layout around '%s' complete: %d affected, %d pinned.",
            node_id,
            len(affected),
            len(snapshot),
        )
        return self.resolver.resolve_overlaps()

    def schedule(self, node_id: str | None = None) -> bool:
        """
        Debounced layout request.

        Requests coalesce per trigger: one trailing local layout per node id,
        or one trailing global layout when node_id is None.
        """
        if node_id is None:
            return self.debouncer.schedule(GLOBAL_LAYOUT_KEY, self.run_layout)
        return self.debouncer.schedule(node_id, lambda: self.run_local_layout(node_id))
