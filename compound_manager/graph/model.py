"""
compound_manager/graph/model.py - Graph store capability and its NetworkX
reference implementation.

The engine never touches NetworkX directly: it talks to any object that
satisfies the GraphModel protocol. CompoundGraph is the in-process store
shipped with the package, built from two NetworkX graphs:

    _graph : nx.MultiDiGraph  Nodes with geometry attributes; edges keyed by
                              their edge id (parallel edges allowed).
    _tree  : nx.DiGraph       Containment hierarchy, parent -> child.

Node attributes : x, y, width, height, hidden, classes, plus user data.
Edge attributes : id, is_projection, hidden, classes, plus user data.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Iterable, Protocol, runtime_checkable

import networkx as nx

from compound_manager.config import DEFAULT_CONFIG, CompoundManagerConfig
from compound_manager.graph.elements import Edge, Node

logger = logging.getLogger(__name__)


@runtime_checkable
class GraphModel(Protocol):
    """Capabilities the engine consumes from a graph store."""

    def has_node(self, node_id: str) -> bool: ...

    def has_edge(self, edge_id: str) -> bool: ...

    def node(self, node_id: str) -> Node | None: ...

    def edge(self, edge_id: str) -> Edge | None: ...

    def nodes(self) -> list[Node]: ...

    def edges(self) -> list[Edge]: ...

    def add_edge(
        self,
        source: str,
        target: str,
        edge_id: str | None = None,
        is_projection: bool = False,
        **data: Any,
    ) -> Edge: ...

    def remove_edge(self, edge_id: str) -> None: ...

    def parent(self, node_id: str) -> str | None: ...

    def children(self, node_id: str) -> list[str]: ...

    def descendants(self, node_id: str) -> list[str]: ...

    def ancestors(self, node_id: str) -> list[str]: ...

    def is_parent(self, node_id: str) -> bool: ...

    def is_ancestor(self, ancestor_id: str, node_id: str) -> bool: ...

    def connected_edges(self, node_ids: Iterable[str]) -> list[Edge]: ...

    def neighbors(self, node_id: str) -> set[str]: ...

    def position(self, node_id: str) -> tuple[float, float]: ...

    def set_position(self, node_id: str, x: float, y: float) -> None: ...

    def size(self, node_id: str) -> tuple[float, float]: ...

    def add_class(self, element_id: str, name: str) -> None: ...

    def remove_class(self, element_id: str, name: str) -> None: ...

    def has_class(self, element_id: str, name: str) -> bool: ...

    def set_hidden(self, element_id: str, hidden: bool) -> None: ...


class CompoundGraph:
    """
    In-memory compound graph store backed by NetworkX.

    Store-level misuse (unknown ids, duplicate ids, unknown parents) raises
    KeyError / ValueError. The engine checks has_node()/has_edge() before
    resolving ids it may hold stale copies of.
    """

    def __init__(self, config: CompoundManagerConfig = DEFAULT_CONFIG) -> None:
        self.config = config
        self._graph = nx.MultiDiGraph()
        self._tree = nx.DiGraph()
        self._edge_index: dict[str, tuple[str, str]] = {}
        self._edge_ids = itertools.count()

    # ── Creation / removal ───────────────────────────────────────────────────

    def add_node(
        self,
        node_id: str,
        parent: str | None = None,
        x: float = 0.0,
        y: float = 0.0,
        width: float | None = None,
        height: float | None = None,
        **data: Any,
    ) -> Node:
        if node_id in self._edge_index or self._graph.has_node(node_id):
            raise ValueError(f"Duplicate element id '{node_id}'")
        if parent is not None and not self._graph.has_node(parent):
            raise ValueError(f"Unknown parent '{parent}' for node '{node_id}'")

        self._graph.add_node(
            node_id,
            x=float(x),
            y=float(y),
            width=float(width if width is not None else self.config.default_node_width),
            height=float(height if height is not None else self.config.default_node_height),
            hidden=False,
            classes=set(),
            **data,
        )
        self._tree.add_node(node_id)
        if parent is not None:
            self._tree.add_edge(parent, node_id)
        return Node(node_id)

    def add_edge(
        self,
        source: str,
        target: str,
        edge_id: str | None = None,
        is_projection: bool = False,
        **data: Any,
    ) -> Edge:
        for endpoint in (source, target):
            if not self._graph.has_node(endpoint):
                raise KeyError(f"Unknown endpoint '{endpoint}'")

        if edge_id is None:
            edge_id = self._next_edge_id()
        elif edge_id in self._edge_index or self._graph.has_node(edge_id):
            raise ValueError(f"Duplicate element id '{edge_id}'")

        self._graph.add_edge(
            source,
            target,
            key=edge_id,
            id=edge_id,
            is_projection=is_projection,
            hidden=False,
            classes=set(),
            **data,
        )
        self._edge_index[edge_id] = (source, target)
        return Edge(edge_id, source, target, is_projection)

    def remove_edge(self, edge_id: str) -> None:
        source, target = self._edge_index.pop(edge_id)
        self._graph.remove_edge(source, target, key=edge_id)

    def remove_node(self, node_id: str) -> None:
        """Remove a node, its whole subtree and every connected edge."""
        doomed = [node_id, *self.descendants(node_id)]
        for edge in self.connected_edges(doomed):
            del self._edge_index[edge.id]
        self._graph.remove_nodes_from(doomed)
        self._tree.remove_nodes_from(doomed)

    def _next_edge_id(self) -> str:
        while True:
            candidate = f"e{next(self._edge_ids)}"
            if candidate not in self._edge_index and not self._graph.has_node(candidate):
                return candidate

    # ── Lookup ───────────────────────────────────────────────────────────────

    def has_node(self, node_id: str) -> bool:
        return self._graph.has_node(node_id)

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edge_index

    def node(self, node_id: str) -> Node | None:
        return Node(node_id) if self._graph.has_node(node_id) else None

    def edge(self, edge_id: str) -> Edge | None:
        if edge_id not in self._edge_index:
            return None
        source, target = self._edge_index[edge_id]
        attrs = self._graph.edges[source, target, edge_id]
        return Edge(edge_id, source, target, bool(attrs.get("is_projection", False)))

    def nodes(self) -> list[Node]:
        return [Node(n) for n in self._graph.nodes]

    def edges(self) -> list[Edge]:
        return [
            Edge(key, u, v, bool(d.get("is_projection", False)))
            for u, v, key, d in self._graph.edges(keys=True, data=True)
        ]

    def data(self, element_id: str) -> dict[str, Any]:
        """Attribute dict of a node or edge (live, not a copy)."""
        if element_id in self._edge_index:
            source, target = self._edge_index[element_id]
            return self._graph.edges[source, target, element_id]
        return self._graph.nodes[element_id]

    # ── Hierarchy ────────────────────────────────────────────────────────────

    def parent(self, node_id: str) -> str | None:
        preds = list(self._tree.predecessors(node_id))
        return preds[0] if preds else None

    def children(self, node_id: str) -> list[str]:
        return list(self._tree.successors(node_id))

    def descendants(self, node_id: str) -> list[str]:
        """All descendants in breadth-first order (shallowest first)."""
        return [n for n in nx.bfs_tree(self._tree, node_id) if n != node_id]

    def ancestors(self, node_id: str) -> list[str]:
        """Ancestor chain, nearest parent first."""
        chain: list[str] = []
        current = self.parent(node_id)
        while current is not None:
            chain.append(current)
            current = self.parent(current)
        return chain

    def depth(self, node_id: str) -> int:
        return len(self.ancestors(node_id))

    def is_parent(self, node_id: str) -> bool:
        return self._tree.out_degree(node_id) > 0

    def is_ancestor(self, ancestor_id: str, node_id: str) -> bool:
        return ancestor_id in self.ancestors(node_id)

    # ── Connectivity ─────────────────────────────────────────────────────────

    def connected_edges(self, node_ids: Iterable[str]) -> list[Edge]:
        """Edges with at least one endpoint in node_ids, deduplicated by id."""
        seen: set[str] = set()
        edges: list[Edge] = []
        for n in node_ids:
            incident = itertools.chain(
                self._graph.out_edges(n, keys=True, data=True),
                self._graph.in_edges(n, keys=True, data=True),
            )
            for u, v, key, d in incident:
                if key in seen:
                    continue
                seen.add(key)
                edges.append(Edge(key, u, v, bool(d.get("is_projection", False))))
        return edges

    def neighbors(self, node_id: str) -> set[str]:
        """Nodes one edge away in either direction (excluding node_id)."""
        around = set(self._graph.successors(node_id)) | set(self._graph.predecessors(node_id))
        around.discard(node_id)
        return around

    # ── Geometry ─────────────────────────────────────────────────────────────

    def position(self, node_id: str) -> tuple[float, float]:
        attrs = self._graph.nodes[node_id]
        return attrs["x"], attrs["y"]

    def set_position(self, node_id: str, x: float, y: float) -> None:
        attrs = self._graph.nodes[node_id]
        attrs["x"] = float(x)
        attrs["y"] = float(y)

    def size(self, node_id: str) -> tuple[float, float]:
        attrs = self._graph.nodes[node_id]
        return attrs["width"], attrs["height"]

    # ── Cosmetic state ───────────────────────────────────────────────────────

    def add_class(self, element_id: str, name: str) -> None:
        self.data(element_id)["classes"].add(name)

    def remove_class(self, element_id: str, name: str) -> None:
        self.data(element_id)["classes"].discard(name)

    def has_class(self, element_id: str, name: str) -> bool:
        return name in self.data(element_id)["classes"]

    def set_hidden(self, element_id: str, hidden: bool) -> None:
        if self.has_node(element_id) or self.has_edge(element_id):
            self.data(element_id)["hidden"] = hidden

    def __len__(self) -> int:
        return self._graph.number_of_nodes()

    def __repr__(self) -> str:
        return (
            f"CompoundGraph(nodes={self._graph.number_of_nodes()}, "
            f"edges={self._graph.number_of_edges()})"
        )
