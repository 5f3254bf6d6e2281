"""
compound_manager/graph/builder.py - Graph construction and export layer.

Builds a CompoundGraph from either:
    - Cytoscape-style element lists (in memory or a JSON file), or
    - a pair of CSV files (nodes + edges) loaded with pandas.

Element format (one dict per element):
    {"data": {"id": "c1", "parent": "P"}, "position": {"x": 10, "y": 20}}
    {"data": {"id": "e1", "source": "c1", "target": "X"}}

A dict is an edge iff its data carries both 'source' and 'target'.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

import networkx as nx
import pandas as pd

from compound_manager.config import DEFAULT_CONFIG, CompoundManagerConfig
from compound_manager.graph.model import CompoundGraph

logger = logging.getLogger(__name__)

_NODE_KEYS = {"id", "parent", "width", "height"}
_EDGE_KEYS = {"id", "source", "target"}


def _parents_first(node_specs: dict[str, dict[str, Any]]) -> list[str]:
    """
    Order node ids so every parent precedes its children.

    Ties keep input order, so graph.nodes() follows the element list
    wherever the hierarchy allows.
    """
    rank = {node_id: i for i, node_id in enumerate(node_specs)}
    hierarchy = nx.DiGraph()
    hierarchy.add_nodes_from(node_specs)
    for node_id, spec in node_specs.items():
        parent = spec["data"].get("parent")
        if parent is None:
            continue
        if parent not in node_specs:
            raise ValueError(f"Node '{node_id}' references unknown parent '{parent}'")
        hierarchy.add_edge(parent, node_id)

    try:
        return list(nx.lexicographical_topological_sort(hierarchy, key=rank.__getitem__))
    except nx.NetworkXUnfeasible as exc:
        raise ValueError("Parent references form a cycle") from exc


def build_graph_from_elements(
    elements: Iterable[dict[str, Any]],
    config: CompoundManagerConfig = DEFAULT_CONFIG,
) -> CompoundGraph:
    """
    Build a CompoundGraph from Cytoscape-style element dicts.

    Args:
        elements: Iterable of element dicts (see module docstring). Node
                  order does not matter; parents are inserted first.
        config:   Supplies default node sizes for nodes without width/height.

    Returns:
        G: CompoundGraph with all nodes and edges.

    Raises:
        ValueError: Missing ids, unknown parents, parent cycles, duplicates.
        KeyError:   Edges referencing unknown nodes.
    """
    node_specs: dict[str, dict[str, Any]] = {}
    edge_specs: list[dict[str, Any]] = []

    for element in elements:
        data = element.get("data", {})
        if "source" in data and "target" in data:
            edge_specs.append(element)
            continue
        node_id = data.get("id")
        if node_id is None:
            raise ValueError(f"Node element without an id: {element!r}")
        if node_id in node_specs:
            raise ValueError(f"Duplicate element id '{node_id}'")
        node_specs[node_id] = element

    G = CompoundGraph(config)

    for node_id in _parents_first(node_specs):
        spec = node_specs[node_id]
        data = spec["data"]
        position = spec.get("position", {})
        G.add_node(
            node_id,
            parent=data.get("parent"),
            x=position.get("x", 0.0),
            y=position.get("y", 0.0),
            width=data.get("width"),
            height=data.get("height"),
            **{k: v for k, v in data.items() if k not in _NODE_KEYS},
        )
        for name in spec.get("classes", []):
            G.add_class(node_id, name)

    for spec in edge_specs:
        data = spec["data"]
        G.add_edge(
            data["source"],
            data["target"],
            edge_id=data.get("id"),
            **{k: v for k, v in data.items() if k not in _EDGE_KEYS},
        )

    logger.info(
        "Graph built from elements: %d nodes, %d edges.",
        len(node_specs),
        len(edge_specs),
    )
    return G


def load_graph_json(
    path: str,
    config: CompoundManagerConfig = DEFAULT_CONFIG,
) -> CompoundGraph:
    """
    Load a graph from a JSON file.

    Accepts either a bare element list or an object with an 'elements' key
    (optionally split into 'nodes' and 'edges' lists, as Cytoscape exports).
    """
    logger.info("Loading graph elements from: %s", path)
    with open(path, encoding="utf-8") as fh:
        payload = json.load(fh)

    if isinstance(payload, dict):
        payload = payload.get("elements", payload)
    if isinstance(payload, dict):
        payload = [*payload.get("nodes", []), *payload.get("edges", [])]

    return build_graph_from_elements(payload, config=config)


def _clean(value: Any) -> Any:
    """Map pandas missing values to None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def build_graph_from_csv(
    nodes_path: str,
    edges_path: str | None = None,
    config: CompoundManagerConfig = DEFAULT_CONFIG,
) -> CompoundGraph:
    """
    Build a CompoundGraph from node and edge CSV files.

    Node CSV columns:
        id (required), parent, x, y, width, height. Any other column is
        stored as node data.

    Edge CSV columns:
        source, target (required), id. Any other column is stored as edge
        data. Rows without an id receive a generated one.

    Args:
        nodes_path: Path to the node CSV.
        edges_path: Path to the edge CSV, or None for a graph without edges.
        config:     Supplies default node sizes.

    Returns:
        G: CompoundGraph.

    Notes:
        - ids are read as strings so numeric-looking ids ('1', '2') are not
          coerced to integers or floats.
        - Empty parent cells mean a root node.
    """
    logger.info("Loading nodes from: %s", nodes_path)
    df_nodes = pd.read_csv(nodes_path, dtype={"id": str, "parent": str})
    if "id" not in df_nodes.columns:
        raise ValueError(f"Node CSV '{nodes_path}' has no 'id' column")

    elements: list[dict[str, Any]] = []
    for row in df_nodes.to_dict(orient="records"):
        data = {k: _clean(v) for k, v in row.items() if k not in ("x", "y")}
        data = {k: v for k, v in data.items() if v is not None}
        elements.append({
            "data": data,
            "position": {
                "x": float(_clean(row.get("x")) or 0.0),
                "y": float(_clean(row.get("y")) or 0.0),
            },
        })

    if edges_path is not None:
        logger.info("Loading edges from: %s", edges_path)
        df_edges = pd.read_csv(
            edges_path, dtype={"id": str, "source": str, "target": str}
        )
        missing = {"source", "target"} - set(df_edges.columns)
        if missing:
            raise ValueError(f"Edge CSV '{edges_path}' lacks columns: {sorted(missing)}")
        for row in df_edges.to_dict(orient="records"):
            data = {k: _clean(v) for k, v in row.items()}
            elements.append({"data": {k: v for k, v in data.items() if v is not None}})

    return build_graph_from_elements(elements, config=config)


def export_elements(G: CompoundGraph, visibility: Any = None) -> list[dict[str, Any]]:
    """
    Serialise a graph back to Cytoscape-style element dicts.

    Args:
        G:          Graph to export.
        visibility: Optional VisibilityStore. When given, its authoritative
                    hidden set decides each element's 'hidden' flag;
                    otherwise the store's cosmetic flag is used.

    Returns:
        List of node dicts followed by edge dicts.
    """
    def hidden(element_id: str) -> bool:
        if visibility is not None:
            return visibility.is_hidden(element_id)
        return bool(G.data(element_id).get("hidden", False))

    out: list[dict[str, Any]] = []
    for node in G.nodes():
        attrs = G.data(node.id)
        data = {
            k: v for k, v in attrs.items()
            if k not in ("x", "y", "hidden", "classes")
        }
        data["id"] = node.id
        parent = G.parent(node.id)
        if parent is not None:
            data["parent"] = parent
        out.append({
            "group": "nodes",
            "data": data,
            "position": {"x": attrs["x"], "y": attrs["y"]},
            "classes": sorted(attrs["classes"]),
            "hidden": hidden(node.id),
        })

    for edge in G.edges():
        attrs = G.data(edge.id)
        data = {k: v for k, v in attrs.items() if k not in ("hidden", "classes")}
        data.update(id=edge.id, source=edge.source, target=edge.target)
        out.append({
            "group": "edges",
            "data": data,
            "classes": sorted(attrs["classes"]),
            "hidden": hidden(edge.id),
        })

    return out
