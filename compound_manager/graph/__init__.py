"""
compound_manager.graph - Graph store layer.

Modules:
    elements  - Node / Edge handles (tagged element variant).
    model     - GraphModel protocol and the NetworkX-backed CompoundGraph.
    builder   - Load graphs from element lists, JSON or CSV; export elements.

The engine only depends on the GraphModel protocol. CompoundGraph is the
reference store: nodes and edges in an nx.MultiDiGraph, the containment
hierarchy in a separate nx.DiGraph.
"""

from compound_manager.graph.elements import Edge, Element, ElementKind, Node
from compound_manager.graph.model import CompoundGraph, GraphModel
