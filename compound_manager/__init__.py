"""
compound_manager - Collapse/expand engine for hierarchical (compound) graphs.

Collapsing a compound node hides its whole subtree and replaces every edge
crossing the subtree boundary with one aggregated projection edge per
(direction, external node), so the collapsed subtree presents as a single
node. Expanding restores the subtree in its saved parent-relative shape.
Afterwards, delegated re-layout and bounding-box overlap resolution keep the
visible graph tidy.

Subpackages:
    graph   - Element handles, GraphModel protocol, NetworkX-backed store,
              loaders (elements / JSON / CSV).
    engine  - Visibility, position memory, projections, controller, overlap
              resolver, layout coordinator, debouncing.
"""

from compound_manager.config import DEFAULT_CONFIG, CompoundManagerConfig
from compound_manager.events import EventBus
from compound_manager.graph.elements import Edge, Node
from compound_manager.graph.model import CompoundGraph
from compound_manager.manager import CompoundManager

__version__ = "0.1.0"
