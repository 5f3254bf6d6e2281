"""
compound_manager.engine - Collapse/expand, projection and layout engine.

Modules:
    visibility  - Authoritative hidden set with per-reason bookkeeping.
    positions   - Parent-relative position snapshots across collapse/expand.
    projection  - Boundary-edge aggregation into projection edges.
    controller  - Collapse/expand state machine and nesting rules.
    overlap     - Bounding-box overlap detection and iterative separation.
    layout      - Delegated global/local layout with locality guarantee.
    scheduling  - Per-key debounced task scheduling.

Every component receives the graph store (GraphModel protocol) explicitly;
no module keeps global state.
"""
