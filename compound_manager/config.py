"""
compound_manager/config.py - All tunable parameters for the compound manager.

No padding, pass cap or timing constant should be hardcoded in an engine
module. Every overlap, layout and scheduling parameter lives here so that
tuning changes are a single-file diff.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CompoundManagerConfig:
    """
    Immutable configuration for a CompoundManager instance.

    Override by constructing a new CompoundManagerConfig with the desired
    values (or dataclasses.replace(DEFAULT_CONFIG, ...)).
    """

    # ── Node geometry ─────────────────────────────────────────────────────────
    default_node_width: float = 30.0
    default_node_height: float = 30.0
    # Size given to nodes created without an explicit width/height.
    # 30x30 matches the usual default node size of graph renderers.

    # ── Overlap resolution ───────────────────────────────────────────────────
    overlap_padding: float = 10.0
    # Extra distance each node of an overlapping pair is pushed beyond half
    # the overlap. A resolved pair ends up 2 * overlap_padding apart.

    max_overlap_iterations: int = 50
    # Hard cap on separation passes. Hitting it with overlaps left emits
    # 'layoutResetRequired' and resolve_overlaps() returns False.

    # ── Layout delegation ────────────────────────────────────────────────────
    layout_name: str = "spring"
    # Algorithm requested from the layout capability.

    fallback_layout_name: str = "circular"
    # Used when the capability does not support layout_name.

    node_spacing: float = 20.0
    local_node_spacing: float = 15.0
    # Spacing hint for global and local layouts respectively.

    edge_length: float = 100.0
    # Ideal edge length hint (pixels).

    fit: bool = True
    fit_padding: float = 30.0
    # Global layouts fit the arranged nodes into the viewport with this
    # padding. Local layouts never fit.

    animate: bool = True
    animation_duration_ms: int = 300
    local_animation_duration_ms: int = 200
    # Carried through to the layout capability; the engine does not animate.

    layout_seed: int = 42
    # Seed for stochastic layout algorithms (reproducible arrangements).

    # ── Scheduling ───────────────────────────────────────────────────────────
    layout_debounce_ms: int = 100
    # Quiescence interval before a debounced layout fires.

    auto_layout: bool = False
    # Run a debounced local layout after every successful collapse/expand.


# Singleton default. Import this everywhere instead of constructing anew.
DEFAULT_CONFIG = CompoundManagerConfig()
