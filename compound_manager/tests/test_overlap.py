"""
compound_manager/tests/test_overlap.py - Tests for the Overlap Resolver.

Tests verify:
- Bounding box maths (touching counts as overlapping).
- Separation along the smaller-overlap axis.
- Compound nodes (expanded or collapsed) and ancestor/descendant pairs are
  never compared.
- Pass cap: at most max_iterations passes plus one final check, then a
  'layoutResetRequired' notification.
"""

import pytest

from compound_manager.config import CompoundManagerConfig
from compound_manager.engine.controller import CollapseController
from compound_manager.engine.overlap import (
    BoundingBox,
    OverlapResolver,
    bounding_box,
    boxes_overlap,
    calculate_overlap,
    separate_nodes,
)
from compound_manager.engine.visibility import VisibilityStore
from compound_manager.events import EVENT_LAYOUT_RESET_REQUIRED
from compound_manager.graph.model import CompoundGraph


def make_pair(x2: float = 0.0, y2: float = 0.0) -> CompoundGraph:
    G = CompoundGraph()
    G.add_node("a", x=0, y=0)
    G.add_node("b", x=x2, y=y2)
    return G


# ── Geometry ─────────────────────────────────────────────────────────────────

def test_bounding_box_uses_default_size():
    G = make_pair()
    assert bounding_box(G, "a") == BoundingBox(-15.0, -15.0, 15.0, 15.0)


def test_touching_boxes_overlap():
    assert boxes_overlap(BoundingBox(0, 0, 10, 10), BoundingBox(10, 0, 20, 10))
    assert not boxes_overlap(BoundingBox(0, 0, 10, 10), BoundingBox(10.5, 0, 20, 10))


def test_calculate_overlap_extent_and_vector():
    overlap = calculate_overlap(BoundingBox(0, 0, 10, 10), BoundingBox(6, 8, 16, 18))
    assert overlap.overlap_x == pytest.approx(4.0)
    assert overlap.overlap_y == pytest.approx(2.0)
    assert overlap.dx == pytest.approx(-6.0)
    assert overlap.dy == pytest.approx(-8.0)


def test_calculate_overlap_none_when_apart():
    assert calculate_overlap(BoundingBox(0, 0, 1, 1), BoundingBox(5, 5, 6, 6)) is None


def test_separate_along_smaller_axis():
    G = make_pair(x2=20, y2=5)  # overlap_x = 10, overlap_y = 25
    overlap = calculate_overlap(bounding_box(G, "a"), bounding_box(G, "b"))
    separate_nodes(G, "a", "b", overlap, padding=10)

    # a is left of b, so a moves -x and b +x by 10/2 + 10; y untouched.
    assert G.position("a") == pytest.approx((-15.0, 0.0))
    assert G.position("b") == pytest.approx((35.0, 5.0))


# ── Resolver ─────────────────────────────────────────────────────────────────

def test_resolve_separates_overlapping_children(layout_graph, events):
    resolver = OverlapResolver(layout_graph, VisibilityStore(), events)
    assert resolver.has_overlaps()
    assert resolver.resolve_overlaps() is True
    assert not resolver.has_overlaps()
    assert events.named(EVENT_LAYOUT_RESET_REQUIRED) == []


def test_expanded_container_is_not_a_candidate(layout_graph, events):
    resolver = OverlapResolver(layout_graph, VisibilityStore(), events)
    assert "parent" not in resolver.candidate_nodes()
    assert {"child1", "child2", "child3", "external"} <= set(resolver.candidate_nodes())


def test_collapsed_compound_is_not_a_candidate(layout_graph, events):
    controller = CollapseController(layout_graph, events)
    controller.collapse("parent")
    resolver = OverlapResolver(layout_graph, controller.visibility, events)
    assert resolver.candidate_nodes() == ["external"]


def test_collapsed_compound_never_collides(events):
    """A collapsed P sitting on a leaf is not an overlap; its child is far away."""
    G = CompoundGraph()
    G.add_node("P", x=0, y=0)
    G.add_node("c", parent="P", x=500, y=500)
    G.add_node("L", x=0, y=0)
    controller = CollapseController(G, events)
    controller.collapse("P")
    resolver = OverlapResolver(G, controller.visibility, events)

    assert not resolver.has_overlaps()
    assert resolver.resolve_overlaps() is True
    assert G.position("L") == (0.0, 0.0)


def test_hidden_nodes_ignored(events):
    G = make_pair()
    visibility = VisibilityStore()
    visibility.hide("b")
    resolver = OverlapResolver(G, visibility, events)
    assert not resolver.has_overlaps()
    assert resolver.resolve_overlaps() is True
    assert G.position("a") == (0.0, 0.0)


def test_ancestor_descendant_pairs_skipped(events):
    G = CompoundGraph()
    G.add_node("outer", x=0, y=0)
    G.add_node("inner", parent="outer", x=0, y=0)
    G.add_node("other", x=0, y=0)
    resolver = OverlapResolver(G, VisibilityStore(), events)
    assert list(resolver._pairs(["outer", "inner", "other"])) == [
        ("outer", "other"),
        ("inner", "other"),
    ]


def test_normal_overlap_resolves_in_two_passes(layout_graph, events, monkeypatch):
    resolver = OverlapResolver(layout_graph, VisibilityStore(), events)
    calls = []
    original = resolver.candidate_nodes

    def counting():
        calls.append(1)
        return original()

    monkeypatch.setattr(resolver, "candidate_nodes", counting)
    assert resolver.resolve_overlaps() is True
    assert len(calls) == 2


def test_unresolvable_overlap_hits_cap_and_requests_reset(events, monkeypatch):
    """Coincident nodes with zero padding end up touching, which still counts."""
    G = make_pair()
    resolver = OverlapResolver(G, VisibilityStore(), events)
    calls = []
    original = resolver.candidate_nodes

    def counting():
        calls.append(1)
        return original()

    monkeypatch.setattr(resolver, "candidate_nodes", counting)
    assert resolver.resolve_overlaps(max_iterations=5, padding=0) is False

    # Five passes plus the final has_overlaps check.
    assert len(calls) == 6
    (payload,) = events.named(EVENT_LAYOUT_RESET_REQUIRED)
    assert payload["reason"] == "overlap_resolution_failed"
    assert payload["iterations"] == 5
    assert payload["message"]


def test_config_supplies_defaults(events):
    config = CompoundManagerConfig(max_overlap_iterations=3, overlap_padding=0)
    resolver = OverlapResolver(make_pair(), VisibilityStore(), events, config)
    assert resolver.resolve_overlaps() is False
    assert events.named(EVENT_LAYOUT_RESET_REQUIRED)[0]["iterations"] == 3


def test_zero_iterations_with_no_overlap_succeeds(events):
    resolver = OverlapResolver(make_pair(x2=500), VisibilityStore(), events)
    assert resolver.resolve_overlaps(max_iterations=0) is True
