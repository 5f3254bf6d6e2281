"""
compound_manager/tests/conftest.py - Shared pytest fixtures.

Fixtures:
    test_graph      - Two compounds, one external node, cross-parent edge.
    nested_graph    - Three-level hierarchy (grandparent > parent > child).
    layout_graph    - Positioned compound graph for overlap/layout tests.
    events          - EventRecorder sink capturing emitted notifications.
    fake_layout     - RecordingLayout capability with global side effects.
"""

from typing import Any

import pytest

from compound_manager.config import CompoundManagerConfig
from compound_manager.graph.builder import build_graph_from_elements
from compound_manager.graph.model import CompoundGraph


# ── Graph builders ────────────────────────────────────────────────────────────

def make_test_graph() -> CompoundGraph:
    """
    Structure:
        parent1
        ├── child1 ──→ external1
        └── child2 ──→ external1

        parent2
        └── child3 ──→ child1 (cross-parent)
    """
    return build_graph_from_elements([
        {"data": {"id": "parent1"}},
        {"data": {"id": "parent2"}},
        {"data": {"id": "child1", "parent": "parent1"}},
        {"data": {"id": "child2", "parent": "parent1"}},
        {"data": {"id": "child3", "parent": "parent2"}},
        {"data": {"id": "external1"}},
        {"data": {"id": "e1", "source": "child1", "target": "external1"}},
        {"data": {"id": "e2", "source": "child2", "target": "external1"}},
        {"data": {"id": "e3", "source": "child3", "target": "child1"}},
    ])


def make_nested_graph() -> CompoundGraph:
    """
    Structure:
        grandparent
        └── parent
            └── child ──→ external
    """
    return build_graph_from_elements([
        {"data": {"id": "grandparent"}},
        {"data": {"id": "parent", "parent": "grandparent"}},
        {"data": {"id": "child", "parent": "parent"}},
        {"data": {"id": "external"}},
        {"data": {"id": "e1", "source": "child", "target": "external"}},
    ])


def make_layout_graph() -> CompoundGraph:
    """Positioned graph: child1/child2 overlap, child3 and external are clear."""
    return build_graph_from_elements([
        {"data": {"id": "parent"}, "position": {"x": 100, "y": 100}},
        {"data": {"id": "child1", "parent": "parent"}, "position": {"x": 100, "y": 100}},
        {"data": {"id": "child2", "parent": "parent"}, "position": {"x": 105, "y": 105}},
        {"data": {"id": "child3", "parent": "parent"}, "position": {"x": 200, "y": 200}},
        {"data": {"id": "external"}, "position": {"x": 300, "y": 100}},
        {"data": {"id": "e1", "source": "child1", "target": "external"}},
    ])


# ── Test doubles ──────────────────────────────────────────────────────────────

class EventRecorder:
    """NotificationSink that keeps every (event, payload) pair."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    def named(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]


class RecordingLayout:
    """
    LayoutCapability that records each call and then shifts *every* node in
    the graph by (shift, 0), imitating an algorithm with global side effects.
    """

    def __init__(self, supported: tuple[str, ...] = ("spring", "circular"), shift: float = 500.0):
        self.supported = supported
        self.shift = shift
        self.calls: list[dict[str, Any]] = []

    def supports(self, name: str) -> bool:
        return name in self.supported

    async def run(self, graph, node_ids, edge_ids, options) -> None:
        self.calls.append({
            "node_ids": list(node_ids),
            "edge_ids": list(edge_ids),
            "options": options,
        })
        for node in graph.nodes():
            x, y = graph.position(node.id)
            graph.set_position(node.id, x + self.shift, y)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def test_graph() -> CompoundGraph:
    return make_test_graph()


@pytest.fixture
def nested_graph() -> CompoundGraph:
    return make_nested_graph()


@pytest.fixture
def layout_graph() -> CompoundGraph:
    return make_layout_graph()


@pytest.fixture
def events() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def fake_layout() -> RecordingLayout:
    return RecordingLayout()


@pytest.fixture
def fast_config() -> CompoundManagerConfig:
    """Config with a short debounce so scheduling tests stay quick."""
    return CompoundManagerConfig(layout_debounce_ms=10)
