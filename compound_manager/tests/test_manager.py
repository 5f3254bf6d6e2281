"""
compound_manager/tests/test_manager.py - Tests for the CompoundManager facade.

Tests verify:
- Handles, raw ids and sequences are accepted everywhere.
- Auto-layout schedules one debounced local layout per node, one global
  layout after collapse_all/expand_all.
- dispose() drops pending layouts.
- EventBus isolates failing handlers.
"""

import asyncio
import logging

import pytest

from compound_manager import CompoundManager, EventBus
from compound_manager.config import CompoundManagerConfig
from compound_manager.events import EVENT_COLLAPSE, EVENT_EXPAND, EVENT_LAYOUT_RESET_REQUIRED
from compound_manager.graph.elements import Node
from compound_manager.graph.model import CompoundGraph


# ── Facade basics ────────────────────────────────────────────────────────────

def test_accepts_handles_ids_and_lists(test_graph, fake_layout):
    manager = CompoundManager(test_graph, layout=fake_layout)
    assert manager.collapse(Node("parent1")) is True
    assert manager.is_collapsed("parent1")
    assert manager.collapse(["parent1", Node("parent2")]) is True
    assert {n.id for n in manager.collapsed_nodes()} == {"parent1", "parent2"}
    assert manager.expand([Node("parent1"), "parent2"]) is True
    assert manager.collapsed_nodes() == []


def test_noop_returns_false(test_graph, fake_layout):
    manager = CompoundManager(test_graph, layout=fake_layout)
    assert manager.collapse(["external1", "missing"]) is False
    assert manager.expand("parent1") is False


def test_projected_edges_by_handle(test_graph, fake_layout):
    manager = CompoundManager(test_graph, layout=fake_layout)
    manager.collapse("parent1")
    targets = {e.target for e in manager.projected_edges(Node("parent1"))}
    assert "external1" in targets
    assert manager.is_hidden("e1")
    assert manager.is_hidden(Node("child1"))


def test_default_sink_is_event_bus(test_graph, fake_layout):
    manager = CompoundManager(test_graph, layout=fake_layout)
    assert isinstance(manager.events, EventBus)
    seen = []
    manager.events.register(EVENT_COLLAPSE, lambda payload: seen.append(payload["node"]))
    manager.collapse("parent1")
    assert seen == [Node("parent1")]


def test_custom_sink_receives_events(test_graph, fake_layout, events):
    manager = CompoundManager(test_graph, layout=fake_layout, sink=events)
    manager.collapse("parent1")
    manager.expand("parent1")
    assert [name for name, _ in events.events] == [EVENT_COLLAPSE, EVENT_EXPAND]


def test_state_property_exposes_engine_state(test_graph, fake_layout):
    manager = CompoundManager(test_graph, layout=fake_layout)
    manager.collapse("parent1")
    assert manager.state.collapsed == {"parent1"}
    assert "parent1" in manager.state.records


def test_set_auto_layout_is_chainable(test_graph, fake_layout):
    manager = CompoundManager(test_graph, layout=fake_layout)
    assert manager.is_auto_layout_enabled() is False
    assert manager.set_auto_layout(True) is manager
    assert manager.is_auto_layout_enabled() is True


def test_auto_layout_without_loop_does_not_fail(test_graph, fake_layout, fast_config):
    manager = CompoundManager(test_graph, config=fast_config, layout=fake_layout)
    manager.set_auto_layout(True)
    assert manager.collapse("parent1") is True
    assert fake_layout.calls == []


def test_overlap_queries(layout_graph, fake_layout):
    manager = CompoundManager(layout_graph, layout=fake_layout)
    assert manager.has_overlaps()
    assert manager.resolve_overlaps() is True
    assert not manager.has_overlaps()


# ── Auto-layout scheduling ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_rapid_toggles_coalesce_into_one_local_layout(
    layout_graph, fake_layout, fast_config
):
    manager = CompoundManager(layout_graph, config=fast_config, layout=fake_layout)
    manager.set_auto_layout(True)

    manager.collapse("parent")
    manager.expand("parent")
    manager.collapse("parent")
    await manager.wait_for_layouts()

    assert len(fake_layout.calls) == 1
    assert fake_layout.calls[0]["node_ids"] == ["parent", "external"]
    assert fake_layout.calls[0]["options"].fit is False


@pytest.mark.asyncio
async def test_auto_layout_off_schedules_nothing(layout_graph, fake_layout, fast_config):
    manager = CompoundManager(layout_graph, config=fast_config, layout=fake_layout)
    manager.collapse("parent")
    await asyncio.sleep(0.03)
    await manager.wait_for_layouts()
    assert fake_layout.calls == []


@pytest.mark.asyncio
async def test_collapse_all_schedules_global_layout(test_graph, fake_layout, fast_config):
    manager = CompoundManager(test_graph, config=fast_config, layout=fake_layout)
    manager.set_auto_layout(True)

    assert manager.collapse_all() == 2
    await manager.wait_for_layouts()

    (call,) = fake_layout.calls
    assert call["options"].fit is True
    assert set(call["node_ids"]) == {"parent1", "parent2", "external1"}


@pytest.mark.asyncio
async def test_explicit_layouts(layout_graph, fake_layout):
    manager = CompoundManager(layout_graph, layout=fake_layout)
    assert await manager.run_layout() is True
    assert await manager.run_local_layout(Node("child1")) is True
    assert len(fake_layout.calls) == 2


@pytest.mark.asyncio
async def test_dispose_drops_pending_layouts(layout_graph, fake_layout, fast_config):
    manager = CompoundManager(layout_graph, config=fast_config, layout=fake_layout)
    manager.set_auto_layout(True)
    manager.collapse("parent")
    manager.dispose()
    manager.expand("parent")

    await asyncio.sleep(0.05)
    assert fake_layout.calls == []
    manager.dispose()


@pytest.mark.asyncio
async def test_reset_event_reaches_bus_handlers(fake_layout):
    G = CompoundGraph()
    G.add_node("a")
    G.add_node("b")
    config = CompoundManagerConfig(overlap_padding=0, max_overlap_iterations=3)
    manager = CompoundManager(G, config=config, layout=fake_layout)
    resets = []
    manager.events.register(EVENT_LAYOUT_RESET_REQUIRED, resets.append)

    assert await manager.run_local_layout("a") is False
    assert resets[0]["reason"] == "overlap_resolution_failed"


# ── EventBus ─────────────────────────────────────────────────────────────────

def test_failing_handler_does_not_block_others(caplog):
    bus = EventBus()
    received = []

    def broken(payload):
        raise ValueError("handler bug")

    bus.register("collapse", broken)
    bus.register("collapse", received.append)

    with caplog.at_level(logging.ERROR, logger="compound_manager.events"):
        bus.emit("collapse", {"node": Node("p")})

    assert received == [{"node": Node("p")}]
    assert "Error in 'collapse' handler" in caplog.text


def test_unregister_handler():
    bus = EventBus()
    received = []
    bus.register("expand", received.append)
    bus.unregister("expand", received.append)
    bus.unregister("expand", received.append)
    bus.emit("expand", {})
    assert received == []
