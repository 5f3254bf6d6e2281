"""
compound_manager/cli.py - Command-line interface.

Loads a graph file, applies collapse/expand and layout operations, and
prints a summary or writes the resulting elements as JSON.

Usage:
    python -m compound_manager inspect graph.json
    python -m compound_manager collapse graph.json parent1 parent2 --layout local
    python -m compound_manager collapse nodes.csv --edges edges.csv --all
    python -m compound_manager overlaps graph.json --resolve --output out.json

Graph files are either Cytoscape-style JSON element lists or a node CSV
(plus --edges CSV); see compound_manager.graph.builder.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time

from compound_manager.config import DEFAULT_CONFIG, CompoundManagerConfig
from compound_manager.graph.builder import (
    build_graph_from_csv,
    export_elements,
    load_graph_json,
)
from compound_manager.graph.model import CompoundGraph
from compound_manager.manager import CompoundManager


# ── Logging setup ─────────────────────────────────────────────────────────────

def _setup_logging(level: str = "INFO") -> None:
    """Configure root logger with timestamps and level names."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    fmt = "%(asctime)s  %(levelname)-8s  %(name)s - %(message)s"
    datefmt = "%H:%M:%S"
    logging.basicConfig(level=numeric, format=fmt, datefmt=datefmt, stream=sys.stderr)
    # asyncio selector chatter drowns the engine output at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)


logger = logging.getLogger("compound_manager.cli")


# ── Helpers ───────────────────────────────────────────────────────────────────

def _config_from_args(args: argparse.Namespace) -> CompoundManagerConfig:
    return CompoundManagerConfig(
        layout_name=args.layout_name,
        overlap_padding=args.padding,
        max_overlap_iterations=args.max_iterations,
    )


def _load_graph(args: argparse.Namespace, config: CompoundManagerConfig) -> CompoundGraph:
    if args.graph.lower().endswith(".csv"):
        return build_graph_from_csv(args.graph, args.edges, config=config)
    return load_graph_json(args.graph, config=config)


def _write_output(manager: CompoundManager, path: str | None) -> None:
    if not path:
        return
    elements = export_elements(manager.graph, manager.controller.visibility)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump({"elements": elements}, fh, indent=2, default=list)
    logger.info("Elements written to: %s", path)


def _print_summary(title: str, manager: CompoundManager, elapsed: float) -> None:
    graph = manager.graph
    nodes = graph.nodes()
    edges = graph.edges()
    visible_nodes = [n for n in nodes if not manager.is_hidden(n)]
    visible_edges = [e for e in edges if not manager.is_hidden(e)]
    projections = [e for e in edges if e.is_projection]

    print()
    print("=" * 60)
    print(f"  {title}")
    print("=" * 60)
    print(f"  Elapsed         : {elapsed:.2f}s")
    print(f"  Nodes visible   : {len(visible_nodes)} / {len(nodes)}")
    print(f"  Edges visible   : {len(visible_edges)} / {len(edges)}")
    print(f"  Projection edges: {len(projections)}")
    collapsed = manager.collapsed_nodes()
    print(f"  Collapsed ({len(collapsed)})  : {', '.join(n.id for n in collapsed) or '-'}")
    print(f"  Overlaps        : {'yes' if manager.has_overlaps() else 'no'}")
    print("=" * 60)


async def _run_layout(manager: CompoundManager, mode: str, targets: list[str]) -> bool:
    if mode == "global":
        return await manager.run_layout()
    ok = True
    for node_id in targets:
        ok = await manager.run_local_layout(node_id) and ok
    return ok


# ── Subcommand: inspect ──────────────────────────────────────────────────────

def cmd_inspect(args: argparse.Namespace) -> int:
    """Load a graph and print its structure summary."""
    _setup_logging(args.log_level)
    t0 = time.monotonic()
    config = _config_from_args(args)
    try:
        graph = _load_graph(args, config)
    except (OSError, ValueError, KeyError) as exc:
        logger.error("Could not load graph '%s': %s", args.graph, exc)
        return 1

    manager = CompoundManager(graph, config=config)
    compounds = [n.id for n in graph.nodes() if graph.is_parent(n.id)]
    _print_summary("COMPOUND GRAPH", manager, time.monotonic() - t0)
    print(f"  Compound nodes ({len(compounds)}): {', '.join(compounds) or '-'}")
    return 0


# ── Subcommand: collapse ─────────────────────────────────────────────────────

def cmd_collapse(args: argparse.Namespace) -> int:
    """Collapse nodes (or all compounds), optionally re-layout, report."""
    _setup_logging(args.log_level)
    t0 = time.monotonic()
    config = _config_from_args(args)
    try:
        graph = _load_graph(args, config)
    except (OSError, ValueError, KeyError) as exc:
        logger.error("Could not load graph '%s': %s", args.graph, exc)
        return 1

    manager = CompoundManager(graph, config=config)
    if args.all:
        count = manager.collapse_all()
        targets = [n.id for n in manager.collapsed_nodes()]
    else:
        targets = [n for n in args.nodes if manager.collapse(n)]
        count = len(targets)
        for skipped in sorted(set(args.nodes) - set(targets)):
            logger.warning("'%s' was not collapsed (unknown, leaf or already collapsed).", skipped)
    logger.info("Collapsed %d node(s).", count)

    if args.layout != "none":
        if not asyncio.run(_run_layout(manager, args.layout, targets)):
            logger.warning("Overlaps remain after layout; a full re-layout is advised.")

    _write_output(manager, args.output)
    _print_summary("COLLAPSE COMPLETE", manager, time.monotonic() - t0)
    return 0


# ── Subcommand: overlaps ─────────────────────────────────────────────────────

def cmd_overlaps(args: argparse.Namespace) -> int:
    """Report overlapping nodes; with --resolve, separate them."""
    _setup_logging(args.log_level)
    t0 = time.monotonic()
    config = _config_from_args(args)
    try:
        graph = _load_graph(args, config)
    except (OSError, ValueError, KeyError) as exc:
        logger.error("Could not load graph '%s': %s", args.graph, exc)
        return 1

    manager = CompoundManager(graph, config=config)
    before = manager.has_overlaps()
    resolved = True
    if args.resolve and before:
        resolved = manager.resolve_overlaps()

    _write_output(manager, args.output)
    _print_summary("OVERLAP CHECK", manager, time.monotonic() - t0)
    print(f"  Overlaps before : {'yes' if before else 'no'}")
    return 0 if resolved else 2


# ── Argument parser ───────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="compound-manager",
        description="Collapse/expand compound graphs with edge projection and overlap resolution.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Summarise a graph
  python -m compound_manager inspect graph.json

  # Collapse two compounds and lay out their neighbourhoods
  python -m compound_manager collapse graph.json parent1 parent2 --layout local

  # Collapse everything from CSV input and save the result
  python -m compound_manager collapse nodes.csv --edges edges.csv --all --output out.json
        """,
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    def add_graph_flags(p: argparse.ArgumentParser) -> None:
        p.add_argument("graph", metavar="GRAPH", help="Graph JSON file or node CSV")
        p.add_argument(
            "--edges", default=None, metavar="PATH",
            help="Edge CSV (only with a node CSV)",
        )
        p.add_argument(
            "--layout-name", default=DEFAULT_CONFIG.layout_name, metavar="NAME",
            help=f"Layout algorithm (default: {DEFAULT_CONFIG.layout_name})",
        )
        p.add_argument(
            "--padding", type=float, default=DEFAULT_CONFIG.overlap_padding, metavar="PX",
            help=f"Overlap separation padding (default: {DEFAULT_CONFIG.overlap_padding})",
        )
        p.add_argument(
            "--max-iterations", type=int, default=DEFAULT_CONFIG.max_overlap_iterations,
            metavar="N",
            help=f"Overlap pass cap (default: {DEFAULT_CONFIG.max_overlap_iterations})",
        )
        p.add_argument(
            "--output", default=None, metavar="PATH",
            help="Write resulting elements as JSON",
        )

    p_inspect = subparsers.add_parser("inspect", help="Summarise a graph file")
    add_graph_flags(p_inspect)
    p_inspect.set_defaults(func=cmd_inspect)

    p_collapse = subparsers.add_parser("collapse", help="Collapse compound nodes")
    add_graph_flags(p_collapse)
    p_collapse.add_argument("nodes", nargs="*", metavar="NODE", help="Node ids to collapse")
    p_collapse.add_argument(
        "--all", action="store_true",
        help="Collapse every compound node (deepest first)",
    )
    p_collapse.add_argument(
        "--layout", default="none", choices=["none", "local", "global"],
        help="Re-layout after collapsing (default: none)",
    )
    p_collapse.set_defaults(func=cmd_collapse)

    p_overlaps = subparsers.add_parser("overlaps", help="Detect (and resolve) node overlaps")
    add_graph_flags(p_overlaps)
    p_overlaps.add_argument(
        "--resolve", action="store_true",
        help="Separate overlapping nodes",
    )
    p_overlaps.set_defaults(func=cmd_overlaps)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args, extras = parser.parse_known_args(argv)
    # Node ids may follow options: "collapse g.csv --edges e.csv P Q"
    if extras and args.command == "collapse" and not any(a.startswith("-") for a in extras):
        args.nodes.extend(extras)
    elif extras:
        parser.error(f"unrecognized arguments: {' '.join(extras)}")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
