"""
compound_manager/graph/elements.py - Element handles.

Handles are lightweight, immutable references into a graph store. They carry
identity only (plus the fixed endpoints of an edge); mutable state such as
position or visibility is always read from the store or the engine.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, Union


class ElementKind(enum.Enum):
    NODE = "node"
    EDGE = "edge"


@dataclass(frozen=True)
class Node:
    id: str

    @property
    def kind(self) -> ElementKind:
        return ElementKind.NODE


@dataclass(frozen=True)
class Edge:
    id: str
    source: str
    target: str
    is_projection: bool = False

    @property
    def kind(self) -> ElementKind:
        return ElementKind.EDGE


Element = Union[Node, Edge]
ElementRef = Union[Node, Edge, str]


def element_id(element: ElementRef) -> str:
    """Return the identity of a handle or a raw id."""
    if isinstance(element, (Node, Edge)):
        return element.id
    return str(element)


def element_ids(elements: ElementRef | Iterable[ElementRef]) -> list[str]:
    """
    Normalise a single handle, a raw id, or an ordered sequence of either.

    Order is preserved and duplicates are dropped.
    """
    if isinstance(elements, (Node, Edge, str)):
        return [element_id(elements)]

    seen: set[str] = set()
    ids: list[str] = []
    for element in elements:
        eid = element_id(element)
        if eid not in seen:
            seen.add(eid)
            ids.append(eid)
    return ids
