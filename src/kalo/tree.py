"""Flattened collection tree and its visibility model."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Any


class NodeKind(Enum):
    FOLDER = auto()
    TAG_GROUP = auto()
    LEAF = auto()


@dataclass
class CollectionNode:
    """One row of the collections tree.

    Nodes are kept in a single pre-order list; the parent of a node is
    implied by its position (see ``recompute_visibility``).
    """

    name: str
    kind: NodeKind
    expanded: bool = False
    visible: bool = False  # derived, never set by hand
    ref: Any = None  # request record, leaves only
    parent: int | None = None  # derived index into the same list

    @property
    def is_container(self) -> bool:
        return self.kind is not NodeKind.LEAF


def clone_nodes(nodes: list[CollectionNode]) -> list[CollectionNode]:
    """Shallow-copy every node so expansion flags can change independently."""
    return [replace(node) for node in nodes]


def recompute_visibility(nodes: list[CollectionNode]) -> list[CollectionNode]:
    """Re-derive ``parent`` and ``visible`` for every node in one forward pass.

    - a folder is always visible and has no parent
    - a tag group belongs to the closest folder before it, or to the root
    - a leaf belongs to the closest tag group or folder before it

    A node under a parent is visible only while the parent is visible and
    expanded.  Nodes without a parent are visible.  ``expanded`` is never
    touched.  The list is updated in place and returned.
    """
    folder: int | None = None
    container: int | None = None
    for i, node in enumerate(nodes):
        if node.kind is NodeKind.FOLDER:
            node.parent = None
            folder = container = i
        elif node.kind is NodeKind.TAG_GROUP:
            node.parent = folder
            container = i
        else:
            node.parent = container

        if node.parent is None:
            node.visible = True
        else:
            parent = nodes[node.parent]
            node.visible = parent.visible and parent.expanded
    return nodes


def toggle_expansion(nodes: list[CollectionNode], index: int) -> bool:
    """Flip a folder or tag group open/closed.  Returns False for leaves or bad indices."""
    if not 0 <= index < len(nodes):
        return False
    node = nodes[index]
    if not node.is_container:
        return False
    node.expanded = not node.expanded
    recompute_visibility(nodes)
    return True


def visible_indices(nodes: list[CollectionNode]) -> list[int]:
    return [i for i, node in enumerate(nodes) if node.visible]


def ancestors(nodes: list[CollectionNode], index: int) -> list[int]:
    """Indices of the ancestor chain of ``nodes[index]``, nearest first.

    Relies on ``parent`` having been computed by ``recompute_visibility``.
    """
    chain: list[int] = []
    parent = nodes[index].parent
    while parent is not None:
        chain.append(parent)
        parent = nodes[parent].parent
    return chain
