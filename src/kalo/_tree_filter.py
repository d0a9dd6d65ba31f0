"""Substring filter over the collections tree."""

from __future__ import annotations

import logging

from kalo.tree import CollectionNode, NodeKind, clone_nodes, recompute_visibility

logger = logging.getLogger(__name__)


def apply_collection_filter(
    original: list[CollectionNode], filter_text: str
) -> list[CollectionNode]:
    """Filter *original* down to the leaves whose name contains *filter_text*.

    Matching is a case-insensitive literal substring test.  Each matching
    leaf is preceded by its folder and tag group, emitted once and expanded;
    containers without a match are dropped.  An empty filter returns the
    whole tree collapsed.

    Always pass the untouched original list: filtering a filtered result
    would keep narrowing as the user backspaces.  *original* is not modified.
    """
    if not filter_text:
        nodes = clone_nodes(original)
        for node in nodes:
            if node.is_container:
                node.expanded = False
        return recompute_visibility(nodes)

    needle = filter_text.lower()
    result: list[CollectionNode] = []
    folder: CollectionNode | None = None
    tag_group: CollectionNode | None = None
    emitted: set[int] = set()
    has_match = False

    for node in original:
        if node.kind is NodeKind.FOLDER:
            folder = node
            tag_group = None
            has_match = False
            continue
        if node.kind is NodeKind.TAG_GROUP:
            tag_group = node
            has_match = False
            continue
        if needle not in node.name.lower():
            continue
        if not has_match:
            for container in (folder, tag_group):
                if container is not None and id(container) not in emitted:
                    emitted.add(id(container))
                    result.append(_expanded_copy(container))
            has_match = True
        result.append(_leaf_copy(node))

    logger.debug(
        "collection filter %r: %d of %d nodes", filter_text, len(result), len(original)
    )
    return recompute_visibility(result)


def _expanded_copy(node: CollectionNode) -> CollectionNode:
    return CollectionNode(name=node.name, kind=node.kind, expanded=True, ref=node.ref)


def _leaf_copy(node: CollectionNode) -> CollectionNode:
    return CollectionNode(name=node.name, kind=node.kind, expanded=node.expanded, ref=node.ref)
