"""Graft user-authored chapters and reparent overrides onto an outline.

Every operation here returns a new tree; input trees are never mutated.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping, Sequence

from pdf_evidence_locator.chapter_resolver import (
    find_chapter_for_position,
    flatten_outline_by_position,
)
from pdf_evidence_locator.models import OutlineNode

logger = logging.getLogger(__name__)


def clone_outline(nodes: Iterable[OutlineNode]) -> list[OutlineNode]:
    """Deep copy of an outline forest."""
    return [
        dataclasses.replace(node, children=clone_outline(node.children))
        for node in nodes
    ]


def find_outline_node(nodes: Iterable[OutlineNode], node_id: str) -> OutlineNode | None:
    for node in nodes:
        if node.id == node_id:
            return node
        found = find_outline_node(node.children, node_id)
        if found is not None:
            return found
    return None


def parent_map(nodes: Iterable[OutlineNode]) -> dict[str, str | None]:
    """Map every node id to its parent's id (None at the top level)."""
    parents: dict[str, str | None] = {}

    def _walk(items: Iterable[OutlineNode], parent_id: str | None) -> None:
        for node in items:
            parents[node.id] = parent_id
            _walk(node.children, node.id)

    _walk(nodes, None)
    return parents


def sort_outline(nodes: Iterable[OutlineNode]) -> list[OutlineNode]:
    """Return a copy with every child list sorted by document position.

    Siblings are ranked by ``(page_index, top_ratio, title)``. An explicit
    ``order`` replaces a node's positional rank, so a manual reorder sticks
    even though the node's position has not changed.
    """
    result = clone_outline(nodes)
    _sort_in_place(result)
    return result


def _sort_in_place(nodes: list[OutlineNode]) -> None:
    if not nodes:
        return
    by_position = sorted(
        nodes,
        key=lambda node: (node.page_index or 0, node.top_ratio or 0.0, node.title),
    )
    rank = {id(node): position for position, node in enumerate(by_position)}

    def _key(node: OutlineNode) -> tuple[float, int, str]:
        base = rank[id(node)]
        order = node.order if node.order is not None else base
        return order, base, node.title

    nodes.sort(key=_key)
    for node in nodes:
        _sort_in_place(node.children)


def merge_outline_with_custom(
    base_outline: Sequence[OutlineNode],
    custom_nodes: Iterable[OutlineNode],
    base_flat_outline: Sequence[OutlineNode],
    root_id: str,
) -> list[OutlineNode]:
    """Insert user-created chapter nodes into a copy of *base_outline*.

    A node with a resolvable ``parent_id`` is appended to that parent; a
    parent that is itself a custom node inserted later is retried once all
    others are placed. Nodes without a usable parent are placed under the
    chapter owning their own position in *base_flat_outline*, else under the
    root.
    """
    items = clone_outline(base_outline)

    def _append_to_root(child: OutlineNode) -> None:
        root = next((node for node in items if node.id == root_id), None)
        if root is not None:
            root.children.append(child)
        else:
            items.append(child)

    def _insert(parent_id: str, child: OutlineNode) -> bool:
        parent = find_outline_node(items, parent_id)
        if parent is None:
            return False
        parent.children.append(child)
        return True

    def _place_by_position(child: OutlineNode) -> None:
        chapter = find_chapter_for_position(
            base_flat_outline, child.page_index or 0, child.top_ratio or 0.0
        )
        if chapter is not None and chapter.id != root_id and _insert(chapter.id, child):
            return
        _append_to_root(child)

    pending: list[OutlineNode] = []
    for custom in custom_nodes:
        if custom is None:
            continue
        node = dataclasses.replace(
            custom, children=clone_outline(custom.children), is_custom=True
        )
        if node.parent_id:
            if node.parent_id == root_id:
                _append_to_root(node)
            elif not _insert(node.parent_id, node):
                pending.append(node)
            continue
        _place_by_position(node)

    progressed = True
    while pending and progressed:
        progressed = False
        for node in list(pending):
            if _insert(node.parent_id, node):
                pending.remove(node)
                progressed = True

    for node in pending:
        logger.debug("Custom chapter %s has unknown parent %s", node.id, node.parent_id)
        _place_by_position(node)

    _sort_in_place(items)
    return items


def apply_parent_overrides(
    outline: Sequence[OutlineNode], overrides: Mapping[str, str]
) -> list[OutlineNode]:
    """Move nodes under new parents, in a copy of *outline*.

    An override naming an unknown node or parent, the node itself, or one of
    the node's own descendants is ignored, so no cycle can form.
    """
    items = clone_outline(outline)
    if not overrides:
        return items

    nodes: dict[str, OutlineNode] = {}
    parents: dict[str, OutlineNode | None] = {}

    def _walk(children: Iterable[OutlineNode], parent: OutlineNode | None) -> None:
        for child in children:
            nodes[child.id] = child
            parents[child.id] = parent
            _walk(child.children, child)

    _walk(items, None)

    def _is_descendant(ancestor_id: str, target_id: str) -> bool:
        current = parents.get(target_id)
        while current is not None:
            if current.id == ancestor_id:
                return True
            current = parents.get(current.id)
        return False

    for node_id, new_parent_id in overrides.items():
        if not node_id or not new_parent_id or node_id == new_parent_id:
            continue
        node = nodes.get(node_id)
        new_parent = nodes.get(new_parent_id)
        if node is None or new_parent is None:
            continue
        if _is_descendant(node_id, new_parent_id):
            logger.debug("Rejected override %s -> %s: would form a cycle", node_id, new_parent_id)
            continue
        current_parent = parents.get(node_id)
        siblings = current_parent.children if current_parent is not None else items
        siblings[:] = [child for child in siblings if child.id != node_id]
        new_parent.children.append(node)
        parents[node_id] = new_parent

    _sort_in_place(items)
    return items


def build_display_outline(
    base_outline: Sequence[OutlineNode],
    custom_nodes: Iterable[OutlineNode],
    overrides: Mapping[str, str],
    root_id: str | None = None,
) -> list[OutlineNode]:
    """Merge custom chapters, then apply reparent overrides."""
    if root_id is None:
        root_id = base_outline[0].id if base_outline else ""
    merged = merge_outline_with_custom(
        base_outline,
        custom_nodes,
        flatten_outline_by_position(base_outline),
        root_id,
    )
    return apply_parent_overrides(merged, overrides)


def reorder_children(
    outline: Sequence[OutlineNode], parent_id: str, ordered_ids: Sequence[str]
) -> list[OutlineNode]:
    """Give the children of *parent_id* explicit orders following *ordered_ids*.

    Children not named keep their current relative order after the named
    ones. Returns the re-sorted copy; unknown parents leave the tree as is.
    """
    items = sort_outline(outline)
    parent = find_outline_node(items, parent_id)
    if parent is None:
        return items
    wanted = {child_id: position for position, child_id in enumerate(ordered_ids)}
    ranked = sorted(
        enumerate(parent.children),
        key=lambda entry: (wanted.get(entry[1].id, len(wanted)), entry[0]),
    )
    for position, (_, child) in enumerate(ranked):
        child.order = position
    _sort_in_place(items)
    return items


def assign_order(outline: Sequence[OutlineNode]) -> list[OutlineNode]:
    """Freeze the current sibling order into explicit ``order`` fields."""
    items = sort_outline(outline)

    def _freeze(children: list[OutlineNode]) -> None:
        for position, child in enumerate(children):
            child.order = position
            _freeze(child.children)

    _freeze(items)
    return items
