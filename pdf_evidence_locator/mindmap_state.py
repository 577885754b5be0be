"""Persisted flat form (version 2) of the merged chapter tree.

The state is a plain JSON-compatible dict::

    {
        "version": 2,
        "rootId": "...",
        "nodes": {id: {"id", "title", "pageIndex", "topRatio", "isRoot"?,
                       "isCustom"?, "createdAt"?, "order"?, "children": [...]}},
        "updatedAt": <epoch millis>,
    }
"""

from __future__ import annotations

import dataclasses
import math
import time
from collections.abc import Mapping, Sequence
from typing import Any

from pdf_evidence_locator.models import OutlineNode

STATE_VERSION = 2


def _now_millis() -> float:
    return time.time() * 1000


def _number_or_none(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _bool_or_none(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def normalize_legacy_parent_overrides(value: Any) -> dict[str, str]:
    """Keep only well-formed ``{node_id: parent_id}`` pairs."""
    if not isinstance(value, Mapping):
        return {}
    overrides: dict[str, str] = {}
    for node_id, parent_id in value.items():
        if not isinstance(node_id, str) or not node_id:
            continue
        if not isinstance(parent_id, str) or not parent_id or node_id == parent_id:
            continue
        overrides[node_id] = parent_id
    return overrides


def build_state_from_outline(
    root: OutlineNode | None, updated_at: float | None = None
) -> dict[str, Any] | None:
    """Flatten a display outline rooted at *root* into a v2 state."""
    if root is None or not root.id:
        return None
    nodes: dict[str, dict[str, Any]] = {}

    def _walk(node: OutlineNode) -> None:
        if not node.id:
            return
        entry: dict[str, Any] = {
            "id": node.id,
            "title": node.title or "",
            "pageIndex": _number_or_none(node.page_index),
            "topRatio": _number_or_none(node.top_ratio),
            "children": [child.id for child in node.children if child.id],
        }
        if node.is_root:
            entry["isRoot"] = True
        if node.is_custom:
            entry["isCustom"] = True
        if _number_or_none(node.created_at) is not None:
            entry["createdAt"] = node.created_at
        if _number_or_none(node.order) is not None:
            entry["order"] = node.order
        nodes[node.id] = entry
        for child in node.children:
            _walk(child)

    _walk(root)
    stamp = _number_or_none(updated_at)
    return {
        "version": STATE_VERSION,
        "rootId": root.id,
        "nodes": nodes,
        "updatedAt": stamp if stamp is not None else _now_millis(),
    }


def parse_state(value: Any) -> dict[str, Any] | None:
    """Validate and clean a stored state; None when it is unusable."""
    if not isinstance(value, Mapping) or value.get("version") != STATE_VERSION:
        return None
    root_id = value.get("rootId")
    if not isinstance(root_id, str) or not root_id:
        return None
    raw_nodes = value.get("nodes")
    if not isinstance(raw_nodes, Mapping):
        return None

    nodes: dict[str, dict[str, Any]] = {}
    for key, raw in raw_nodes.items():
        if not key or not isinstance(raw, Mapping):
            continue
        node_id = raw.get("id") if isinstance(raw.get("id"), str) else key
        if not node_id:
            continue
        children = raw.get("children")
        entry: dict[str, Any] = {
            "id": node_id,
            "title": str(raw.get("title") or ""),
            "pageIndex": _number_or_none(raw.get("pageIndex")),
            "topRatio": _number_or_none(raw.get("topRatio")),
            "children": [
                child for child in children if isinstance(child, str) and child
            ]
            if isinstance(children, list)
            else [],
        }
        for name in ("isRoot", "isCustom"):
            flag = _bool_or_none(raw.get(name))
            if flag is not None:
                entry[name] = flag
        for name in ("createdAt", "order"):
            number = _number_or_none(raw.get(name))
            if number is not None:
                entry[name] = number
        nodes[node_id] = entry

    if root_id not in nodes:
        return None
    updated_at = _number_or_none(value.get("updatedAt"))
    return {
        "version": STATE_VERSION,
        "rootId": root_id,
        "nodes": nodes,
        "updatedAt": updated_at if updated_at is not None else _now_millis(),
    }


def derive_custom_chapters(
    state: Mapping[str, Any], root_id_alias: str | None = None
) -> list[OutlineNode]:
    """Recover user-created chapters, with their parents, from a state.

    The state's root id is reported as *root_id_alias* when one is given, so
    custom chapters survive a change of the extracted root's id.
    """
    root_id = state["rootId"]
    nodes: Mapping[str, Mapping[str, Any]] = state["nodes"]
    alias = root_id_alias or root_id
    if root_id not in nodes:
        return []

    custom: list[OutlineNode] = []
    visited: set[str] = set()

    def _walk(node_id: str, parent_id: str | None) -> None:
        if not node_id or node_id in visited or node_id not in nodes:
            return
        visited.add(node_id)
        node = nodes[node_id]
        if node_id != root_id and node.get("isCustom"):
            page_index = node.get("pageIndex")
            custom.append(
                OutlineNode(
                    id=node_id,
                    title=node.get("title", ""),
                    page_index=int(page_index) if page_index is not None else None,
                    top_ratio=node.get("topRatio"),
                    is_custom=True,
                    parent_id=alias if parent_id == root_id else parent_id,
                    order=node.get("order"),
                    created_at=node.get("createdAt"),
                )
            )
        for child_id in node.get("children", []):
            _walk(child_id, node_id)

    _walk(root_id, None)
    return custom


def merge_legacy_parent_overrides(
    custom_nodes: Sequence[OutlineNode], overrides: Mapping[str, str]
) -> list[OutlineNode]:
    """Fold legacy overrides into copies of the custom nodes' ``parent_id``.

    An override that would make a custom node its own ancestor, following
    parent links among the custom nodes, is skipped.
    """
    nodes = [dataclasses.replace(node, children=list(node.children)) for node in custom_nodes]
    if not overrides:
        return nodes
    by_id = {node.id: node for node in nodes if node.id}

    def _creates_cycle(node_id: str, new_parent_id: str) -> bool:
        current: str | None = new_parent_id
        seen: set[str] = set()
        while current and current in by_id and current not in seen:
            if current == node_id:
                return True
            seen.add(current)
            current = by_id[current].parent_id
        return False

    for node_id, new_parent_id in overrides.items():
        node = by_id.get(node_id)
        if node is None or not new_parent_id or new_parent_id == node_id:
            continue
        if _creates_cycle(node_id, new_parent_id):
            continue
        node.parent_id = new_parent_id
    return nodes
