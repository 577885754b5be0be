"""Resolve which chapter owns a position in the document."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from pdf_evidence_locator.models import OutlineNode

# Page-height fraction a heading may sit below a position on the same page
# and still own it.
CHAPTER_START_TOLERANCE = 0.03


def iter_outline(nodes: Iterable[OutlineNode]) -> Iterable[OutlineNode]:
    """Depth-first, pre-order walk of an outline forest."""
    for node in nodes:
        yield node
        yield from iter_outline(node.children)


def position_key(node: OutlineNode) -> tuple[int, float]:
    if node.is_root:
        return -1, 0.0
    return node.page_index or 0, node.top_ratio or 0.0


def flatten_outline_by_position(nodes: Iterable[OutlineNode]) -> list[OutlineNode]:
    """All positioned nodes sorted by ``(page_index, top_ratio)``.

    Nodes with no page are left out; the root sorts before everything.
    The sort is stable, so equal positions keep tree order.
    """
    positioned = [
        node for node in iter_outline(nodes) if node.is_root or node.page_index is not None
    ]
    return sorted(positioned, key=position_key)


def find_chapter_for_position(
    flat_outline: Sequence[OutlineNode],
    page_index: int | None,
    top_ratio: float | None,
) -> OutlineNode | None:
    """Return the last heading that starts at or before the given position.

    When that is the root, the earliest heading on the same page that starts
    within CHAPTER_START_TOLERANCE below the position wins instead, so text
    on its heading's own line is not attributed to "no chapter yet".
    """
    if not flat_outline or page_index is None:
        return None
    ratio = top_ratio if top_ratio is not None else 0.0

    candidate: OutlineNode | None = None
    for node in flat_outline:
        if node.is_root:
            if candidate is None:
                candidate = node
            continue
        if node.page_index is None:
            continue
        node_ratio = node.top_ratio if node.top_ratio is not None else 0.0
        if node.page_index < page_index or (
            node.page_index == page_index and node_ratio <= ratio
        ):
            candidate = node

    if candidate is not None and candidate.is_root:
        same_page = sorted(
            (
                node
                for node in flat_outline
                if not node.is_root
                and node.page_index == page_index
                and node.top_ratio is not None
            ),
            key=lambda node: node.top_ratio,
        )
        if same_page and ratio + CHAPTER_START_TOLERANCE >= same_page[0].top_ratio:
            return same_page[0]

    return candidate
