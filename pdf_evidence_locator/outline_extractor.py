"""Chapter tree extraction.

Two mutually exclusive paths:

1. Bookmarks: the document's native outline is mirrored exactly, with each
   jump target resolved to a page index and a vertical page-height ratio.
2. Headings: when there is no usable native outline, lines are classified
   as headings from numbering patterns and line height, running headers are
   filtered out by repetition, and a stack-based pass nests the headings.

Either result is wrapped under one synthetic root node for the whole
document.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from pdf_evidence_locator.line_assembler import assemble_lines
from pdf_evidence_locator.models import (
    BookmarkEntry,
    Destination,
    Line,
    OutlineNode,
    PageInfo,
    PageViewport,
)
from pdf_evidence_locator.normalization import strip_punctuation

logger = logging.getLogger(__name__)

# Heading candidate length bounds (characters).
_MIN_HEADING_LENGTH = 4
_MAX_HEADING_LENGTH = 120

# Line-height ratio relative to the document median that marks a heading.
_HEADING_SIZE_RATIO = 1.25

# Fractions of page height, measured from the bottom in page space.
_FOOTER_ZONE = 0.08  # bottom 8%
_HEADER_ZONE = 0.90  # top 10%

# A header-zone line repeating on this share of pages is a running header.
_HEADER_REPEAT_RATIO = 0.4
_HEADER_REPEAT_MIN = 3

_MAX_NUMBERED_DEPTH = 4

_NUMBERED_HEADING_RE = re.compile(r"^(\d+(?:\.\d+)*)\.?\s+\S+")
_CJK_HEADING_RE = re.compile(r"^第[一二三四五六七八九十百零〇\d]+(章|节|部分)\s*\S+")

UNTITLED_SECTION = "Untitled section"
DEFAULT_ROOT_ID = "outline-root"
DEFAULT_ROOT_TITLE = "Document"


class OutlineSource(Protocol):
    """What the extractor needs from a document with a native outline."""

    def get_outline(self) -> list[BookmarkEntry]: ...

    def get_destination(self, name: str) -> Destination | None: ...

    def get_page_index(self, ref: Any) -> int | None: ...

    def get_viewport(self, page_index: int) -> PageViewport | None: ...


@dataclass
class HeadingCandidate:
    title: str
    page_index: int
    level: int
    top_ratio: float | None
    in_header: bool
    key: str


def extract_outline(
    document: OutlineSource | None,
    page_infos: Sequence[PageInfo],
    root_id: str = DEFAULT_ROOT_ID,
    root_title: str = DEFAULT_ROOT_TITLE,
) -> list[OutlineNode]:
    """Return the chapter tree as a single-element list holding the root."""
    children, _ = extract_headings(document, page_infos)
    return wrap_in_root(children, root_id, root_title)


def wrap_in_root(
    children: list[OutlineNode],
    root_id: str = DEFAULT_ROOT_ID,
    root_title: str = DEFAULT_ROOT_TITLE,
) -> list[OutlineNode]:
    return [
        OutlineNode(
            id=root_id,
            title=root_title or DEFAULT_ROOT_TITLE,
            page_index=0,
            top_ratio=0.0,
            children=children,
            is_root=True,
        )
    ]


def extract_headings(
    document: OutlineSource | None, page_infos: Sequence[PageInfo]
) -> tuple[list[OutlineNode], str]:
    """Return the top-level chapter nodes and which path produced them.

    The second element is ``"bookmarks"``, ``"headings"`` or ``"empty"``.
    """
    if document is not None:
        try:
            entries = document.get_outline()
        except Exception as exc:
            logger.warning("Could not read the document outline: %s", exc)
            entries = []
        if entries:
            viewports = {
                page: info.viewport
                for page, info in enumerate(page_infos)
                if info.viewport is not None
            }
            tree = build_bookmark_tree(document, entries, "", viewports)
            if tree:
                return tree, "bookmarks"

    tree = build_fallback_outline(page_infos)
    return tree, "headings" if tree else "empty"


# ----------------------------------------------------------------------
# Bookmark path
# ----------------------------------------------------------------------


def build_bookmark_tree(
    document: OutlineSource,
    entries: Sequence[BookmarkEntry],
    parent_id: str = "",
    viewports: dict[int, PageViewport] | None = None,
) -> list[OutlineNode]:
    """Mirror the bookmark nesting, resolving each entry's jump target."""
    if viewports is None:
        viewports = {}
    nodes: list[OutlineNode] = []
    for position, entry in enumerate(entries):
        node_id = f"{parent_id}.{position}" if parent_id else str(position)
        page_index, top_ratio = resolve_destination(document, entry.dest, viewports)
        children = (
            build_bookmark_tree(document, entry.children, node_id, viewports)
            if entry.children
            else []
        )
        title = (entry.title or "").strip()
        if not title and children:
            title = UNTITLED_SECTION
        if not title and not children:
            continue
        nodes.append(
            OutlineNode(
                id=node_id,
                title=title,
                page_index=page_index,
                top_ratio=top_ratio,
                children=children,
            )
        )
    return nodes


def resolve_destination(
    document: OutlineSource,
    dest: Destination | str | None,
    viewports: dict[int, PageViewport],
) -> tuple[int | None, float | None]:
    """Resolve a jump target to ``(page_index, top_ratio)``.

    Unresolvable targets give ``(None, None)``; targets without a vertical
    coordinate give ``(page_index, None)``. *viewports* is filled in with
    any viewport fetched from the document.
    """
    if dest is None or dest == "":
        return None, None
    try:
        resolved = document.get_destination(dest) if isinstance(dest, str) else dest
        if resolved is None:
            return None, None
        if isinstance(resolved.page, int):
            page_index = resolved.page
        else:
            page_index = document.get_page_index(resolved.page)
    except Exception as exc:
        logger.debug("Unresolvable bookmark target %r: %s", dest, exc)
        return None, None
    if page_index is None or page_index < 0:
        return None, None

    top = _destination_top(resolved)
    if top is None:
        return page_index, None

    viewport = viewports.get(page_index)
    if viewport is None:
        try:
            viewport = document.get_viewport(page_index)
        except Exception as exc:
            logger.debug("No viewport for page %d: %s", page_index, exc)
            viewport = None
        if viewport is None:
            return page_index, None
        viewports[page_index] = viewport

    if not viewport.height:
        return page_index, None
    _, y = viewport.convert_to_viewport_point(0, top)
    top_px = max(0.0, y)
    return page_index, _clamp(top_px / viewport.height)


def _destination_top(dest: Destination) -> float | None:
    """Vertical coordinate of an XYZ or FitH/FitBH target."""
    args = dest.args
    if dest.kind == "XYZ":
        value = args[1] if len(args) > 1 else None
    elif dest.kind in ("FitH", "FitBH"):
        value = args[0] if args else None
    else:
        value = None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    return None


# ----------------------------------------------------------------------
# Heading fallback path
# ----------------------------------------------------------------------


def heading_level(text: str) -> int | None:
    """Nesting depth implied by a numbering pattern, or None."""
    cjk = _CJK_HEADING_RE.match(text)
    if cjk:
        return 2 if cjk.group(1) == "节" else 1
    numbered = _NUMBERED_HEADING_RE.match(text)
    if numbered:
        return min(_MAX_NUMBERED_DEPTH, len(numbered.group(1).split(".")))
    return None


def heading_key(text: str) -> str:
    """Key that identifies the same running header across pages."""
    value = strip_punctuation(text.lower())
    value = re.sub(r"\d+", "", value)
    return re.sub(r"\s+", "", value)


def median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def build_fallback_outline(page_infos: Sequence[PageInfo]) -> list[OutlineNode]:
    """Infer a chapter tree from line statistics across the whole document.

    All pages are assembled into lines before any line is classified, since
    the median line height and the header repetition counts are
    document-wide.
    """
    if not page_infos:
        return []

    lines_by_page = [assemble_lines(info.runs) for info in page_infos]
    median_height = median(
        [line.height for lines in lines_by_page for line in lines if line.height]
    )

    headings: list[HeadingCandidate] = []
    header_counts: dict[str, int] = {}

    for page_index, lines in enumerate(lines_by_page):
        viewport = page_infos[page_index].viewport
        for line in lines:
            heading = _classify_line(line, page_index, viewport, median_height)
            if heading is None:
                continue
            if heading.in_header and heading.key:
                header_counts[heading.key] = header_counts.get(heading.key, 0) + 1
            headings.append(heading)

    threshold = max(_HEADER_REPEAT_MIN, math.ceil(len(page_infos) * _HEADER_REPEAT_RATIO))
    filtered = [
        heading
        for heading in headings
        if not (heading.in_header and heading.key)
        or header_counts.get(heading.key, 0) < threshold
    ]
    logger.debug(
        "Heading fallback: %d candidate(s), %d after running-header filter",
        len(headings),
        len(filtered),
    )
    return build_heading_tree(filtered)


def _classify_line(
    line: Line,
    page_index: int,
    viewport: PageViewport | None,
    median_height: float,
) -> HeadingCandidate | None:
    if not _MIN_HEADING_LENGTH <= len(line.text) <= _MAX_HEADING_LENGTH:
        return None

    page_height = viewport.page_height if viewport is not None else 0.0
    if page_height and line.y <= page_height * _FOOTER_ZONE:
        return None

    level = heading_level(line.text)
    is_large = bool(median_height) and line.height >= median_height * _HEADING_SIZE_RATIO
    if level is None and not is_large:
        return None

    top_ratio: float | None = None
    if viewport is not None and viewport.height:
        _, y = viewport.convert_to_viewport_point(0, line.y)
        top = max(0.0, y - line.height * viewport.scale)
        top_ratio = _clamp(top / viewport.height)

    return HeadingCandidate(
        title=line.text,
        page_index=page_index,
        level=level or 1,
        top_ratio=top_ratio,
        in_header=bool(page_height) and line.y >= page_height * _HEADER_ZONE,
        key=heading_key(line.text),
    )


def build_heading_tree(headings: Sequence[HeadingCandidate]) -> list[OutlineNode]:
    """Nest depth-tagged headings under the nearest shallower predecessor."""
    roots: list[OutlineNode] = []
    stack: list[tuple[int, OutlineNode]] = []
    last_key: tuple[int, str] | None = None

    for position, heading in enumerate(headings):
        key = (heading.page_index, heading.title)
        if key == last_key:
            continue
        last_key = key

        node = OutlineNode(
            id=f"h-{heading.page_index}-{position}",
            title=heading.title,
            page_index=heading.page_index,
            top_ratio=heading.top_ratio,
        )
        while stack and stack[-1][0] >= heading.level:
            stack.pop()
        if stack:
            stack[-1][1].children.append(node)
        else:
            roots.append(node)
        stack.append((heading.level, node))

    return roots


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
