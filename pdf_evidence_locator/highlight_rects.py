"""Parse stored highlight rectangles and convert them to one canonical form.

Two field-name conventions exist for the same rectangle concept:

- fraction form: ``{"pageIndex", "x", "y", "w", "h"}`` in page fractions;
- legacy form: ``{"pageIndex", "left", "top", "width", "height"}`` in
  viewport pixels at the historical scale.

The field names decide the variant. Geometry code only ever sees the
fraction form.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from pdf_evidence_locator.models import HighlightRect, LegacyHighlightRect, PageViewport

# Scale at which legacy absolute rectangles were recorded.
LEGACY_SCALE = 1.0

_FRACTION_FIELDS = ("x", "y", "w", "h")
_LEGACY_FIELDS = ("left", "top", "width", "height")


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def parse_highlight_rect(
    data: Mapping[str, Any] | None,
) -> HighlightRect | LegacyHighlightRect | None:
    """Build the matching rectangle variant from a raw dict, or None.

    A rectangle without a non-negative integer ``pageIndex`` is rejected.
    """
    if not isinstance(data, Mapping):
        return None
    page_index = data.get("pageIndex")
    if not isinstance(page_index, int) or isinstance(page_index, bool) or page_index < 0:
        return None
    if all(_is_number(data.get(name)) for name in _FRACTION_FIELDS):
        return HighlightRect(
            page_index=page_index,
            x=float(data["x"]),
            y=float(data["y"]),
            w=float(data["w"]),
            h=float(data["h"]),
        )
    if all(_is_number(data.get(name)) for name in _LEGACY_FIELDS):
        return LegacyHighlightRect(
            page_index=page_index,
            left=float(data["left"]),
            top=float(data["top"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )
    return None


def to_fraction_rect(
    rect: HighlightRect | LegacyHighlightRect,
    viewports: Mapping[int, PageViewport],
) -> HighlightRect | None:
    """Canonical fraction form of *rect*.

    Legacy rectangles need the page's viewport to be converted; None is
    returned when it is unknown or the page has no area.
    """
    if isinstance(rect, HighlightRect):
        return rect
    viewport = viewports.get(rect.page_index)
    if viewport is None:
        return None
    page_width = viewport.page_width * LEGACY_SCALE
    page_height = viewport.page_height * LEGACY_SCALE
    if page_width <= 0 or page_height <= 0:
        return None
    return HighlightRect(
        page_index=rect.page_index,
        x=rect.left / page_width,
        y=rect.top / page_height,
        w=rect.width / page_width,
        h=rect.height / page_height,
    )


def normalize_highlight_rects(
    raw_rects: Iterable[Mapping[str, Any]],
    viewports: Mapping[int, PageViewport],
) -> list[HighlightRect]:
    """Parse and canonicalize stored rectangles, dropping unusable ones."""
    rects: list[HighlightRect] = []
    for raw in raw_rects or []:
        parsed = parse_highlight_rect(raw)
        if parsed is None:
            continue
        fraction = to_fraction_rect(parsed, viewports)
        if fraction is None or fraction.w <= 0 or fraction.h <= 0:
            continue
        rects.append(fraction)
    return rects


def top_position(rects: Iterable[HighlightRect]) -> tuple[int, float] | None:
    """``(page_index, top_ratio)`` of the first rectangle in reading order."""
    ordered = sorted(rects, key=lambda rect: (rect.page_index, rect.y))
    if not ordered:
        return None
    return ordered[0].page_index, ordered[0].y
