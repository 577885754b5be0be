"""Locate a query string inside a page index and rebuild its geometry."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pdf_evidence_locator.models import HighlightRect, MatchResult, PageIndex, ViewportRect
from pdf_evidence_locator.normalization import normalize_for_index, normalize_no_punct

logger = logging.getLogger(__name__)

# The punctuation-tolerant search only runs for queries longer than this.
_MIN_NO_PUNCT_QUERY = 2


def find_match_range(haystack: str, needle: str) -> tuple[int, int] | None:
    """Return ``(start, length)`` of the first occurrence, or None."""
    if not needle:
        return None
    start = haystack.find(needle)
    if start < 0:
        return None
    return start, len(needle)


def run_indices_for_range(
    char_to_run: Sequence[int], start: int, length: int
) -> list[int]:
    """Ordered, de-duplicated run indices covering ``[start, start+length)``."""
    indices: list[int] = []
    seen: set[int] = set()
    end = min(start + length, len(char_to_run))
    for i in range(max(0, start), end):
        run_index = char_to_run[i]
        if run_index in seen:
            continue
        seen.add(run_index)
        indices.append(run_index)
    return indices


def match_in_page(index: PageIndex, query: str) -> MatchResult | None:
    """Find the first occurrence of *query* on the page.

    The search runs on the full-normalized stream first and falls back to the
    punctuation-stripped stream, so a query that differs from the page only
    in punctuation still matches. Returns None when nothing matches.
    """
    normalized = normalize_for_index(query)
    if not normalized:
        return None

    match = find_match_range(index.normalized_text, normalized)
    if match is not None:
        return build_match_rects(
            index,
            index.char_to_run,
            index.char_to_offset,
            index.run_char_counts,
            match,
        )

    stripped = normalize_no_punct(query)
    if len(stripped) > _MIN_NO_PUNCT_QUERY:
        match = find_match_range(index.normalized_no_punct, stripped)
        if match is not None:
            logger.debug(
                "Page %d: matched %r only after stripping punctuation",
                index.page_index,
                query[:60],
            )
            return build_match_rects(
                index,
                index.char_to_run_no_punct,
                index.char_to_offset_no_punct,
                index.run_char_counts_no_punct,
                match,
            )

    return None


def build_match_rects(
    index: PageIndex,
    char_to_run: Sequence[int],
    char_to_offset: Sequence[int],
    run_char_counts: Sequence[int],
    match: tuple[int, int],
) -> MatchResult:
    """Rebuild the rectangles covering a matched normalized range.

    Runs strictly inside the range keep their full rectangle. The first and
    last contributing runs are narrowed to the covered fraction of their
    normalized characters.
    """
    start, length = match
    run_indices = run_indices_for_range(char_to_run, start, length)
    end = min(len(char_to_run) - 1, start + length - 1)
    start_run = char_to_run[start] if 0 <= start < len(char_to_run) else None
    end_run = char_to_run[end] if 0 <= end < len(char_to_run) else None

    rects: list[HighlightRect] = []
    for run_index in run_indices:
        rect = index.run_rects[run_index]
        if rect.width <= 0 or rect.height <= 0:
            continue
        run_len = run_char_counts[run_index]
        left, width = rect.left, rect.width

        if run_len and start_run is not None and end_run is not None and (
            run_index == start_run or run_index == end_run
        ):
            start_offset = char_to_offset[start] if run_index == start_run else 0
            end_offset = char_to_offset[end] if run_index == end_run else run_len - 1
            start_ratio = _clamp(start_offset / run_len)
            end_ratio = _clamp((end_offset + 1) / run_len)
            left = rect.left + rect.width * start_ratio
            width = rect.width * max(0.0, end_ratio - start_ratio)
            if width <= 0:
                left, width = rect.left, rect.width

        fraction = to_page_fraction(
            index,
            ViewportRect(left=left, top=rect.top, width=width, height=rect.height),
        )
        if fraction is not None:
            rects.append(fraction)

    matched_text = " ".join(
        index.runs[run_index].text
        for run_index in run_indices
        if index.runs[run_index].text
    )
    return MatchResult(rects=rects, matched_text=matched_text, page_index=index.page_index)


def to_page_fraction(index: PageIndex, rect: ViewportRect) -> HighlightRect | None:
    """Express a viewport rectangle as page fractions; None when degenerate."""
    page_width = index.viewport.width
    page_height = index.viewport.height
    if page_width <= 0 or page_height <= 0:
        return None
    x0 = _clamp(rect.left / page_width)
    y0 = _clamp(rect.top / page_height)
    x1 = _clamp((rect.left + rect.width) / page_width)
    y1 = _clamp((rect.top + rect.height) / page_height)
    if x1 - x0 <= 0 or y1 - y0 <= 0:
        return None
    return HighlightRect(page_index=index.page_index, x=x0, y=y0, w=x1 - x0, h=y1 - y0)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
