"""Apply the page locator across a whole document."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Sequence

from pdf_evidence_locator.models import Evidence, MatchResult, PageIndex
from pdf_evidence_locator.normalization import collapse_whitespace
from pdf_evidence_locator.text_locator import match_in_page

logger = logging.getLogger(__name__)


def match_across_pages(indices: Sequence[PageIndex], query: str) -> MatchResult:
    """Return the first page match for *query* in document order.

    Always returns a value; ``page_index`` is None when no page matches.
    The earliest occurrence wins, even if the text repeats later.
    """
    for page_number, index in enumerate(indices):
        match = match_in_page(index, query)
        if match is not None:
            match.page_index = page_number
            match.rects = [
                dataclasses.replace(rect, page_index=page_number) for rect in match.rects
            ]
            return match
    return MatchResult(rects=[], matched_text="", page_index=None)


def match_evidence(
    evidence: Iterable[Evidence], indices: Sequence[PageIndex]
) -> list[Evidence]:
    """Re-anchor evidence records onto the document.

    Each record's text is collapsed to a single line before matching.
    Unmatched records come back with ``page_index=None`` and no rectangles.
    """
    resolved: list[Evidence] = []
    unmatched = 0
    for item in evidence:
        text = collapse_whitespace(item.text)
        if not text or not indices:
            resolved.append(item)
            continue
        match = match_across_pages(indices, text)
        if match.page_index is None:
            unmatched += 1
        resolved.append(
            Evidence(
                text=text,
                page_index=match.page_index,
                rects=match.rects,
                matched_text=match.matched_text,
            )
        )
    if unmatched:
        logger.debug("%d evidence item(s) could not be located", unmatched)
    return resolved
