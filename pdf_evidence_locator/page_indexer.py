"""Per-page text index builder.

Builds two parallel normalized character streams for a page (full, and
punctuation-stripped) and records, for every emitted character, the run it
came from and its offset inside that run's normalized text. Each run
contributes one contiguous range to each stream.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from pdf_evidence_locator.line_assembler import sort_runs_reading_order
from pdf_evidence_locator.models import PageIndex, PageViewport, TextRun, ViewportRect
from pdf_evidence_locator.normalization import normalize_for_index, normalize_no_punct


def run_rect(run: TextRun, viewport: PageViewport) -> ViewportRect:
    """Viewport-space bounding rectangle of *run*."""
    x1, y1, x2, y2 = viewport.convert_to_viewport_rectangle(
        (run.x, run.y, run.x + run.width, run.y + run.height)
    )
    return ViewportRect(
        left=min(x1, x2),
        top=min(y1, y2),
        width=abs(x2 - x1),
        height=abs(y2 - y1),
    )


def build_page_index(
    runs: Sequence[TextRun],
    viewport: PageViewport,
    page_index: int = 0,
    reorder: bool = True,
) -> PageIndex:
    """Build the searchable index for one page.

    Args:
        runs: The page's text runs, in any order.
        viewport: Viewport transform of the page.
        page_index: Zero-based page number stamped on the index.
        reorder: Put runs into reading order first. Pass ``False`` when the
            runs are already ordered.

    Returns:
        An immutable PageIndex. A page without text yields empty streams.
    """
    ordered = sort_runs_reading_order(runs) if reorder else list(runs)

    text, char_to_run, char_to_offset, counts = _build_stream(
        ordered, normalize_for_index
    )
    text_np, char_to_run_np, char_to_offset_np, counts_np = _build_stream(
        ordered, normalize_no_punct
    )

    return PageIndex(
        page_index=page_index,
        viewport=viewport,
        runs=tuple(ordered),
        run_rects=tuple(run_rect(run, viewport) for run in ordered),
        normalized_text=text,
        normalized_no_punct=text_np,
        char_to_run=char_to_run,
        char_to_offset=char_to_offset,
        char_to_run_no_punct=char_to_run_np,
        char_to_offset_no_punct=char_to_offset_np,
        run_char_counts=counts,
        run_char_counts_no_punct=counts_np,
    )


def _build_stream(
    runs: Sequence[TextRun], normalize: Callable[[str], str]
) -> tuple[str, tuple[int, ...], tuple[int, ...], tuple[int, ...]]:
    parts: list[str] = []
    char_to_run: list[int] = []
    char_to_offset: list[int] = []
    counts: list[int] = []

    for run_index, run in enumerate(runs):
        normalized = normalize(run.text)
        counts.append(len(normalized))
        parts.append(normalized)
        char_to_run.extend([run_index] * len(normalized))
        char_to_offset.extend(range(len(normalized)))

    return "".join(parts), tuple(char_to_run), tuple(char_to_offset), tuple(counts)
