"""Page classifier telling text pages from image-only pages."""

from __future__ import annotations

from collections.abc import Sequence

from pdf_evidence_locator.models import PageClassification, PageViewport, ViewportRect

# Threshold boundaries for classification
_NATIVE_TEXT_THRESHOLD = 0.8
_SCANNED_THRESHOLD = 0.2


def classify_by_ratio(ratio: float) -> PageClassification:
    """Classify a page based on a pre-computed text coverage ratio.

    Args:
        ratio: Text coverage ratio in [0.0, 1.0].

    Returns:
        PageClassification based on threshold boundaries.
    """
    if ratio > _NATIVE_TEXT_THRESHOLD:
        return PageClassification.NATIVE_TEXT
    if ratio < _SCANNED_THRESHOLD:
        return PageClassification.SCANNED
    return PageClassification.MIXED


def text_coverage(rects: Sequence[ViewportRect], viewport: PageViewport) -> float:
    """Share of the page area covered by the union of *rects*.

    Overlapping run rectangles are counted once: the union area is computed
    by sweeping the distinct x edges and merging y intervals per strip.
    """
    page_area = viewport.width * viewport.height
    if page_area <= 0 or not rects:
        return 0.0

    boxes = [
        (
            max(0.0, rect.left),
            max(0.0, rect.top),
            min(viewport.width, rect.left + rect.width),
            min(viewport.height, rect.top + rect.height),
        )
        for rect in rects
    ]
    boxes = [box for box in boxes if box[2] > box[0] and box[3] > box[1]]
    if not boxes:
        return 0.0

    xs = sorted({edge for box in boxes for edge in (box[0], box[2])})
    covered = 0.0
    for left, right in zip(xs, xs[1:]):
        spans = sorted((box[1], box[3]) for box in boxes if box[0] <= left and box[2] >= right)
        strip = 0.0
        current_top: float | None = None
        current_bottom = 0.0
        for top, bottom in spans:
            if current_top is None or top > current_bottom:
                if current_top is not None:
                    strip += current_bottom - current_top
                current_top, current_bottom = top, bottom
            else:
                current_bottom = max(current_bottom, bottom)
        if current_top is not None:
            strip += current_bottom - current_top
        covered += strip * (right - left)

    return min(covered / page_area, 1.0)


class PageClassifier:
    """Classifies pages based on the coverage of their text runs."""

    def classify(
        self, rects: Sequence[ViewportRect], viewport: PageViewport
    ) -> PageClassification:
        """Classify a page from its run rectangles and viewport.

        A page without any text run is ``SCANNED``.
        """
        return classify_by_ratio(text_coverage(rects, viewport))
