"""PyMuPDF adapter: text runs, viewports and the native outline of a PDF."""

from __future__ import annotations

import logging
import math
from typing import Any

import fitz  # PyMuPDF

from pdf_evidence_locator.models import BookmarkEntry, Destination, PageViewport, TextRun

logger = logging.getLogger(__name__)


def extract_text_runs(page: fitz.Page) -> list[TextRun]:
    """Return one TextRun per non-empty text span of *page*.

    PyMuPDF reports span boxes with a top-left origin; runs are stored in
    PDF user space, so the box bottom becomes the run's ``y``.
    """
    page_height = page.rect.height
    text_dict = page.get_text("dict")
    runs: list[TextRun] = []
    for block in text_dict.get("blocks", []):
        if block.get("type") != 0:  # image block
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = span.get("text", "")
                if not text.strip():
                    continue
                x0, y0, x1, y1 = span.get("bbox", (0.0, 0.0, 0.0, 0.0))
                runs.append(
                    TextRun(
                        text=text,
                        x=float(x0),
                        y=float(page_height - y1),
                        width=float(max(0.0, x1 - x0)),
                        height=float(max(0.0, y1 - y0)),
                        font_size=float(span.get("size", 0.0)),
                    )
                )
    return runs


def page_viewport(page: fitz.Page, scale: float = 1.0) -> PageViewport:
    rect = page.rect
    return PageViewport(page_width=rect.width, page_height=rect.height, scale=scale)


def page_has_images(page: fitz.Page) -> bool:
    return bool(page.get_images(full=False))


class FitzOutlineSource:
    """Outline collaborator backed by an open PyMuPDF document.

    Bookmark targets come from ``get_toc(simple=False)``; a target point is
    turned into an ``XYZ`` destination in PDF user space.
    """

    def __init__(self, doc: fitz.Document, scale: float = 1.0) -> None:
        self.doc = doc
        self.scale = scale
        self._named: dict[str, Any] | None = None

    def get_outline(self) -> list[BookmarkEntry]:
        toc = self.doc.get_toc(simple=False)
        roots: list[BookmarkEntry] = []
        stack: list[tuple[int, BookmarkEntry]] = []
        for item in toc:
            level, title, page_number = item[0], item[1], item[2]
            details = item[3] if len(item) > 3 and isinstance(item[3], dict) else {}
            entry = BookmarkEntry(
                title=title or "",
                dest=self._destination(page_number - 1, details),
            )
            while stack and stack[-1][0] >= level:
                stack.pop()
            if stack:
                stack[-1][1].children.append(entry)
            else:
                roots.append(entry)
            stack.append((level, entry))
        return roots

    def get_destination(self, name: str) -> Destination | None:
        if self._named is None:
            self._named = self.doc.resolve_names()
        target = self._named.get(name)
        if not target:
            return None
        return self._destination(target.get("page", -1), target)

    def get_page_index(self, ref: Any) -> int | None:
        if isinstance(ref, int) and 0 <= ref < self.doc.page_count:
            return ref
        return None

    def get_viewport(self, page_index: int) -> PageViewport | None:
        if not 0 <= page_index < self.doc.page_count:
            return None
        return page_viewport(self.doc.load_page(page_index), self.scale)

    def _destination(self, page_index: int, details: dict[str, Any]) -> Destination | str | None:
        if page_index is None or page_index < 0:
            name = details.get("nameddest") or details.get("name")
            return name if isinstance(name, str) and name else None
        point = details.get("to")
        if point is None:
            return Destination(page=page_index, kind="Fit")
        x, y = _point_xy(point)
        if y is None or not 0 <= page_index < self.doc.page_count:
            return Destination(page=page_index, kind="Fit")
        page_height = self.doc.load_page(page_index).rect.height
        zoom = details.get("zoom")
        return Destination(page=page_index, kind="XYZ", args=(x, page_height - y, zoom))


def _point_xy(point: Any) -> tuple[float | None, float | None]:
    try:
        x, y = float(point[0]), float(point[1])
    except (TypeError, ValueError, IndexError):
        return None, None
    if not (math.isfinite(x) and math.isfinite(y)):
        return None, None
    return x, y
