"""Core data models for the PDF evidence locator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class PageClassification(Enum):
    """Classification of a PDF page based on text coverage ratio."""

    NATIVE_TEXT = "native_text"
    SCANNED = "scanned"
    MIXED = "mixed"


@dataclass(frozen=True)
class TextRun:
    """One drawn text fragment on a page, in PDF user space (y grows upward)."""

    text: str
    x: float
    y: float
    width: float
    height: float
    font_size: float = 0.0


@dataclass(frozen=True)
class ViewportRect:
    """A rectangle in viewport space (top-left origin, y grows downward)."""

    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class PageViewport:
    """Maps page space to viewport space for an unrotated page."""

    page_width: float
    page_height: float
    scale: float = 1.0

    @property
    def width(self) -> float:
        return self.page_width * self.scale

    @property
    def height(self) -> float:
        return self.page_height * self.scale

    def convert_to_viewport_point(self, x: float, y: float) -> tuple[float, float]:
        return x * self.scale, (self.page_height - y) * self.scale

    def convert_to_viewport_rectangle(
        self, rect: tuple[float, float, float, float]
    ) -> tuple[float, float, float, float]:
        x1, y1 = self.convert_to_viewport_point(rect[0], rect[1])
        x2, y2 = self.convert_to_viewport_point(rect[2], rect[3])
        return x1, y1, x2, y2


@dataclass(frozen=True)
class PageIndex:
    """Searchable character streams for one page plus their back-maps.

    Every character position of ``normalized_text`` maps to the run that
    produced it (``char_to_run``) and to its offset inside that run's own
    normalized text (``char_to_offset``). The ``*_no_punct`` fields carry the
    same information for the punctuation-stripped stream.
    """

    page_index: int
    viewport: PageViewport
    runs: tuple[TextRun, ...]
    run_rects: tuple[ViewportRect, ...]
    normalized_text: str
    normalized_no_punct: str
    char_to_run: tuple[int, ...]
    char_to_offset: tuple[int, ...]
    char_to_run_no_punct: tuple[int, ...]
    char_to_offset_no_punct: tuple[int, ...]
    run_char_counts: tuple[int, ...]
    run_char_counts_no_punct: tuple[int, ...]


@dataclass(frozen=True)
class HighlightRect:
    """A rectangle as page-relative fractions in [0, 1], zoom independent."""

    kind: ClassVar[str] = "fraction"

    page_index: int
    x: float
    y: float
    w: float
    h: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "pageIndex": self.page_index,
            "x": self.x,
            "y": self.y,
            "w": self.w,
            "h": self.h,
        }


@dataclass(frozen=True)
class LegacyHighlightRect:
    """A rectangle in absolute viewport pixels at the historical scale."""

    kind: ClassVar[str] = "legacy"

    page_index: int
    left: float
    top: float
    width: float
    height: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "pageIndex": self.page_index,
            "left": self.left,
            "top": self.top,
            "width": self.width,
            "height": self.height,
        }


@dataclass
class MatchResult:
    """Rectangles covering a located string on one page."""

    rects: list[HighlightRect]
    matched_text: str
    page_index: int | None = None

    @property
    def found(self) -> bool:
        return self.page_index is not None


@dataclass
class Line:
    """A reading-order line assembled from same-row runs."""

    text: str
    y: float
    height: float
    font_size: float
    runs: list[TextRun] = field(default_factory=list)


@dataclass
class OutlineNode:
    """A chapter/heading entry of the outline tree."""

    id: str
    title: str
    page_index: int | None = None
    top_ratio: float | None = None
    children: list[OutlineNode] = field(default_factory=list)
    is_root: bool = False
    is_custom: bool = False
    parent_id: str | None = None
    order: float | None = None
    created_at: float | None = None


@dataclass(frozen=True)
class Destination:
    """An explicit bookmark jump target: ``[page, kind, *args]``.

    ``page`` is a page index or an opaque page reference that the outline
    source knows how to resolve.
    """

    page: Any
    kind: str
    args: tuple[float | None, ...] = ()


@dataclass
class BookmarkEntry:
    """One entry of a document's native outline."""

    title: str
    dest: Destination | str | None
    children: list[BookmarkEntry] = field(default_factory=list)


@dataclass
class PageInfo:
    """Raw per-page data the outline extractor consumes."""

    runs: list[TextRun]
    viewport: PageViewport | None


@dataclass
class Evidence:
    """Text a caller wants re-anchored onto live document geometry."""

    text: str
    page_index: int | None = None
    rects: list[HighlightRect] = field(default_factory=list)
    matched_text: str = ""


@dataclass
class RelatedSegment:
    """A candidate passage related to a user selection."""

    text: str
    page_index: int
    score: float = 0.0


@dataclass
class DocumentMetadata:
    """Bibliographic fields recovered from a document's first page."""

    title: str
    author: str
    summary: str
    keywords: list[str]
    published_date: str | None = None
    publisher: str | None = None


@dataclass
class ProcessingConfig:
    """Configuration for loading a PDF into the engine."""

    chunk_size: int = 50
    max_workers: int = 1
    verbose: bool = False
    viewport_scale: float = 1.0


@dataclass
class LoadSummary:
    """Summary of a completed load."""

    total_pages: int
    pages_indexed: int
    pages_skipped: int
    outline_source: str  # "bookmarks", "headings" or "empty"
    warnings: list[str]
    processing_time_seconds: float


@dataclass
class LoadedDocument:
    """Everything the engine holds for an open document."""

    document_id: str
    title: str
    page_indices: list[PageIndex]
    page_infos: list[PageInfo]
    outline: list[OutlineNode]


@dataclass
class PageRange:
    """A range of pages for chunked processing."""

    start: int  # inclusive
    end: int  # exclusive
