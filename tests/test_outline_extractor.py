"""Tests for chapter tree extraction from bookmarks and from heading lines."""

from __future__ import annotations

from typing import Any

import pytest

from pdf_evidence_locator.models import (
    BookmarkEntry,
    Destination,
    PageInfo,
    PageViewport,
    TextRun,
)
from pdf_evidence_locator.outline_extractor import (
    UNTITLED_SECTION,
    build_fallback_outline,
    extract_headings,
    extract_outline,
    heading_key,
    heading_level,
    median,
    resolve_destination,
)

_VIEWPORT = PageViewport(page_width=612, page_height=792)


class FakeOutlineSource:
    """In-memory stand-in for a document with a native outline."""

    def __init__(
        self,
        outline: list[BookmarkEntry] | None = None,
        named: dict[str, Destination] | None = None,
        refs: dict[Any, int] | None = None,
        page_count: int = 3,
    ) -> None:
        self.outline = outline or []
        self.named = named or {}
        self.refs = refs or {}
        self.page_count = page_count
        self.viewport_calls = 0

    def get_outline(self) -> list[BookmarkEntry]:
        return self.outline

    def get_destination(self, name: str) -> Destination | None:
        return self.named.get(name)

    def get_page_index(self, ref: Any) -> int | None:
        if ref == "boom":
            raise KeyError(ref)
        return self.refs.get(ref)

    def get_viewport(self, page_index: int) -> PageViewport | None:
        self.viewport_calls += 1
        return _VIEWPORT if page_index < self.page_count else None


def _line(text: str, y: float, height: float = 12.0, x: float = 72.0) -> TextRun:
    return TextRun(text=text, x=x, y=y, width=6 * len(text), height=height, font_size=height)


def _page(*runs: TextRun) -> PageInfo:
    return PageInfo(runs=list(runs), viewport=_VIEWPORT)


def _titles(nodes) -> list[str]:
    return [node.title for node in nodes]


# ---------------------------------------------------------------------------
# Destination resolution
# ---------------------------------------------------------------------------


class TestResolveDestination:
    def test_xyz_uses_second_argument(self):
        source = FakeOutlineSource()
        dest = Destination(page=1, kind="XYZ", args=(0, 594, None))
        assert resolve_destination(source, dest, {}) == (1, pytest.approx(0.25))

    def test_fith_uses_first_argument(self):
        source = FakeOutlineSource()
        dest = Destination(page=0, kind="FitH", args=(396,))
        assert resolve_destination(source, dest, {}) == (0, pytest.approx(0.5))

    def test_fitbh_uses_first_argument(self):
        source = FakeOutlineSource()
        dest = Destination(page=0, kind="FitBH", args=(792,))
        assert resolve_destination(source, dest, {}) == (0, pytest.approx(0.0))

    def test_fit_has_no_vertical_position(self):
        source = FakeOutlineSource()
        assert resolve_destination(source, Destination(page=2, kind="Fit"), {}) == (2, None)

    def test_xyz_with_null_top(self):
        source = FakeOutlineSource()
        dest = Destination(page=0, kind="XYZ", args=(0, None, None))
        assert resolve_destination(source, dest, {}) == (0, None)

    def test_named_destination(self):
        source = FakeOutlineSource(named={"sec2": Destination(page=1, kind="FitH", args=(792,))})
        assert resolve_destination(source, "sec2", {}) == (1, 0.0)

    def test_unknown_name(self):
        assert resolve_destination(FakeOutlineSource(), "missing", {}) == (None, None)

    def test_page_reference_lookup(self):
        source = FakeOutlineSource(refs={"ref-7": 2})
        dest = Destination(page="ref-7", kind="Fit")
        assert resolve_destination(source, dest, {}) == (2, None)

    def test_unresolvable_reference(self):
        source = FakeOutlineSource()
        assert resolve_destination(source, Destination(page="nope", kind="Fit"), {}) == (None, None)

    def test_collaborator_error_gives_null_position(self):
        source = FakeOutlineSource()
        assert resolve_destination(source, Destination(page="boom", kind="Fit"), {}) == (None, None)

    def test_empty_target(self):
        assert resolve_destination(FakeOutlineSource(), None, {}) == (None, None)
        assert resolve_destination(FakeOutlineSource(), "", {}) == (None, None)

    def test_missing_viewport_keeps_page(self):
        source = FakeOutlineSource(page_count=1)
        dest = Destination(page=5, kind="XYZ", args=(0, 100, None))
        assert resolve_destination(source, dest, {}) == (5, None)

    def test_viewports_are_memoized(self):
        source = FakeOutlineSource()
        viewports: dict[int, PageViewport] = {}
        dest = Destination(page=0, kind="XYZ", args=(0, 500, None))
        resolve_destination(source, dest, viewports)
        resolve_destination(source, dest, viewports)
        assert source.viewport_calls == 1
        assert viewports == {0: _VIEWPORT}

    def test_ratio_is_clamped(self):
        source = FakeOutlineSource()
        dest = Destination(page=0, kind="XYZ", args=(0, 2000, None))
        assert resolve_destination(source, dest, {}) == (0, 0.0)


# ---------------------------------------------------------------------------
# Bookmark path
# ---------------------------------------------------------------------------


class TestBookmarkOutline:
    def _source(self) -> FakeOutlineSource:
        return FakeOutlineSource(
            outline=[
                BookmarkEntry(
                    title="  Introduction ",
                    dest=Destination(page=0, kind="XYZ", args=(0, 700, None)),
                    children=[
                        BookmarkEntry(
                            title="Background",
                            dest=Destination(page=0, kind="FitH", args=(400,)),
                        ),
                    ],
                ),
                BookmarkEntry(
                    title="",
                    dest=None,
                    children=[BookmarkEntry(title="Orphan child", dest="nowhere")],
                ),
                BookmarkEntry(title="   ", dest=Destination(page=1, kind="Fit")),
                BookmarkEntry(title="Methods", dest=Destination(page=1, kind="Fit")),
            ]
        )

    def test_mirrors_nesting_and_ids(self):
        children, source = extract_headings(self._source(), [])
        assert source == "bookmarks"
        assert _titles(children) == ["Introduction", UNTITLED_SECTION, "Methods"]
        assert [node.id for node in children] == ["0", "1", "3"]
        assert children[0].children[0].id == "0.0"
        assert children[0].children[0].title == "Background"

    def test_positions_resolved(self):
        children, _ = extract_headings(self._source(), [])
        intro = children[0]
        assert intro.page_index == 0
        assert intro.top_ratio == pytest.approx(92 / 792)
        assert intro.children[0].top_ratio == pytest.approx(392 / 792)
        assert children[2].page_index == 1
        assert children[2].top_ratio is None

    def test_unresolvable_entries_are_kept_without_position(self):
        children, _ = extract_headings(self._source(), [])
        orphan = children[1].children[0]
        assert orphan.title == "Orphan child"
        assert orphan.page_index is None
        assert orphan.top_ratio is None

    def test_wrapped_under_root(self):
        [root] = extract_outline(self._source(), [], root_id="doc", root_title="Paper")
        assert root.is_root
        assert root.id == "doc"
        assert root.title == "Paper"
        assert root.page_index == 0
        assert root.top_ratio == 0.0
        assert len(root.children) == 3

    def test_outline_errors_fall_back_to_headings(self):
        class Broken(FakeOutlineSource):
            def get_outline(self):
                raise RuntimeError("corrupt outline")

        pages = [_page(_line("1 Introduction", 700), _line("body text", 600))]
        children, source = extract_headings(Broken(), pages)
        assert source == "headings"
        assert _titles(children) == ["1 Introduction"]

    def test_empty_outline_falls_back(self):
        pages = [_page(_line("plain body text", 600))]
        children, source = extract_headings(FakeOutlineSource(), pages)
        assert children == []
        assert source == "empty"


# ---------------------------------------------------------------------------
# Heading fallback path
# ---------------------------------------------------------------------------


class TestHeadingLevel:
    @pytest.mark.parametrize(
        ("text", "level"),
        [
            ("3 Method", 1),
            ("3. Method", 1),
            ("3.2 Related Work", 2),
            ("1.2.3 Deep", 3),
            ("1.2.3.4.5 Deeper", 4),
            ("第一章 引言", 1),
            ("第3章 方法", 1),
            ("第二节 背景", 2),
            ("第一部分 总论", 1),
            ("Method", None),
            ("3Method", None),
        ],
    )
    def test_levels(self, text, level):
        assert heading_level(text) == level


class TestHelpers:
    def test_heading_key_ignores_digits_case_and_punctuation(self):
        assert heading_key("Journal of Things, Vol. 12") == heading_key("journal of things vol 13")

    def test_median(self):
        assert median([]) == 0.0
        assert median([3, 1, 2]) == 2
        assert median([4, 1, 2, 3]) == 2.5


class TestFallbackOutline:
    def test_numbered_headings_nest_by_depth(self):
        pages = [
            _page(
                _line("3 Method", 700),
                _line("Some body text about methods", 680),
                _line("3.2 Related Work", 600),
                _line("More body text", 580),
            ),
            _page(_line("4 Results", 700), _line("Closing body text", 680)),
        ]
        tree = build_fallback_outline(pages)
        assert _titles(tree) == ["3 Method", "4 Results"]
        assert _titles(tree[0].children) == ["3.2 Related Work"]
        assert tree[1].children == []

    def test_ids_and_positions(self):
        pages = [_page(_line("1 Introduction", 700), _line("body", 600))]
        [node] = build_fallback_outline(pages)
        assert node.id == "h-0-0"
        assert node.page_index == 0
        # Top of a 12pt line whose origin is at y=700.
        assert node.top_ratio == pytest.approx(80 / 792)

    def test_large_lines_are_headings(self):
        pages = [
            _page(
                _line("Overview of the System", 700, height=18),
                _line("body line one", 680),
                _line("body line two", 660),
                _line("body line three", 640),
            )
        ]
        assert _titles(build_fallback_outline(pages)) == ["Overview of the System"]

    def test_slightly_larger_lines_are_not_headings(self):
        pages = [
            _page(
                _line("Not quite a heading", 700, height=14),
                _line("body line one", 680),
                _line("body line two", 660),
            )
        ]
        assert build_fallback_outline(pages) == []

    def test_length_bounds(self):
        pages = [_page(_line("1 A", 700), _line("2 " + "x" * 130, 650), _line("body", 600))]
        assert build_fallback_outline(pages) == []

    def test_footer_zone_is_ignored(self):
        pages = [_page(_line("12 Page footer", 40), _line("body", 600))]
        assert build_fallback_outline(pages) == []

    def test_running_headers_are_filtered(self):
        pages = [
            _page(
                _line(f"Journal of Things {n}", 760, height=18),
                _line("body line one", 600),
                _line("body line two", 580),
                _line("body line three", 560),
            )
            for n in range(5)
        ]
        pages[0].runs.append(_line("Introduction Section", 650, height=18))
        assert _titles(build_fallback_outline(pages)) == ["Introduction Section"]

    def test_rare_header_zone_headings_survive(self):
        pages = [
            _page(_line("1 Introduction", 760), _line("body", 600)),
            _page(_line("body only", 600)),
            _page(_line("body only", 600)),
            _page(_line("body only", 600)),
        ]
        assert _titles(build_fallback_outline(pages)) == ["1 Introduction"]

    def test_consecutive_duplicates_collapse(self):
        pages = [
            _page(_line("1 Introduction", 700), _line("1 Introduction", 650), _line("body", 600))
        ]
        assert _titles(build_fallback_outline(pages)) == ["1 Introduction"]

    def test_cjk_headings(self):
        pages = [
            _page(
                _line("第一章 引言", 700),
                _line("正文内容", 680),
                _line("第一节 背景", 600),
            )
        ]
        tree = build_fallback_outline(pages)
        assert _titles(tree) == ["第一章 引言"]
        assert _titles(tree[0].children) == ["第一节 背景"]

    def test_no_pages(self):
        assert build_fallback_outline([]) == []

    def test_extract_outline_without_document(self):
        [root] = extract_outline(None, [])
        assert root.is_root
        assert root.children == []
