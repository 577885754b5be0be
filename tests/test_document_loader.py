"""Integration tests for DocumentLoader.load() on generated PDFs."""

from __future__ import annotations

import logging
import os
import tempfile

import fitz
import pytest

from pdf_evidence_locator.chapter_resolver import (
    find_chapter_for_position,
    flatten_outline_by_position,
)
from pdf_evidence_locator.cross_page_matcher import match_across_pages
from pdf_evidence_locator.document_loader import DocumentLoader, document_fingerprint
from pdf_evidence_locator.highlight_rects import top_position
from pdf_evidence_locator.models import ProcessingConfig
from pdf_evidence_locator.page_cache import PageIndexCache


def _create_test_pdf(num_pages: int = 3, title: str | None = None) -> str:
    """Create a minimal valid PDF with the given number of pages and return its path."""
    path = tempfile.mktemp(suffix=".pdf")
    doc = fitz.open()
    for i in range(num_pages):
        page = doc.new_page(width=612, height=792)
        page.insert_text((72, 72), f"Page {i + 1} content", fontsize=12)
    if title:
        doc.set_metadata({"title": title})
    doc.save(path)
    doc.close()
    return path


def _create_headed_pdf() -> str:
    path = tempfile.mktemp(suffix=".pdf")
    doc = fitz.open()
    page = doc.new_page(width=612, height=792)
    page.insert_text((72, 100), "1 Introduction", fontsize=12)
    page.insert_text((72, 140), "Evidence locators map quotes to page geometry.", fontsize=12)
    page.insert_text((72, 300), "1.1 Motivation", fontsize=12)
    page.insert_text((72, 340), "Readers want to see where a claim comes from.", fontsize=12)
    page = doc.new_page(width=612, height=792)
    page.insert_text((72, 100), "2 Method", fontsize=12)
    page.insert_text((72, 140), "We normalize text and search page by page.", fontsize=12)
    doc.save(path)
    doc.close()
    return path


class TestDocumentLoaderValidation:
    def test_file_not_found_raises(self):
        with pytest.raises(FileNotFoundError, match="File not found"):
            DocumentLoader().load("/nonexistent/path.pdf", ProcessingConfig())

    def test_invalid_pdf_raises(self):
        path = tempfile.mktemp(suffix=".pdf")
        try:
            with open(path, "w") as f:
                f.write("this is not a pdf")
            with pytest.raises(RuntimeError, match="Not a valid PDF"):
                DocumentLoader().load(path, ProcessingConfig())
        finally:
            os.unlink(path)

    def test_invalid_chunk_size_raises(self):
        path = _create_test_pdf(1)
        try:
            with pytest.raises(ValueError, match="chunk_size must be positive"):
                DocumentLoader().load(path, ProcessingConfig(chunk_size=0))
        finally:
            os.unlink(path)


class TestDocumentLoaderLoad:
    def test_indexes_every_page(self):
        path = _create_test_pdf(3)
        try:
            document, summary = DocumentLoader().load(path, ProcessingConfig())
            assert summary.total_pages == 3
            assert summary.pages_indexed == 3
            assert summary.pages_skipped == 0
            assert summary.warnings == []
            assert summary.processing_time_seconds >= 0
            assert len(document.page_indices) == 3
            assert [index.page_index for index in document.page_indices] == [0, 1, 2]
            assert len(document.page_infos) == 3
        finally:
            os.unlink(path)

    def test_text_is_locatable(self):
        path = _create_test_pdf(3)
        try:
            document, _ = DocumentLoader().load(path, ProcessingConfig())
            result = match_across_pages(document.page_indices, "PAGE 2 content")
            assert result.page_index == 1
            assert len(result.rects) == 1
            rect = result.rects[0]
            assert rect.x == pytest.approx(72 / 612, abs=0.01)
            # Baseline 72pt below the top edge.
            assert 0.0 < rect.y < 72 / 792
            assert match_across_pages(document.page_indices, "page 9").page_index is None
        finally:
            os.unlink(path)

    def test_chunking_does_not_change_results(self):
        path = _create_test_pdf(5)
        try:
            whole, _ = DocumentLoader().load(path, ProcessingConfig(chunk_size=50))
            chunked, _ = DocumentLoader().load(path, ProcessingConfig(chunk_size=2))
            assert [i.normalized_text for i in whole.page_indices] == [
                i.normalized_text for i in chunked.page_indices
            ]
        finally:
            os.unlink(path)

    def test_thread_pool_indexing(self):
        path = _create_test_pdf(4)
        try:
            document, _ = DocumentLoader().load(path, ProcessingConfig(max_workers=3))
            assert [index.normalized_text for index in document.page_indices] == [
                f"page{i}content" for i in range(1, 5)
            ]
        finally:
            os.unlink(path)

    def test_no_outline_and_no_headings(self):
        path = _create_test_pdf(2)
        try:
            document, summary = DocumentLoader().load(path, ProcessingConfig())
            assert summary.outline_source == "empty"
            [root] = document.outline
            assert root.is_root
            assert root.children == []
        finally:
            os.unlink(path)

    def test_title_from_metadata_or_file_name(self):
        path = _create_test_pdf(1, title="A Titled Paper")
        try:
            document, _ = DocumentLoader().load(path, ProcessingConfig())
            assert document.title == "A Titled Paper"
            assert document.outline[0].title == "A Titled Paper"
        finally:
            os.unlink(path)

        path = _create_test_pdf(1)
        try:
            document, _ = DocumentLoader().load(path, ProcessingConfig())
            assert document.title == os.path.splitext(os.path.basename(path))[0]
        finally:
            os.unlink(path)

    def test_document_id_is_content_hash(self):
        path = _create_test_pdf(1)
        try:
            document, _ = DocumentLoader().load(path, ProcessingConfig())
            assert document.document_id == document_fingerprint(path)
            assert len(document.document_id) == 64
        finally:
            os.unlink(path)

    def test_heading_outline_and_chapter_lookup(self):
        path = _create_headed_pdf()
        try:
            document, summary = DocumentLoader().load(path, ProcessingConfig())
            assert summary.outline_source == "headings"
            [root] = document.outline
            assert [node.title for node in root.children] == ["1 Introduction", "2 Method"]
            assert [node.title for node in root.children[0].children] == ["1.1 Motivation"]

            flat = flatten_outline_by_position(document.outline)
            result = match_across_pages(document.page_indices, "where a claim comes from")
            chapter = find_chapter_for_position(flat, *top_position(result.rects))
            assert chapter.title == "1.1 Motivation"

            result = match_across_pages(document.page_indices, "search page by page")
            chapter = find_chapter_for_position(flat, *top_position(result.rects))
            assert chapter.title == "2 Method"
        finally:
            os.unlink(path)

    def test_bookmark_outline(self):
        path = _create_test_pdf(3)
        doc = fitz.open(path)
        doc.set_toc([[1, "Part One", 1], [1, "Part Two", 3]])
        doc.saveIncr()
        doc.close()
        try:
            document, summary = DocumentLoader().load(path, ProcessingConfig())
            assert summary.outline_source == "bookmarks"
            [root] = document.outline
            assert [(node.title, node.page_index) for node in root.children] == [
                ("Part One", 0),
                ("Part Two", 2),
            ]
        finally:
            os.unlink(path)

    def test_cache_is_filled(self):
        path = _create_test_pdf(2)
        cache = PageIndexCache()
        try:
            document, _ = DocumentLoader(cache=cache).load(path, ProcessingConfig())
            assert len(cache) == 2
            assert cache.get(document.document_id, 1) is document.page_indices[1]
        finally:
            os.unlink(path)


class TestDocumentLoaderLogging:
    def test_verbose_logs_pages(self, caplog):
        path = _create_test_pdf(2)
        try:
            with caplog.at_level(logging.INFO, logger="pdf_evidence_locator.document_loader"):
                DocumentLoader().load(path, ProcessingConfig(verbose=True))
            assert "Page 1: classification=" in caplog.text
            assert "Outline from empty" in caplog.text
        finally:
            os.unlink(path)

    def test_unreadable_page_is_skipped(self, mocker):
        path = _create_test_pdf(3)
        original = fitz.Document.load_page

        def flaky(doc, page_id=0):
            if page_id == 1:
                raise RuntimeError("damaged page")
            return original(doc, page_id)

        mocker.patch.object(fitz.Document, "load_page", flaky)
        try:
            document, summary = DocumentLoader().load(path, ProcessingConfig())
            assert summary.pages_skipped == 1
            assert summary.pages_indexed == 2
            assert any("page 2" in warning for warning in summary.warnings)
            assert len(document.page_indices) == 3
            assert document.page_indices[1].normalized_text == ""
            assert match_across_pages(document.page_indices, "page 3 content").page_index == 2
        finally:
            os.unlink(path)

    def test_unreadable_page_is_not_cached(self, mocker):
        path = _create_test_pdf(3)
        original = fitz.Document.load_page

        def flaky(doc, page_id=0):
            if page_id == 1:
                raise RuntimeError("damaged page")
            return original(doc, page_id)

        cache = PageIndexCache()
        mocker.patch.object(fitz.Document, "load_page", flaky)
        try:
            document, _ = DocumentLoader(cache=cache).load(path, ProcessingConfig())
            assert len(cache) == 2
            assert (document.document_id, 1) not in cache

            mocker.stopall()
            document, summary = DocumentLoader(cache=cache).load(path, ProcessingConfig())
            assert summary.pages_skipped == 0
            assert document.page_indices[1].normalized_text == "page2content"
            assert len(cache) == 3
        finally:
            os.unlink(path)

    def test_hash_failure_does_not_open_document(self, mocker):
        path = _create_test_pdf(1)
        mocker.patch(
            "pdf_evidence_locator.document_loader.document_fingerprint",
            side_effect=OSError("read error"),
        )
        opener = mocker.patch("pdf_evidence_locator.document_loader.open_pdf")
        try:
            with pytest.raises(OSError, match="read error"):
                DocumentLoader().load(path, ProcessingConfig())
            opener.assert_not_called()
        finally:
            os.unlink(path)
