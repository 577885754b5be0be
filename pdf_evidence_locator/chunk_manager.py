"""Split a document's pages into chunks processed one after another."""

from __future__ import annotations

import os
from collections.abc import Iterator

import fitz

from pdf_evidence_locator.models import PageRange


def open_pdf(pdf_path: str) -> fitz.Document:
    """Open *pdf_path* with PyMuPDF.

    Raises:
        FileNotFoundError: If the file does not exist.
        RuntimeError: If PyMuPDF cannot read the file as a PDF.
    """
    if not os.path.exists(pdf_path):
        raise FileNotFoundError(f"File not found: {pdf_path}")
    try:
        doc = fitz.open(pdf_path)
    except Exception as exc:
        raise RuntimeError(f"Not a valid PDF: {pdf_path}") from exc
    if not doc.is_pdf:
        doc.close()
        raise RuntimeError(f"Not a valid PDF: {pdf_path}")
    return doc


def get_page_count(pdf_path: str) -> int:
    doc = open_pdf(pdf_path)
    try:
        return doc.page_count
    finally:
        doc.close()


def iter_page_ranges(total_pages: int, chunk_size: int) -> Iterator[PageRange]:
    """Yield consecutive, non-overlapping ranges covering ``[0, total_pages)``.

    Raises:
        ValueError: If chunk_size is not a positive integer.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    for start in range(0, total_pages, chunk_size):
        yield PageRange(start=start, end=min(start + chunk_size, total_pages))


class ChunkManager:
    """Splits an open document into page-range chunks."""

    def iter_chunks(self, doc: fitz.Document, chunk_size: int) -> Iterator[PageRange]:
        return iter_page_ranges(doc.page_count, chunk_size)
