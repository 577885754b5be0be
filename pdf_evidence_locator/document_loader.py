"""Document loader orchestrating extraction, indexing and outline building."""

from __future__ import annotations

import hashlib
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor

import fitz  # PyMuPDF

from pdf_evidence_locator.chunk_manager import ChunkManager, open_pdf
from pdf_evidence_locator.models import (
    LoadedDocument,
    LoadSummary,
    PageClassification,
    PageIndex,
    PageInfo,
    PageViewport,
    ProcessingConfig,
)
from pdf_evidence_locator.outline_extractor import extract_headings, wrap_in_root
from pdf_evidence_locator.page_cache import PageIndexCache
from pdf_evidence_locator.page_classifier import PageClassifier
from pdf_evidence_locator.page_indexer import build_page_index
from pdf_evidence_locator.pdf_source import (
    FitzOutlineSource,
    extract_text_runs,
    page_has_images,
    page_viewport,
)

logger = logging.getLogger(__name__)

_HASH_BLOCK_SIZE = 1 << 20


def document_fingerprint(pdf_path: str) -> str:
    """SHA256 of the file contents, used as the document id."""
    digest = hashlib.sha256()
    with open(pdf_path, "rb") as handle:
        for block in iter(lambda: handle.read(_HASH_BLOCK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def _document_title(doc: fitz.Document, pdf_path: str) -> str:
    metadata = doc.metadata or {}
    title = (metadata.get("title") or "").strip()
    if title:
        return title
    return os.path.splitext(os.path.basename(pdf_path))[0]


class DocumentLoader:
    """Loads a PDF into page indices and a chapter tree.

    Pages are read sequentially in chunks because PyMuPDF documents are not
    thread-safe. Index building for a chunk may run on a thread pool.
    """

    def __init__(self, cache: PageIndexCache | None = None) -> None:
        self.chunk_manager = ChunkManager()
        self.page_classifier = PageClassifier()
        self.cache = cache

    def load(
        self, pdf_path: str, config: ProcessingConfig
    ) -> tuple[LoadedDocument, LoadSummary]:
        """Load a PDF file.

        Args:
            pdf_path: Path to the PDF file.
            config: Processing configuration.

        Returns:
            A tuple of (LoadedDocument, LoadSummary).

        Raises:
            FileNotFoundError: If the file does not exist.
            RuntimeError: If the file is not a valid PDF.
            ValueError: If ``config.chunk_size`` is not positive.
        """
        if config.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {config.chunk_size}")

        start_time = time.monotonic()
        if not os.path.exists(pdf_path):
            raise FileNotFoundError(f"File not found: {pdf_path}")
        document_id = document_fingerprint(pdf_path)
        doc = open_pdf(pdf_path)

        warnings: list[str] = []
        page_infos: list[PageInfo] = []
        page_indices: list[PageIndex] = []
        pages_skipped = 0

        try:
            total_pages = doc.page_count
            for page_range in self.chunk_manager.iter_chunks(doc, config.chunk_size):
                if config.verbose:
                    logger.info(
                        "Reading pages %d-%d of %d",
                        page_range.start + 1,
                        page_range.end,
                        total_pages,
                    )
                chunk_infos: list[PageInfo] = []
                chunk_images: list[bool] = []
                for page_num in range(page_range.start, page_range.end):
                    try:
                        page = doc.load_page(page_num)
                        info = PageInfo(
                            runs=extract_text_runs(page),
                            viewport=page_viewport(page, config.viewport_scale),
                        )
                        has_images = page_has_images(page)
                    except Exception as exc:
                        warn_msg = f"Corrupted/unreadable page {page_num + 1}: {exc}"
                        warnings.append(warn_msg)
                        logger.warning(warn_msg)
                        pages_skipped += 1
                        info = PageInfo(runs=[], viewport=None)
                        has_images = False
                    chunk_infos.append(info)
                    chunk_images.append(has_images)

                chunk_indices = self._index_chunk(
                    document_id, page_range.start, chunk_infos, config
                )
                for index, info, has_images in zip(chunk_indices, chunk_infos, chunk_images):
                    if info.viewport is None:
                        continue
                    classification = self.page_classifier.classify(
                        index.run_rects, info.viewport
                    )
                    if config.verbose:
                        logger.info(
                            "Page %d: classification=%s, runs=%d",
                            index.page_index + 1,
                            classification.value,
                            len(index.runs),
                        )
                    # Only image-bearing pages are reported.
                    if classification == PageClassification.SCANNED and has_images:
                        warn_msg = (
                            f"Page {index.page_index + 1} looks image-only; "
                            "its text cannot be located"
                        )
                        warnings.append(warn_msg)
                        logger.warning(warn_msg)

                page_indices.extend(chunk_indices)
                page_infos.extend(chunk_infos)

            children, outline_source = extract_headings(
                FitzOutlineSource(doc, config.viewport_scale), page_infos
            )
            title = _document_title(doc, pdf_path)
        finally:
            doc.close()

        outline = wrap_in_root(children, root_title=title)
        if config.verbose:
            logger.info(
                "Outline from %s: %d top-level chapter(s)", outline_source, len(children)
            )

        document = LoadedDocument(
            document_id=document_id,
            title=title,
            page_indices=page_indices,
            page_infos=page_infos,
            outline=outline,
        )
        summary = LoadSummary(
            total_pages=total_pages,
            pages_indexed=total_pages - pages_skipped,
            pages_skipped=pages_skipped,
            outline_source=outline_source,
            warnings=warnings,
            processing_time_seconds=time.monotonic() - start_time,
        )

        if warnings:
            logger.warning("Loading completed with %d warning(s):", len(warnings))
            for w in warnings:
                logger.warning("  %s", w)

        return document, summary

    def _index_chunk(
        self,
        document_id: str,
        first_page: int,
        infos: list[PageInfo],
        config: ProcessingConfig,
    ) -> list[PageIndex]:
        def _build(offset: int) -> PageIndex:
            page_num = first_page + offset
            info = infos[offset]
            viewport = info.viewport or PageViewport(0.0, 0.0, config.viewport_scale)

            def _factory() -> PageIndex:
                return build_page_index(info.runs, viewport, page_num)

            # Unreadable pages are not cached.
            if self.cache is None or info.viewport is None:
                return _factory()
            return self.cache.get_or_build(document_id, page_num, _factory)

        if config.max_workers > 1 and len(infos) > 1 and self.cache is None:
            with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
                return list(executor.map(_build, range(len(infos))))
        return [_build(offset) for offset in range(len(infos))]
