#!/usr/bin/env python3
"""Example usage of the PDF evidence locator library."""

from pdf_evidence_locator.chapter_resolver import (
    find_chapter_for_position,
    flatten_outline_by_position,
)
from pdf_evidence_locator.cross_page_matcher import match_across_pages
from pdf_evidence_locator.document_loader import DocumentLoader
from pdf_evidence_locator.highlight_rects import top_position
from pdf_evidence_locator.metadata_extractor import extract_metadata
from pdf_evidence_locator.models import ProcessingConfig
from pdf_evidence_locator.page_cache import PageIndexCache


def locate_quotes(pdf_path: str, quotes: list[str]) -> None:
    """Find each quote in the PDF and print its page, chapter and rectangles."""
    config = ProcessingConfig(chunk_size=50, max_workers=4, verbose=True)

    # One cache can be shared across documents
    loader = DocumentLoader(cache=PageIndexCache(max_entries=512))
    document, summary = loader.load(pdf_path, config)

    print(f"\nLoad Summary:")
    print(f"  Total pages: {summary.total_pages}")
    print(f"  Indexed: {summary.pages_indexed}")
    print(f"  Skipped: {summary.pages_skipped}")
    print(f"  Outline from: {summary.outline_source}")
    print(f"  Time: {summary.processing_time_seconds:.2f}s")

    flat = flatten_outline_by_position(document.outline)
    for quote in quotes:
        match = match_across_pages(document.page_indices, quote)
        if match.page_index is None:
            print(f"\n{quote[:60]!r}: not found")
            continue
        position = top_position(match.rects)
        chapter = find_chapter_for_position(flat, *position) if position else None
        print(f"\n{quote[:60]!r}: page {match.page_index + 1}")
        if chapter is not None:
            print(f"  Chapter: {chapter.title}")
        for rect in match.rects:
            print(f"  Rect: x={rect.x:.3f} y={rect.y:.3f} w={rect.w:.3f} h={rect.h:.3f}")


def show_metadata(pdf_path: str) -> None:
    """Print the title, authors and abstract read from the first page."""
    document, _ = DocumentLoader().load(pdf_path, ProcessingConfig())
    runs = document.page_infos[0].runs if document.page_infos else []
    meta = extract_metadata(runs, document.title)
    print(f"\nTitle: {meta.title}")
    print(f"Author: {meta.author}")
    print(f"Summary: {meta.summary[:300]}")


def main():
    """Example usage."""
    # Example 1: Locate quoted evidence
    print("Example 1: Locating quotes...")
    # locate_quotes("paper.pdf", ["the proposed method outperforms"])

    # Example 2: First-page metadata
    print("\nExample 2: Reading metadata...")
    # show_metadata("paper.pdf")

    print("\nUncomment the function calls above and provide PDF paths to run.")


if __name__ == "__main__":
    main()
