"""CLI interface for the PDF evidence locator."""

from __future__ import annotations

import json
import logging

import click

from pdf_evidence_locator.chapter_resolver import (
    find_chapter_for_position,
    flatten_outline_by_position,
)
from pdf_evidence_locator.cross_page_matcher import match_across_pages
from pdf_evidence_locator.document_loader import DocumentLoader
from pdf_evidence_locator.highlight_rects import top_position
from pdf_evidence_locator.line_assembler import assemble_lines
from pdf_evidence_locator.metadata_extractor import extract_metadata
from pdf_evidence_locator.models import LoadedDocument, OutlineNode, ProcessingConfig
from pdf_evidence_locator.related_segments import (
    MAX_RELATED_SEGMENTS,
    find_related_segments,
    match_related_segments,
    segment_pages,
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load(pdf_path: str, chunk_size: int, verbose: bool) -> LoadedDocument:
    """Load *pdf_path*, turning loader errors into ``Error:`` lines and exit 1."""
    _configure_logging(verbose)
    config = ProcessingConfig(chunk_size=chunk_size, verbose=verbose)
    try:
        document, summary = DocumentLoader().load(pdf_path, config)
    except (FileNotFoundError, RuntimeError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)
    if verbose:
        click.echo(
            f"Loaded {summary.total_pages} page(s) in "
            f"{summary.processing_time_seconds:.2f}s "
            f"(outline from {summary.outline_source}, "
            f"{summary.pages_skipped} skipped)",
            err=True,
        )
    return document


def _format_outline(nodes: list[OutlineNode], depth: int = 0) -> list[str]:
    lines: list[str] = []
    for node in nodes:
        page = f" (p. {node.page_index + 1})" if node.page_index is not None else ""
        lines.append(f"{'  ' * depth}{node.title}{page}")
        lines.extend(_format_outline(node.children, depth + 1))
    return lines


def _page_texts(document: LoadedDocument) -> list[str]:
    return [
        "\n".join(line.text for line in assemble_lines(info.runs))
        for info in document.page_infos
    ]


_chunk_size_option = click.option(
    "--chunk-size",
    default=50,
    type=int,
    show_default=True,
    help="Number of pages per processing chunk.",
)
_verbose_option = click.option(
    "-v", "--verbose", is_flag=True, default=False, help="Enable detailed progress logging."
)


@click.group()
def cli() -> None:
    """PDF evidence locator: find text, chapters and metadata in PDFs."""


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=False))
@_chunk_size_option
@_verbose_option
def outline(pdf_path: str, chunk_size: int, verbose: bool) -> None:
    """Print the chapter tree of PDF_PATH."""
    document = _load(pdf_path, chunk_size, verbose)
    for line in _format_outline(document.outline):
        click.echo(line)


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=False))
@click.argument("queries", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit results as JSON.")
@_chunk_size_option
@_verbose_option
def locate(
    pdf_path: str, queries: tuple[str, ...], as_json: bool, chunk_size: int, verbose: bool
) -> None:
    """Locate each QUERY in PDF_PATH and report its page and chapter.

    Queries are matched after normalization, so case, whitespace, ligatures
    and (as a fallback) punctuation do not matter.
    """
    document = _load(pdf_path, chunk_size, verbose)
    flat = flatten_outline_by_position(document.outline)

    results = []
    for query in queries:
        match = match_across_pages(document.page_indices, query)
        chapter = None
        position = top_position(match.rects)
        if position is not None:
            node = find_chapter_for_position(flat, position[0], position[1])
            chapter = node.title if node is not None else None
        results.append(
            {
                "query": query,
                "pageIndex": match.page_index,
                "matchedText": match.matched_text,
                "chapter": chapter,
                "rects": [rect.to_dict() for rect in match.rects],
            }
        )

    if as_json:
        click.echo(json.dumps(results, ensure_ascii=False, indent=2))
        return

    for result in results:
        if result["pageIndex"] is None:
            click.echo(f'"{result["query"]}": not found')
            continue
        click.echo(
            f'"{result["query"]}": page {result["pageIndex"] + 1}'
            + (f', chapter "{result["chapter"]}"' if result["chapter"] else "")
        )
        for rect in result["rects"]:
            click.echo(
                f"  x={rect['x']:.4f} y={rect['y']:.4f} w={rect['w']:.4f} h={rect['h']:.4f}"
            )


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=False))
@click.option("--fallback-title", default=None, help="Title used when none is detected.")
@_chunk_size_option
@_verbose_option
def metadata(
    pdf_path: str, fallback_title: str | None, chunk_size: int, verbose: bool
) -> None:
    """Print title, authors, abstract and other first-page metadata."""
    document = _load(pdf_path, chunk_size, verbose)
    runs = document.page_infos[0].runs if document.page_infos else []
    meta = extract_metadata(runs, fallback_title or document.title)
    click.echo(f"Title:     {meta.title}")
    click.echo(f"Author:    {meta.author}")
    if meta.published_date:
        click.echo(f"Published: {meta.published_date}")
    if meta.publisher:
        click.echo(f"Publisher: {meta.publisher}")
    if meta.keywords:
        click.echo(f"Keywords:  {', '.join(meta.keywords)}")
    click.echo(f"Summary:   {meta.summary}")


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=False))
@click.argument("selection")
@click.option(
    "--limit",
    default=MAX_RELATED_SEGMENTS,
    type=click.IntRange(min=1),
    show_default=True,
    help="Maximum number of related passages.",
)
@_chunk_size_option
@_verbose_option
def related(
    pdf_path: str, selection: str, limit: int, chunk_size: int, verbose: bool
) -> None:
    """Print passages of PDF_PATH related to SELECTION."""
    document = _load(pdf_path, chunk_size, verbose)
    segments = find_related_segments(selection, segment_pages(_page_texts(document)), limit)
    if not segments:
        click.echo("No related passages found.")
        return
    located = match_related_segments(segments, document.page_indices)
    for segment, evidence in zip(segments, located):
        page = (
            f"p. {evidence.page_index + 1}" if evidence.page_index is not None else "p. ?"
        )
        excerpt = segment.text[:200].replace("\n", " ")
        click.echo(f"[{page}] ({segment.score:.2f}) {excerpt}")
