"""Group a page's raw text runs into reading-order lines.

Runs are ordered top-to-bottom (descending page-space y) and then
left-to-right. A run joins the most recent line when its vertical origin is
within a small tolerance of that line's anchor; otherwise it starts a new
line. Multi-column layouts are not specially handled.
"""

from __future__ import annotations

from collections.abc import Iterable

from pdf_evidence_locator.models import Line, TextRun
from pdf_evidence_locator.normalization import collapse_whitespace

# Vertical distance (page units) within which runs share a line.
_LINE_TOLERANCE = 2.0


def sort_runs_reading_order(
    runs: Iterable[TextRun], tolerance: float = _LINE_TOLERANCE
) -> list[TextRun]:
    """Return *runs* in reading order, flattened line by line."""
    ordered: list[TextRun] = []
    for group in _group_runs(runs, tolerance):
        ordered.extend(group)
    return ordered


def assemble_lines(
    runs: Iterable[TextRun], tolerance: float = _LINE_TOLERANCE
) -> list[Line]:
    """Assemble *runs* into lines; empty lines are dropped."""
    lines: list[Line] = []
    for group in _group_runs(runs, tolerance):
        text = collapse_whitespace(" ".join(run.text for run in group))
        if not text:
            continue
        lines.append(
            Line(
                text=text,
                y=group[0].y,
                height=max(_run_height(run) for run in group),
                font_size=max(run.font_size for run in group),
                runs=group,
            )
        )
    return lines


def _group_runs(runs: Iterable[TextRun], tolerance: float) -> list[list[TextRun]]:
    candidates = sorted(runs, key=lambda run: (-run.y, run.x))
    groups: list[list[TextRun]] = []
    anchor = 0.0
    for run in candidates:
        if groups and abs(anchor - run.y) <= tolerance:
            groups[-1].append(run)
            continue
        anchor = run.y
        groups.append([run])
    for group in groups:
        group.sort(key=lambda run: run.x)
    return groups


def _run_height(run: TextRun) -> float:
    return run.height if run.height > 0 else run.font_size
