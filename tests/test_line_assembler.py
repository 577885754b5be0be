"""Tests for reading-order line assembly."""

from __future__ import annotations

from pdf_evidence_locator.line_assembler import assemble_lines, sort_runs_reading_order
from pdf_evidence_locator.models import TextRun


def _run(text: str, x: float, y: float, width: float = 30.0, height: float = 12.0) -> TextRun:
    return TextRun(text=text, x=x, y=y, width=width, height=height, font_size=height)


class TestAssembleLines:
    def test_single_line_joins_runs_with_spaces(self):
        runs = [
            _run("Neural", 72, 700),
            _run("networks", 112, 700),
            _run("generalize", 164, 700),
            _run("well", 228, 700),
        ]
        lines = assemble_lines(runs)
        assert [line.text for line in lines] == ["Neural networks generalize well"]

    def test_runs_sorted_left_to_right_within_line(self):
        runs = [_run("world", 150, 700), _run("hello", 72, 700)]
        assert assemble_lines(runs)[0].text == "hello world"

    def test_lines_ordered_top_to_bottom(self):
        runs = [_run("bottom", 72, 100), _run("top", 72, 700), _run("middle", 72, 400)]
        assert [line.text for line in assemble_lines(runs)] == ["top", "middle", "bottom"]

    def test_small_baseline_jitter_stays_on_one_line(self):
        runs = [_run("x", 72, 700), _run("squared", 90, 701.5)]
        assert len(assemble_lines(runs)) == 1

    def test_gap_beyond_tolerance_starts_new_line(self):
        runs = [_run("first", 72, 700), _run("second", 72, 696)]
        assert len(assemble_lines(runs)) == 2

    def test_custom_tolerance(self):
        runs = [_run("first", 72, 700), _run("second", 72, 696)]
        assert len(assemble_lines(runs, tolerance=5.0)) == 1

    def test_whitespace_only_lines_are_dropped(self):
        runs = [_run("   ", 72, 700), _run("text", 72, 600)]
        assert [line.text for line in assemble_lines(runs)] == ["text"]

    def test_line_height_is_tallest_run(self):
        runs = [_run("Big", 72, 700, height=18), _run("small", 120, 700, height=10)]
        line = assemble_lines(runs)[0]
        assert line.height == 18
        assert line.font_size == 18

    def test_zero_height_falls_back_to_font_size(self):
        run = TextRun(text="text", x=72, y=700, width=30, height=0, font_size=11)
        assert assemble_lines([run])[0].height == 11

    def test_empty_input(self):
        assert assemble_lines([]) == []


class TestSortRunsReadingOrder:
    def test_flattens_lines_in_reading_order(self):
        runs = [
            _run("c", 72, 600),
            _run("b", 150, 700),
            _run("a", 72, 700),
        ]
        assert [run.text for run in sort_runs_reading_order(runs)] == ["a", "b", "c"]
