from __future__ import annotations

import math
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from searchable_scan.geometry import Extent, quad_from_box
from searchable_scan.models import Line, Word
from searchable_scan.spacing import SpacingConfig, SpacingDecision, classify, classify_extents, classify_lines, render


def _word(text: str, left: float, top: float = 0, width: float = 50, height: float = 20) -> Word:
    return Word(text=text, quad=quad_from_box(left, top, width, height))


def _line(top: float, height: float = 20) -> Line:
    return Line(words=(_word("x", 0, top, 50, height),), quad=quad_from_box(0, top, 300, height))


def test_hello_world_boundary_gap_is_normal_space():
    hello = Word("Hello", quad=(0, 0, 50, 0, 50, 20, 0, 20))
    world = Word("World", quad=(60, 0, 110, 0, 110, 20, 60, 20))

    assert classify(hello, world) is SpacingDecision.NORMAL_SPACE


@pytest.mark.parametrize("gap", [-30, -0.5])
def test_overlapping_words_get_no_space(gap):
    assert classify(_word("a", 0), _word("b", 50 + gap)) is SpacingDecision.NONE


@pytest.mark.parametrize("gap", [3.5, 6, 9.99, 10])
def test_gaps_up_to_word_threshold_are_normal_space(gap):
    assert classify(_word("a", 0), _word("b", 50 + gap)) is SpacingDecision.NORMAL_SPACE


@pytest.mark.parametrize(
    ("gap", "expected"),
    [
        (2, SpacingDecision.NONE),
        (20, SpacingDecision.WIDE_SPACE),
        (30, SpacingDecision.TAB_BREAK),
        (55, SpacingDecision.COLUMN_BREAK),
    ],
)
def test_same_line_gap_classes(gap, expected):
    assert classify(_word("a", 0), _word("b", 50 + gap)) is expected


@pytest.mark.parametrize(
    ("top", "expected"),
    [
        (25, SpacingDecision.SAME_LINE_JOIN),
        (40, SpacingDecision.LINE_BREAK),
        (50, SpacingDecision.PARAGRAPH_BREAK),
        (80, SpacingDecision.SECTION_BREAK),
    ],
)
def test_words_on_different_lines(top, expected):
    assert classify(_word("a", 0), _word("b", 0, top=top)) is expected


def test_unknown_or_broken_geometry_defaults_to_normal_space():
    located = _word("a", 0)

    assert classify(located, Word("b")) is SpacingDecision.NORMAL_SPACE
    assert classify(Word("a", quad=(0, 0, 1)), located) is SpacingDecision.NORMAL_SPACE
    nan_word = Word("b", quad=(math.nan,) * 8)
    assert classify(located, nan_word) is SpacingDecision.NORMAL_SPACE
    flat = Word("b", quad=quad_from_box(60, 0, 50, 0))
    assert classify(located, flat) is SpacingDecision.NORMAL_SPACE


def test_thresholds_come_from_config():
    loose = SpacingConfig(word_spacing_threshold=2.0)

    assert classify(_word("a", 0), _word("b", 80), loose) is SpacingDecision.NORMAL_SPACE


@pytest.mark.parametrize(
    ("top", "expected"),
    [
        (30, SpacingDecision.LINE_BREAK),
        (55, SpacingDecision.PARAGRAPH_BREAK),
        (100, SpacingDecision.SECTION_BREAK),
    ],
)
def test_classify_lines(top, expected):
    assert classify_lines(_line(0), _line(top)) is expected


def test_classify_lines_without_geometry_is_line_break():
    assert classify_lines(Line(words=(Word("a"),)), _line(100)) is SpacingDecision.LINE_BREAK


def test_render_markers():
    assert render(SpacingDecision.NONE) == ""
    assert render(SpacingDecision.NORMAL_SPACE) == " "
    assert render(SpacingDecision.WIDE_SPACE) == "  "
    assert render(SpacingDecision.COLUMN_BREAK) == "\t"
    assert render(SpacingDecision.PARAGRAPH_BREAK) == "\n\n"


def test_zero_height_pair_is_a_single_space_whatever_the_fallback():
    flat = Extent(left=0, right=50, top=10, bottom=10)
    far = Extent(left=500, right=550, top=10, bottom=10)

    assert classify_extents(flat, far) is SpacingDecision.NORMAL_SPACE
    assert classify_extents(flat, far, SpacingConfig(fallback_height=1000)) is SpacingDecision.NORMAL_SPACE
