from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from searchable_scan.geometry import Extent, quad_from_box
from searchable_scan.models import (
    Line,
    OverlayTarget,
    Page,
    PagedContent,
    PlainContent,
    Provenance,
    RecognitionResult,
    TargetKind,
    Word,
    average_confidence,
)


def test_sorted_words_puts_unlocated_words_last():
    line = Line(words=(Word("?"), Word("b", quad_from_box(60, 0, 10, 10)), Word("a", quad_from_box(0, 0, 10, 10))))

    assert [word.text for word in line.sorted_words()] == ["a", "b", "?"]


def test_line_extent_prefers_own_quad():
    words = (Word("a", quad_from_box(0, 0, 10, 10)), Word("b", quad_from_box(20, 5, 10, 10)))

    assert Line(words=words).extent == Extent(left=0, right=30, top=0, bottom=15)
    assert Line(words=words, quad=quad_from_box(0, 0, 100, 12)).extent == Extent(left=0, right=100, top=0, bottom=12)


def test_average_confidence_ignores_missing_scores():
    page = Page(lines=(Line(words=(Word("a", confidence=0.8), Word("b"), Word("c", confidence=0.5))),))

    assert average_confidence((page,)) == 65
    assert average_confidence(()) == 0


def test_result_pages_depend_on_content_shape():
    plain = RecognitionResult(PlainContent("text"), Provenance.SIMULATED, 50, "simulation")
    paged = RecognitionResult(PagedContent((Page(), Page(number=2))), Provenance.RECOGNIZED, 80, "azure-read")

    assert plain.pages == ()
    assert plain.page_count == 1
    assert paged.page_count == 2
    assert Provenance.SKIPPED.value == "skipped-existing-text"


def test_overlay_target_kind_from_content_type():
    assert OverlayTarget.from_content_type(b"%PDF", "application/pdf").kind is TargetKind.DOCUMENT
    assert OverlayTarget.from_content_type(b"\x89PNG", "image/png").kind is TargetKind.IMAGE
