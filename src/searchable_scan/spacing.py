"""Turn the geometric gap between two words or lines into a spacing decision.

All thresholds are multiples of the average box height of the pair, so the
same configuration works for any scan resolution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .errors import MalformedGeometry
from .geometry import Extent, require_extent
from .models import Line, Word

logger = logging.getLogger(__name__)


class SpacingDecision(str, Enum):
    NONE = "none"
    NORMAL_SPACE = "normal-space"
    WIDE_SPACE = "wide-space"
    TAB_BREAK = "tab-break"
    COLUMN_BREAK = "column-break"
    SAME_LINE_JOIN = "same-line-join"
    LINE_BREAK = "line-break"
    PARAGRAPH_BREAK = "paragraph-break"
    SECTION_BREAK = "section-break"


_RENDERED: dict[SpacingDecision, str] = {
    SpacingDecision.NONE: "",
    SpacingDecision.NORMAL_SPACE: " ",
    SpacingDecision.WIDE_SPACE: "  ",
    SpacingDecision.TAB_BREAK: "    ",
    SpacingDecision.COLUMN_BREAK: "\t",
    SpacingDecision.SAME_LINE_JOIN: " ",
    SpacingDecision.LINE_BREAK: "\n",
    SpacingDecision.PARAGRAPH_BREAK: "\n\n",
    SpacingDecision.SECTION_BREAK: "\n\n\n",
}


@dataclass(frozen=True)
class SpacingConfig:
    word_spacing_threshold: float = 0.5
    wide_spacing_threshold: float = 1.2
    tab_spacing_threshold: float = 2.0
    line_height_tolerance: float = 0.7
    jitter_threshold: float = 0.3
    line_spacing_threshold: float = 1.2
    line_break_threshold: float = 1.0
    paragraph_spacing_threshold: float = 2.0
    min_word_gap_pixels: float = 3.0
    # Row banding height for zero-height pairs; word pairs with a degenerate box are a plain space.
    fallback_height: float = 12.0


DEFAULT_SPACING = SpacingConfig()


def render(decision: SpacingDecision) -> str:
    return _RENDERED[decision]


def classify_extents(
    first: Extent | None,
    second: Extent | None,
    config: SpacingConfig = DEFAULT_SPACING,
) -> SpacingDecision:
    if first is None or second is None:
        return SpacingDecision.NORMAL_SPACE
    if first.is_degenerate or second.is_degenerate:
        return SpacingDecision.NORMAL_SPACE

    try:
        height = (first.height + second.height) / 2
        same_line = abs(second.center_y - first.center_y) < height * config.line_height_tolerance

        if same_line:
            gap = second.left - first.right
            if gap < 0:
                return SpacingDecision.NONE
            if gap <= config.min_word_gap_pixels:
                return SpacingDecision.NONE
            if gap <= height * config.word_spacing_threshold:
                return SpacingDecision.NORMAL_SPACE
            if gap <= height * config.wide_spacing_threshold:
                return SpacingDecision.WIDE_SPACE
            if gap <= height * config.tab_spacing_threshold:
                return SpacingDecision.TAB_BREAK
            return SpacingDecision.COLUMN_BREAK

        line_gap = abs(second.top - first.bottom)
        if line_gap <= height * config.jitter_threshold:
            return SpacingDecision.SAME_LINE_JOIN
        if line_gap <= height * config.line_spacing_threshold:
            return SpacingDecision.LINE_BREAK
        if line_gap <= height * config.paragraph_spacing_threshold:
            return SpacingDecision.PARAGRAPH_BREAK
        return SpacingDecision.SECTION_BREAK
    except (ArithmeticError, TypeError, ValueError) as exc:
        logger.warning("Could not classify word spacing, using a single space: %s", exc)
        return SpacingDecision.NORMAL_SPACE


def classify(first: Word, second: Word, config: SpacingConfig = DEFAULT_SPACING) -> SpacingDecision:
    try:
        return classify_extents(require_extent(first.quad), require_extent(second.quad), config)
    except MalformedGeometry as exc:
        logger.debug("Spacing between %r and %r defaults to a single space: %s", first.text, second.text, exc)
        return SpacingDecision.NORMAL_SPACE


def classify_lines(first: Line, second: Line, config: SpacingConfig = DEFAULT_SPACING) -> SpacingDecision:
    upper, lower = first.extent, second.extent
    if upper is None or lower is None or upper.height <= 0:
        return SpacingDecision.LINE_BREAK

    try:
        gap = lower.top - upper.bottom
        if gap <= upper.height * config.line_break_threshold:
            return SpacingDecision.LINE_BREAK
        if gap <= upper.height * config.paragraph_spacing_threshold:
            return SpacingDecision.PARAGRAPH_BREAK
        return SpacingDecision.SECTION_BREAK
    except (ArithmeticError, TypeError, ValueError) as exc:
        logger.warning("Could not classify line spacing, using a line break: %s", exc)
        return SpacingDecision.LINE_BREAK
