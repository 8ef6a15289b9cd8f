"""Flow recognized words into page text.

Recognizers hand back isolated word boxes, so the spaces between words have
to be inferred from geometry. ``assemble`` tries three strategies in order
and keeps the first result that contains horizontal whitespace:

1. ``flow_lines``: words sorted left-to-right inside each recognized line.
2. ``flow_page``: every word on the page re-sorted into rows by position,
   for recognizers whose line grouping is unreliable.
3. ``flow_patterns``: character-class boundaries and a lexicon of short
   words applied to the ``flow_page`` text.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, Sequence

from .lexicon import COMMON_ENGLISH_WORDS, split_concatenations
from .models import Line, Page, Word
from .spacing import DEFAULT_SPACING, SpacingConfig, classify, classify_lines, render

logger = logging.getLogger(__name__)

Strategy = Callable[[Page, SpacingConfig, Sequence[str]], str]

_HORIZONTAL_SPACE_RE = re.compile(r"[ \t]")

_PATTERN_BOUNDARIES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?<=[a-z])(?=[A-Z])"), " "),
    (re.compile(r"(?<=[A-Za-z])(?=\d)"), " "),
    (re.compile(r"(?<=\d)(?=[A-Za-z])"), " "),
    (re.compile(r"(?<=[.!?,:;])(?=[A-Za-z])"), " "),
)


def _join_words(words: Sequence[Word], config: SpacingConfig) -> str:
    if not words:
        return ""
    parts = [words[0].text or ""]
    for previous, current in zip(words, words[1:]):
        parts.append(render(classify(previous, current, config)))
        parts.append(current.text or "")
    return "".join(parts)


def line_text(line: Line, config: SpacingConfig = DEFAULT_SPACING) -> str:
    return _join_words(line.sorted_words(), config)


def _ordered_lines(lines: Iterable[Line]) -> list[Line]:
    populated = [line for line in lines if line.words]
    if all(line.extent is not None for line in populated):
        return sorted(populated, key=lambda line: line.extent.top)
    return populated


def flow_lines(page: Page, config: SpacingConfig, lexicon: Sequence[str] = ()) -> str:
    parts: list[str] = []
    previous: Line | None = None
    for line in _ordered_lines(page.lines):
        text = line_text(line, config)
        if not text.strip():
            continue
        if previous is not None:
            parts.append(render(classify_lines(previous, line, config)))
        parts.append(text)
        previous = line
    return "".join(parts)


def _rows(words: list[Word], config: SpacingConfig) -> list[list[Word]]:
    by_top = sorted(words, key=lambda word: (word.extent.top, word.extent.left))
    rows: list[list[Word]] = []
    for word in by_top:
        if rows:
            anchor = rows[-1][0].extent
            height = (anchor.height + word.extent.height) / 2 or config.fallback_height
            if abs(word.extent.top - anchor.top) <= height * 0.5:
                rows[-1].append(word)
                continue
        rows.append([word])
    return [sorted(row, key=lambda word: word.extent.left) for row in rows]


def flow_page(page: Page, config: SpacingConfig, lexicon: Sequence[str] = ()) -> str:
    located = [word for word in page.words if word.extent is not None]
    unknown = [word for word in page.words if word.extent is None]
    ordered = [word for row in _rows(located, config) for word in row]
    return _join_words(ordered + unknown, config)


def flow_patterns(page: Page, config: SpacingConfig, lexicon: Sequence[str] = COMMON_ENGLISH_WORDS) -> str:
    text = flow_page(page, config) or flow_lines(page, config)
    for pattern, replacement in _PATTERN_BOUNDARIES:
        text = pattern.sub(replacement, text)
    text = split_concatenations(text, lexicon)
    return re.sub(r"[ \t]+", " ", text).strip()


STRATEGIES: tuple[Strategy, ...] = (flow_lines, flow_page, flow_patterns)


def has_horizontal_space(text: str) -> bool:
    return bool(_HORIZONTAL_SPACE_RE.search(text))


def assemble(
    page: Page,
    config: SpacingConfig = DEFAULT_SPACING,
    *,
    lexicon: Sequence[str] = COMMON_ENGLISH_WORDS,
    strategies: Sequence[Strategy] = STRATEGIES,
) -> str:
    text = ""
    for index, strategy in enumerate(strategies):
        text = strategy(page, config, lexicon)
        if index == 0 and not page.has_multi_word_lines:
            return text
        if has_horizontal_space(text):
            return text
        logger.info("Page %d: %s produced no word spacing, escalating", page.number, strategy.__name__)
    return text
