"""Deterministic clean-up of assembled OCR text.

Wide-space and tab markers produced by the assembler are collapsed to a
single space here; line structure (newlines) is kept for paragraph
segmentation. ``normalize(normalize(x)) == normalize(x)`` for every input.
"""

from __future__ import annotations

import re
from typing import Optional, Sequence

from .lexicon import COMMON_ENGLISH_WORDS, split_concatenations

_BOUNDARIES: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?<=[a-z])(?=[A-Z])"),
    re.compile(r"(?<=[A-Za-z])(?=\d)"),
    re.compile(r"(?<=\d)(?=[A-Za-z])"),
    re.compile(r"(?<=[.!?,;:])(?=[A-Z])"),
)
_HORIZONTAL_RUN_RE = re.compile(r"[^\S\n]+")
_EXCESS_BLANK_LINES_RE = re.compile(r"\n{4,}")


def normalize(
    text: str,
    *,
    split_tokens_longer_than: Optional[int] = None,
    lexicon: Sequence[str] = COMMON_ENGLISH_WORDS,
) -> str:
    if not text:
        return ""

    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")
    for boundary in _BOUNDARIES:
        cleaned = boundary.sub(" ", cleaned)
    if split_tokens_longer_than is not None:
        cleaned = split_concatenations(cleaned, lexicon, min_token_length=split_tokens_longer_than + 1)

    cleaned = _HORIZONTAL_RUN_RE.sub(" ", cleaned)
    cleaned = "\n".join(line.strip() for line in cleaned.split("\n"))
    cleaned = _EXCESS_BLANK_LINES_RE.sub("\n\n\n", cleaned)
    return cleaned.strip()
