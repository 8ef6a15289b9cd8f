from __future__ import annotations

import re

PARAGRAPH_BREAK = "\n\n"
SENTENCE_BREAK = "\n"
CONTINUATION = " "

_TERMINAL_RE = re.compile(r"[.!?]$")
_CAPITAL_START_RE = re.compile(r"^[A-Z]")


def _separator(current: str, following: str, previous_length: int, *, short_line_chars: int, length_delta: int) -> str:
    ends_sentence = bool(_TERMINAL_RE.search(current))
    if ends_sentence and _CAPITAL_START_RE.match(following):
        return PARAGRAPH_BREAK
    # Short line with a very different length from its predecessor reads as a heading.
    if len(current) < short_line_chars and abs(len(current) - previous_length) > length_delta:
        return PARAGRAPH_BREAK
    if ends_sentence:
        return SENTENCE_BREAK
    return CONTINUATION


def segment(text: str, *, short_line_chars: int = 50, length_delta: int = 20) -> str:
    """Rejoin wrapped OCR lines into paragraphs.

    Blank lines always become paragraph breaks. Between two text lines the
    break is chosen from terminal punctuation, the capitalisation of the
    next line and a heading heuristic; anything else is treated as a wrapped
    line and joined with a space.
    """
    if not text:
        return ""

    lines = [line.strip() for line in text.split("\n")]
    parts: list[str] = []
    previous_line: str | None = None
    previous_length = 0
    blank_pending = False

    for line in lines:
        if not line:
            blank_pending = previous_line is not None
            continue
        if previous_line is not None:
            if blank_pending:
                parts.append(PARAGRAPH_BREAK)
            else:
                parts.append(
                    _separator(
                        previous_line,
                        line,
                        previous_length,
                        short_line_chars=short_line_chars,
                        length_delta=length_delta,
                    )
                )
            previous_length = len(previous_line)
        parts.append(line)
        previous_line = line
        blank_pending = False

    return "".join(parts).strip()


_PAGE_MARKER_RE = re.compile(r"^--- Page \d+ ---\n", re.MULTILINE)


def page_marker(number: int) -> str:
    return f"--- Page {number} ---"


def split_pages(text: str, page_count: int) -> list[str]:
    """Undo the page markers added to multi-page text; missing pages come back empty."""
    if page_count <= 1:
        return [text.strip()]
    chunks = [chunk.strip() for chunk in _PAGE_MARKER_RE.split(text)[1:]]
    chunks = chunks[:page_count]
    return chunks + [""] * (page_count - len(chunks))
