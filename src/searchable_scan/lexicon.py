"""Word lists for splitting run-together OCR tokens."""

from __future__ import annotations

import re
from typing import Iterable

COMMON_ENGLISH_WORDS: tuple[str, ...] = (
    "and", "the", "to", "of", "in", "for", "with", "that", "this", "from",
    "will", "have", "been", "were", "are", "not", "can", "all", "but", "was",
    "has", "had", "one", "you", "may", "use", "its", "your", "their", "what",
    "said", "each", "which", "do", "how", "if", "up", "out", "many", "then",
    "them", "these", "so", "some", "her", "would", "make", "like", "time",
    "very", "when", "come", "his", "here", "just", "long", "get", "own", "say",
    "she", "way", "too", "any", "day", "man", "new", "now", "old", "see", "him",
    "two", "more", "go", "no", "first", "call", "who",
)

_TOKEN_RE = re.compile(r"[A-Za-z]+")


def _ordered(words: Iterable[str]) -> list[str]:
    unique = {word.lower() for word in words if word}
    return sorted(unique, key=lambda word: (-len(word), word))


def _split_token(token: str, words: list[str]) -> str:
    lowered = token.lower()
    pieces: list[str] = []
    start = 0
    index = 1
    while index < len(token) - 1:
        match = next(
            (word for word in words if lowered.startswith(word, index) and index + len(word) < len(token)),
            None,
        )
        if match is None:
            index += 1
            continue
        pieces.append(token[start:index])
        pieces.append(token[index:index + len(match)])
        start = index + len(match)
        index = start + 1
    pieces.append(token[start:])
    return " ".join(piece for piece in pieces if piece)


def split_concatenations(
    text: str,
    words: Iterable[str] = COMMON_ENGLISH_WORDS,
    *,
    min_token_length: int = 1,
) -> str:
    """Put spaces around lexicon words found inside longer alphabetic tokens.

    A word is only split out when letters remain on both sides of it. Tokens
    shorter than ``min_token_length`` are left alone.
    """
    ordered = _ordered(words)
    if not ordered:
        return text

    def replace(match: re.Match[str]) -> str:
        token = match.group(0)
        if len(token) < max(3, min_token_length):
            return token
        return _split_token(token, ordered)

    return _TOKEN_RE.sub(replace, text)
