from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .geometry import Extent, extent, union_extent


@dataclass(frozen=True)
class Word:
    text: str
    quad: tuple[float, ...] = ()
    confidence: Optional[float] = None

    @property
    def extent(self) -> Extent | None:
        return extent(self.quad)


@dataclass(frozen=True)
class Line:
    # Recognition order, not necessarily left-to-right.
    words: tuple[Word, ...] = ()
    quad: tuple[float, ...] = ()
    text: str = ""

    @property
    def extent(self) -> Extent | None:
        own = extent(self.quad)
        if own is not None:
            return own
        return union_extent(word.extent for word in self.words)

    def sorted_words(self) -> list[Word]:
        """Words ordered by their leftmost X; words without geometry keep their place at the end."""
        located = [word for word in self.words if word.extent is not None]
        unknown = [word for word in self.words if word.extent is None]
        located.sort(key=lambda word: word.extent.left)
        return located + unknown


@dataclass(frozen=True)
class Page:
    lines: tuple[Line, ...] = ()
    width: Optional[float] = None
    height: Optional[float] = None
    number: int = 1

    @property
    def words(self) -> list[Word]:
        return [word for line in self.lines for word in line.words]

    @property
    def has_multi_word_lines(self) -> bool:
        return any(len(line.words) > 1 for line in self.lines)


class Provenance(str, Enum):
    RECOGNIZED = "real-recognition"
    SKIPPED = "skipped-existing-text"
    SIMULATED = "simulated-fallback"


@dataclass(frozen=True)
class PlainContent:
    text: str


@dataclass(frozen=True)
class PagedContent:
    pages: tuple[Page, ...]


RecognizedContent = Union[PlainContent, PagedContent]


@dataclass(frozen=True)
class RecognitionResult:
    content: RecognizedContent
    provenance: Provenance
    confidence: int
    engine: str

    @property
    def pages(self) -> tuple[Page, ...]:
        if isinstance(self.content, PagedContent):
            return self.content.pages
        return ()

    @property
    def page_count(self) -> int:
        return max(1, len(self.pages))


class TargetKind(str, Enum):
    IMAGE = "image"
    DOCUMENT = "document"


@dataclass(frozen=True)
class OverlayTarget:
    kind: TargetKind
    data: bytes = field(repr=False)
    content_type: str = ""

    @classmethod
    def from_content_type(cls, data: bytes, content_type: str) -> "OverlayTarget":
        kind = TargetKind.DOCUMENT if content_type == "application/pdf" else TargetKind.IMAGE
        return cls(kind=kind, data=data, content_type=content_type)


def average_confidence(pages: tuple[Page, ...]) -> int:
    scores = [word.confidence for page in pages for word in page.words if word.confidence is not None]
    if not scores:
        return 0
    return round(sum(scores) / len(scores) * 100)
