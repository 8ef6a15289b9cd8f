"""Cheap check for an existing text layer in a PDF.

The verdict comes from counting text-rendering operators and font
declarations in the raw bytes; no content stream is parsed. When the count
passes the threshold the text itself is pulled out with pdfminer so a
skipped recognition pass still has real text to hand back.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass

import pikepdf
from pdfminer.high_level import extract_text
from pdfminer.psparser import PSException

logger = logging.getLogger(__name__)

TEXT_INDICATORS: tuple[re.Pattern[bytes], ...] = (
    re.compile(rb"/Type\s*/Font"),
    re.compile(rb"/Subtype\s*/Type1"),
    re.compile(rb"/Subtype\s*/TrueType"),
    re.compile(rb"BT\s+.*?ET"),
    re.compile(rb"Tj\s*$", re.MULTILINE),
    re.compile(rb"TJ\s*$", re.MULTILINE),
)
DEFAULT_THRESHOLD = 5
MIN_REUSABLE_CHARS = 10


@dataclass(frozen=True)
class ProbeResult:
    has_text: bool
    extracted_text: str
    page_count: int
    indicator_count: int = 0

    @property
    def reusable(self) -> bool:
        """True when the detected layer also yielded enough text to stand in for recognition."""
        return self.has_text and len(re.sub(r"\s+", "", self.extracted_text)) >= MIN_REUSABLE_CHARS


def count_indicators(data: bytes) -> int:
    return sum(len(pattern.findall(data)) for pattern in TEXT_INDICATORS)


def _page_count(data: bytes) -> int:
    try:
        with pikepdf.open(io.BytesIO(data)) as pdf:
            return len(pdf.pages)
    except pikepdf.PdfError as exc:
        logger.warning("Could not count PDF pages: %s", exc)
        return 0


def _extract(data: bytes) -> str:
    try:
        return (extract_text(io.BytesIO(data)) or "").strip()
    except (PSException, ValueError, KeyError, TypeError) as exc:
        logger.warning("Text layer detected but extraction failed: %s", exc)
        return ""


def probe(data: bytes, *, threshold: int = DEFAULT_THRESHOLD) -> ProbeResult:
    indicators = count_indicators(data)
    has_text = indicators > threshold
    extracted = _extract(data) if has_text else ""
    result = ProbeResult(
        has_text=has_text,
        extracted_text=extracted,
        page_count=_page_count(data),
        indicator_count=indicators,
    )
    logger.info(
        "PDF text indicators found: %d, has_text=%s, extracted=%d chars, pages=%d",
        indicators,
        result.has_text,
        len(extracted),
        result.page_count,
    )
    return result
