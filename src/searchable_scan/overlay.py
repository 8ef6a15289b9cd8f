"""Write the searchable output PDF.

Recognized lines are drawn as invisible text (render mode 3) in Courier, a
fixed-advance font, so runs of spaces line up with the pixel gaps between
words. Three renderings exist, tried in this order:

* image-backed: the source raster becomes the page at its native size and
  the text layer is laid over it;
* document-backed: the text layer is laid over each page of an existing
  PDF, with coordinates scaled from recognizer space to page space;
* plain text: a visible, paginated listing of the text. Used when the other
  two cannot be produced; it always succeeds.
"""

from __future__ import annotations

import io
import logging
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

import pikepdf
from PIL import Image

from .errors import OverlayTargetUnsupported
from .geometry import Extent, union_extent
from .models import Line, OverlayTarget, Page, Provenance, RecognitionResult, TargetKind, Word
from .paragraphs import split_pages

logger = logging.getLogger(__name__)

A4_SIZE = (595.0, 842.0)
PLAIN_MARGIN = 50.0
PLAIN_FONT_SIZE = 12.0
PLAIN_LEADING = 14.0


@dataclass(frozen=True)
class OverlayConfig:
    font_size: float = 17.0
    descent_fraction: float = 0.2
    edge_margin: float = 10.0
    min_font_size: float = 4.0
    max_font_size: float = 72.0
    # Courier advances every glyph by 600/1000 em.
    glyph_advance: float = 0.6


DEFAULT_OVERLAY = OverlayConfig()


@dataclass(frozen=True)
class Placement:
    x: float
    y: float
    font_size: float
    text: str


@dataclass(frozen=True)
class ComposeOutcome:
    path: Path
    page_count: int
    method: str


def _escape_pdf_text(text: str) -> bytes:
    encoded = text.encode("cp1252", errors="replace")
    return encoded.replace(b"\\", b"\\\\").replace(b"(", b"\\(").replace(b")", b"\\)")


def _located_words(line: Line) -> list[Word]:
    return [word for word in line.sorted_words() if word.extent is not None and word.text]


def spaced_text(words: Sequence[Word], *, space_width: float, gap_scale: float = 1.0) -> str:
    """Join words with as many spaces as fit in each scaled gap, at least one."""
    if not words:
        return ""
    parts = [words[0].text]
    for previous, current in zip(words, words[1:]):
        gap = (current.extent.left - previous.extent.right) * gap_scale
        count = max(1, round(gap / space_width)) if space_width > 0 else 1
        parts.append(" " * count)
        parts.append(current.text)
    return "".join(parts)


def _clamp(value: float, low: float, high: float) -> float:
    if high < low:
        return low
    return max(low, min(high, value))


def _scales(page: Optional[Page], target_width: float, target_height: float) -> tuple[float, float]:
    source_width = page.width if page is not None and page.width else None
    source_height = page.height if page is not None and page.height else None
    scale_x = target_width / source_width if source_width else 1.0
    scale_y = target_height / source_height if source_height else 1.0
    return scale_x, scale_y


def map_line_to_page(
    line_extent: Extent,
    *,
    target_width: float,
    target_height: float,
    scale_x: float = 1.0,
    scale_y: float = 1.0,
    margin: float = DEFAULT_OVERLAY.edge_margin,
) -> tuple[float, float, float]:
    """Return ``(x, y, text_height)`` in bottom-left-origin page space, clamped onto the page."""
    start_x = line_extent.left * scale_x
    scaled_top = line_extent.top * scale_y
    text_height = line_extent.height * scale_y
    page_y = target_height - scaled_top - text_height

    x = _clamp(start_x, 0.0, target_width - margin)
    y = _clamp(page_y, margin, target_height - margin)
    return x, y, text_height


def image_placements(
    page: Page,
    *,
    width: float,
    height: float,
    config: OverlayConfig = DEFAULT_OVERLAY,
) -> list[Placement]:
    scale_x, scale_y = _scales(page, width, height)
    font_size = config.font_size
    space_width = font_size * config.glyph_advance
    descent = font_size * config.descent_fraction
    placements: list[Placement] = []

    for line in page.lines:
        words = _located_words(line)
        if not words:
            continue
        text = spaced_text(words, space_width=space_width, gap_scale=scale_x)
        baselines = [word.extent.bottom * scale_y - descent for word in words]
        baseline = sum(baselines) / len(baselines)
        placements.append(
            Placement(
                x=words[0].extent.left * scale_x,
                y=height - baseline,
                font_size=font_size,
                text=text,
            )
        )
        logger.debug("Placed line %r at (%.1f, %.1f)", text[:50], placements[-1].x, placements[-1].y)
    return placements


def document_placements(
    page: Page,
    *,
    width: float,
    height: float,
    config: OverlayConfig = DEFAULT_OVERLAY,
) -> list[Placement]:
    scale_x, scale_y = _scales(page, width, height)
    placements: list[Placement] = []

    for line in page.lines:
        words = _located_words(line)
        line_extent = union_extent(word.extent for word in words)
        if line_extent is None:
            continue
        x, y, text_height = map_line_to_page(
            line_extent,
            target_width=width,
            target_height=height,
            scale_x=scale_x,
            scale_y=scale_y,
            margin=config.edge_margin,
        )
        font_size = _clamp(text_height, config.min_font_size, config.max_font_size)
        text = spaced_text(words, space_width=font_size * config.glyph_advance, gap_scale=scale_x)
        placements.append(Placement(x=x, y=y, font_size=font_size, text=text))
        logger.debug("Page %d: placed %r at (%.1f, %.1f)", page.number, text[:30], x, y)
    return placements


def _standard_font(pdf: pikepdf.Pdf, base_font: str) -> pikepdf.Object:
    return pdf.make_indirect(
        pikepdf.Dictionary(
            Type=pikepdf.Name("/Font"),
            Subtype=pikepdf.Name("/Type1"),
            BaseFont=pikepdf.Name(base_font),
            Encoding=pikepdf.Name("/WinAnsiEncoding"),
        )
    )


def _set_font(page: pikepdf.Page, font: pikepdf.Object) -> None:
    resources = page.obj.get("/Resources", pikepdf.Dictionary())
    resources.Font = pikepdf.Dictionary(F1=font)
    page.obj.Resources = resources


def _invisible_text_stream(placements: Iterable[Placement]) -> bytes:
    stream_lines: list[bytes] = []
    for placement in placements:
        escaped = _escape_pdf_text(placement.text)
        if not escaped:
            continue
        stream_lines.append(
            f"BT 3 Tr /F1 {placement.font_size:.2f} Tf 1 0 0 1 {placement.x:.2f} {placement.y:.2f} Tm (".encode("ascii")
            + escaped
            + b") Tj ET"
        )
    return b"\n".join(stream_lines)


def _overlay_placements(
    pdf: pikepdf.Pdf,
    target: pikepdf.Page,
    font: pikepdf.Object,
    width: float,
    height: float,
    placements: list[Placement],
) -> int:
    stream = _invisible_text_stream(placements)
    if not stream:
        return 0

    text_layer = pdf.make_stream(
        stream + b"\n",
        Type=pikepdf.Name.XObject,
        Subtype=pikepdf.Name.Form,
        BBox=pikepdf.Array([0, 0, width, height]),
        Resources=pikepdf.Dictionary(Font=pikepdf.Dictionary(F1=font)),
    )
    target.add_overlay(text_layer, pikepdf.Rectangle(target.mediabox))
    return len(placements)


def _page_size(page: pikepdf.Page) -> tuple[float, float]:
    media_box = page.mediabox
    page_width = float(media_box[2]) - float(media_box[0])
    page_height = float(media_box[3]) - float(media_box[1])
    if page_width <= 0 or page_height <= 0:
        raise OverlayTargetUnsupported(f"Page has an empty media box: {list(media_box)}")
    return page_width, page_height


def compose_image_overlay(
    image_data: bytes,
    page: Optional[Page],
    output_path: Path,
    config: OverlayConfig = DEFAULT_OVERLAY,
) -> ComposeOutcome:
    with Image.open(io.BytesIO(image_data)) as image:
        width, height = image.size
        background = io.BytesIO()
        # 72 dpi makes one pixel one PDF point, so the page keeps the native pixel size.
        image.convert("RGB").save(background, format="PDF", resolution=72.0)
    background.seek(0)

    placements = image_placements(page, width=width, height=height, config=config) if page is not None else []

    with pikepdf.open(background) as pdf:
        page_width, page_height = _page_size(pdf.pages[0])
        font = _standard_font(pdf, "/Courier")
        drawn = _overlay_placements(pdf, pdf.pages[0], font, page_width, page_height, placements)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        pdf.save(output_path)

    logger.info("Image-backed searchable PDF created: %s (%d lines)", output_path, drawn)
    return ComposeOutcome(path=output_path, page_count=1, method="image-overlay")


def compose_document_overlay(
    document_data: bytes,
    pages: Sequence[Page],
    output_path: Path,
    config: OverlayConfig = DEFAULT_OVERLAY,
) -> ComposeOutcome:
    with pikepdf.open(io.BytesIO(document_data)) as pdf:
        if not pdf.pages:
            raise OverlayTargetUnsupported("Document has no pages")

        logger.info("Document has %d pages, recognition returned %d", len(pdf.pages), len(pages))
        font = _standard_font(pdf, "/Courier")
        drawn = 0
        for pdf_page, page in zip(pdf.pages, pages):
            page_width, page_height = _page_size(pdf_page)
            placements = document_placements(page, width=page_width, height=page_height, config=config)
            drawn += _overlay_placements(pdf, pdf_page, font, page_width, page_height, placements)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        pdf.save(output_path)
        page_count = len(pdf.pages)

    logger.info("Document-backed searchable PDF created: %s (%d lines)", output_path, drawn)
    return ComposeOutcome(path=output_path, page_count=page_count, method="document-overlay")


def _sections(result: RecognitionResult, text: str) -> list[tuple[Optional[str], list[str]]]:
    if result.pages:
        sections: list[tuple[Optional[str], list[str]]] = []
        page_texts = split_pages(text, len(result.pages))
        for index, page_text in enumerate(page_texts, start=1):
            lines = page_text.split("\n") if page_text else []
            sections.append((f"Page {index}", lines or ["No text found on this page."]))
        return sections
    if text.strip():
        return [(None, text.split("\n"))]
    return [(None, ["No text could be extracted from the document."])]


def _wrap(line: str, width_chars: int) -> list[str]:
    if not line.strip():
        return [""]
    return textwrap.wrap(line, width=width_chars) or [""]


def render_plain_text(result: RecognitionResult, text: str, output_path: Path) -> ComposeOutcome:
    page_width, page_height = A4_SIZE
    width_chars = int((page_width - 2 * PLAIN_MARGIN) / (PLAIN_FONT_SIZE * 0.5))
    page_streams: list[list[bytes]] = [[]]
    y = page_height - PLAIN_MARGIN

    def emit(content: str, size: float) -> None:
        nonlocal y
        if y < PLAIN_MARGIN:
            page_streams.append([])
            y = page_height - PLAIN_MARGIN
        page_streams[-1].append(
            f"BT /F1 {size:.1f} Tf 1 0 0 1 {PLAIN_MARGIN:.2f} {y:.2f} Tm (".encode("ascii")
            + _escape_pdf_text(content)
            + b") Tj ET"
        )

    emit("Extracted Text", 16.0)
    y -= 30.0
    for heading, lines in _sections(result, text):
        if heading is not None:
            emit(heading, 14.0)
            y -= 30.0 - PLAIN_LEADING
            y -= PLAIN_LEADING
        for line in lines:
            for wrapped in _wrap(line, width_chars):
                if wrapped:
                    emit(wrapped, PLAIN_FONT_SIZE)
                y -= PLAIN_LEADING
        y -= 20.0

    if result.confidence:
        page_streams[-1].append(
            f"BT /F1 10 Tf 1 0 0 1 {page_width - 150:.2f} 30 Tm (".encode("ascii")
            + _escape_pdf_text(f"OCR Confidence: {result.confidence}%")
            + b") Tj ET"
        )

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pikepdf.Pdf.new() as pdf:
        font = _standard_font(pdf, "/Helvetica")
        for stream_lines in page_streams:
            page = pdf.add_blank_page(page_size=A4_SIZE)
            _set_font(page, font)
            if stream_lines:
                page.contents_add(pdf.make_stream(b"\n".join(stream_lines) + b"\n"))
        pdf.save(output_path)
        page_count = len(pdf.pages)

    logger.info("Plain text PDF created: %s (%d pages)", output_path, page_count)
    return ComposeOutcome(path=output_path, page_count=page_count, method="plain-text")


def _copy_original(target: OverlayTarget, output_path: Path) -> ComposeOutcome:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(target.data)
    page_count = 1
    if target.kind is TargetKind.DOCUMENT:
        try:
            with pikepdf.open(io.BytesIO(target.data)) as pdf:
                page_count = len(pdf.pages)
        except pikepdf.PdfError as exc:
            logger.warning("Could not count pages of copied original: %s", exc)
    logger.info("Original already searchable, copied to %s", output_path)
    return ComposeOutcome(path=output_path, page_count=page_count, method="original-copy")


def compose(
    result: RecognitionResult,
    target: OverlayTarget,
    output_path: Path,
    *,
    text: str = "",
    config: OverlayConfig = DEFAULT_OVERLAY,
) -> ComposeOutcome:
    if result.provenance is Provenance.SKIPPED:
        return _copy_original(target, output_path)
    if result.provenance is Provenance.SIMULATED or not result.pages:
        return render_plain_text(result, text, output_path)

    try:
        if target.kind is TargetKind.IMAGE:
            return compose_image_overlay(target.data, result.pages[0], output_path, config)
        return compose_document_overlay(target.data, result.pages, output_path, config)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Overlay onto %s failed, rendering plain text instead: %s", target.kind.value, exc)
        return render_plain_text(result, text, output_path)
