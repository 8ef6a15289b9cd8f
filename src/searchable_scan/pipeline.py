"""End-to-end processing of one document or a batch of them.

One document runs ``probe -> recognize -> assemble/normalize/segment ->
compose`` in sequence. Only rejected input (too large, wrong type) is raised
to the caller; every other failure has already been absorbed by a fallback
tier further down. A batch runs each document as its own task and reports
failures per document.
"""

from __future__ import annotations

import logging
import mimetypes
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from .assembler import assemble
from .config import Settings, get_settings
from .errors import InputRejected, InputTooLarge, UnsupportedMimeType
from .models import OverlayTarget, PlainContent, Provenance, RecognitionResult
from .normalizer import normalize
from .overlay import DEFAULT_OVERLAY, ComposeOutcome, OverlayConfig, compose
from .paragraphs import page_marker, segment
from .probe import probe
from .recognition import RecognitionOrchestrator
from .spacing import DEFAULT_SPACING, SpacingConfig

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
EXISTING_TEXT_CONFIDENCE = 95
EXISTING_TEXT_ENGINE = "existing-text"
NO_TEXT_DETECTED = "No text detected"
EMPTY_PAGE_TEXT = "No text recognized on this page."


@dataclass(frozen=True)
class DocumentInput:
    name: str
    data: bytes = field(repr=False)
    content_type: str
    source: Optional[Path] = field(default=None, compare=False)

    @classmethod
    def from_path(cls, path: Path) -> "DocumentInput":
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            data=path.read_bytes(),
            content_type=content_type or "application/octet-stream",
            source=path,
        )

    @property
    def is_document(self) -> bool:
        return self.content_type == PDF_CONTENT_TYPE


@dataclass(frozen=True)
class ProcessedDocument:
    name: str
    result: RecognitionResult
    text: str
    page_count: int
    outcome: Optional[ComposeOutcome] = None

    @property
    def skipped_recognition(self) -> bool:
        return self.result.provenance is Provenance.SKIPPED

    def summary(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.result.confidence,
            "pages": self.page_count,
            "engine": self.result.engine,
            "skippedRecognition": self.skipped_recognition,
        }


@dataclass(frozen=True)
class BatchItem:
    name: str
    document: Optional[ProcessedDocument] = None
    error: str = ""

    @property
    def success(self) -> bool:
        return self.document is not None


def validate_input(document: DocumentInput, settings: Settings) -> None:
    size = len(document.data)
    if size > settings.max_file_size_bytes:
        raise InputTooLarge(size, settings.max_file_size_bytes)
    if not (document.content_type.startswith("image/") or document.is_document):
        raise UnsupportedMimeType(document.content_type)


def build_text(result: RecognitionResult, config: SpacingConfig = DEFAULT_SPACING) -> str:
    """Flatten a recognition result into reading-order text."""
    if isinstance(result.content, PlainContent):
        return result.content.text

    pages = result.content.pages
    if not pages:
        return NO_TEXT_DETECTED

    page_texts: list[str] = []
    for page in pages:
        text = segment(normalize(assemble(page, config)))
        page_texts.append(text or EMPTY_PAGE_TEXT)

    if len(page_texts) == 1:
        return page_texts[0]
    return "\n\n".join(
        f"{page_marker(number)}\n{text}" for number, text in enumerate(page_texts, start=1)
    )


def _existing_text_result(extracted_text: str) -> RecognitionResult:
    return RecognitionResult(
        content=PlainContent(extracted_text),
        provenance=Provenance.SKIPPED,
        confidence=EXISTING_TEXT_CONFIDENCE,
        engine=EXISTING_TEXT_ENGINE,
    )


def _recognize(
    document: DocumentInput,
    orchestrator: RecognitionOrchestrator,
) -> tuple[RecognitionResult, int]:
    if document.is_document:
        probed = probe(document.data)
        if probed.reusable:
            logger.info("%s already has a text layer, skipping recognition", document.name)
            return _existing_text_result(probed.extracted_text), max(1, probed.page_count)

    result = orchestrator.recognize(document.data, document.content_type, source_name=document.name)
    return result, result.page_count


def process_document(
    document: DocumentInput,
    settings: Optional[Settings] = None,
    *,
    output_path: Optional[Path] = None,
    orchestrator: Optional[RecognitionOrchestrator] = None,
    spacing: SpacingConfig = DEFAULT_SPACING,
    overlay: OverlayConfig = DEFAULT_OVERLAY,
) -> ProcessedDocument:
    settings = settings or get_settings()
    validate_input(document, settings)
    logger.info("Processing %s (%s, %d bytes)", document.name, document.content_type, len(document.data))

    if orchestrator is None:
        with RecognitionOrchestrator(settings) as own_orchestrator:
            result, page_count = _recognize(document, own_orchestrator)
    else:
        result, page_count = _recognize(document, orchestrator)

    text = build_text(result, spacing)

    outcome = None
    if output_path is not None:
        target = OverlayTarget.from_content_type(document.data, document.content_type)
        outcome = compose(result, target, output_path, text=text, config=overlay)
        page_count = outcome.page_count

    return ProcessedDocument(
        name=document.name,
        result=result,
        text=text,
        page_count=page_count,
        outcome=outcome,
    )


def _process_one(
    document: DocumentInput,
    settings: Settings,
    *,
    output_path_for: Optional[Callable[[DocumentInput], Path]],
    **options: Any,
) -> ProcessedDocument:
    output_path = output_path_for(document) if output_path_for else None
    return process_document(document, settings, output_path=output_path, **options)


def process_batch(
    documents: Sequence[DocumentInput],
    settings: Optional[Settings] = None,
    *,
    output_path_for: Optional[Callable[[DocumentInput], Path]] = None,
    orchestrator: Optional[RecognitionOrchestrator] = None,
    workers: Optional[int] = None,
    spacing: SpacingConfig = DEFAULT_SPACING,
    overlay: OverlayConfig = DEFAULT_OVERLAY,
) -> list[BatchItem]:
    """Process every document concurrently; results come back in input order."""
    settings = settings or get_settings()
    if not documents:
        return []

    shared = orchestrator or RecognitionOrchestrator(settings)
    items: dict[int, BatchItem] = {}
    try:
        with ThreadPoolExecutor(max_workers=workers or settings.workers) as pool:
            futures = {
                pool.submit(
                    _process_one,
                    document,
                    settings,
                    output_path_for=output_path_for,
                    orchestrator=shared,
                    spacing=spacing,
                    overlay=overlay,
                ): index
                for index, document in enumerate(documents)
            }
            for future in as_completed(futures):
                index = futures[future]
                name = documents[index].name
                try:
                    items[index] = BatchItem(name=name, document=future.result())
                except InputRejected as exc:
                    logger.warning("Rejected %s: %s", name, exc)
                    items[index] = BatchItem(name=name, error=str(exc))
                except Exception as exc:  # noqa: BLE001
                    logger.exception("Processing failed for %s", name)
                    items[index] = BatchItem(name=name, error=f"Unexpected error: {exc}")
    finally:
        if orchestrator is None:
            shared.close()

    return [items[index] for index in range(len(documents))]
