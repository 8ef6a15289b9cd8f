from __future__ import annotations

import io
import sys
from pathlib import Path

import pikepdf
import pytest
from PIL import Image

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from searchable_scan.config import Settings
from searchable_scan.errors import InputTooLarge, UnsupportedMimeType
from searchable_scan.geometry import quad_from_box
from searchable_scan.models import Line, Page, PagedContent, PlainContent, Provenance, RecognitionResult, Word
from searchable_scan.pipeline import DocumentInput, build_text, process_batch, process_document
from searchable_scan.recognition import JobStatus, PollResponse, RecognitionOrchestrator


def _settings(**overrides) -> Settings:
    values = {"vision_key": None, "vision_endpoint": None, "poll_interval_seconds": 0}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _word(text: str, left: float, top: float = 0, width: float = 50, height: float = 20) -> Word:
    return Word(text=text, quad=quad_from_box(left, top, width, height), confidence=0.9)


def _hello_page(number: int = 1) -> Page:
    line = Line(words=(_word("World", 60), _word("Hello", 0)))
    return Page(lines=(line,), width=200, height=100, number=number)


def _recognized(*pages: Page) -> RecognitionResult:
    return RecognitionResult(PagedContent(pages), Provenance.RECOGNIZED, 90, "scripted")


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (200, 100), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


def _text_pdf_bytes() -> bytes:
    pdf = pikepdf.new()
    font = pdf.make_indirect(
        pikepdf.Dictionary(
            Type=pikepdf.Name("/Font"),
            Subtype=pikepdf.Name("/Type1"),
            BaseFont=pikepdf.Name("/Helvetica"),
        )
    )
    page = pdf.add_blank_page(page_size=(612, 792))
    page.obj.Resources = pikepdf.Dictionary(Font=pikepdf.Dictionary(F1=font))
    lines = ["Statement of account", "Opening balance 100", "Closing balance 120", "Thank you"]
    stream = b"\n".join(
        f"BT /F1 12 Tf 72 {700 - 20 * index} Td ({line}) Tj ET".encode("ascii") for index, line in enumerate(lines)
    )
    page.contents_add(pdf.make_stream(stream + b"\n"))
    buffer = io.BytesIO()
    pdf.save(buffer, compress_streams=False)
    return buffer.getvalue()


class ScriptedClient:
    engine_name = "scripted"

    def __init__(self, pages: tuple[Page, ...]) -> None:
        self.pages = pages

    def submit(self, data: bytes, content_type: str) -> str:
        return "job"

    def poll(self, handle: str) -> PollResponse:
        return PollResponse(status=JobStatus.SUCCEEDED, pages=self.pages)


class ExplodingOrchestrator:
    """Stands in for a recognizer that crashes on one named document."""

    def __init__(self, fail_on: str) -> None:
        self.fail_on = fail_on
        self.seen: list[str] = []

    def recognize(self, data: bytes, content_type: str, *, source_name: str = "document") -> RecognitionResult:
        self.seen.append(source_name)
        if source_name == self.fail_on:
            raise RuntimeError("engine crashed")
        return _recognized(_hello_page())


def test_build_text_single_page():
    assert build_text(_recognized(_hello_page())) == "Hello World"


def test_build_text_marks_pages_and_empty_pages():
    text = build_text(_recognized(_hello_page(1), Page(lines=(), number=2)))

    assert text == "--- Page 1 ---\nHello World\n\n--- Page 2 ---\nNo text recognized on this page."


def test_build_text_without_pages():
    assert build_text(_recognized()) == "No text detected"


def test_build_text_returns_plain_content_unchanged():
    result = RecognitionResult(PlainContent("  as  extracted \n"), Provenance.SKIPPED, 95, "existing-text")

    assert build_text(result) == "  as  extracted \n"


def test_document_input_from_path_guesses_content_type(tmp_path: Path):
    source = tmp_path / "scan.png"
    source.write_bytes(_png_bytes())

    document = DocumentInput.from_path(source)

    assert document.name == "scan.png"
    assert document.content_type == "image/png"
    assert document.source == source
    assert not document.is_document


def test_missing_credential_produces_simulated_artifact(tmp_path: Path):
    output = tmp_path / "scan_searchable.pdf"

    processed = process_document(
        DocumentInput("scan.png", _png_bytes(), "image/png"),
        _settings(),
        output_path=output,
    )

    summary = processed.summary()
    assert summary["confidence"] == 50
    assert summary["engine"] == "simulation"
    assert summary["skippedRecognition"] is False
    assert summary["pages"] == 1
    assert "[FALLBACK]" in summary["text"]
    assert processed.outcome.method == "plain-text"
    assert output.exists()


def test_existing_text_skips_recognition_and_reuses_bytes(tmp_path: Path):
    data = _text_pdf_bytes()
    output = tmp_path / "statement_searchable.pdf"
    orchestrator = ExplodingOrchestrator(fail_on="statement.pdf")

    processed = process_document(
        DocumentInput("statement.pdf", data, "application/pdf"),
        _settings(),
        output_path=output,
        orchestrator=orchestrator,
    )

    assert orchestrator.seen == []
    assert processed.result.provenance is Provenance.SKIPPED
    assert processed.summary()["skippedRecognition"] is True
    assert processed.summary()["confidence"] == 95
    assert processed.summary()["engine"] == "existing-text"
    assert "Opening balance" in processed.text
    assert output.read_bytes() == data


def test_recognized_image_gets_image_overlay(tmp_path: Path):
    orchestrator = RecognitionOrchestrator(_settings(), ScriptedClient((_hello_page(),)), wait=lambda _seconds: False)

    processed = process_document(
        DocumentInput("scan.png", _png_bytes(), "image/png"),
        _settings(),
        output_path=tmp_path / "scan.pdf",
        orchestrator=orchestrator,
    )

    assert processed.text == "Hello World"
    assert processed.result.confidence == 90
    assert processed.outcome.method == "image-overlay"


def test_without_output_path_no_artifact_is_written(tmp_path: Path):
    processed = process_document(DocumentInput("scan.png", _png_bytes(), "image/png"), _settings())

    assert processed.outcome is None
    assert list(tmp_path.iterdir()) == []


def test_oversized_input_is_rejected():
    with pytest.raises(InputTooLarge, match="exceeds limit of 10 bytes"):
        process_document(DocumentInput("big.png", b"x" * 11, "image/png"), _settings(max_file_size_bytes=10))


def test_unsupported_type_is_rejected():
    with pytest.raises(UnsupportedMimeType, match="Only images and PDFs"):
        process_document(DocumentInput("notes.txt", b"hello", "text/plain"), _settings())


def test_batch_isolates_failures(tmp_path: Path):
    documents = [
        DocumentInput("first.png", _png_bytes(), "image/png"),
        DocumentInput("notes.txt", b"hello", "text/plain"),
        DocumentInput("crash.png", _png_bytes(), "image/png"),
        DocumentInput("last.png", _png_bytes(), "image/png"),
    ]

    items = process_batch(
        documents,
        _settings(),
        output_path_for=lambda document: tmp_path / f"{Path(document.name).stem}_searchable.pdf",
        orchestrator=ExplodingOrchestrator(fail_on="crash.png"),
        workers=2,
    )

    assert [item.name for item in items] == ["first.png", "notes.txt", "crash.png", "last.png"]
    assert [item.success for item in items] == [True, False, False, True]
    assert "Unsupported content type" in items[1].error
    assert "engine crashed" in items[2].error
    assert items[3].document.text == "Hello World"
    assert (tmp_path / "first_searchable.pdf").exists()
    assert not (tmp_path / "crash_searchable.pdf").exists()


def test_empty_batch():
    assert process_batch([], _settings()) == []


def test_batch_isolates_output_path_failures(tmp_path: Path):
    documents = [
        DocumentInput("good.png", _png_bytes(), "image/png", source=tmp_path / "good.png"),
        DocumentInput("pasted.png", _png_bytes(), "image/png"),
    ]

    items = process_batch(
        documents,
        _settings(),
        output_path_for=lambda document: tmp_path / f"{document.source.stem}_searchable.pdf",
        orchestrator=ExplodingOrchestrator(fail_on=""),
        workers=2,
    )

    assert [item.success for item in items] == [True, False]
    assert items[1].error.startswith("Unexpected error:")
    assert (tmp_path / "good_searchable.pdf").exists()
