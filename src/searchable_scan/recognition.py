"""Submit documents to a recognition engine and poll them to completion.

Engines implement the small ``RecognitionClient`` protocol (``submit`` and
``poll``). ``RecognitionOrchestrator`` drives one submission through
``submitted -> polling -> succeeded | failed | timed-out | cancelled`` and,
through ``recognize``, turns every non-success into a simulated result.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

import httpx
from PIL import Image

from .config import Settings
from .errors import (
    ConfigurationUnavailable,
    RecognitionCancelled,
    RecognitionError,
    RecognitionFailed,
    RecognitionTimeout,
)
from .geometry import quad_from_box
from .models import Line, PagedContent, Page, Provenance, RecognitionResult, Word, average_confidence
from .simulation import simulate

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    NOT_STARTED = "notStarted"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PollResponse:
    status: JobStatus
    pages: tuple[Page, ...] = ()


class RecognitionClient(Protocol):
    engine_name: str

    def submit(self, data: bytes, content_type: str) -> str: ...

    def poll(self, handle: str) -> PollResponse: ...


def _quad(values: Any) -> tuple[float, ...]:
    if not isinstance(values, (list, tuple)):
        return ()
    try:
        return tuple(float(value) for value in values)
    except (TypeError, ValueError):
        return ()


def parse_read_results(read_results: list[dict[str, Any]]) -> tuple[Page, ...]:
    pages: list[Page] = []
    for index, raw_page in enumerate(read_results, start=1):
        lines: list[Line] = []
        for raw_line in raw_page.get("lines") or []:
            words = tuple(
                Word(
                    text=str(raw_word.get("text") or ""),
                    quad=_quad(raw_word.get("boundingBox")),
                    confidence=raw_word.get("confidence"),
                )
                for raw_word in raw_line.get("words") or []
            )
            lines.append(
                Line(
                    words=words,
                    quad=_quad(raw_line.get("boundingBox")),
                    text=str(raw_line.get("text") or ""),
                )
            )
        pages.append(
            Page(
                lines=tuple(lines),
                width=raw_page.get("width"),
                height=raw_page.get("height"),
                number=int(raw_page.get("page") or index),
            )
        )
    return tuple(pages)


class AzureReadClient:
    """Client for the Azure Computer Vision Read API (asynchronous analyze + poll)."""

    engine_name = "azure-read"

    def __init__(
        self,
        endpoint: str,
        key: str,
        *,
        api_version: str = "v3.2",
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.api_version = api_version
        self._headers = {"Ocp-Apim-Subscription-Key": key}
        self._client = http_client or httpx.Client(timeout=timeout)

    @property
    def analyze_url(self) -> str:
        return f"{self.endpoint}/vision/{self.api_version}/read/analyze"

    def submit(self, data: bytes, content_type: str) -> str:
        try:
            response = self._client.post(
                self.analyze_url,
                content=data,
                headers={**self._headers, "Content-Type": "application/octet-stream"},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RecognitionFailed(f"Read request was rejected: {exc}") from exc

        operation = response.headers.get("Operation-Location")
        if not operation:
            raise RecognitionFailed("Read response carried no Operation-Location header")
        return operation

    def poll(self, handle: str) -> PollResponse:
        try:
            response = self._client.get(handle, headers=self._headers)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RecognitionFailed(f"Could not fetch read result: {exc}") from exc

        try:
            status = JobStatus(payload.get("status"))
        except ValueError as exc:
            raise RecognitionFailed(f"Unknown read status {payload.get('status')!r}") from exc

        if status is not JobStatus.SUCCEEDED:
            return PollResponse(status=status)
        read_results = (payload.get("analyzeResult") or {}).get("readResults") or []
        return PollResponse(status=status, pages=parse_read_results(read_results))

    def close(self) -> None:
        self._client.close()


def parse_tesseract_tsv(tsv: str, *, width: int, height: int, page_number: int = 1, min_conf: float = 0) -> Page:
    grouped: dict[tuple[int, int, int], list[Word]] = {}
    rows = tsv.splitlines()
    for row in rows[1:]:
        parts = row.split("\t")
        if len(parts) < 12:
            continue

        text = parts[11].strip()
        if not text:
            continue

        try:
            key = (int(parts[2]), int(parts[3]), int(parts[4]))
            conf = float(parts[10])
            left = int(parts[6])
            top = int(parts[7])
            box_width = int(parts[8])
            box_height = int(parts[9])
        except ValueError:
            continue

        if conf < min_conf or box_width <= 0 or box_height <= 0:
            continue

        grouped.setdefault(key, []).append(
            Word(
                text=text,
                quad=quad_from_box(left, top, box_width, box_height),
                confidence=max(0.0, min(1.0, conf / 100.0)),
            )
        )

    lines = tuple(Line(words=tuple(words), text=" ".join(word.text for word in words)) for words in grouped.values())
    return Page(lines=lines, width=width, height=height, number=page_number)


class TesseractClient:
    """Local engine: ghostscript rasterises PDFs, tesseract emits TSV word boxes.

    Recognition runs synchronously inside ``submit``; ``poll`` hands back the
    stored pages.
    """

    engine_name = "tesseract"

    def __init__(self, *, lang: str = "eng", psm: int = 3, dpi: int = 300, min_conf: float = 0) -> None:
        self.lang = lang
        self.psm = psm
        self.dpi = dpi
        self.min_conf = min_conf
        self._results: dict[str, tuple[Page, ...]] = {}
        self._lock = threading.Lock()

    def _render_pdf_to_png(self, source_pdf: Path, output_dir: Path) -> list[Path]:
        subprocess.run(
            [
                "gs",
                "-q",
                "-dSAFER",
                "-dBATCH",
                "-dNOPAUSE",
                "-sDEVICE=pnggray",
                f"-r{self.dpi}",
                "-o",
                str(output_dir / "page_%05d.png"),
                str(source_pdf),
            ],
            check=True,
        )
        return sorted(output_dir.glob("page_*.png"))

    def _recognize_image(self, image_path: Path, page_number: int) -> Page:
        with Image.open(image_path) as image:
            width, height = image.size

        proc = subprocess.run(
            [
                "tesseract",
                str(image_path),
                "stdout",
                "-l",
                self.lang,
                "--psm",
                str(self.psm),
                "tsv",
            ],
            check=True,
            capture_output=True,
            text=True,
        )
        return parse_tesseract_tsv(
            proc.stdout,
            width=width,
            height=height,
            page_number=page_number,
            min_conf=self.min_conf,
        )

    def submit(self, data: bytes, content_type: str) -> str:
        with tempfile.TemporaryDirectory(prefix="searchable_scan_ocr_") as temp_dir_raw:
            temp_dir = Path(temp_dir_raw)
            try:
                if content_type == "application/pdf":
                    source = temp_dir / "input.pdf"
                    source.write_bytes(data)
                    images = self._render_pdf_to_png(source, temp_dir)
                else:
                    source = temp_dir / "input.img"
                    source.write_bytes(data)
                    images = [source]
                pages = tuple(
                    self._recognize_image(image_path, page_number)
                    for page_number, image_path in enumerate(images, start=1)
                )
            except (OSError, subprocess.CalledProcessError) as exc:
                raise RecognitionFailed(f"tesseract run failed: {exc}") from exc

        handle = uuid.uuid4().hex
        with self._lock:
            self._results[handle] = pages
        return handle

    def poll(self, handle: str) -> PollResponse:
        with self._lock:
            pages = self._results.pop(handle, None)
        if pages is None:
            return PollResponse(status=JobStatus.FAILED)
        return PollResponse(status=JobStatus.SUCCEEDED, pages=pages)


def build_client(settings: Settings) -> RecognitionClient:
    if not settings.has_credential:
        raise ConfigurationUnavailable(f"No credential configured for the {settings.engine} engine")
    if settings.engine == "tesseract":
        return TesseractClient(lang=settings.tesseract_lang, psm=settings.tesseract_psm, dpi=settings.render_dpi)
    return AzureReadClient(
        settings.vision_endpoint,
        settings.vision_key,
        api_version=settings.read_api_version,
        timeout=settings.request_timeout_seconds,
    )


class RecognitionState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed-out"
    CANCELLED = "cancelled"


@dataclass
class RecognitionJob:
    handle: str
    state: RecognitionState = RecognitionState.SUBMITTED
    attempts: int = 0
    suspensions: int = 0
    pages: tuple[Page, ...] = field(default=())


class RecognitionOrchestrator:
    def __init__(
        self,
        settings: Settings,
        client: Optional[RecognitionClient] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
        wait: Optional[Callable[[float], bool]] = None,
    ) -> None:
        self.settings = settings
        self.cancel_event = cancel_event or threading.Event()
        # Returns True when cancellation was requested during the wait.
        self._wait = wait or self.cancel_event.wait
        if client is None and settings.has_credential:
            client = build_client(settings)
        self.client = client

    def __enter__(self) -> "RecognitionOrchestrator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            close()

    def run(self, data: bytes, content_type: str) -> RecognitionJob:
        if self.client is None:
            raise ConfigurationUnavailable("Recognition service is not configured")

        job = RecognitionJob(handle=self.client.submit(data, content_type))
        job.state = RecognitionState.POLLING
        interval = self.settings.poll_interval_seconds
        limit = self.settings.max_poll_attempts

        while True:
            if self.cancel_event.is_set():
                job.state = RecognitionState.CANCELLED
                raise RecognitionCancelled("Recognition cancelled before completion", job)

            response = self.client.poll(job.handle)
            job.attempts += 1
            logger.info("Recognition status: %s (attempt %d)", response.status.value, job.attempts)

            if response.status is JobStatus.SUCCEEDED:
                job.state = RecognitionState.SUCCEEDED
                job.pages = response.pages
                return job
            if response.status is JobStatus.FAILED:
                job.state = RecognitionState.FAILED
                raise RecognitionFailed("Recognition operation failed", job)
            if job.attempts >= limit:
                job.state = RecognitionState.TIMED_OUT
                raise RecognitionTimeout(f"Recognition did not finish after {limit} attempts", job)

            job.suspensions += 1
            if self._wait(interval):
                job.state = RecognitionState.CANCELLED
                raise RecognitionCancelled("Recognition cancelled while polling", job)

    def recognize(self, data: bytes, content_type: str, *, source_name: str = "document") -> RecognitionResult:
        try:
            job = self.run(data, content_type)
        except (ConfigurationUnavailable, RecognitionError) as exc:
            return simulate(source_name, len(data), str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected recognition error for %s", source_name)
            return simulate(source_name, len(data), f"Unexpected error: {exc}")

        logger.info("Recognition finished for %s: %d page(s)", source_name, len(job.pages))
        return RecognitionResult(
            content=PagedContent(job.pages),
            provenance=Provenance.RECOGNIZED,
            confidence=average_confidence(job.pages),
            engine=self.client.engine_name,
        )
