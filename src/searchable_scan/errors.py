from __future__ import annotations

from typing import Any


class SearchableScanError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationUnavailable(SearchableScanError):
    pass


class RecognitionError(SearchableScanError):
    def __init__(self, message: str, job: Any = None) -> None:
        super().__init__(message)
        self.job = job


class RecognitionFailed(RecognitionError):
    pass


class RecognitionTimeout(RecognitionError):
    pass


class RecognitionCancelled(RecognitionError):
    pass


class MalformedGeometry(SearchableScanError):
    pass


class OverlayTargetUnsupported(SearchableScanError):
    pass


class InputRejected(SearchableScanError):
    """Raised for inputs that have no safe degraded output."""


class InputTooLarge(InputRejected):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"File size {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class UnsupportedMimeType(InputRejected):
    def __init__(self, content_type: str) -> None:
        super().__init__(
            f"Unsupported content type {content_type!r}. Only images and PDFs are supported."
        )
        self.content_type = content_type
