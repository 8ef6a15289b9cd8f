from __future__ import annotations

import shutil
from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_FILE_SIZE_BYTES = 20 * 1024 * 1024


class Settings(BaseSettings):
    """Process-wide settings, read once from the environment and ``.env``.

    Recognition credentials keep the names the Azure tooling uses
    (``VISION_KEY``/``VISION_ENDPOINT``); everything else takes the
    ``SEARCHABLE_SCAN_`` prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="SEARCHABLE_SCAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        frozen=True,
        populate_by_name=True,
    )

    engine: Literal["azure", "tesseract"] = "azure"
    vision_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("VISION_KEY", "SEARCHABLE_SCAN_VISION_KEY", "vision_key"),
    )
    vision_endpoint: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("VISION_ENDPOINT", "SEARCHABLE_SCAN_VISION_ENDPOINT", "vision_endpoint"),
    )
    read_api_version: str = "v3.2"
    request_timeout_seconds: float = 30.0

    poll_interval_seconds: float = Field(default=1.0, ge=0)
    max_poll_attempts: int = Field(default=30, ge=1)

    tesseract_lang: str = "eng"
    tesseract_psm: int = Field(default=3, ge=0, le=13)
    render_dpi: int = Field(default=300, ge=36)

    max_file_size_bytes: int = Field(default=MAX_FILE_SIZE_BYTES, ge=1)
    workers: int = Field(default=4, ge=1)

    @property
    def has_credential(self) -> bool:
        if self.engine == "tesseract":
            return shutil.which("tesseract") is not None
        return bool(self.vision_key and self.vision_endpoint)


@lru_cache
def get_settings() -> Settings:
    return Settings()
