"""Environment-driven settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LibrarySettings(BaseSettings):
    """Runtime settings loaded from ``DOC_LIBRARY_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DOC_LIBRARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # None means the synonym table bundled with the package.
    synonyms_path: Path | None = None

    # "tantivy" needs the optional tantivy extra; None path keeps it in RAM.
    index_engine: Literal["memory", "tantivy"] = "memory"
    index_path: Path | None = None

    log_level: str = "INFO"
    log_format: str = "console"

    default_limit: int = 10

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"console", "json"}:
            raise ValueError("log_format must be 'console' or 'json'")
        return value
