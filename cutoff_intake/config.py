from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CUTOFF_INTAKE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ingestion
    chunk_size: int = Field(100, ge=1)
    preview_rows: int = Field(5, ge=0)
    invalid_rows_shown: int = Field(10, ge=1)
    # False keeps the strict header gate; True downgrades extra columns to a warning
    allow_extra_columns: bool = False
    min_encoding_confidence: float = Field(0.5, ge=0.0, le=1.0)

    log_level: str = "INFO"

    # storage
    store_path: Path = Path("cutoff-data.json")
    store_url: str | None = None
    store_key: str | None = None
    table_suffix: str = ""
    request_timeout: float = Field(30.0, gt=0)


settings = Settings()
