from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkerSettings(BaseSettings):
    database_url: str = "sqlite:///./marketwatch.db"
    api_url: str = "http://localhost:8000/api/scrape"
    request_timeout_seconds: float = 60.0
    data_directory: str = "./scraped-data"
    file_pattern: str = r"\.json$"
    processed_log_path: str = "./processed-files.json"
    processed_output_dir: str | None = None
    profiles_path: str | None = None
    concurrency: int = Field(default=2, ge=1)
    group_delay_seconds: float = Field(default=2.0, ge=0.0)
    delete_batch_size: int = Field(default=50, ge=1)
    delete_batch_delay_seconds: float = Field(default=0.2, ge=0.0)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="MARKETWATCH_", extra="ignore")


@lru_cache
def get_settings() -> WorkerSettings:
    return WorkerSettings()


@dataclass(frozen=True)
class BatchConfig:
    directory: Path
    file_pattern: re.Pattern[str] = re.compile(r"\.json$", re.IGNORECASE)
    concurrency: int = 2
    group_delay_seconds: float = 2.0
    skip_existing: bool = False
    source_override: str | None = None
    processed_output_dir: Path | None = None

    @classmethod
    def from_settings(
        cls,
        settings: WorkerSettings,
        directory: str | None = None,
        concurrency: int | None = None,
        skip_existing: bool = False,
        source_override: str | None = None,
    ) -> BatchConfig:
        output_dir = settings.processed_output_dir
        return cls(
            directory=Path(directory or settings.data_directory),
            file_pattern=re.compile(settings.file_pattern, re.IGNORECASE),
            concurrency=max(1, concurrency if concurrency is not None else settings.concurrency),
            group_delay_seconds=max(0.0, settings.group_delay_seconds),
            skip_existing=skip_existing,
            source_override=source_override,
            processed_output_dir=Path(output_dir) if output_dir else None,
        )
