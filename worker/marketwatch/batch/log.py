"""Processed-file log persistence.

The log records one outcome per file attempt and is what makes batch runs
resumable: successful paths are skipped with ``skip_existing`` and failed paths
feed the retry flow. It is rewritten in full on every flush.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from marketwatch.errors import FatalRunError

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class FileResult(BaseModel):
    file: str
    file_name: str = Field(alias="fileName")
    timestamp: str = Field(default_factory=utc_timestamp)
    success: bool
    source: str | None = None
    processed: int | None = None
    errors: int | None = None
    skipped: int | None = None
    rejected: int | None = None
    error: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class ProcessedLog(BaseModel):
    processed: list[FileResult] = Field(default_factory=list)
    failed: list[FileResult] = Field(default_factory=list)

    def processed_paths(self) -> set[str]:
        return {entry.file for entry in self.processed}

    def failed_paths(self) -> list[str]:
        seen: set[str] = set()
        paths: list[str] = []
        for entry in self.failed:
            if entry.file not in seen:
                seen.add(entry.file)
                paths.append(entry.file)
        return paths

    def record(self, result: FileResult) -> None:
        # A fresh outcome for a path supersedes any earlier failure for it.
        self.failed = [entry for entry in self.failed if entry.file != result.file]
        if result.success:
            self.processed.append(result)
        else:
            self.failed.append(result)


class ProcessedLogStore:
    """Filesystem-backed processed log."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> ProcessedLog:
        """Load the log, starting empty when it is missing or corrupt.

        Raises:
            FatalRunError: If the file exists but cannot be read at all.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ProcessedLog()
        except (OSError, UnicodeDecodeError) as exc:
            raise FatalRunError(f"Cannot read processed log at {self.path}: {exc}") from exc

        try:
            return ProcessedLog.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Could not load processed log at %s, starting fresh: %s", self.path, exc)
            return ProcessedLog()

    def save(self, log: ProcessedLog) -> None:
        payload = log.model_dump(by_alias=True, exclude_none=True)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        os.replace(tmp_path, self.path)

    def clear(self) -> ProcessedLog:
        log = ProcessedLog()
        self.save(log)
        return log
