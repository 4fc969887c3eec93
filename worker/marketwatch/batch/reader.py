from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from marketwatch.errors import FatalRunError, MalformedInputError

logger = logging.getLogger(__name__)


def discover_files(directory: Path, pattern: re.Pattern[str]) -> list[Path]:
    if not directory.exists():
        raise FatalRunError(f"Data directory not found: {directory}")
    if not directory.is_dir():
        raise FatalRunError(f"Data directory is not a directory: {directory}")
    try:
        entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
    except OSError as exc:
        raise FatalRunError(f"Cannot list data directory {directory}: {exc}") from exc
    return [entry for entry in entries if entry.is_file() and pattern.search(entry.name)]


def decode_bytes(payload: bytes, source: str) -> str:
    try:
        return payload.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("%s is not valid UTF-8, decoding as cp1252", source)
        return payload.decode("cp1252", errors="replace")


def read_records(path: Path) -> list[object]:
    """Read one scraped file as a non-empty JSON array of records."""
    text = decode_bytes(path.read_bytes(), str(path))
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedInputError(f"Invalid JSON in {path.name}: {exc.msg} (line {exc.lineno})") from exc

    if not isinstance(data, list) or not data:
        raise MalformedInputError(f"Invalid data format in {path.name}. Expected non-empty array.")
    return data
