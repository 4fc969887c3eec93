from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from marketwatch.batch.log import FileResult, ProcessedLog, ProcessedLogStore
from marketwatch.batch.reader import discover_files, read_records
from marketwatch.config import BatchConfig
from marketwatch.errors import NoValidRecordsError, UploadFailure
from marketwatch.extraction.normalizer import CanonicalRecord, normalize_records
from marketwatch.extraction.profiles import ProfileRegistry, detect_source
from marketwatch.upload.client import UploadResult

logger = logging.getLogger(__name__)


class Uploader(Protocol):
    async def upload(self, records: Sequence[CanonicalRecord]) -> UploadResult: ...


@dataclass
class RunSummary:
    processed_count: int = 0
    failed_count: int = 0
    total_items_uploaded: int = 0
    failed_files: list[tuple[str, str]] = field(default_factory=list)
    results: list[FileResult] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed_count else 0

    def to_dict(self) -> dict[str, int]:
        return {
            "processedCount": self.processed_count,
            "failedCount": self.failed_count,
            "totalItemsUploaded": self.total_items_uploaded,
        }


def _chunks(paths: Sequence[Path], size: int) -> list[list[Path]]:
    return [list(paths[start : start + size]) for start in range(0, len(paths), size)]


class BatchDriver:
    def __init__(
        self,
        config: BatchConfig,
        uploader: Uploader,
        log_store: ProcessedLogStore,
        registry: ProfileRegistry | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.uploader = uploader
        self.log_store = log_store
        self.registry = registry or ProfileRegistry()
        self._sleep = sleep

    async def run(self) -> RunSummary:
        log = self.log_store.load()
        files = discover_files(self.config.directory, self.config.file_pattern)
        if self.config.skip_existing:
            done = log.processed_paths()
            pending = [path for path in files if str(path) not in done]
        else:
            pending = files

        logger.info(
            "Found %s matching files in %s, %s to process",
            len(files),
            self.config.directory,
            len(pending),
        )
        return await self._process_groups(pending, log)

    async def retry_failed(self) -> RunSummary:
        log = self.log_store.load()
        failed_paths = log.failed_paths()
        if not failed_paths:
            logger.info("No failed files to retry")
            return RunSummary()

        logger.info("Retrying %s failed files", len(failed_paths))
        log.failed = []
        self.log_store.save(log)
        return await self._process_groups([Path(path) for path in failed_paths], log)

    def clear_log(self) -> None:
        self.log_store.clear()

    async def _process_groups(self, paths: Sequence[Path], log: ProcessedLog) -> RunSummary:
        summary = RunSummary()
        groups = _chunks(paths, self.config.concurrency)
        for number, group in enumerate(groups, start=1):
            logger.info("Processing group %s/%s (%s files)", number, len(groups), len(group))
            results = await asyncio.gather(*(self.process_file(path) for path in group))

            for result in results:
                log.record(result)
                summary.results.append(result)
                if result.success:
                    summary.processed_count += 1
                    summary.total_items_uploaded += result.processed or 0
                else:
                    summary.failed_count += 1
                    summary.failed_files.append((result.file_name, result.error or ""))
            self.log_store.save(log)

            if number < len(groups) and self.config.group_delay_seconds > 0:
                logger.info("Waiting %.1f seconds before next group", self.config.group_delay_seconds)
                await self._sleep(self.config.group_delay_seconds)

        logger.info(
            "Batch finished: processed=%s failed=%s items_uploaded=%s",
            summary.processed_count,
            summary.failed_count,
            summary.total_items_uploaded,
        )
        return summary

    async def process_file(self, path: Path) -> FileResult:
        """Normalize and upload one file; every failure becomes a failed result."""
        source: str | None = None
        try:
            records = await asyncio.to_thread(read_records, path)
            source = self.config.source_override or detect_source(path.name, records, self.registry)
            profile = self.registry.get(source)
            batch = normalize_records(records, profile, self.registry.market_domains)
            logger.info(
                "%s: source=%s market=%s items=%s valid=%s skipped=%s",
                path.name,
                profile.name,
                profile.market_name,
                len(records),
                len(batch.records),
                len(batch.skipped),
            )
            if not batch.records:
                raise NoValidRecordsError(f"No valid items to upload after processing {path.name}")

            output_dir = self.config.processed_output_dir
            if output_dir is not None:
                await asyncio.to_thread(_write_processed_copy, output_dir, path, batch.records)

            upload = await self.uploader.upload(batch.records)
        except Exception as exc:
            if isinstance(exc, UploadFailure) and exc.connection_refused:
                logger.warning("%s: upload boundary refused the connection", path.name)
            logger.warning("%s failed: %s", path.name, exc)
            return FileResult(file=str(path), file_name=path.name, success=False, source=source, error=str(exc))

        for detail in upload.error_details[:5]:
            logger.warning("%s upload error: %s", path.name, detail)
        return FileResult(
            file=str(path),
            file_name=path.name,
            success=True,
            source=source,
            processed=upload.processed,
            errors=upload.errors,
            skipped=upload.skipped,
            rejected=len(batch.skipped),
        )


def _write_processed_copy(output_dir: Path, path: Path, records: Sequence[CanonicalRecord]) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / f"processed_{path.name}"
    payload = [record.to_payload() for record in records]
    target.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
