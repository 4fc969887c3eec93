from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from marketwatch.batch.driver import BatchDriver, RunSummary
from marketwatch.batch.log import ProcessedLogStore
from marketwatch.config import BatchConfig, WorkerSettings, get_settings
from marketwatch.errors import FatalRunError
from marketwatch.extraction.profiles import ProfileRegistry, load_profiles
from marketwatch.repair.repairer import ConsistencyRepairer, MergeReport, OrphanReport
from marketwatch.store.base import StoreStats
from marketwatch.store.db import build_engine, build_session_factory, create_schema
from marketwatch.store.repository import CatalogRepository
from marketwatch.upload.client import UploadClient

CONNECTION_HINT = "Make sure the upload API is running (uvicorn marketwatch_api.main:app)"


def build_registry(settings: WorkerSettings) -> ProfileRegistry:
    registry = ProfileRegistry()
    if settings.profiles_path:
        registry = registry.with_profiles(load_profiles(Path(settings.profiles_path)))
    return registry


async def run_batch(settings: WorkerSettings, config: BatchConfig, api_url: str | None, retry: bool) -> RunSummary:
    log_store = ProcessedLogStore(Path(settings.processed_log_path))
    async with UploadClient(api_url or settings.api_url, settings.request_timeout_seconds) as uploader:
        driver = BatchDriver(config, uploader, log_store, build_registry(settings))
        if retry:
            return await driver.retry_failed()
        return await driver.run()


async def upload_file(settings: WorkerSettings, path: Path, source: str | None, api_url: str | None) -> RunSummary:
    config = BatchConfig.from_settings(settings, directory=str(path.parent), source_override=source)
    async with UploadClient(api_url or settings.api_url, settings.request_timeout_seconds) as uploader:
        driver = BatchDriver(config, uploader, ProcessedLogStore(Path(settings.processed_log_path)), build_registry(settings))
        result = await driver.process_file(path)

    summary = RunSummary(results=[result])
    if result.success:
        summary.processed_count = 1
        summary.total_items_uploaded = result.processed or 0
    else:
        summary.failed_count = 1
        summary.failed_files.append((result.file_name, result.error or ""))
    return summary


def print_summary(summary: RunSummary, retry_hint: bool = True) -> None:
    print(
        f"processed={summary.processed_count} failed={summary.failed_count} "
        f"items_uploaded={summary.total_items_uploaded}"
    )
    for result in summary.results:
        if result.success:
            print(
                f"  ok {result.file_name}: source={result.source} uploaded={result.processed} "
                f"errors={result.errors} skipped={result.skipped} rejected={result.rejected}"
            )
    for file_name, error in summary.failed_files:
        print(f"  failed {file_name}: {error}")
    if any(error.startswith("Connection refused") for _, error in summary.failed_files):
        print(CONNECTION_HINT)
    if summary.failed_files and retry_hint:
        print("Retry failed files with: marketwatch retry")


def print_stats(stats: StoreStats) -> None:
    print(f"items={stats.items} markets={stats.markets} prices={stats.prices}")
    for group in stats.duplicate_groups:
        print(f"  duplicate {group.name!r} ({group.unit or '-'}): {group.count} copies")
    print(f"items_without_prices={stats.orphan_items}")
    if stats.recent_dates:
        print("recent uploads: " + ", ".join(day.isoformat() for day in stats.recent_dates))


def print_repair(merge: MergeReport | None, orphans: OrphanReport | None) -> None:
    if merge is not None:
        print(
            f"duplicates: groups={merge.groups} removed={merge.items_removed} "
            f"prices_moved={merge.observations_moved} failed_groups={len(merge.failed_groups)}"
        )
        for group, error in merge.failed_groups:
            print(f"  failed {group.name!r} ({group.unit or '-'}): {error}")
    if orphans is not None:
        print(f"items without prices: found={orphans.found} removed={orphans.removed}")
        if orphans.error:
            print(f"  stopped early: {orphans.error}")


def run_repair(settings: WorkerSettings, args: argparse.Namespace) -> int:
    engine = build_engine(settings.database_url)
    create_schema(engine)
    session_factory = build_session_factory(engine)
    full = args.full_cleanup
    analyze = args.analyze or not (args.remove_duplicates or args.remove_orphans or full)

    with session_factory() as db:
        repairer = ConsistencyRepairer(
            CatalogRepository(db),
            delete_batch_size=settings.delete_batch_size,
            delete_batch_delay_seconds=settings.delete_batch_delay_seconds,
        )
        if analyze and not full:
            print_stats(repairer.analyze())

        merge = repairer.merge_duplicates() if (args.remove_duplicates or full) else None
        orphans = repairer.remove_orphans() if (args.remove_orphans or full) else None
        print_repair(merge, orphans)

        if full:
            ProcessedLogStore(Path(settings.processed_log_path)).clear()
            print(f"Cleared processed files log at {settings.processed_log_path}")
            print_stats(repairer.analyze())

    failed = (merge is not None and merge.failed_groups) or (orphans is not None and orphans.error)
    return 1 if failed else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="marketwatch", description="Scraped price file ingestion")
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Upload every matching file in a directory")
    run.add_argument("--directory", help="Directory containing scraped JSON files")
    run.add_argument("--concurrency", type=int, help="Files processed at the same time")
    run.add_argument("--skip-existing", action="store_true", help="Skip files already in the processed log")
    run.add_argument("--source", help="Force a source profile instead of auto-detecting")
    run.add_argument("--api-url", help="Upload endpoint")

    retry = commands.add_parser("retry", help="Retry files recorded as failed")
    retry.add_argument("--api-url", help="Upload endpoint")

    commands.add_parser("clear-log", help="Reset the processed files log")

    upload = commands.add_parser("upload", help="Upload a single file without touching the log")
    upload.add_argument("file", type=Path)
    upload.add_argument("--source", help="Force a source profile instead of auto-detecting")
    upload.add_argument("--api-url", help="Upload endpoint")

    repair = commands.add_parser("repair", help="Analyze and repair the catalog store")
    repair.add_argument("--analyze", action="store_true", help="Report counts, duplicates and orphans")
    repair.add_argument("--remove-duplicates", action="store_true", help="Merge duplicate items")
    repair.add_argument("--remove-orphans", action="store_true", help="Delete items without prices")
    repair.add_argument("--full-cleanup", action="store_true", help="Run every repair and clear the log")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "clear-log":
        ProcessedLogStore(Path(settings.processed_log_path)).clear()
        print(f"Cleared processed files log at {settings.processed_log_path}")
        return 0

    if args.command == "repair":
        return run_repair(settings, args)

    try:
        if args.command == "upload":
            summary = asyncio.run(upload_file(settings, args.file, args.source, args.api_url))
            print_summary(summary, retry_hint=False)
            return summary.exit_code

        config = BatchConfig.from_settings(
            settings,
            directory=getattr(args, "directory", None),
            concurrency=getattr(args, "concurrency", None),
            skip_existing=getattr(args, "skip_existing", False),
            source_override=getattr(args, "source", None),
        )
        summary = asyncio.run(run_batch(settings, config, args.api_url, retry=args.command == "retry"))
    except FatalRunError as exc:
        print(f"error: {exc}")
        return 2

    print_summary(summary)
    print(f"Log saved to {settings.processed_log_path}")
    return summary.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
