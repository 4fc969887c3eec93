"""Post-hoc catalog maintenance.

Duplicate merging and orphan removal both read the catalog and then act on
what they read; neither is atomic against concurrent writers, so they are meant
to run while uploads are quiet. A later invocation corrects whatever a race
left behind.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from marketwatch.store.base import CatalogStore, DuplicateGroup, StoreStats, batched

logger = logging.getLogger(__name__)


@dataclass
class MergeReport:
    groups: int = 0
    items_removed: int = 0
    observations_moved: int = 0
    failed_groups: list[tuple[DuplicateGroup, str]] = field(default_factory=list)


@dataclass
class OrphanReport:
    found: int = 0
    removed: int = 0
    error: str | None = None


class ConsistencyRepairer:
    def __init__(
        self,
        store: CatalogStore,
        delete_batch_size: int = 50,
        delete_batch_delay_seconds: float = 0.2,
        sleep: Callable[[float], object] = time.sleep,
    ) -> None:
        self.store = store
        self.delete_batch_size = max(1, delete_batch_size)
        self.delete_batch_delay_seconds = max(0.0, delete_batch_delay_seconds)
        self._sleep = sleep

    def analyze(self) -> StoreStats:
        return self.store.stats()

    def merge_duplicates(self) -> MergeReport:
        report = MergeReport()
        for group in self.store.find_duplicate_groups():
            ids = self.store.list_item_ids(group.name, group.unit)
            if len(ids) < 2:
                continue
            survivor, duplicates = ids[0], ids[1:]
            report.groups += 1
            try:
                moved = 0
                with self.store.unit_of_work():
                    for duplicate_id in duplicates:
                        moved += self.store.repoint_observations(duplicate_id, survivor)
                    removed = self.store.delete_items(duplicates)
            except Exception as exc:
                logger.warning("Could not merge duplicates of %r (%s): %s", group.name, group.unit, exc)
                report.failed_groups.append((group, str(exc)))
                continue

            logger.info(
                "Keeping item %s for %r (%s), removed %s duplicates",
                survivor,
                group.name,
                group.unit,
                removed,
            )
            report.items_removed += removed
            report.observations_moved += moved
        return report

    def remove_orphans(self) -> OrphanReport:
        ids = self.store.list_items_without_observations()
        report = OrphanReport(found=len(ids))
        if not ids:
            return report

        logger.info("Removing %s items without prices", len(ids))
        batches = list(batched(ids, self.delete_batch_size))
        for number, batch in enumerate(batches, start=1):
            try:
                with self.store.unit_of_work():
                    report.removed += self.store.delete_items(batch)
            except Exception as exc:
                logger.warning("Orphan delete batch %s/%s failed, stopping: %s", number, len(batches), exc)
                report.error = str(exc)
                break
            if number < len(batches) and self.delete_batch_delay_seconds > 0:
                self._sleep(self.delete_batch_delay_seconds)
        return report

    def full_cleanup(self) -> tuple[MergeReport, OrphanReport]:
        return self.merge_duplicates(), self.remove_orphans()
