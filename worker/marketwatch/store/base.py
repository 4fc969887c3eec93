from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class DuplicateGroup:
    name: str
    unit: str
    count: int


@dataclass
class StoreStats:
    items: int
    markets: int
    prices: int
    duplicate_groups: list[DuplicateGroup] = field(default_factory=list)
    orphan_items: int = 0
    recent_dates: list[date] = field(default_factory=list)


class CatalogStore(ABC):
    """Narrow storage contract used by the consistency repairer."""

    @abstractmethod
    def find_duplicate_groups(self) -> list[DuplicateGroup]:
        raise NotImplementedError

    @abstractmethod
    def list_item_ids(self, name: str, unit: str) -> list[str]:
        """Ids of items named ``name``/``unit``, earliest created first."""
        raise NotImplementedError

    @abstractmethod
    def repoint_observations(self, from_item_id: str, to_item_id: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def delete_items(self, ids: Sequence[str]) -> int:
        raise NotImplementedError

    @abstractmethod
    def list_items_without_observations(self) -> list[str]:
        raise NotImplementedError

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[None]:
        """Commit everything done inside the block, or roll it all back."""
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> StoreStats:
        raise NotImplementedError


def batched(ids: Sequence[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(ids), size):
        yield list(ids[start : start + size])
