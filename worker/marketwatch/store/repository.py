from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketwatch.errors import StoreError
from marketwatch.store.base import CatalogStore, DuplicateGroup, StoreStats
from marketwatch.store.models import Item, Market, Price


class CatalogRepository(CatalogStore):
    """SQLAlchemy implementation of the catalog contract.

    Write methods only flush; callers own the transaction, either through
    :meth:`unit_of_work` or by committing the session themselves.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_or_create_item(self, name: str, unit: str, item_url: str | None = None) -> tuple[Item, bool]:
        item = self.db.execute(
            select(Item).where(Item.name == name, Item.unit == unit).order_by(Item.created_at, Item.id).limit(1)
        ).scalar_one_or_none()
        if item is not None:
            if item_url and not item.item_url:
                item.item_url = item_url
            return item, False

        item = Item(name=name, unit=unit, item_url=item_url or None)
        self.db.add(item)
        self.db.flush()
        return item, True

    def find_or_create_market(self, name: str, url: str = "") -> tuple[Market, bool]:
        market = self.db.execute(select(Market).where(Market.name == name)).scalar_one_or_none()
        if market is not None:
            return market, False

        market = Market(name=name, url=url)
        self.db.add(market)
        self.db.flush()
        return market, True

    def insert_price(
        self,
        item_id: str,
        market_id: str,
        price: Decimal,
        date_scraped: datetime | None = None,
    ) -> Price:
        observation = Price(item_id=item_id, market_id=market_id, price=price)
        if date_scraped is not None:
            observation.date_scraped = date_scraped
        self.db.add(observation)
        self.db.flush()
        return observation

    def find_duplicate_groups(self) -> list[DuplicateGroup]:
        rows = self.db.execute(
            select(Item.name, Item.unit, func.count(Item.id))
            .group_by(Item.name, Item.unit)
            .having(func.count(Item.id) > 1)
            .order_by(Item.name, Item.unit)
        ).all()
        return [DuplicateGroup(name=name, unit=unit, count=count) for name, unit, count in rows]

    def list_item_ids(self, name: str, unit: str) -> list[str]:
        return list(
            self.db.execute(
                select(Item.id).where(Item.name == name, Item.unit == unit).order_by(Item.created_at, Item.id)
            ).scalars()
        )

    def repoint_observations(self, from_item_id: str, to_item_id: str) -> int:
        result = self.db.execute(update(Price).where(Price.item_id == from_item_id).values(item_id=to_item_id))
        return result.rowcount or 0

    def delete_items(self, ids: Sequence[str]) -> int:
        if not ids:
            return 0
        result = self.db.execute(delete(Item).where(Item.id.in_(list(ids))))
        return result.rowcount or 0

    def list_items_without_observations(self) -> list[str]:
        has_price = select(Price.id).where(Price.item_id == Item.id).exists()
        return list(self.db.execute(select(Item.id).where(~has_price).order_by(Item.created_at, Item.id)).scalars())

    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError(str(exc)) from exc
        except Exception:
            self.db.rollback()
            raise

    def stats(self) -> StoreStats:
        recent = self.db.execute(select(Price.date_scraped).order_by(Price.date_scraped.desc()).limit(10)).scalars()
        recent_dates: list[date] = []
        for scraped_at in recent:
            day = scraped_at.date()
            if day not in recent_dates:
                recent_dates.append(day)

        return StoreStats(
            items=self.db.scalar(select(func.count(Item.id))) or 0,
            markets=self.db.scalar(select(func.count(Market.id))) or 0,
            prices=self.db.scalar(select(func.count(Price.id))) or 0,
            duplicate_groups=self.find_duplicate_groups(),
            orphan_items=len(self.list_items_without_observations()),
            recent_dates=recent_dates,
        )
