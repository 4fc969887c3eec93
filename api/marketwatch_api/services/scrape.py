from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketwatch.extraction.fields import clean_text, extract_price
from marketwatch.extraction.profiles import GENERIC_PROFILE, ProfileRegistry
from marketwatch.extraction.titles import parse_title
from marketwatch.store.repository import CatalogRepository
from marketwatch_api.core.config import Settings
from marketwatch_api.schemas.scrape import ScrapeRecordIn, ScrapeResponse

logger = logging.getLogger(__name__)

PRICE_PATTERN = ProfileRegistry().get(GENERIC_PROFILE).price_pattern


def ingest_records(db: Session, records: Sequence[ScrapeRecordIn], settings: Settings) -> ScrapeResponse:
    """Store one uploaded batch as price observations.

    Each record is committed on its own so a store failure only costs that
    record; it is reported in ``errors`` and the batch carries on.
    """
    repository = CatalogRepository(db)
    processed = errors = skipped = items_created = markets_created = 0
    error_details: list[str] = []

    for position, record in enumerate(records, start=1):
        index = record.source_index or position
        parsed = parse_title(record.title)
        price = extract_price(record.price, PRICE_PATTERN)
        if parsed is None or price is None:
            skipped += 1
            continue

        market_name = clean_text(record.market) or parsed.market or settings.default_market
        try:
            item, item_created = repository.find_or_create_item(parsed.item, parsed.unit, record.url or None)
            market, market_created = repository.find_or_create_market(market_name)
            repository.insert_price(item.id, market.id, price)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            errors += 1
            logger.warning("Failed to store item %s (%r): %s", index, record.title, exc)
            if len(error_details) < settings.max_error_details:
                error_details.append(f"Item {index} ({record.title}): {exc.__class__.__name__}: {exc}")
            continue

        processed += 1
        items_created += int(item_created)
        markets_created += int(market_created)

    return ScrapeResponse(
        total_items=len(records),
        processed=processed,
        errors=errors,
        skipped=skipped,
        items_created=items_created,
        markets_created=markets_created,
        error_details=error_details,
    )
