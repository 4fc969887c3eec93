from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from marketwatch.extraction.fields import (
    DEFAULT_MARKET_DOMAINS,
    clean_text,
    extract_market,
    extract_price,
    find_field,
    format_price,
)
from marketwatch.extraction.profiles import SourceProfile

logger = logging.getLogger(__name__)

MISSING_TITLE = "missing-title"
INVALID_PRICE = "invalid-price"
NOT_AN_OBJECT = "not-an-object"


@dataclass(frozen=True)
class CanonicalRecord:
    title: str
    price: Decimal
    url: str
    market: str
    source_index: int

    @property
    def display_price(self) -> str:
        return format_price(self.price)

    def to_payload(self) -> dict[str, object]:
        return {
            "title": self.title,
            "price": self.display_price,
            "url": self.url,
            "market": self.market,
            "sourceIndex": self.source_index,
        }


@dataclass(frozen=True)
class SkippedRecord:
    source_index: int
    reason: str
    raw_value: str | None = None


@dataclass
class NormalizedBatch:
    records: list[CanonicalRecord] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)


def normalize_record(
    raw: object,
    profile: SourceProfile,
    index: int,
    market_domains: Sequence[tuple[str, str]] = DEFAULT_MARKET_DOMAINS,
) -> CanonicalRecord | SkippedRecord:
    if not isinstance(raw, Mapping):
        return SkippedRecord(source_index=index, reason=NOT_AN_OBJECT)

    title = clean_text(find_field(raw, profile.title_fields))
    if not title:
        return SkippedRecord(source_index=index, reason=MISSING_TITLE)

    raw_price = find_field(raw, profile.price_fields)
    price = extract_price(raw_price, profile.price_pattern)
    if price is None:
        return SkippedRecord(
            source_index=index,
            reason=INVALID_PRICE,
            raw_value=None if raw_price is None else str(raw_price),
        )

    url = clean_text(find_field(raw, profile.url_fields))
    return CanonicalRecord(
        title=title,
        price=price,
        url=url,
        market=extract_market(raw, profile.market_name, url, market_domains),
        source_index=index,
    )


def normalize_records(
    records: Sequence[object],
    profile: SourceProfile,
    market_domains: Sequence[tuple[str, str]] = DEFAULT_MARKET_DOMAINS,
) -> NormalizedBatch:
    batch = NormalizedBatch()
    for index, raw in enumerate(records, start=1):
        outcome = normalize_record(raw, profile, index, market_domains)
        if isinstance(outcome, SkippedRecord):
            logger.debug("Skipping item %s: %s %r", outcome.source_index, outcome.reason, outcome.raw_value)
            batch.skipped.append(outcome)
        else:
            batch.records.append(outcome)
    return batch
