from __future__ import annotations

import re
from dataclasses import dataclass

from marketwatch.extraction.fields import clean_text

UNIT_RE = re.compile(
    r"\b(\d+(?:\.\d+)?\s?(?:kg|g|cl|ml|l|litres?|liters?|tubers?|bags?|pcs|pack))\b",
    re.IGNORECASE,
)
TRAILING_MARKET_RE = re.compile(r"\(([^)]+)\)\s*$")
CONTAINER_WORD_RE = re.compile(r"\b(bag|tuber)s?\b", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedTitle:
    item: str
    unit: str
    market: str | None = None


def _title_case(value: str) -> str:
    cased = re.sub(r"\b\w", lambda match: match.group(0).upper(), value.lower())
    return re.sub(r"\bAnd\b", "and", cased)


def parse_title(title: str) -> ParsedTitle | None:
    """Split a listing title such as ``"Golden Penny Rice 50kg (Jumia)"``.

    Returns the item name, a compact lower-case unit (``"50kg"``, empty when
    the title carries none) and any trailing parenthesised market name.
    """
    text = clean_text(title)
    if not text:
        return None

    market = None
    market_match = TRAILING_MARKET_RE.search(text)
    if market_match:
        market = market_match.group(1).strip() or None
        text = text[: market_match.start()].strip()

    unit = ""
    unit_match = UNIT_RE.search(text)
    if unit_match:
        unit = re.sub(r"\s+", "", unit_match.group(1)).lower()
        text = text[: unit_match.start()] + " " + text[unit_match.end() :]

    item = CONTAINER_WORD_RE.sub(" ", text)
    item = re.sub(r"[_–—-]", " ", item)
    item = re.sub(r"[:\s]+$", "", item)
    item = re.sub(r"\s{2,}", " ", item).strip()
    if not item:
        return None
    return ParsedTitle(item=_title_case(item), unit=unit, market=market)
