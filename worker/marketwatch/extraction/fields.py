from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation

from bs4 import BeautifulSoup

RawValue = str | int | float | bool | None
RawRecord = Mapping[str, object]

CURRENCY_SYMBOL = "₦"

# Mis-decoded forms of the naira sign seen in scraped exports. Longest first so
# a double-encoded sequence is not half-repaired by a shorter entry.
CURRENCY_REPAIRS: tuple[tuple[str, str], ...] = (
    ("Ã¢â€šÂ¦", CURRENCY_SYMBOL),
    ("â‚¦", CURRENCY_SYMBOL),
    ("â€¹", CURRENCY_SYMBOL),
    ("â‚¬", CURRENCY_SYMBOL),
    ("&#x20A6;", CURRENCY_SYMBOL),
    ("&#x20a6;", CURRENCY_SYMBOL),
    ("&#8358;", CURRENCY_SYMBOL),
    ("&#8358", CURRENCY_SYMBOL),
)

MARKET_FIELDS = ("market", "store", "shop")

DEFAULT_MARKET_DOMAINS: tuple[tuple[str, str], ...] = (
    ("jumia", "Jumia"),
    ("konga", "Konga"),
    ("supermart", "Supermart"),
    ("shoprite", "Shoprite"),
    ("spar", "Spar"),
)

NEGATIVE_PREFIX_RE = re.compile(r"-[₦N$]?\s*$", re.IGNORECASE)
WHITESPACE_RE = re.compile(r"\s+")


def repair_currency_text(value: str) -> str:
    repaired = value
    for corrupted, symbol in CURRENCY_REPAIRS:
        repaired = repaired.replace(corrupted, symbol)
    return repaired


def clean_text(value: object) -> str:
    if value is None:
        return ""
    text = str(value)
    if "<" in text or "&" in text:
        text = BeautifulSoup(text, "html.parser").get_text(" ")
    return WHITESPACE_RE.sub(" ", text).strip()


def _is_present(value: object) -> bool:
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def find_field(record: RawRecord, candidates: Sequence[str]) -> RawValue:
    """Return the first candidate field holding a usable scalar value.

    Candidate order is priority order among synonymous field names. Missing
    keys, nulls, blank strings and nested containers are all treated as absent,
    while falsy scalars such as ``0`` count as present.
    """
    for name in candidates:
        value = record.get(name)
        if _is_present(value):
            return value  # type: ignore[return-value]
    return None


def _positive_amount(amount: Decimal) -> Decimal | None:
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def extract_price(raw: RawValue, pattern: re.Pattern[str]) -> Decimal | None:
    """Parse a scraped price into a positive Decimal.

    Corrupted currency symbols and markup are repaired before ``pattern`` is
    applied. The pattern's ``amount`` group (or its first group) must capture
    either a comma-grouped or a plain integer/decimal number. Unparsable,
    negative, zero and non-finite inputs yield ``None``.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        try:
            return _positive_amount(Decimal(str(raw)))
        except InvalidOperation:
            return None

    text = clean_text(repair_currency_text(str(raw)))
    if not text:
        return None

    match = pattern.search(text)
    if not match:
        return None

    group = "amount" if "amount" in pattern.groupindex else 1
    if NEGATIVE_PREFIX_RE.search(text[: match.start(group)]):
        return None

    digits = re.sub(r"[,\s]", "", match.group(group))
    try:
        amount = Decimal(digits)
    except InvalidOperation:
        return None
    return _positive_amount(amount)


def extract_market(
    record: RawRecord,
    fallback: str,
    url: str | None,
    market_domains: Sequence[tuple[str, str]] = DEFAULT_MARKET_DOMAINS,
) -> str:
    explicit = find_field(record, MARKET_FIELDS)
    if explicit is not None:
        name = clean_text(explicit)
        if name:
            return name

    if url:
        lowered = url.lower()
        for domain, market_name in market_domains:
            if domain in lowered:
                return market_name

    return fallback


def format_price(amount: Decimal) -> str:
    return f"{CURRENCY_SYMBOL}{amount:,.2f}"
