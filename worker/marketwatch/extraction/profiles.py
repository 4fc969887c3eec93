from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from marketwatch.extraction.fields import DEFAULT_MARKET_DOMAINS

logger = logging.getLogger(__name__)

GENERIC_PROFILE = "generic"

AMOUNT_GROUP = r"(?P<amount>[0-9]{1,3}(?:,[0-9]{3})+(?:\.[0-9]+)?|[0-9]+(?:\.[0-9]+)?)"
WHOLE_AMOUNT_GROUP = r"(?P<amount>[0-9]{1,3}(?:,[0-9]{3})+|[0-9]+)"


@dataclass(frozen=True)
class SourceProfile:
    name: str
    title_fields: tuple[str, ...]
    price_fields: tuple[str, ...]
    url_fields: tuple[str, ...]
    price_pattern: re.Pattern[str]
    market_name: str
    filename_hints: tuple[str, ...] = ()
    key_signatures: tuple[frozenset[str], ...] = ()

    def matches_keys(self, keys: set[str]) -> bool:
        return any(signature <= keys for signature in self.key_signatures)


def build_profile(
    name: str,
    title_fields: Sequence[str],
    price_fields: Sequence[str],
    url_fields: Sequence[str],
    price_pattern: str,
    market_name: str,
    filename_hints: Sequence[str] = (),
    key_signatures: Iterable[Iterable[str]] = (),
) -> SourceProfile:
    pattern = re.compile(price_pattern, re.IGNORECASE)
    if pattern.groups < 1:
        raise ValueError(f"Price pattern for profile {name!r} must capture the amount in a group")
    return SourceProfile(
        name=name,
        title_fields=tuple(title_fields),
        price_fields=tuple(price_fields),
        url_fields=tuple(url_fields),
        price_pattern=pattern,
        market_name=market_name,
        filename_hints=tuple(hint.lower() for hint in filename_hints),
        key_signatures=tuple(frozenset(key.lower() for key in signature) for signature in key_signatures),
    )


DEFAULT_PROFILES: tuple[SourceProfile, ...] = (
    build_profile(
        name="supermart",
        title_fields=["Title", "title", "name", "product_name", "item_name"],
        price_fields=["Price", "price", "cost", "amount"],
        url_fields=["Title_URL", "url", "product_url", "link", "href"],
        price_pattern=r"[₦N]?\s*" + AMOUNT_GROUP,
        market_name="Supermart",
        filename_hints=["supermart"],
        key_signatures=[{"title", "price", "title_url"}],
    ),
    build_profile(
        name="jumia",
        title_fields=["Title", "product_name", "title", "name"],
        price_fields=["prc", "price", "current_price", "selling_price"],
        url_fields=["Title_URL", "product_url", "url", "link"],
        price_pattern=r"[₦N]?\s*" + WHOLE_AMOUNT_GROUP,
        market_name="Jumia",
        filename_hints=["jumia"],
        key_signatures=[{"title", "prc", "title_url"}, {"product_name", "selling_price"}],
    ),
    build_profile(
        name="konga",
        title_fields=["name", "product_name", "title"],
        price_fields=["price", "amount", "cost"],
        url_fields=["url", "product_link", "href"],
        price_pattern=r"[₦N]?\s*" + WHOLE_AMOUNT_GROUP,
        market_name="Konga",
        filename_hints=["konga"],
    ),
    build_profile(
        name=GENERIC_PROFILE,
        title_fields=["Title", "title", "name", "product", "item", "product_name", "item_name"],
        price_fields=["prc", "Price", "price", "cost", "amount", "value"],
        url_fields=["Title_URL", "url", "link", "href", "product_url", "item_url"],
        price_pattern=r"[₦N$]?\s*" + AMOUNT_GROUP,
        market_name="Unknown",
    ),
)


@dataclass(frozen=True)
class ProfileRegistry:
    """Immutable lookup of source profiles; ``generic`` is always present."""

    profiles: tuple[SourceProfile, ...] = DEFAULT_PROFILES
    market_domains: tuple[tuple[str, str], ...] = DEFAULT_MARKET_DOMAINS
    _by_name: Mapping[str, SourceProfile] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_name = {profile.name: profile for profile in self.profiles}
        if GENERIC_PROFILE not in by_name:
            raise ValueError("Profile registry requires a 'generic' profile")
        object.__setattr__(self, "_by_name", by_name)

    @property
    def names(self) -> list[str]:
        return [profile.name for profile in self.profiles]

    def get(self, name: str | None) -> SourceProfile:
        if name and name in self._by_name:
            return self._by_name[name]
        return self._by_name[GENERIC_PROFILE]

    def with_profiles(self, extra: Iterable[SourceProfile]) -> ProfileRegistry:
        merged = {profile.name: profile for profile in self.profiles}
        for profile in extra:
            merged[profile.name] = profile
        ordered = [profile for name, profile in merged.items() if name != GENERIC_PROFILE]
        ordered.append(merged[GENERIC_PROFILE])
        return ProfileRegistry(profiles=tuple(ordered), market_domains=self.market_domains)


def detect_source(file_name: str, sample_records: Sequence[object], registry: ProfileRegistry) -> str:
    lowered_name = file_name.lower()
    for profile in registry.profiles:
        if any(hint in lowered_name for hint in profile.filename_hints):
            return profile.name

    if sample_records and isinstance(sample_records[0], Mapping):
        keys = {str(key).lower() for key in sample_records[0].keys()}
        for profile in registry.profiles:
            if profile.matches_keys(keys):
                return profile.name

    return GENERIC_PROFILE


def load_profiles(path: Path) -> list[SourceProfile]:
    """Read extra source profiles from a ``{"profiles": [...]}`` JSON file."""
    raw_data = json.loads(path.read_text(encoding="utf-8"))
    entries = raw_data.get("profiles", []) if isinstance(raw_data, dict) else None
    if not isinstance(entries, list):
        raise ValueError(f"Invalid profile config at {path}: 'profiles' must be a list")

    profiles: list[SourceProfile] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = str(entry.get("name", "")).strip()
        fields = entry.get("fields") or {}
        if not name or not isinstance(fields, dict):
            logger.warning("Ignoring profile entry without a name or fields in %s", path)
            continue
        profiles.append(
            build_profile(
                name=name,
                title_fields=_str_list(fields.get("title")),
                price_fields=_str_list(fields.get("price")),
                url_fields=_str_list(fields.get("url")),
                price_pattern=str(entry.get("price_pattern") or r"[₦N$]?\s*" + AMOUNT_GROUP),
                market_name=str(entry.get("market_name") or "Unknown"),
                filename_hints=_str_list(entry.get("filename_hints")),
                key_signatures=[_str_list(signature) for signature in entry.get("key_signatures") or []],
            )
        )
    return profiles


def _str_list(value: object) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list):
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return []
