from decimal import Decimal

from marketwatch.extraction.fields import (
    clean_text,
    extract_market,
    extract_price,
    find_field,
    format_price,
    repair_currency_text,
)
from marketwatch.extraction.profiles import ProfileRegistry

GENERIC = ProfileRegistry().get("generic").price_pattern
JUMIA = ProfileRegistry().get("jumia").price_pattern


def test_repair_currency_text_fixes_mis_decoded_naira_sign() -> None:
    assert repair_currency_text("â‚¦1,200") == "₦1,200"
    assert repair_currency_text("Ã¢â€šÂ¦ 900") == "₦ 900"
    assert repair_currency_text("&#8358;4,500") == "₦4,500"


def test_clean_text_strips_markup_and_collapses_whitespace() -> None:
    assert clean_text("<span>Golden   Penny</span>\n Rice") == "Golden Penny Rice"
    assert clean_text("Beans &amp; Garri") == "Beans & Garri"
    assert clean_text(None) == ""


def test_find_field_uses_first_present_candidate() -> None:
    record = {"title": "  ", "name": "Rice 50kg", "product_name": "Other"}
    assert find_field(record, ["title", "name", "product_name"]) == "Rice 50kg"
    assert find_field({"price": 0}, ["price"]) == 0
    assert find_field({"price": {"value": 10}}, ["price"]) is None
    assert find_field({}, ["price"]) is None


def test_extract_price_handles_formatted_and_corrupted_strings() -> None:
    assert extract_price("₦1,295.00", GENERIC) == Decimal("1295.00")
    assert extract_price("â‚¦2,500", GENERIC) == Decimal("2500")
    assert extract_price("<b>₦ 3,000</b>", GENERIC) == Decimal("3000")
    assert extract_price("&#8358;4,500", GENERIC) == Decimal("4500")
    assert extract_price("N 750", GENERIC) == Decimal("750")


def test_extract_price_accepts_numbers() -> None:
    assert extract_price(1500, GENERIC) == Decimal("1500")
    assert extract_price(99.5, GENERIC) == Decimal("99.5")


def test_extract_price_rejects_unusable_values() -> None:
    assert extract_price(None, GENERIC) is None
    assert extract_price(True, GENERIC) is None
    assert extract_price("call for price", GENERIC) is None
    assert extract_price("", GENERIC) is None
    assert extract_price("0", GENERIC) is None
    assert extract_price(0, GENERIC) is None
    assert extract_price(-200, GENERIC) is None
    assert extract_price("-₦500", GENERIC) is None
    assert extract_price(float("nan"), GENERIC) is None


def test_whole_amount_pattern_ignores_kobo() -> None:
    assert extract_price("₦ 1,500", JUMIA) == Decimal("1500")


def test_extract_market_precedence() -> None:
    assert extract_market({"store": "Shoprite Lekki"}, "Jumia", "https://www.jumia.com.ng/x") == "Shoprite Lekki"
    assert extract_market({}, "Unknown", "https://www.jumia.com.ng/garri") == "Jumia"
    assert extract_market({"market": ""}, "Supermart", None) == "Supermart"


def test_format_price() -> None:
    assert format_price(Decimal("1295")) == "₦1,295.00"
    assert format_price(Decimal("45000.5")) == "₦45,000.50"


def test_extract_price_common_listing_formats() -> None:
    assert extract_price("₦1,295.00", GENERIC) == Decimal("1295.00")
    assert extract_price("N6,150", GENERIC) == Decimal("6150")
    assert extract_price("1200", GENERIC) == Decimal("1200")
    assert extract_price("₦0.00", GENERIC) is None
    assert extract_price("-50", GENERIC) is None


def test_corrupted_symbol_extracts_same_amount() -> None:
    assert extract_price("â‚¦6,150.50", GENERIC) == extract_price("₦6,150.50", GENERIC)
