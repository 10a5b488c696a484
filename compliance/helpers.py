"""Small numeric and country-code helpers shared across the engine."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Full country names accepted where an ISO code is expected
COUNTRY_NAMES = {
    "france": "FR",
    "germany": "DE",
    "deutschland": "DE",
    "italy": "IT",
    "italia": "IT",
    "spain": "ES",
    "españa": "ES",
    "portugal": "PT",
    "belgium": "BE",
    "belgique": "BE",
    "netherlands": "NL",
    "united kingdom": "GB",
    "uk": "GB",
    "austria": "AT",
    "switzerland": "CH",
    "poland": "PL",
    "polska": "PL",
    "hungary": "HU",
    "romania": "RO",
    "greece": "GR",
    "united states": "US",
    "usa": "US",
    "india": "IN",
}


def to_decimal(value) -> Decimal:
    """Coerce int/float/str/Decimal/None to Decimal without binary noise."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


def round_money(value) -> Decimal:
    """Round to the currency minor unit (2 decimals, half up)."""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def parse_date(value) -> date | None:
    """Accept a date, a datetime or an ISO ``YYYY-MM-DD[...]`` string."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")


def pick(data, *keys, default=None):
    """First present, non-None value among *keys* of a mapping."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def normalize_country(value: str | None) -> str:
    """Return an ISO 3166-1 alpha-2 code for a code or a country name.

    Two-letter codes pass through upper-cased, known names map via
    ``COUNTRY_NAMES``, anything else is truncated to its first two letters.
    """
    if not value:
        return ""
    text = value.strip()
    if len(text) == 2 and text.isalpha():
        return text.upper()
    mapped = COUNTRY_NAMES.get(text.lower())
    if mapped:
        return mapped
    return text[:2].upper()
