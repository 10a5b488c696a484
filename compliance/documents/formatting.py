"""Locale-aware money, date and colour formatting for printed documents."""
from __future__ import annotations

from datetime import date, datetime

from compliance.helpers import round_money, to_decimal

CURRENCY_SYMBOLS = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
    "CHF": "CHF",
    "JPY": "¥",
    "CNY": "¥",
    "PLN": "zł",
    "INR": "₹",
}

# Symbols printed before the amount; all others follow it
_PREFIX_SYMBOLS = ("$", "£", "¥", "₹")

# Language → (thousands separator, decimal separator)
_SEPARATORS = {
    "de": (".", ","),
    "it": (".", ","),
    "es": (".", ","),
    "pt": (" ", ","),
    "fr": (" ", ","),
    "pl": (" ", ","),
    "nl": (".", ","),
}

# Locale or language → strftime pattern
_DATE_PATTERNS = {
    "en-US": "%m/%d/%Y",
    "de": "%d.%m.%Y",
    "pl": "%d.%m.%Y",
    "en": "%d/%m/%Y",
    "fr": "%d/%m/%Y",
    "it": "%d/%m/%Y",
    "es": "%d/%m/%Y",
    "pt": "%d/%m/%Y",
    "nl": "%d/%m/%Y",
}


def _language(locale: str | None) -> str:
    return (locale or "en").replace("_", "-").split("-")[0].lower()


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get((currency or "").upper(), currency)


def format_number(value, locale: str | None = None, places: int = 2) -> str:
    """Fixed-point number with the locale's separators."""
    thousands, decimal_sep = _SEPARATORS.get(_language(locale), (",", "."))
    text = f"{to_decimal(value):,.{places}f}"
    return text.replace(",", "X").replace(".", decimal_sep).replace("X", thousands)


def format_money(value, currency: str = "EUR", locale: str | None = None) -> str:
    """Amount rounded to 2 decimals with its currency symbol."""
    symbol = currency_symbol(currency)
    amount = format_number(round_money(value), locale)
    if symbol in _PREFIX_SYMBOLS:
        if amount.startswith("-"):
            return f"-{symbol}{amount[1:]}"
        return f"{symbol}{amount}"
    return f"{amount} {symbol}"


def format_percent(value, locale: str | None = None) -> str:
    text = format_number(value, locale)
    # 20,00 -> 20 ; 5,50 stays
    decimal_sep = _SEPARATORS.get(_language(locale), (",", "."))[1]
    if text.endswith(f"{decimal_sep}00"):
        text = text[:-3]
    return f"{text} %"


def format_quantity(value, locale: str | None = None) -> str:
    quantity = to_decimal(value)
    if quantity == quantity.to_integral_value():
        return format_number(quantity, locale, places=0)
    return format_number(quantity, locale, places=2)


def format_date(value: date | datetime | None, locale: str | None = None) -> str:
    """Short numeric date for *locale*; ISO for unknown languages."""
    if value is None:
        return ""
    locale = (locale or "").replace("_", "-")
    pattern = _DATE_PATTERNS.get(locale) or _DATE_PATTERNS.get(_language(locale), "%Y-%m-%d")
    return value.strftime(pattern)


def contrast_color(hex_color: str | None) -> str:
    """``#000000`` or ``#ffffff``, whichever reads better on *hex_color*."""
    value = (hex_color or "").lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    if len(value) != 6:
        return "#000000"
    try:
        r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return "#000000"
    # ITU-R BT.601 luma
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255
    return "#000000" if luminance > 0.5 else "#ffffff"
