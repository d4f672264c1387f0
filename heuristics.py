"""
Last-resort price and currency heuristics over a whole HTML document.

Used only when structured sources (Open Graph, JSON-LD, script blobs)
yield nothing. Also home of the currency normalizer shared by every
resolution path.
"""

import math
import re
from typing import Any

# Prices at or above this are almost always mis-parsed years, IDs or phone numbers
MAX_PRICE = 1e9

CURRENCY_SYMBOLS = ("₽", "Br", "$", "€", "₸")

# Ordered (pattern, symbol) families. Belarusian ruble is checked before the
# Russian one so "бел. руб" never lands in the RUB family.
_CURRENCY_FAMILIES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"^(?:BYN|BYR|Br|бел\.?\s*руб.*)$", re.IGNORECASE), "Br"),
    (re.compile(r"^(?:RUB|RUR|₽|руб.*|р\.?)$", re.IGNORECASE), "₽"),
    (re.compile(r"^(?:USD|US\$|\$|долл.*)$", re.IGNORECASE), "$"),
    (re.compile(r"^(?:EUR|€|евро)$", re.IGNORECASE), "€"),
    (re.compile(r"^(?:KZT|₸|тенге|тг\.?)$", re.IGNORECASE), "₸"),
]


def normalize_currency(raw: Any) -> str | None:
    """Map a raw currency code/token onto the closed symbol set.

    Unrecognized non-empty strings pass through unchanged; nothing is invented.
    """
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    if not value:
        return None
    if value in CURRENCY_SYMBOLS:
        return value
    for pattern, symbol in _CURRENCY_FAMILIES:
        if pattern.match(value):
            return symbol
    return value


# ---------------------------------------------------------------------------
# Price parsing
# ---------------------------------------------------------------------------

_THOUSANDS_COMMA = re.compile(r"^\d{1,3}(?:,\d{3})+(?:\.\d+)?$")
_NUMERIC = re.compile(r"^\d+(?:\.\d+)?$")


def is_valid_price(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and 0 < value < MAX_PRICE


def parse_price(raw: Any) -> float | None:
    """Parse a number or numeric string into a price in (0, 1e9), else None.

    Accepts "1299", "1 299,50", "1,299.50", "12,99" and plain numbers.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if is_valid_price(value) else None
    if not isinstance(raw, str):
        return None

    text = re.sub(r"[\s']", "", raw)
    if "," in text and "." in text:
        # Whichever separator comes first is the thousands separator
        if text.index(",") < text.index("."):
            text = text.replace(",", "")
        else:
            text = text.replace(".", "").replace(",", ".")
    elif "," in text:
        text = text.replace(",", "") if _THOUSANDS_COMMA.match(text) else text.replace(",", ".")

    if not _NUMERIC.match(text):
        return None
    value = float(text)
    return value if is_valid_price(value) else None


# ---------------------------------------------------------------------------
# Whole-document price cascade
# ---------------------------------------------------------------------------

_NUM = r"(\d+(?:[.,]\d+)?)"

# Fixed priority order; the first pattern yielding a valid price wins
PRICE_PATTERNS: list[re.Pattern] = [
    re.compile(r'"price"\s*:\s*["\']?' + _NUM, re.IGNORECASE),
    re.compile(r'"currentPrice"\s*:\s*["\']?' + _NUM, re.IGNORECASE),
    re.compile(r'"salePrice"\s*:\s*["\']?' + _NUM, re.IGNORECASE),
    re.compile(r'"basePrice"\s*:\s*["\']?' + _NUM, re.IGNORECASE),
    re.compile(r'"productPrice"\s*:\s*["\']?' + _NUM, re.IGNORECASE),
    re.compile(r'data-price=["\']' + _NUM, re.IGNORECASE),
    re.compile(r'itemprop=["\']price["\'][^>]*?\scontent=["\']' + _NUM, re.IGNORECASE),
    re.compile(r'__NEXT_DATA__[\s\S]*?"price"\s*:\s*["\']?' + _NUM, re.IGNORECASE),
    re.compile(r'__NUXT__[\s\S]*?"?price"?\s*:\s*["\']?' + _NUM, re.IGNORECASE),
]


def find_price(html: str) -> float | None:
    """Return the first plausible price found by the ordered pattern cascade."""
    for pattern in PRICE_PATTERNS:
        for match in pattern.finditer(html):
            price = parse_price(match.group(1))
            if price is not None:
                return price
    return None


# ---------------------------------------------------------------------------
# Whole-document currency scan
# ---------------------------------------------------------------------------

_CURRENCY_CODE_FIELD = re.compile(
    r'"(?:priceCurrency|currencyCode|currency)"\s*:\s*["\']([A-Za-z]{3})["\']'
)

# Latin codes are case-sensitive so "<br>" or "rub" inside identifiers never match.
# A bare "$" must touch a digit; scripts are full of jQuery-style "$(".
_CURRENCY_TOKEN = re.compile(
    r"(?<![A-Za-z])(BYN|RUB|USD|EUR|KZT|Br)(?![A-Za-z])"
    r"|(?<![А-Яа-яЁё])([Рр]уб(?:\.|л(?:ей|ями|ям|ях|я|ь|и))?)(?![А-Яа-яЁё])"
    r"|(₽|€|₸)"
    r"|(?<=\d)\s?(\$)|(\$)(?=\s?\d)",
)


def find_currency(html: str) -> str | None:
    """Find a currency from an explicit code field, then from raw text tokens."""
    match = _CURRENCY_CODE_FIELD.search(html)
    if match:
        return normalize_currency(match.group(1).upper())

    match = _CURRENCY_TOKEN.search(html)
    if match:
        token = next(g for g in match.groups() if g)
        return normalize_currency(token)
    return None
