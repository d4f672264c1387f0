"""
Wish-text analyzer: turn "хочу кроссовки Nike 42 за 150 руб" into attributes.

The text-inference provider is asked first; when it is not configured or
fails in any way, a deterministic regex parser produces the record instead.
"""

import logging
import re

from ai import ChatCompletionsProvider, ProviderError
from heuristics import normalize_currency, parse_price
from models import AttributeRecord

logger = logging.getLogger(__name__)

# Generic name used when nothing but intent/price was written
WISH_PLACEHOLDER = "Желание"

WISH_INSTRUCTION = (
    "You extract a wished-for product from a short sentence written by a shopper "
    "(usually Russian). Reply with ONE JSON object and nothing else, with keys: "
    '"name" (the item, without words like "хочу"/"I want", price or currency), '
    '"price" (number or null), "currency" (ISO code or symbol, or null), '
    '"size" (clothing/shoe size as a string, or null). Never invent values that '
    "are not in the sentence."
)

_INTENT_RE = re.compile(
    r"^\s*(?:я\s+)?(?:очень\s+)?"
    r"(?:хочу|хотела?\s+бы|хочется|мечтаю(?:\s+об?)?|нужн[аоы]?|нужен|"
    r"i\s+(?:really\s+)?want|i'?d\s+like|i\s+wish\s+for|want)"
    r"\b[\s,:\-–—]*",
    re.IGNORECASE,
)

# "12 990" is one number, but in "42 150 руб" the 42 is a shoe size standing
# next to the price, so a leading 35-52 group followed by a non-zero group is
# never glued on as thousands
_NUM = (
    r"(?<![\d.,])(?:"
    r"(?!(?:3[5-9]|4\d|5[0-2])[ \u00a0][1-9])\d{1,3}(?:[ \u00a0]\d{3})+(?:[.,]\d{1,2})?"
    r"|\d+(?:[.,]\d{1,2})?)"
)
_CUR_AFTER = (
    r"бел\.?\s?руб(?:лей|ля|ль|\.)?|руб(?:лей|ля|ль|\.)?|р\.?|₽|BYN|Br|RUB|USD|EUR|KZT|"
    r"\$|долл(?:аров|ара|ар|\.)?|евро|€|тенге|тг\.?|₸"
)

# One regex: a number touching a currency token on either side, with an optional
# leading "за"/"for" so the whole price phrase can be cut out of the name
_PRICE_RE = re.compile(
    r"(?:(?<!\w)(?:за|по|for|at)\s+)?"
    r"(?:(?P<cur_before>\$|€|₽|₸)\s?(?P<num_after>" + _NUM + r")"
    r"|(?P<num_before>" + _NUM + r")\s?(?P<cur_after>" + _CUR_AFTER + r"))"
    r"(?![A-Za-zА-Яа-яЁё])",
    re.IGNORECASE,
)

_GARMENT_SIZE_RE = re.compile(r"(?<![A-Za-z0-9])(XXXL|XXL|XXS|XL|XS|[2-5]XL)(?![A-Za-z0-9])", re.IGNORECASE)
_REGION_SIZE_RE = re.compile(r"(?<![A-Za-z])((?:EU|US)\s?\d{1,2}(?:[.,]5)?)(?![\d])", re.IGNORECASE)
_BARE_SIZE_RE = re.compile(r"(?<![\d.,])(\d{2})(?![\d.,])")
SHOE_SIZE_RANGE = (35, 52)


def parse_wish_fallback(text: str) -> AttributeRecord:
    """Deterministic wish parser. Never raises, never calls out."""
    body = _INTENT_RE.sub("", text or "", count=1)

    price = None
    currency = None
    match = _PRICE_RE.search(body)
    if match:
        raw_num = match.group("num_before") or match.group("num_after")
        raw_cur = match.group("cur_after") or match.group("cur_before")
        price = parse_price(raw_num)
        if price is not None:
            currency = normalize_currency(raw_cur)
            body = body[: match.start()] + " " + body[match.end() :]

    size = find_size(body)

    name = re.sub(r"\s+", " ", body).strip(" \t,.;:-–—")
    return AttributeRecord(
        name=name or WISH_PLACEHOLDER,
        price=price,
        currency=currency,
        size=size,
    )


def find_size(text: str) -> str | None:
    """Garment size, then EU/US-prefixed size, then a bare shoe size in range."""
    match = _GARMENT_SIZE_RE.search(text)
    if match:
        return match.group(1).upper()
    match = _REGION_SIZE_RE.search(text)
    if match:
        return re.sub(r"\s+", " ", match.group(1)).upper()
    low, high = SHOE_SIZE_RANGE
    for match in _BARE_SIZE_RE.finditer(text):
        if low <= int(match.group(1)) <= high:
            return match.group(1)
    return None


async def analyze_wish(text: str, provider: ChatCompletionsProvider | None = None) -> AttributeRecord:
    """Resolve a wish sentence: AI first, deterministic parser on any failure."""
    fallback = parse_wish_fallback(text)
    if provider is None:
        logger.debug("No text provider configured, using regex wish parser")
        return fallback

    try:
        result = await provider.attempt(WISH_INSTRUCTION, text=text)
    except ProviderError as e:
        logger.warning("Wish analysis fell back to regex parser: %s", e)
        return fallback

    name = result.name.strip() if result.name else ""
    return result.to_record(name=name or fallback.name)
