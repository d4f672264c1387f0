"""
Attribute resolver: merge every page-level source into one AttributeRecord.

Sources, strongest first:
  A) Open Graph meta tags
  B) JSON-LD Product node
  C) Inline script blobs
  D) <title> / whole-document regex heuristics

Each field walks the chain independently and takes the first usable value,
so a missing name never blocks price, and so on.
"""

import html as html_lib
import logging
import math
from typing import Any, Callable
from urllib.parse import urljoin

import heuristics
from heuristics import normalize_currency, parse_price
from models import UNKNOWN_NAME, AttributeRecord, ResolutionTrace
from parser import ParsedPage, parse_html

logger = logging.getLogger(__name__)

# additionalProperty names that carry the size
SIZE_PROPERTY_NAMES = {"Размер", "Size"}

SourceChain = list[tuple[str, Callable[[], Any]]]


# ===== Main Entry Point =====


def resolve_attributes(html: str, target_url: str) -> AttributeRecord:
    """Parse ``html`` and resolve it into an AttributeRecord linked to ``target_url``."""
    record, _ = extract_attributes(parse_html(html, target_url))
    return record


def extract_attributes(parsed: ParsedPage) -> tuple[AttributeRecord, ResolutionTrace]:
    """Resolve every field from the parsed page. Returns the record and where each field came from."""
    trace = ResolutionTrace()
    og = parsed.meta
    ld = parsed.json_ld_product
    blob = parsed.script_blob
    offer = first_offer(ld)

    name, trace.name = _first_available(
        [
            ("og", lambda: _clean_text(og.get("og:title"))),
            ("json_ld", lambda: _clean_text(ld.get("name")) if ld else None),
            ("script", lambda: blob.name),
            ("title", lambda: _clean_text(parsed.title)),
        ]
    )

    price, trace.price = _first_available(
        [
            ("og", lambda: parse_price(og.get("og:price:amount"))),
            ("json_ld", lambda: _offer_price(offer)),
            ("script", lambda: blob.price),
            ("regex", lambda: heuristics.find_price(parsed.html)),
        ]
    )

    currency, trace.currency = _first_available(
        [
            ("og", lambda: normalize_currency(og.get("og:price:currency"))),
            ("json_ld", lambda: _offer_currency(offer)),
            ("script", lambda: blob.currency),
            ("regex", lambda: heuristics.find_currency(parsed.html)),
        ]
    )

    size, trace.size = _first_available(
        [
            ("json_ld", lambda: _scalar_text(ld.get("size")) if ld else None),
            ("json_ld_property", lambda: hint_size_property(ld)),
        ]
    )

    image, trace.image = _first_available(
        [
            ("og", lambda: og.get("og:image")),
            ("json_ld", lambda: hint_image(ld)),
            ("script", lambda: blob.image),
        ]
    )
    if image:
        image = urljoin(parsed.url, image)

    record = AttributeRecord(
        name=name or UNKNOWN_NAME,
        price=price,
        currency=currency,
        size=size,
        link=parsed.url,
        image=image,
    )
    logger.debug("Resolved %s from sources %s", parsed.url, trace.as_dict())
    return record, trace


def _first_available(chain: SourceChain) -> tuple[Any, str | None]:
    """Walk an ordered source chain; return (value, source) of the first non-empty value."""
    for source, getter in chain:
        value = getter()
        if value is not None and value != "":
            return value, source
    return None, None


# ----- JSON-LD Product node accessors -----


def first_offer(ld: dict | None) -> dict | None:
    if not ld:
        return None
    offers = ld.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    if isinstance(offers, dict):
        # AggregateOffer nests the concrete offers one level down
        nested = offers.get("offers")
        if "price" not in offers and "lowPrice" not in offers and isinstance(nested, list) and nested:
            return nested[0] if isinstance(nested[0], dict) else None
        return offers
    return None


def _offer_price(offer: dict | None) -> float | None:
    if not offer:
        return None
    price = parse_price(offer.get("price"))
    if price is None:
        price = parse_price(offer.get("lowPrice"))
    return price


def _offer_currency(offer: dict | None) -> str | None:
    if not offer:
        return None
    return normalize_currency(offer.get("priceCurrency") or offer.get("currency"))


def hint_size_property(ld: dict | None) -> str | None:
    """Size from an additionalProperty entry named "Размер"/"Size"."""
    if not ld:
        return None
    props = ld.get("additionalProperty")
    if isinstance(props, dict):
        props = [props]
    if not isinstance(props, list):
        return None
    for prop in props:
        if not isinstance(prop, dict) or not isinstance(prop.get("name"), str):
            continue
        if prop["name"].strip() in SIZE_PROPERTY_NAMES:
            return _scalar_text(prop.get("value"))
    return None


def hint_image(ld: dict | None) -> str | None:
    """First image of the Product node; handles str, list and ImageObject forms."""
    if not ld:
        return None
    image = ld.get("image")
    if isinstance(image, list):
        image = image[0] if image else None
    if isinstance(image, dict):
        image = image.get("url") or image.get("contentUrl")
    if isinstance(image, str) and image.strip():
        return image.strip()
    return None


def _scalar_text(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return str(int(value)) if float(value).is_integer() else str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _clean_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    text = html_lib.unescape(value).strip()
    return text or None
