"""
HTML readers for product pages.

Pulls the cheap, structured signals out of a rendered page:
<title>, Open Graph meta tags, the JSON-LD Product node, and loosely
structured name/price/image fields sitting in inline script bodies.
"""

import html as html_lib
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from heuristics import parse_price

logger = logging.getLogger(__name__)

META_KEYS = ("og:title", "og:image", "og:price:amount", "og:price:currency")

# Facebook product tags carry the same data as og:price:* on some storefronts
_META_ALIASES = {
    "og:price:amount": "product:price:amount",
    "og:price:currency": "product:price:currency",
}


@dataclass
class ScriptBlob:
    """Best-effort fields scraped from inline <script> bodies."""

    name: str | None = None
    price: float | None = None
    image: str | None = None
    currency: str | None = None


@dataclass
class ParsedPage:
    """All signals read from one HTML document."""

    html: str
    url: str
    title: str | None = None
    meta: dict[str, str] = field(default_factory=dict)
    json_ld_product: dict | None = None
    script_blob: ScriptBlob = field(default_factory=ScriptBlob)


def parse_html(html: str, url: str) -> ParsedPage:
    """Parse an HTML page and read every source the resolver draws from."""
    soup = BeautifulSoup(html, "lxml")

    meta: dict[str, str] = {}
    for key in META_KEYS:
        value = extract_meta(soup, key)
        if value is None and key in _META_ALIASES:
            value = extract_meta(soup, _META_ALIASES[key])
        if value is not None:
            meta[key] = value

    return ParsedPage(
        html=html,
        url=url,
        title=extract_title(soup),
        meta=meta,
        json_ld_product=extract_json_ld_product(soup),
        script_blob=scan_script_blobs(soup, html, url),
    )


def _as_soup(source: str | BeautifulSoup) -> BeautifulSoup:
    if isinstance(source, BeautifulSoup):
        return source
    return BeautifulSoup(source, "lxml")


# ---------------------------------------------------------------------------
# <title> and meta tags
# ---------------------------------------------------------------------------


def extract_title(source: str | BeautifulSoup) -> str | None:
    soup = _as_soup(source)
    tag = soup.find("title")
    if not tag:
        return None
    text = tag.get_text(strip=True)
    return text or None


def extract_meta(source: str | BeautifulSoup, name: str) -> str | None:
    """Return the content of the first <meta property|name=NAME>, or None.

    Attribute order inside the tag does not matter.
    """
    soup = _as_soup(source)
    wanted = name.lower()
    for meta in soup.find_all("meta"):
        prop = meta.get("property") or meta.get("name") or ""
        if not isinstance(prop, str) or prop.strip().lower() != wanted:
            continue
        content = meta.get("content")
        if isinstance(content, str) and content.strip():
            return content.strip()
    return None


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------

# Product nodes sit at the top, inside an array, or inside @graph;
# anything deeper is not a page-level product.
_JSON_LD_MAX_DEPTH = 3


def _is_product_type(node: dict) -> bool:
    ld_type = node.get("@type")
    if isinstance(ld_type, str):
        return "Product" in ld_type
    if isinstance(ld_type, list):
        return any(isinstance(t, str) and "Product" in t for t in ld_type)
    return False


def find_product_node(data: Any, max_depth: int = _JSON_LD_MAX_DEPTH) -> dict | None:
    """Breadth-first search for the first Product-typed node in a JSON-LD tree."""
    queue: list[tuple[Any, int]] = [(data, 0)]
    while queue:
        node, depth = queue.pop(0)
        if isinstance(node, dict):
            if _is_product_type(node):
                return node
            graph = node.get("@graph")
            if graph is not None and depth < max_depth:
                queue.append((graph, depth + 1))
        elif isinstance(node, list) and depth < max_depth:
            queue.extend((item, depth + 1) for item in node)
    return None


def extract_json_ld_product(source: str | BeautifulSoup) -> dict | None:
    """Return the first Product node across all <script type="application/ld+json"> blocks."""
    soup = _as_soup(source)
    for tag in soup.find_all("script", attrs={"type": re.compile(r"^\s*application/ld\+json\s*$", re.I)}):
        text = tag.string or tag.get_text()
        if not text or not text.strip():
            continue
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError):
            logger.debug("Skipping malformed JSON-LD block")
            continue
        product = find_product_node(data)
        if product is not None:
            return product
    return None


# ---------------------------------------------------------------------------
# Inline script blobs
# ---------------------------------------------------------------------------

# Placeholder tokens some storefronts serialize into "name" slots
_NAME_DENYLIST = {"true", "false", "null", "undefined", "n/a", "none", ""}

_BLOB_NAME_PATTERNS = [
    re.compile(r'"productName"\s*:\s*"((?:[^"\\]|\\.){2,300})"'),
    re.compile(r'"name"\s*:\s*"((?:[^"\\]|\\.){2,300})"'),
]
_BLOB_PRICE_PATTERN = re.compile(r'"price"\s*:\s*"?(\d+(?:[.,]\d+)?)"?')
# URLs in script bodies appear as //cdn/..., https://..., https:\/\/..., /path,
# or path-relative img/p1.jpg; nothing with a scheme other than http(s)
_BLOB_IMAGE_PATTERN = re.compile(
    r'"(?:mainImage|image)"\s*:\s*"('
    r"(?:https?:)?(?:\\?/){2}[^\"\s]+"
    r"|/[^\"\s/][^\"\s]*"
    r"|\.{0,2}(?:[\w.~-]+\\?/)+[^\"\s:]+"
    r"|[\w~-][\w.~-]*\.(?:jpe?g|png|webp|gif|avif)"
    r')"',
    re.IGNORECASE,
)

# Storefronts that price in Belarusian rubles without saying so in markup
BYN_RETAILER_HOSTS = ("wildberries.by", "lamoda.by", "oz.by", "21vek.by")


def _unescape_js(value: str) -> str:
    """Decode JSON string escapes, tolerating half-escaped text."""
    try:
        return json.loads(f'"{value}"')
    except json.JSONDecodeError:
        return value.replace("\\/", "/").replace('\\"', '"')


def _inline_script_bodies(soup: BeautifulSoup) -> list[str]:
    bodies: list[str] = []
    for tag in soup.find_all("script"):
        if tag.get("src"):
            continue
        text = tag.string or tag.get_text()
        if text and text.strip():
            bodies.append(text)
    return bodies


def _is_byn_page(html: str, url: str) -> bool:
    if "BYN" in html:
        return True
    host = (urlparse(url).hostname or "").lower()
    return any(host == h or host.endswith("." + h) for h in BYN_RETAILER_HOSTS)


def scan_script_blobs(source: str | BeautifulSoup, html: str, base_url: str) -> ScriptBlob:
    """Scan inline scripts for name/price/image; the first acceptable match per field wins."""
    soup = _as_soup(source)
    blob = ScriptBlob()

    for body in _inline_script_bodies(soup):
        if blob.name is None:
            blob.name = _scan_name(body)
        if blob.price is None:
            for match in _BLOB_PRICE_PATTERN.finditer(body):
                price = parse_price(match.group(1))
                if price is not None:
                    blob.price = price
                    break
        if blob.image is None:
            match = _BLOB_IMAGE_PATTERN.search(body)
            if match:
                blob.image = urljoin(base_url, _unescape_js(match.group(1)))
        if blob.name is not None and blob.price is not None and blob.image is not None:
            break

    if _is_byn_page(html, base_url):
        blob.currency = "Br"
    return blob


def _scan_name(body: str) -> str | None:
    for pattern in _BLOB_NAME_PATTERNS:
        for match in pattern.finditer(body):
            name = html_lib.unescape(_unescape_js(match.group(1))).strip()
            if name.lower() not in _NAME_DENYLIST:
                return name
    return None


# ---------------------------------------------------------------------------
# Balanced JSON spans
# ---------------------------------------------------------------------------


def find_json_object(text: str) -> str | None:
    """Return the first balanced {...} span in free text, or None."""
    start = text.find("{")
    if start < 0:
        return None
    return _brace_match(text, start)


def _brace_match(text: str, start: int) -> str | None:
    """Extract a balanced JSON object/array from text starting at position start.

    Handles nested braces/brackets and string literals with escaped quotes.
    """
    if start >= len(text) or text[start] not in ("{", "["):
        return None

    depth = 0
    in_string = False
    escape_next = False
    i = start

    while i < len(text):
        c = text[i]

        if escape_next:
            escape_next = False
            i += 1
            continue

        if c == "\\" and in_string:
            escape_next = True
            i += 1
            continue

        if c == '"':
            in_string = not in_string
            i += 1
            continue

        if in_string:
            i += 1
            continue

        if c in ("{", "["):
            depth += 1
        elif c in ("}", "]"):
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

        i += 1

    return None
