"""Tests for the HTML readers: meta tags, JSON-LD product locator, script blob scanner."""

import pytest

from parser import (
    extract_json_ld_product,
    extract_meta,
    extract_title,
    find_json_object,
    find_product_node,
    parse_html,
    scan_script_blobs,
)

BASE_URL = "https://shop.example/catalog/item-1"


# ---------------------------------------------------------------------------
# Meta tags and title
# ---------------------------------------------------------------------------


class TestMetaReaders:
    def test_property_before_content(self):
        html = '<head><meta property="og:title" content="Nike Air Max"></head>'
        assert extract_meta(html, "og:title") == "Nike Air Max"

    def test_content_before_property(self):
        html = '<head><meta content="https://cdn.example/1.jpg" property="og:image"></head>'
        assert extract_meta(html, "og:image") == "https://cdn.example/1.jpg"

    def test_name_attribute(self):
        html = '<head><meta name="og:price:amount" content="150"></head>'
        assert extract_meta(html, "og:price:amount") == "150"

    def test_first_match_wins(self):
        html = '<meta property="og:title" content="First"><meta property="og:title" content="Second">'
        assert extract_meta(html, "og:title") == "First"

    def test_missing(self):
        assert extract_meta("<head></head>", "og:title") is None

    def test_title(self):
        assert extract_title("<title>  Shoes &amp; Co </title>") == "Shoes & Co"
        assert extract_title("<body>no title</body>") is None

    def test_product_price_tags_fill_og_price(self):
        html = (
            '<meta property="product:price:amount" content="990">'
            '<meta property="product:price:currency" content="RUB">'
        )
        parsed = parse_html(html, BASE_URL)
        assert parsed.meta["og:price:amount"] == "990"
        assert parsed.meta["og:price:currency"] == "RUB"


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------


def _ld(body: str) -> str:
    return f'<script type="application/ld+json">{body}</script>'


class TestJsonLdProduct:
    def test_top_level_product(self):
        node = extract_json_ld_product(_ld('{"@type": "Product", "name": "Boots"}'))
        assert node["name"] == "Boots"

    def test_graph_wrapper(self):
        body = (
            '{"@context": "https://schema.org", "@graph": ['
            '{"@type": "WebPage", "name": "Page"},'
            '{"@type": "Product", "name": "Boots"}]}'
        )
        assert extract_json_ld_product(_ld(body))["name"] == "Boots"

    def test_array_wrapper(self):
        body = '[{"@type": "BreadcrumbList"}, {"@type": "Product", "name": "Scarf"}]'
        assert extract_json_ld_product(_ld(body))["name"] == "Scarf"

    def test_type_contains_product(self):
        assert extract_json_ld_product(_ld('{"@type": "ProductGroup", "name": "G"}'))["name"] == "G"
        assert extract_json_ld_product(_ld('{"@type": ["Product", "Thing"], "name": "L"}'))["name"] == "L"

    def test_malformed_block_is_skipped(self):
        html = _ld('{"@type": "Product", broken') + _ld('{"@type": "Product", "name": "Second"}')
        assert extract_json_ld_product(html)["name"] == "Second"

    def test_no_product(self):
        assert extract_json_ld_product(_ld('{"@type": "Organization", "name": "Shop"}')) is None
        assert extract_json_ld_product("<html></html>") is None

    def test_search_is_depth_bounded(self):
        assert find_product_node([[[[{"@type": "Product"}]]]]) is None
        assert find_product_node([[{"@type": "Product", "name": "ok"}]])["name"] == "ok"


# ---------------------------------------------------------------------------
# Script blobs
# ---------------------------------------------------------------------------


def _script(body: str) -> str:
    return f"<html><body><script>{body}</script></body></html>"


class TestScriptBlobs:
    def test_placeholder_names_rejected(self):
        html = _script('var a = {"productName": "undefined", "name": "null"}; var b = {"name": "Кроссовки Nike"};')
        assert scan_script_blobs(html, html, BASE_URL).name == "Кроссовки Nike"

    def test_product_name_preferred(self):
        html = _script('{"name": "Menu", "productName": "Ботинки Timberland"}')
        assert scan_script_blobs(html, html, BASE_URL).name == "Ботинки Timberland"

    def test_price_range_checked(self):
        html = _script('{"price": 0, "items": [{"price": "1299.00"}]}')
        assert scan_script_blobs(html, html, BASE_URL).price == 1299.0

    def test_escaped_slash_image(self):
        html = _script('{"image": "https:\\/\\/cdn.shop.by\\/img\\/1.jpg"}')
        assert scan_script_blobs(html, html, BASE_URL).image == "https://cdn.shop.by/img/1.jpg"

    def test_protocol_relative_image(self):
        html = _script('{"mainImage": "//cdn.example/p/1.jpg"}')
        assert scan_script_blobs(html, html, BASE_URL).image == "https://cdn.example/p/1.jpg"

    def test_relative_image(self):
        html = _script('{"image": "/media/2.jpg"}')
        assert scan_script_blobs(html, html, BASE_URL).image == "https://shop.example/media/2.jpg"

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("img/p1.jpg", "https://shop.example/catalog/img/p1.jpg"),
            ("img\\/p1.jpg", "https://shop.example/catalog/img/p1.jpg"),
            ("../img/p1.jpg", "https://shop.example/img/p1.jpg"),
            ("p1.webp", "https://shop.example/catalog/p1.webp"),
        ],
    )
    def test_path_relative_image(self, value, expected):
        html = _script('{"image": "%s"}' % value)
        assert scan_script_blobs(html, html, BASE_URL).image == expected

    @pytest.mark.parametrize("value", ["data:image/png;base64,AAAA", "no image here", "true"])
    def test_non_url_image_values_skipped(self, value):
        html = _script('{"image": "%s"}' % value)
        assert scan_script_blobs(html, html, BASE_URL).image is None

    def test_external_scripts_ignored(self):
        html = '<script src="/app.js">{"name": "Nope"}</script>'
        assert scan_script_blobs(html, html, BASE_URL).name is None

    def test_byn_literal_sets_currency(self):
        html = _script('{"price": 45}') + "<span>45 BYN</span>"
        assert scan_script_blobs(html, html, BASE_URL).currency == "Br"

    def test_known_retailer_sets_currency(self):
        html = _script('{"price": 45}')
        assert scan_script_blobs(html, html, "https://www.lamoda.by/p/abc").currency == "Br"
        assert scan_script_blobs(html, html, BASE_URL).currency is None


class TestFindJsonObject:
    def test_first_balanced_span(self):
        text = 'Sure! Here it is: {"name": "a {b}", "size": null} and {"other": 1}'
        assert find_json_object(text) == '{"name": "a {b}", "size": null}'

    def test_unbalanced(self):
        assert find_json_object('{"name": "x"') is None
        assert find_json_object("no json here") is None
