"""Tests for the wish-text analyzer and its deterministic fallback."""

import pytest

from ai import ProviderError
from models import LLMAttributes
from wish import WISH_PLACEHOLDER, analyze_wish, find_size, parse_wish_fallback


class FakeProvider:
    name = "fake"

    def __init__(self, result: LLMAttributes | None = None, error: ProviderError | None = None):
        self.result = result
        self.error = error
        self.calls: list[str] = []

    async def attempt(self, instruction, text=None, image=None):
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.result


class TestFallbackParser:
    def test_sneakers_example(self):
        record = parse_wish_fallback("хочу кроссовки Nike 42 за 150 руб")
        assert "хочу" not in record.name
        assert record.name == "кроссовки Nike 42"
        assert record.price == 150.0
        assert record.currency == "₽"
        assert record.size == "42"

    def test_symbol_before_number(self):
        record = parse_wish_fallback("I want a hoodie XL for $49.99")
        assert record.name == "a hoodie XL"
        assert record.price == pytest.approx(49.99)
        assert record.currency == "$"
        assert record.size == "XL"

    def test_thousands_separator(self):
        record = parse_wish_fallback("Хочу пуховик 12 500 рублей")
        assert record.price == 12500.0
        assert record.currency == "₽"
        assert record.name == "пуховик"

    def test_size_next_to_price_is_not_a_thousands_group(self):
        record = parse_wish_fallback("хочу кроссовки Nike 42 150 руб")
        assert (record.price, record.size) == (150.0, "42")
        assert record.currency == "₽"
        assert record.name == "кроссовки Nike 42"

    def test_round_thousands_after_size_range_number(self):
        record = parse_wish_fallback("хочу куртку 45 000 руб")
        assert record.price == 45000.0
        assert record.size is None

    def test_belarusian_rubles(self):
        record = parse_wish_fallback("хочу сумку за 89 BYN")
        assert record.price == 89.0
        assert record.currency == "Br"
        assert record.name == "сумку"

    def test_intent_only_uses_placeholder(self):
        record = parse_wish_fallback("хочу")
        assert record.name == WISH_PLACEHOLDER
        assert record.price is None
        assert record.currency is None

    def test_out_of_range_price_is_ignored(self):
        record = parse_wish_fallback("хочу яхту за 5000000000 руб")
        assert record.price is None
        assert record.currency is None

    def test_no_price(self):
        record = parse_wish_fallback("хочу книгу про Python")
        assert record.name == "книгу про Python"
        assert record.price is None
        assert record.size is None


class TestFindSize:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("футболка xs", "XS"),
            ("худи XXL белое", "XXL"),
            ("ботинки EU 44", "EU 44"),
            ("кеды US9", "US9"),
            ("кроссовки 38", "38"),
        ],
    )
    def test_sizes(self, text, expected):
        assert find_size(text) == expected

    def test_bare_number_outside_shoe_range(self):
        assert find_size("набор из 24 карандашей") is None
        assert find_size("телевизор 65 дюймов") is None


class TestAnalyzeWish:
    @pytest.mark.asyncio
    async def test_no_provider_uses_fallback(self):
        text = "хочу кроссовки Nike 42 за 150 руб"
        assert await analyze_wish(text, None) == parse_wish_fallback(text)

    @pytest.mark.asyncio
    async def test_provider_failure_uses_fallback(self):
        text = "хочу кроссовки Nike 42 за 150 руб"
        provider = FakeProvider(error=ProviderError("fake", "HTTP 503"))
        record = await analyze_wish(text, provider)
        assert record == parse_wish_fallback(text)
        assert provider.calls == [text]

    @pytest.mark.asyncio
    async def test_provider_result_is_validated(self):
        provider = FakeProvider(LLMAttributes(name="Nike Air Max", price=150, currency="RUB", size=42))
        record = await analyze_wish("хочу найки за 150 руб", provider)
        assert record.name == "Nike Air Max"
        assert record.price == 150.0
        assert record.currency == "₽"
        assert record.size == "42"

    @pytest.mark.asyncio
    async def test_empty_ai_name_takes_fallback_name(self):
        provider = FakeProvider(LLMAttributes(name="  ", price="not a number", currency="usd"))
        record = await analyze_wish("хочу зонт за 20 $", provider)
        assert record.name == "зонт"
        assert record.price is None
        assert record.currency == "$"
