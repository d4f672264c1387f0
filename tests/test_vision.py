"""Tests for the image analyzer's provider cascade."""

import base64

import pytest

from ai import ProviderError
from models import UNKNOWN_NAME, LLMAttributes
from vision import analyze_image, decode_image_payload, sniff_image_type, to_data_uri

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
PNG_B64 = base64.b64encode(PNG_BYTES).decode("ascii")


class FakeVision:
    def __init__(self, name: str, result: LLMAttributes | None = None):
        self.name = name
        self.result = result
        self.calls = 0

    async def attempt(self, instruction, text=None, image=None):
        self.calls += 1
        assert image.startswith("data:image/png;base64,")
        if self.result is None:
            raise ProviderError(self.name, "HTTP 500")
        return self.result


class TestAnalyzeImage:
    @pytest.mark.asyncio
    async def test_no_providers(self):
        record = await analyze_image(PNG_B64, [])
        assert record.name == UNKNOWN_NAME
        assert record.price is None
        assert record.currency is None
        assert record.size is None
        assert record.link is None

    @pytest.mark.asyncio
    async def test_first_success_stops_cascade(self):
        first = FakeVision("gemini")
        second = FakeVision("openrouter", LLMAttributes(name="Кружка", price=300, currency="RUB"))
        third = FakeVision("openai", LLMAttributes(name="never"))
        record = await analyze_image(PNG_B64, [first, second, third])
        assert record.name == "Кружка"
        assert record.price == 300.0
        assert record.currency == "₽"
        assert (first.calls, second.calls, third.calls) == (1, 1, 0)

    @pytest.mark.asyncio
    async def test_all_fail(self):
        providers = [FakeVision("a"), FakeVision("b"), FakeVision("c")]
        record = await analyze_image(PNG_B64, providers)
        assert record.name == UNKNOWN_NAME
        assert record.price is None
        assert all(p.calls == 1 for p in providers)

    @pytest.mark.asyncio
    async def test_data_uri_passed_through(self):
        provider = FakeVision("a", LLMAttributes(name="Лампа"))
        record = await analyze_image(f"data:image/png;base64,{PNG_B64}", [provider])
        assert record.name == "Лампа"


class TestPayloads:
    def test_sniff(self):
        assert sniff_image_type(PNG_BYTES) == "image/png"
        assert sniff_image_type(b"GIF89a....") == "image/gif"
        assert sniff_image_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
        assert sniff_image_type(b"\xff\xd8\xff\xe0") == "image/jpeg"

    def test_to_data_uri(self):
        assert to_data_uri(PNG_B64) == f"data:image/png;base64,{PNG_B64}"

    def test_decode_data_uri_keeps_declared_type(self):
        data, mime = decode_image_payload(f"data:image/webp;base64,{PNG_B64}")
        assert data == PNG_BYTES
        assert mime == "image/webp"

    @pytest.mark.parametrize("payload", ["not base64 !!", ""])
    def test_decode_rejects_garbage(self, payload):
        with pytest.raises(ValueError):
            decode_image_payload(payload)
