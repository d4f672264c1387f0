"""
Image analyzer: identify a product from a photo.

Vision providers are tried strictly one after another in their configured
order; the first one that returns a parsable JSON object wins. No provider,
or every provider failing, yields an all-unknown record rather than an error.
"""

import base64
import binascii
import logging
from typing import Protocol

from ai import ProviderError
from models import LLMAttributes, AttributeRecord

logger = logging.getLogger(__name__)

VISION_INSTRUCTION = (
    "Look at the photo and identify the product a shopper would want to buy. "
    "Reply with ONE JSON object and nothing else, with keys: "
    '"name" (short product name in Russian, brand and model if visible), '
    '"price" (number if a price tag is visible, else null), '
    '"currency" (ISO code or symbol if visible, else null), '
    '"size" (size if printed on a label, else null).'
)

# Leading bytes -> MIME type
_MAGIC_TYPES = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\xff\xd8\xff", "image/jpeg"),
]


class VisionProvider(Protocol):
    name: str

    async def attempt(self, instruction: str, text: str | None = None, image: str | None = None) -> LLMAttributes: ...


def sniff_image_type(data: bytes) -> str:
    for magic, mime in _MAGIC_TYPES:
        if data.startswith(magic):
            return mime
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def decode_image_payload(payload: str) -> tuple[bytes, str]:
    """Decode a base64 string or data URI into (bytes, mime). Raises ValueError if not base64."""
    payload = payload.strip()
    mime = None
    if payload.startswith("data:"):
        header, _, payload = payload.partition(",")
        mime = header[5:].split(";")[0] or None
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("image payload is not valid base64") from e
    if not data:
        raise ValueError("image payload is empty")
    return data, mime or sniff_image_type(data)


def to_data_uri(payload: str) -> str:
    """Ensure the payload is a ``data:<mime>;base64,`` URI."""
    payload = payload.strip()
    if payload.startswith("data:"):
        return payload
    data, mime = decode_image_payload(payload)
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


async def analyze_image(image_payload: str, providers: list[VisionProvider]) -> AttributeRecord:
    """Identify the product in an image. Never raises for provider failures."""
    if not providers:
        logger.info("No vision providers configured, returning unknown record")
        return AttributeRecord()

    data_uri = to_data_uri(image_payload)
    for provider in providers:
        try:
            result = await provider.attempt(VISION_INSTRUCTION, image=data_uri)
        except ProviderError as e:
            logger.warning("Vision provider %s failed, trying next: %s", provider.name, e)
            continue
        logger.info("Image identified by %s", provider.name)
        return result.to_record()

    logger.warning("All %d vision providers failed", len(providers))
    return AttributeRecord()
