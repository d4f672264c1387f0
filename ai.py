"""
Inference provider clients.

Every provider exposes the same capability: ``attempt(instruction, text=..., image=...)``
returns the first JSON object found in the model's reply, or raises
ProviderError. Callers cascade over providers and never see transport errors.

Two wire formats are supported:
- OpenAI-compatible chat completions (Groq, OpenRouter, OpenAI, ...)
- Google Generative Language ``generateContent`` (Gemini)
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
import orjson
from pydantic import ValidationError

from config import Settings
from models import LLMAttributes
from parser import find_json_object

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """A provider call failed, timed out, or returned nothing usable."""

    def __init__(self, provider: str, reason: str):
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


def parse_attributes_reply(provider: str, content: str) -> LLMAttributes:
    """Locate the first balanced {...} in a reply and validate it as attributes."""
    json_str = find_json_object(content or "")
    if json_str is None:
        raise ProviderError(provider, "no JSON object in reply")
    try:
        data = orjson.loads(json_str)
    except orjson.JSONDecodeError as e:
        raise ProviderError(provider, f"unparsable JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProviderError(provider, "reply JSON is not an object")
    try:
        return LLMAttributes.model_validate(data)
    except ValidationError as e:
        raise ProviderError(provider, f"unexpected JSON shape: {e.error_count()} error(s)") from e


def split_data_uri(data_uri: str) -> tuple[str, str]:
    """Split ``data:<mime>;base64,<payload>`` into (mime, payload)."""
    header, _, payload = data_uri.partition(",")
    mime = header[5:].split(";")[0] if header.startswith("data:") else ""
    return mime or "image/jpeg", payload


class _Provider(ABC):
    """Shared plumbing: one short-lived AsyncClient per call, with its own timeout."""

    def __init__(
        self,
        name: str,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.name = name
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, model={self.model!r})"

    async def attempt(self, instruction: str, text: str | None = None, image: str | None = None) -> LLMAttributes:
        """Run one extraction call. Raises ProviderError on any failure."""
        try:
            content = await self._complete(instruction, text, image)
        except httpx.TimeoutException as e:
            raise ProviderError(self.name, "timeout") from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"malformed response: {e}") from e
        logger.info("%s replied with %d chars", self.name, len(content or ""))
        return parse_attributes_reply(self.name, content)

    async def _post(self, url: str, payload: dict, headers: dict | None = None) -> Any:
        timeout = httpx.Timeout(timeout=self.timeout, connect=10.0)
        async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            return orjson.loads(response.content)

    @abstractmethod
    async def _complete(self, instruction: str, text: str | None, image: str | None) -> str:
        """Send one request and return the model's raw text reply."""


class ChatCompletionsProvider(_Provider):
    """OpenAI-compatible ``/chat/completions`` endpoint."""

    temperature = 0.1
    max_tokens = 400

    async def _complete(self, instruction: str, text: str | None, image: str | None) -> str:
        if image is not None:
            user_content: Any = [
                {"type": "text", "text": text or "Identify the product in this photo."},
                {"type": "image_url", "image_url": {"url": image}},
            ]
        else:
            user_content = text or ""

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": instruction},
                {"role": "user", "content": user_content},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = await self._post(f"{self.base_url}/chat/completions", payload, headers=headers)
        return data["choices"][0]["message"]["content"]


class GeminiProvider(_Provider):
    """Google Generative Language API, ``models/<model>:generateContent``."""

    temperature = 0.1

    async def _complete(self, instruction: str, text: str | None, image: str | None) -> str:
        parts: list[dict] = [{"text": instruction}]
        if text:
            parts.append({"text": text})
        if image is not None:
            mime, b64 = split_data_uri(image)
            parts.append({"inlineData": {"mimeType": mime, "data": b64}})

        model_path = self.model if self.model.startswith("models/") else f"models/{self.model}"
        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {"temperature": self.temperature},
        }
        data = await self._post(
            f"{self.base_url}/{model_path}:generateContent",
            payload,
            headers={"x-goog-api-key": self.api_key},
        )
        return data["candidates"][0]["content"]["parts"][0]["text"]


# ===== Construction from settings =====


def build_text_provider(settings: Settings) -> ChatCompletionsProvider | None:
    """The wish-text provider, or None when no API key is configured."""
    if not settings.llm_api_key:
        return None
    return ChatCompletionsProvider(
        name="llm",
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout_s,
    )


def build_vision_providers(settings: Settings) -> list[_Provider]:
    """Configured vision providers in fixed priority order: Gemini, OpenRouter, OpenAI."""
    providers: list[_Provider] = []
    if settings.gemini_api_key:
        providers.append(
            GeminiProvider(
                name="gemini",
                api_key=settings.gemini_api_key,
                model=settings.gemini_model,
                base_url=settings.gemini_base_url,
                timeout=settings.vision_timeout_s,
            )
        )
    if settings.openrouter_api_key:
        providers.append(
            ChatCompletionsProvider(
                name="openrouter",
                api_key=settings.openrouter_api_key,
                model=settings.openrouter_model,
                base_url=settings.openrouter_base_url,
                timeout=settings.vision_timeout_s,
            )
        )
    if settings.openai_api_key:
        providers.append(
            ChatCompletionsProvider(
                name="openai",
                api_key=settings.openai_api_key,
                model=settings.openai_model,
                base_url=settings.openai_base_url,
                timeout=settings.vision_timeout_s,
            )
        )
    return providers
