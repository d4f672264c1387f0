import math
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from heuristics import normalize_currency, parse_price

# Shown by clients as "unknown"; every resolution path defaults name to it
UNKNOWN_NAME = "N/A"


class AttributeRecord(BaseModel):
    """Canonical product attributes shared by page, wish-text and image resolution."""

    name: str = UNKNOWN_NAME
    price: float | None = None
    currency: str | None = None
    size: str | None = None
    link: str | None = None
    image: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def default_name(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            return UNKNOWN_NAME
        return v.strip()

    @field_validator("price", mode="before")
    @classmethod
    def bound_price(cls, v: Any) -> float | None:
        # Out-of-range, negative, NaN or non-numeric prices are dropped, never raised
        return parse_price(v)

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency_field(cls, v: Any) -> str | None:
        return normalize_currency(v)

    @field_validator("size", mode="before")
    @classmethod
    def stringify_size(cls, v: Any) -> str | None:
        if isinstance(v, bool) or v is None:
            return None
        if isinstance(v, (int, float)):
            if not math.isfinite(v):
                return None
            return str(int(v)) if float(v).is_integer() else str(v)
        if isinstance(v, str) and v.strip():
            return v.strip()
        return None

    @field_validator("link", "image", mode="before")
    @classmethod
    def optional_url(cls, v: Any) -> str | None:
        if isinstance(v, str) and v.strip():
            return v.strip()
        return None


class PageResult(AttributeRecord):
    """Page-parse response: attributes plus the renderer-fetched image payload.

    ``fallback``/``error`` are only set on a degraded response when the whole
    render/parse stack failed.
    """

    model_config = ConfigDict(populate_by_name=True)

    image_base64: str | None = Field(default=None, alias="imageBase64")
    fallback: bool = Field(default=False, alias="_fallback")
    error: str | None = Field(default=None, alias="_error")

    @classmethod
    def degraded(cls, link: str, error: str) -> "PageResult":
        return cls(link=link, fallback=True, error=error)


@dataclass
class ResolutionTrace:
    """Which source supplied each resolved field (None = nothing did)."""

    name: str | None = None
    price: str | None = None
    currency: str | None = None
    size: str | None = None
    image: str | None = None

    def as_dict(self) -> dict[str, str | None]:
        return {
            "name": self.name,
            "price": self.price,
            "currency": self.currency,
            "size": self.size,
            "image": self.image,
        }


@dataclass
class WishTextEntry:
    """A submitted wish sentence, readable until ``expires_at``."""

    id: str
    text: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class LLMAttributes(BaseModel):
    """Loose shape accepted from an inference provider's JSON object."""

    name: str | None = None
    price: float | str | None = None
    currency: str | None = None
    size: str | int | float | None = None

    def to_record(self, **overrides: Any) -> AttributeRecord:
        data = {
            "name": self.name,
            "price": self.price,
            "currency": self.currency,
            "size": self.size,
        }
        data.update(overrides)
        return AttributeRecord(**data)
