"""
FastAPI server for wish/product resolution.

Endpoints:
- GET  /?url=https://...      → render a product page and resolve its attributes
- GET  /health                → liveness
- POST /api/wish              → store a wish sentence for a short time, return its id
- GET  /api/wish/{id}         → read it back (``?analyze=1`` also resolves attributes)
- POST /api/image             → identify a product from a photo, optionally upload it
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field

import ai
import storage
from config import Settings, get_settings
from extractor import resolve_attributes
from models import AttributeRecord, PageResult
from renderer import Renderer
from text_store import TextStore
from vision import analyze_image, decode_image_payload
from wish import analyze_wish

logger = logging.getLogger("server")


# ---------------------------------------------------------------------------
# Application context
# ---------------------------------------------------------------------------


@dataclass
class AppContext:
    """Everything a request handler needs, built once at startup."""

    settings: Settings
    text_store: TextStore
    text_provider: ai.ChatCompletionsProvider | None = None
    vision_providers: list = field(default_factory=list)
    renderer_factory: type = Renderer

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        return cls(
            settings=settings,
            text_store=TextStore(ttl_seconds=settings.text_ttl_seconds, max_chars=settings.text_max_chars),
            text_provider=ai.build_text_provider(settings),
            vision_providers=ai.build_vision_providers(settings),
        )


def get_context(request: Request) -> AppContext:
    return request.app.state.context


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class WishSubmission(BaseModel):
    text: str


class WishCreated(BaseModel):
    id: str
    expiresAt: float


class WishLookup(BaseModel):
    id: str
    text: str
    record: AttributeRecord | None = None


class ImageSubmission(BaseModel):
    image: str = Field(description="base64 payload or data: URI")
    upload: bool = False


class ImageAnalysis(BaseModel):
    record: AttributeRecord
    imageUrl: str | None = None


# ---------------------------------------------------------------------------
# Page parsing
# ---------------------------------------------------------------------------


async def scrape_page(ctx: AppContext, url: str) -> PageResult:
    """Render ``url``, resolve attributes, and try to inline the product image."""
    async with ctx.renderer_factory(ctx.settings) as renderer:
        html = await renderer.render(url)
        record = resolve_attributes(html, url)
        image_base64 = None
        if record.image:
            image_base64 = await renderer.fetch_image_data_uri(record.image, url)
    return PageResult(**record.model_dump(), image_base64=image_base64)


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------


def create_app(context: AppContext | None = None) -> FastAPI:
    settings = context.settings if context else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.context = context or AppContext.from_settings(settings)
        ctx = app.state.context
        logger.info(
            "Providers: text=%s vision=%s storage=%s",
            ctx.text_provider.name if ctx.text_provider else None,
            [p.name for p in ctx.vision_providers],
            settings.storage_enabled,
        )
        yield

    app = FastAPI(
        title="Wish Scraper API",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=86400,
    )

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/")
    async def parse_page(request: Request, url: str | None = Query(default=None)):
        """Render a product page and resolve name/price/currency/size/image."""
        if not url:
            raise HTTPException(status_code=400, detail="Missing url query parameter")
        if not url.startswith("https://"):
            raise HTTPException(status_code=400, detail="Only https URLs allowed")

        ctx = get_context(request)
        try:
            result = await scrape_page(ctx, url)
        except Exception as e:
            logger.error("Scraper error for %s", url, exc_info=True)
            degraded = PageResult.degraded(url, str(e) or type(e).__name__)
            return ORJSONResponse(status_code=502, content=degraded.model_dump(by_alias=True))
        return result.model_dump(by_alias=True)

    @app.post("/api/wish", response_model=WishCreated)
    async def submit_wish(request: Request, body: WishSubmission):
        ctx = get_context(request)
        try:
            entry = ctx.text_store.put(body.text)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return WishCreated(id=entry.id, expiresAt=entry.expires_at)

    @app.get("/api/wish/{entry_id}", response_model=WishLookup)
    async def fetch_wish(request: Request, entry_id: str, analyze: bool = False):
        ctx = get_context(request)
        entry = ctx.text_store.get(entry_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="Text not found or expired")
        record = await analyze_wish(entry.text, ctx.text_provider) if analyze else None
        return WishLookup(id=entry.id, text=entry.text, record=record)

    @app.post("/api/image", response_model=ImageAnalysis)
    async def analyze_photo(request: Request, body: ImageSubmission):
        ctx = get_context(request)
        try:
            data, mime = decode_image_payload(body.image)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        record = await analyze_image(body.image, ctx.vision_providers)
        image_url = None
        if body.upload:
            image_url = await storage.upload_image(data, mime, ctx.settings)
            record = record.model_copy(update={"image": image_url})
        return ImageAnalysis(record=record, imageUrl=image_url)

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
