"""
Headless Chromium renderer (Playwright).

Produces the fully rendered HTML of a product page and, on request,
fetches the product image through the same browser so storefront
cookies and anti-bot tokens still apply.
"""

import base64
import logging
import re
from urllib.parse import urljoin

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from config import Settings

logger = logging.getLogger(__name__)

_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

_IMAGE_CONTENT_TYPE = re.compile(r"^image/(jpeg|png|webp|gif)", re.IGNORECASE)


class Renderer:
    """One browser per request: ``async with Renderer(settings) as r: html = await r.render(url)``."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None

    async def __aenter__(self) -> "Renderer":
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=True, args=_CHROMIUM_ARGS)
            context = await self._browser.new_context(user_agent=self.settings.user_agent)
            self._page = await context.new_page()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def render(self, url: str) -> str:
        """Navigate to ``url``, wait for the network to settle, return the page HTML."""
        assert self._page is not None, "Renderer used outside 'async with'"
        await self._page.goto(url, wait_until="networkidle", timeout=self.settings.render_timeout_ms)
        return await self._page.content()

    async def fetch_image_data_uri(self, image_url: str, page_url: str) -> str | None:
        """Load an image through the browser and return it as a data URI, or None."""
        assert self._page is not None, "Renderer used outside 'async with'"
        url = image_url if image_url.startswith("http") else urljoin(page_url, image_url)
        try:
            response = await self._page.goto(
                url, wait_until="domcontentloaded", timeout=self.settings.image_fetch_timeout_ms
            )
            if response is None or not response.ok:
                return None
            content_type = response.headers.get("content-type", "image/jpeg")
            if not _IMAGE_CONTENT_TYPE.match(content_type):
                return None
            body = await response.body()
        except PlaywrightError as e:
            logger.warning("Image fetch failed for %s: %s", url, e)
            return None
        mime = content_type.split(";")[0].strip()
        return f"data:{mime};base64,{base64.b64encode(body).decode('ascii')}"
