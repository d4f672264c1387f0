"""Upload wish images to Supabase-style object storage."""

import logging
import uuid

import httpx

from config import Settings

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


def object_path(content_type: str) -> str:
    """A fresh, unique object path for an image of this type."""
    ext = _EXTENSIONS.get(content_type, "jpg")
    return f"wishes/{uuid.uuid4().hex}.{ext}"


async def upload_image(
    data: bytes,
    content_type: str,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str | None:
    """Upload image bytes and return the public URL, or None when disabled or failed."""
    if not settings.storage_enabled:
        return None

    base = settings.storage_url.rstrip("/")
    path = object_path(content_type)
    headers = {
        "Authorization": f"Bearer {settings.storage_key}",
        "apikey": settings.storage_key,
        "Content-Type": content_type,
        "x-upsert": "false",
    }
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0), transport=transport) as client:
            resp = await client.post(
                f"{base}/storage/v1/object/{settings.storage_bucket}/{path}",
                content=data,
                headers=headers,
            )
            resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("Image upload failed: %s", e)
        return None

    return f"{base}/storage/v1/object/public/{settings.storage_bucket}/{path}"
