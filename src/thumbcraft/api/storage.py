"""Local object storage for generated images.

Buffers are written into the gallery directory, which is served by FastAPI's
``StaticFiles`` mount, and each upload returns the public URL of the file.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path

from thumbcraft.core.mime import detect_mime_type

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


class LocalImageStorage:
    """Stores image buffers on disk and returns stable URLs.

    Attributes:
        directory: Directory that receives the image files.
        url_prefix: URL path under which ``directory`` is served.
    """

    def __init__(self, directory: Path, url_prefix: str = "/static/gallery") -> None:
        self.directory = Path(directory)
        self.url_prefix = url_prefix.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return self.directory.is_dir() and os.access(self.directory, os.W_OK)

    async def upload(self, buffer: bytes, base_name: str = "generated_image") -> str:
        """Write one buffer and return its URL."""
        extension = _EXTENSIONS.get(detect_mime_type(buffer), "png")
        filename = f"{base_name}_{uuid.uuid4().hex}.{extension}"
        await asyncio.to_thread((self.directory / filename).write_bytes, buffer)
        url = f"{self.url_prefix}/{filename}"
        logger.info("Image stored: %s", url)
        return url

    async def upload_many(self, buffers: list[bytes], base_name: str = "generated_image") -> list[str]:
        """Write every buffer concurrently.

        All uploads must succeed; the first failure propagates.

        Returns:
            URLs in the same order as ``buffers``.
        """
        urls = await asyncio.gather(*(self.upload(buffer, base_name) for buffer in buffers))
        logger.info("Successfully stored %d images", len(urls))
        return list(urls)
