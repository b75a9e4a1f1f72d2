"""Recipe image caching and storage.

Provider image URLs expire, so generated images are downloaded and written to
local storage. Downloads are restricted to https URLs on an allow-listed set of
provider hosts. Format is checked from magic bytes with filetype, size against
MAX_IMAGE_SIZE_MB, and large images are recompressed with Pillow.

Every failure degrades gracefully: storage falls back to the provider URL (or
None) and a recipe is never lost because its image failed.
"""

import asyncio
import hashlib
import re
import time
from collections import OrderedDict
from io import BytesIO
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

import aiohttp
import filetype
from PIL import Image

from src.models.models import GeneratedImage
from src.utils.logger import logger

ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "webp")


def normalize_prompt(prompt: str) -> str:
    return re.sub(r"\s+", " ", prompt.lower()).strip()


class ImageCache:
    """Small in-process cache of generated image URLs keyed by normalised prompt."""

    def __init__(self, max_entries: int = 50, ttl_seconds: float = 24 * 3600, clock: Callable[[], float] = time.monotonic):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[str, float]]" = OrderedDict()

    def get(self, prompt: str) -> Optional[str]:
        key = normalize_prompt(prompt)
        entry = self._entries.get(key)
        if entry is None:
            return None
        url, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return url

    def put(self, prompt: str, url: str) -> None:
        key = normalize_prompt(prompt)
        self._entries.pop(key, None)
        self._entries[key] = (url, self._clock())
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


def compress_image(image_bytes: bytes, threshold_kb: int, max_width: int = 1024) -> bytes:
    """Recompress images above threshold_kb to progressive JPEG (quality 85).

    Returns the original bytes when below the threshold or if Pillow cannot read them.
    """
    size_kb = len(image_bytes) / 1024
    if size_kb < threshold_kb:
        logger.debug(f"Image size {size_kb:.1f}KB below compression threshold ({threshold_kb}KB), skipping")
        return image_bytes

    try:
        img = Image.open(BytesIO(image_bytes))

        # Convert RGBA/LA/P to RGB for better compression
        if img.mode in ("RGBA", "LA", "P"):
            img = img.convert("RGBA")
            rgb_img = Image.new("RGB", img.size, (255, 255, 255))
            rgb_img.paste(img, mask=img.split()[-1])
            img = rgb_img
        elif img.mode != "RGB":
            img = img.convert("RGB")

        if img.width > max_width:
            ratio = max_width / img.width
            img = img.resize((max_width, int(img.height * ratio)), Image.Resampling.LANCZOS)

        output = BytesIO()
        img.save(output, format="JPEG", quality=85, optimize=True, progressive=True)
        compressed = output.getvalue()
    except (OSError, ValueError) as e:
        logger.warning(f"Image compression failed, keeping original: {e}")
        return image_bytes

    logger.debug(f"Image compressed: {size_kb:.1f}KB → {len(compressed) / 1024:.1f}KB")
    return compressed


class ImageStorage:
    """Downloads or receives generated images and writes them under storage_dir."""

    def __init__(
        self,
        storage_dir: str,
        public_path: str,
        allowed_hosts: list[str],
        max_size_mb: int = 10,
        compress: bool = True,
        compress_threshold_kb: int = 300,
        download_timeout: float = 30.0,
    ):
        self.storage_dir = Path(storage_dir)
        self.public_path = public_path.rstrip("/")
        self.allowed_hosts = set(allowed_hosts)
        self.max_size_mb = max_size_mb
        self.compress = compress
        self.compress_threshold_kb = compress_threshold_kb
        self.download_timeout = download_timeout

    def is_allowed_url(self, url: str) -> bool:
        parsed = urlparse(url)
        return parsed.scheme == "https" and parsed.hostname in self.allowed_hosts

    def validate_image(self, image_bytes: bytes) -> Optional[str]:
        """Return the detected extension if the bytes are an allowed image within the size limit."""
        size_mb = len(image_bytes) / (1024 * 1024)
        if size_mb > self.max_size_mb:
            logger.warning(f"Image size {size_mb:.2f}MB exceeds limit of {self.max_size_mb}MB")
            return None
        kind = filetype.guess(image_bytes)
        if kind is None or kind.extension not in ALLOWED_EXTENSIONS:
            logger.warning(f"Invalid image format: {kind.mime if kind else 'unknown'}")
            return None
        return kind.extension

    async def download(self, url: str) -> Optional[bytes]:
        if not self.is_allowed_url(url):
            logger.warning(f"Refusing to download image from non-allowlisted URL: {urlparse(url).hostname}")
            return None
        max_bytes = self.max_size_mb * 1024 * 1024
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.download_timeout)) as response:
                    if response.status != 200:
                        logger.warning(f"Image download failed with HTTP {response.status}")
                        return None
                    if response.content_length and response.content_length > max_bytes:
                        logger.warning(f"Image download too large: {response.content_length} bytes")
                        return None
                    return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Image download failed: {e}")
            return None

    def _write(self, image_bytes: bytes, extension: str, title: str) -> str:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")[:40] or "recipe"
        digest = hashlib.sha256(image_bytes).hexdigest()[:12]
        filename = f"{slug}-{digest}.{extension}"
        (self.storage_dir / filename).write_bytes(image_bytes)
        return f"{self.public_path}/{filename}"

    async def store(self, image: GeneratedImage, title: str) -> Optional[str]:
        """Persist a generated image and return its public path.

        Falls back to the provider URL when the image cannot be fetched, validated or written.
        """
        image_bytes = image.data if image.data else await self.download(image.url)
        if not image_bytes:
            return image.url

        extension = self.validate_image(image_bytes)
        if extension is None:
            return image.url

        if self.compress:
            compressed = await asyncio.to_thread(compress_image, image_bytes, self.compress_threshold_kb)
            if compressed is not image_bytes:
                image_bytes, extension = compressed, "jpg"

        try:
            path = await asyncio.to_thread(self._write, image_bytes, extension, title)
        except OSError as e:
            logger.warning(f"Failed to write image for '{title}': {e}")
            return image.url

        logger.info(f"✓ Stored recipe image at {path}")
        return path
