"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "100000")
os.environ.setdefault("RATE_LIMIT_PER_HOUR", "1000000")
os.environ.setdefault("TRANSFORMED_IMAGE_BUCKET", "")

from io import BytesIO
from typing import AsyncGenerator, Optional

import pytest
from PIL import Image

from src.core.cache import CacheService
from src.core.guard import OriginGuard
from src.core.storage import StoredObject
from src.core.transformer import ImageTransformer

PUBLIC_ADDRESS = "93.184.216.34"


class MemoryObjectStore:
    """Dict-backed stand-in for the durable store."""

    def __init__(self, fail_writes: bool = False) -> None:
        self.objects: dict[str, StoredObject] = {}
        self.fail_writes = fail_writes

    async def put(
        self,
        key: str,
        body: bytes,
        content_type: str,
        cache_control: str,
        metadata: dict[str, str],
    ) -> None:
        from src.core.errors import PersistenceError

        if self.fail_writes:
            raise PersistenceError("store unavailable")
        self.objects[key] = StoredObject(
            body=body,
            content_type=content_type,
            cache_control=cache_control,
            metadata=metadata,
        )

    async def get(self, key: str) -> Optional[StoredObject]:
        return self.objects.get(key)


def static_resolver(*addresses: str):
    """Build a resolver that always answers with the given addresses."""

    async def resolve(hostname: str) -> list[str]:
        return list(addresses)

    return resolve


def encode_image(image: Image.Image, fmt: str, **kwargs: object) -> bytes:
    """Encode a PIL image to bytes."""
    buffer = BytesIO()
    image.save(buffer, format=fmt, **kwargs)
    return buffer.getvalue()


@pytest.fixture
async def cache_service() -> AsyncGenerator[CacheService, None]:
    """Create an edge cache service."""
    service = CacheService(max_size_mb=1)
    yield service


@pytest.fixture
def memory_store() -> MemoryObjectStore:
    """Create an in-memory durable store."""
    return MemoryObjectStore()


@pytest.fixture
def public_guard() -> OriginGuard:
    """Create a guard whose DNS answers with a public address."""
    return OriginGuard(resolver=static_resolver(PUBLIC_ADDRESS))


@pytest.fixture
def image_transformer() -> ImageTransformer:
    """Create image transformer instance."""
    return ImageTransformer()


@pytest.fixture
def sample_image() -> Image.Image:
    """Create a sample gradient test image."""
    img = Image.new("RGB", (1200, 800), color=(255, 255, 255))

    pixels = img.load()
    if pixels is not None:
        for i in range(0, img.size[0], 4):
            for j in range(0, img.size[1], 4):
                pixels[i, j] = (
                    int(255 * i / img.size[0]),
                    int(255 * j / img.size[1]),
                    128,
                )

    return img


@pytest.fixture
def sample_jpeg(sample_image: Image.Image) -> bytes:
    """Sample image encoded as JPEG."""
    return encode_image(sample_image, "JPEG", quality=90)


@pytest.fixture
def sample_png_with_transparency() -> bytes:
    """Small RGBA PNG."""
    img = Image.new("RGBA", (200, 100), color=(255, 0, 0, 128))
    return encode_image(img, "PNG")


@pytest.fixture
def rotated_jpeg() -> bytes:
    """400x200 JPEG tagged with orientation 6 (displayed as 200x400)."""
    img = Image.new("RGB", (400, 200), color=(0, 128, 255))
    exif = Image.Exif()
    exif[0x0112] = 6
    return encode_image(img, "JPEG", exif=exif.tobytes())


@pytest.fixture
def animated_gif() -> bytes:
    """Three-frame animated GIF."""
    frames = [
        Image.new("RGB", (120, 60), color=color)
        for color in ((255, 0, 0), (0, 255, 0), (0, 0, 255))
    ]
    return encode_image(
        frames[0], "GIF", save_all=True, append_images=frames[1:], duration=100, loop=0
    )
