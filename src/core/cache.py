"""In-memory edge cache for transformed images."""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class CachedImage:
    """A successful image response keyed by canonical path."""

    body: bytes
    content_type: str
    cache_control: str


class LRUCache:
    """In-memory LRU cache with size limit."""

    def __init__(self, max_size_mb: float = 500):
        """Initialize LRU cache with size limit in megabytes."""
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self.current_size = 0
        self.cache: OrderedDict[str, tuple[CachedImage, int]] = OrderedDict()

    def get(self, key: str) -> Optional[CachedImage]:
        """Get value from cache, moving to end (most recently used)."""
        if key in self.cache:
            self.cache.move_to_end(key)
            logger.debug(f"Edge cache hit: {key}")
            return self.cache[key][0]
        logger.debug(f"Edge cache miss: {key}")
        return None

    def set(self, key: str, value: CachedImage) -> None:
        """Set value in cache, evicting LRU items if needed."""
        value_size = len(value.body)

        if value_size > self.max_size_bytes:
            logger.warning(
                f"Value too large for edge cache: {value_size / (1024 * 1024):.2f}MB"
            )
            return

        if key in self.cache:
            _, old_size = self.cache.pop(key)
            self.current_size -= old_size

        while self.current_size + value_size > self.max_size_bytes and self.cache:
            evicted_key, (_, evicted_size) = self.cache.popitem(last=False)
            self.current_size -= evicted_size
            logger.debug(f"Edge cache evicted: {evicted_key} ({evicted_size} bytes)")

        self.cache[key] = (value, value_size)
        self.current_size += value_size
        logger.debug(
            f"Edge cache set: {key} ({value_size} bytes, "
            f"total: {self.current_size / (1024 * 1024):.2f}MB)"
        )

    def clear(self) -> None:
        """Clear all items from cache."""
        self.cache.clear()
        self.current_size = 0
        logger.info("Edge cache cleared")


class CacheService:
    """Edge cache tier consulted before the durable store."""

    def __init__(self, max_size_mb: float = 500) -> None:
        """Initialize cache service with an LRU cache."""
        self.l1_cache = LRUCache(max_size_mb=max_size_mb)

    async def get(self, path: str) -> Optional[CachedImage]:
        """
        Get a cached image by canonical path.

        Args:
            path: Canonical proxy path

        Returns:
            Cached image, or None if not found
        """
        return self.l1_cache.get(path)

    async def set(self, path: str, value: CachedImage) -> None:
        """
        Cache an image under its canonical path.

        Args:
            path: Canonical proxy path
            value: Image to cache
        """
        self.l1_cache.set(path, value)

    async def clear_all(self) -> None:
        """Clear the edge cache."""
        self.l1_cache.clear()
