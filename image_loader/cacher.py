"""
Image Cacher

Saves and loads raw image bytes through a storage adapter. Every save is
followed by a sweep of entries older than the TTL; there is no separate
cleanup schedule.
"""

import logging
from typing import Optional

from .constants import LOG_URL_CHARS, SEVEN_DAYS
from .storage import ImageCacheStorage, default_storage

logger = logging.getLogger(__name__)


class ImageCacher:
    """
    Caches image bytes keyed by URL string.

    Usage:
        cacher = ImageCacher(SQLiteImageCacheStorage(path))
        cacher.save_image(url, data)
        data = cacher.load_image(url)
    """

    def __init__(
        self,
        storage: Optional[ImageCacheStorage] = None,
        ttl_seconds: float = SEVEN_DAYS,
    ):
        """
        Args:
            storage: Record store. Defaults to the shared SQLite store; if that
                cannot be opened the cacher stores nothing and always misses.
            ttl_seconds: Age after which entries are swept
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        # The shared default store outlives any one cacher
        self._owns_storage = storage is not None
        self.storage = storage if storage is not None else default_storage()
        self.ttl_seconds = ttl_seconds

    def save_image(self, url: str, image_data: bytes) -> None:
        """Store the bytes for a URL, then sweep outdated entries."""
        if self.storage is None:
            return
        self.storage.save_image(url, image_data)
        self._delete_outdated_entities()

    def load_image(self, url: str) -> Optional[bytes]:
        if self.storage is None:
            return None
        image_data = self.storage.load_image(url)
        if image_data is None:
            logger.debug(f"[ImageCacher] Miss: {url[:LOG_URL_CHARS]}...")
        else:
            logger.debug(f"[ImageCacher] Hit: {url[:LOG_URL_CHARS]}...")
        return image_data

    def close(self) -> None:
        """Close the storage this cacher was given; the shared default store stays open."""
        if self.storage is not None and self._owns_storage:
            self.storage.close()

    def _delete_outdated_entities(self) -> None:
        self.storage.delete_entities(older_than=self.ttl_seconds)
