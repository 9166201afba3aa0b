"""
Image Loader Data Models

- CacheEntry: one persisted record (url, raw bytes, last-write time)
- LoadResult: outcome handed to callback-form completions
"""

from dataclasses import dataclass
from typing import Optional

from PIL import Image

from .errors import ImageLoadError


@dataclass
class CacheEntry:
    """A cached image record."""
    url: str                         # Cache key, unique per entry
    image_data: bytes                # Raw encoded payload as fetched
    timestamp: float                 # Unix time of the last write

    @property
    def size_bytes(self) -> int:
        return len(self.image_data)

    def is_expired(self, ttl_seconds: float, now: float) -> bool:
        """Check whether the entry was written before now - ttl_seconds"""
        return self.timestamp < now - ttl_seconds


@dataclass
class LoadResult:
    """Result of a callback-form image load."""
    url: str
    image: Optional[Image.Image] = None
    error: Optional[ImageLoadError] = None
    from_cache: bool = False

    @property
    def success(self) -> bool:
        return self.error is None and self.image is not None
