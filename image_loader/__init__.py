"""
Image Loader Module

Loads remote images through a local SQLite cache.

Features:
- Cache-or-fetch by exact URL string
- Raw bytes stored once per URL, overwritten on refetch
- Entries older than seven days swept after every save
- Async, future and callback call forms over one core
"""

from .cacher import ImageCacher
from .config import ImageCacheConfig
from .constants import SEVEN_DAYS
from .decoder import decode_image
from .errors import (
    ImageDecodeError,
    ImageFetchError,
    ImageLoadError,
    InvalidImageURLError,
)
from .loader import ImageLoader, build_loader, default_loader, validate_image_url
from .models import CacheEntry, LoadResult
from .storage import (
    ImageCacheStorage,
    MemoryImageCacheStorage,
    SQLiteImageCacheStorage,
    default_storage,
)
from .transport import HttpxImageTransport, ImageTransport

__all__ = [
    "ImageLoader",
    "ImageCacher",
    "ImageCacheConfig",
    "ImageCacheStorage",
    "SQLiteImageCacheStorage",
    "MemoryImageCacheStorage",
    "ImageTransport",
    "HttpxImageTransport",
    "CacheEntry",
    "LoadResult",
    "ImageLoadError",
    "InvalidImageURLError",
    "ImageFetchError",
    "ImageDecodeError",
    "SEVEN_DAYS",
    "build_loader",
    "default_loader",
    "default_storage",
    "decode_image",
    "validate_image_url",
]
