"""
Image Cache Storage

Record stores behind the image cacher:
- SQLiteImageCacheStorage: persistent, single-file SQLite store
- MemoryImageCacheStorage: in-process store for tests and ephemeral use
"""

import logging
import sqlite3
from threading import Lock
from typing import Optional

from .base import ImageCacheStorage
from .memory_store import MemoryImageCacheStorage
from .sqlite_store import SQLiteImageCacheStorage

logger = logging.getLogger(__name__)

_default_storage: Optional[SQLiteImageCacheStorage] = None
_default_storage_lock = Lock()
_default_storage_failed = False


def default_storage() -> Optional[SQLiteImageCacheStorage]:
    """
    Shared SQLite storage at the default location, created on first use.

    Returns None if the store cannot be opened; callers then run without a cache.
    """
    global _default_storage, _default_storage_failed

    with _default_storage_lock:
        if _default_storage is None and not _default_storage_failed:
            try:
                _default_storage = SQLiteImageCacheStorage()
            except (sqlite3.Error, OSError) as e:
                _default_storage_failed = True
                logger.error(f"[ImageCacheStorage] Failed to open default store: {e}")
        return _default_storage


__all__ = [
    "ImageCacheStorage",
    "MemoryImageCacheStorage",
    "SQLiteImageCacheStorage",
    "default_storage",
]
