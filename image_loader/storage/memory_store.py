"""
Memory Storage Implementation
内存存储实现

Thread-safe in-memory image cache storage. Same contract as the SQLite
storage, used by tests and by callers that do not want a file on disk.
"""

import logging
import time
from threading import Lock
from typing import Any, Callable, Dict, Optional

from ..constants import LOG_URL_CHARS
from ..models import CacheEntry

logger = logging.getLogger(__name__)


class MemoryImageCacheStorage:
    """
    Thread-safe in-memory storage
    线程安全的内存存储

    Writes complete before the call returns, so ``flush`` has nothing to wait for.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Initialize memory storage

        Args:
            clock: Source of the current Unix time
        """
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._clock = clock

    def load_image(self, url: str) -> Optional[bytes]:
        with self._lock:
            entry = self._entries.get(url)
            return entry.image_data if entry else None

    def save_image(self, url: str, image_data: Optional[bytes]) -> None:
        """
        Create or overwrite the entry for a URL
        创建或覆盖缓存条目
        """
        if not image_data:
            return

        with self._lock:
            now = self._clock()
            entry = self._entries.get(url)
            if entry is None:
                self._entries[url] = CacheEntry(url=url, image_data=image_data, timestamp=now)
                logger.debug(f"[MemoryImageCache] Added: {url[:LOG_URL_CHARS]}... ({len(image_data)} bytes)")
            else:
                entry.image_data = image_data
                entry.timestamp = now
                logger.debug(f"[MemoryImageCache] Updated: {url[:LOG_URL_CHARS]}... ({len(image_data)} bytes)")

    def delete_entities(self, older_than: float) -> None:
        """
        Remove entries written before now - older_than
        清理过期条目
        """
        with self._lock:
            now = self._clock()
            expired = [
                url for url, entry in self._entries.items()
                if entry.is_expired(older_than, now)
            ]
            for url in expired:
                del self._entries[url]

        if expired:
            logger.info(f"[MemoryImageCache] Swept {len(expired)} expired entries")

    def get_entry(self, url: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(url)
            if entry is None:
                return None
            return CacheEntry(url=entry.url, image_data=entry.image_data, timestamp=entry.timestamp)

    def add_entry(
        self, url: str, image_data: Optional[bytes], timestamp: Optional[float] = None
    ) -> None:
        """Insert or replace an entry with an explicit timestamp."""
        if not image_data:
            return
        with self._lock:
            self._entries[url] = CacheEntry(
                url=url,
                image_data=image_data,
                timestamp=self._clock() if timestamp is None else timestamp,
            )

    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> int:
        """
        Clear all cache entries
        清空所有缓存

        Returns:
            Number of entries deleted
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            total_size = sum(e.size_bytes for e in self._entries.values())
            return {
                "total_entries": len(self._entries),
                "total_size_bytes": total_size,
                "total_size_mb": round(total_size / (1024 * 1024), 2),
            }

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass
