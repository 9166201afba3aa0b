"""
SQLite Image Cache Storage

Persistent image cache backed by a single SQLite file:
- One table: url, raw image bytes, last-write timestamp
- Find-or-create saves (one row per URL)
- Batched TTL sweep, committed once per sweep
- All statements run on one private worker thread

Writes are fire-and-forget from the caller's side. Reads wait for the
worker. Use ``flush()`` to wait until every queued write has been applied.
"""

import logging
import sqlite3
import time
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, Union

from ..constants import (
    DEFAULT_CACHE_DIR,
    DEFAULT_DB_FILENAME,
    DEFAULT_SWEEP_BATCH_SIZE,
    LOG_URL_CHARS,
)
from ..models import CacheEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS image_cache (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT NOT NULL,
    image_data BLOB NOT NULL,
    timestamp REAL NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_image_cache_url ON image_cache (url);
CREATE INDEX IF NOT EXISTS idx_image_cache_timestamp ON image_cache (timestamp);
"""


class SQLiteImageCacheStorage:
    """
    Image cache storage on an embedded SQLite database.

    The connection is created on, and only ever used from, the storage's
    single worker thread. That thread is the store's execution context:
    mutations never overlap, so two saves for the same URL cannot race.

    Usage:
        storage = SQLiteImageCacheStorage("./image_cache/image-cache.sqlite")
        storage.save_image(url, data)
        storage.flush()
        data = storage.load_image(url)
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        clock: Callable[[], float] = time.time,
        sweep_batch_size: int = DEFAULT_SWEEP_BATCH_SIZE,
        max_sweep_rows: Optional[int] = None,
    ):
        if sweep_batch_size < 1:
            raise ValueError("sweep_batch_size must be >= 1")
        if max_sweep_rows is not None and max_sweep_rows < 1:
            raise ValueError("max_sweep_rows must be >= 1")

        self.db_path = Path(db_path) if db_path is not None else Path(DEFAULT_CACHE_DIR) / DEFAULT_DB_FILENAME
        self.sweep_batch_size = sweep_batch_size
        self.max_sweep_rows = max_sweep_rows
        self._clock = clock
        self._conn: Optional[sqlite3.Connection] = None
        self._closed = False

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="image-cache-store")

        try:
            self._call(self._open)
        except Exception:
            self._executor.shutdown(wait=True)
            raise

        logger.info(f"[ImageCacheStorage] Store: {self.db_path}")

    def __enter__(self) -> "SQLiteImageCacheStorage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ============================================
    # Cache operations
    # ============================================

    def load_image(self, url: str) -> Optional[bytes]:
        """
        Load the image bytes stored for exactly this URL.

        Returns:
            Raw bytes, or None if no entry exists.
        """
        entry = self.get_entry(url)
        return entry.image_data if entry else None

    def save_image(self, url: str, image_data: Optional[bytes]) -> None:
        """
        Queue a find-or-create write for this URL.

        A new entry gets timestamp = now; an existing one has its bytes
        overwritten and its timestamp reset. Empty payloads are ignored.
        """
        if not image_data:
            return
        self._submit(self._save, url, bytes(image_data))

    def delete_entities(self, older_than: float) -> None:
        """
        Queue a sweep of every entry written before now - older_than.

        Args:
            older_than: Age in seconds
        """
        cutoff = self._clock() - older_than
        self._submit(self._sweep, cutoff)

    # ============================================
    # Record helpers
    # ============================================

    def get_entry(self, url: str) -> Optional[CacheEntry]:
        row = self._call(self._fetch_row, url)
        if row is None:
            return None
        return CacheEntry(url=row["url"], image_data=bytes(row["image_data"]), timestamp=row["timestamp"])

    def add_entry(
        self, url: str, image_data: Optional[bytes], timestamp: Optional[float] = None
    ) -> None:
        """Queue an insert-or-replace with an explicit timestamp (defaults to now)."""
        if not image_data:
            return
        self._submit(self._save, url, bytes(image_data), timestamp)

    def count(self) -> int:
        return self._call(self._count)

    def clear(self) -> int:
        """
        Delete every entry.

        Returns:
            Number of entries removed.
        """
        return self._call(self._clear)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_entries, total_size = self._call(self._totals)
        return {
            "total_entries": total_entries,
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "db_path": str(self.db_path),
        }

    @property
    def closed(self) -> bool:
        return self._closed

    def flush(self) -> None:
        """Block until every write queued so far has been applied."""
        if self._closed:
            return
        self._executor.submit(lambda: None).result()

    def close(self) -> None:
        """Apply pending writes, close the connection and stop the worker."""
        if self._closed:
            return
        self._closed = True
        self._executor.submit(self._close_connection).result()
        self._executor.shutdown(wait=True)
        logger.debug(f"[ImageCacheStorage] Closed: {self.db_path}")

    # ============================================
    # Execution context
    # ============================================

    def _submit(self, fn: Callable[..., None], *args: Any) -> Optional[Future]:
        if self._closed:
            logger.warning("[ImageCacheStorage] Write ignored, storage is closed")
            return None
        return self._executor.submit(fn, *args)

    def _call(self, fn: Callable[..., T], *args: Any) -> T:
        if self._closed:
            raise RuntimeError("SQLiteImageCacheStorage is closed")
        return self._executor.submit(fn, *args).result()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connection()
        conn.execute("BEGIN")
        try:
            yield conn
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SQLite connection is not open")
        return self._conn

    # ============================================
    # Worker-thread operations
    # ============================================

    def _open(self) -> None:
        conn = sqlite3.connect(self.db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.executescript(SCHEMA)
        self._conn = conn

    def _close_connection(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _fetch_row(self, url: str) -> Optional[sqlite3.Row]:
        try:
            return self._connection().execute(
                "SELECT url, image_data, timestamp FROM image_cache WHERE url = ?",
                (url,),
            ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"[ImageCacheStorage] Failed to read {url[:LOG_URL_CHARS]}...: {e}")
            return None

    def _save(self, url: str, image_data: bytes, timestamp: Optional[float] = None) -> None:
        written_at = self._clock() if timestamp is None else timestamp
        try:
            with self._transaction() as conn:
                row = conn.execute("SELECT id FROM image_cache WHERE url = ?", (url,)).fetchone()
                if row is None:
                    conn.execute(
                        "INSERT INTO image_cache (url, image_data, timestamp) VALUES (?, ?, ?)",
                        (url, image_data, written_at),
                    )
                    logger.debug(f"[ImageCacheStorage] Added: {url[:LOG_URL_CHARS]}... ({len(image_data)} bytes)")
                else:
                    conn.execute(
                        "UPDATE image_cache SET image_data = ?, timestamp = ? WHERE id = ?",
                        (image_data, written_at, row["id"]),
                    )
                    logger.debug(f"[ImageCacheStorage] Updated: {url[:LOG_URL_CHARS]}... ({len(image_data)} bytes)")
        except sqlite3.Error as e:
            logger.error(f"[ImageCacheStorage] Failed to save {url[:LOG_URL_CHARS]}...: {e}")

    def _sweep(self, cutoff: float) -> None:
        removed = 0
        try:
            with self._transaction() as conn:
                while True:
                    limit = self.sweep_batch_size
                    if self.max_sweep_rows is not None:
                        limit = min(limit, self.max_sweep_rows - removed)
                    if limit <= 0:
                        break

                    cursor = conn.execute(
                        """
                        DELETE FROM image_cache WHERE id IN (
                            SELECT id FROM image_cache
                            WHERE timestamp < ?
                            ORDER BY timestamp ASC
                            LIMIT ?
                        )
                        """,
                        (cutoff, limit),
                    )
                    removed += cursor.rowcount
                    if cursor.rowcount < limit:
                        break
        except sqlite3.Error as e:
            logger.error(f"[ImageCacheStorage] Sweep failed: {e}")
            return

        if removed:
            logger.info(f"[ImageCacheStorage] Swept {removed} expired entries")

    def _count(self) -> int:
        return self._connection().execute("SELECT COUNT(*) FROM image_cache").fetchone()[0]

    def _totals(self) -> tuple:
        row = self._connection().execute(
            "SELECT COUNT(*), COALESCE(SUM(LENGTH(image_data)), 0) FROM image_cache"
        ).fetchone()
        return row[0], row[1]

    def _clear(self) -> int:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM image_cache")
        logger.info(f"[ImageCacheStorage] Cleared all {cursor.rowcount} entries")
        return cursor.rowcount
