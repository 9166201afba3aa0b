"""
Image Loader Configuration

One dataclass holds every tunable of the cache and the transport. The
composition root (``build_loader``) turns it into wired instances.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .constants import (
    DEFAULT_CACHE_DIR,
    DEFAULT_DB_FILENAME,
    DEFAULT_SWEEP_BATCH_SIZE,
    SEVEN_DAYS,
)


@dataclass
class ImageCacheConfig:
    """Configuration for image caching and fetching."""
    # Store settings
    cache_dir: str = DEFAULT_CACHE_DIR            # Directory holding the SQLite file
    db_filename: str = DEFAULT_DB_FILENAME        # SQLite file name

    # Eviction settings
    ttl_seconds: int = SEVEN_DAYS                 # Entry lifetime
    sweep_batch_size: int = DEFAULT_SWEEP_BATCH_SIZE  # Rows deleted per statement
    max_sweep_rows: Optional[int] = None          # Cap per sweep (None = all expired)

    # Transport settings
    timeout: Optional[float] = None               # None keeps the httpx default
    follow_redirects: bool = True

    @property
    def db_path(self) -> Path:
        return Path(self.cache_dir) / self.db_filename

    def validate(self) -> "ImageCacheConfig":
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if self.sweep_batch_size < 1:
            raise ValueError("sweep_batch_size must be >= 1")
        if self.max_sweep_rows is not None and self.max_sweep_rows < 1:
            raise ValueError("max_sweep_rows must be >= 1")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if not self.db_filename.strip():
            raise ValueError("db_filename must not be empty")
        return self
