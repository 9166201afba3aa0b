"""Storage interface for cached image records."""

from typing import Any, Dict, Optional, Protocol, runtime_checkable

from ..models import CacheEntry


@runtime_checkable
class ImageCacheStorage(Protocol):
    """Abstract interface for the image cache record store.

    Implementations own their records exclusively: the cacher and the loader
    only ever go through these methods. Write methods may be asynchronous
    with respect to the caller; ``flush`` waits for them.
    """

    def load_image(self, url: str) -> Optional[bytes]:
        """Return the bytes stored for exactly ``url``, or None on a miss."""
        ...

    def save_image(self, url: str, image_data: Optional[bytes]) -> None:
        """Create or overwrite the entry for ``url`` and reset its timestamp.

        Does nothing when ``image_data`` is empty or None.
        """
        ...

    def delete_entities(self, older_than: float) -> None:
        """Delete every entry last written more than ``older_than`` seconds ago.

        Best effort: persistence failures are logged, never raised.
        """
        ...

    def get_entry(self, url: str) -> Optional[CacheEntry]:
        ...

    def add_entry(
        self, url: str, image_data: Optional[bytes], timestamp: Optional[float] = None
    ) -> None:
        ...

    def count(self) -> int:
        ...

    def clear(self) -> int:
        ...

    def get_stats(self) -> Dict[str, Any]:
        ...

    def flush(self) -> None:
        ...

    def close(self) -> None:
        ...
