"""
Image Loader

Cache-or-fetch for remote images:
1. Look up the raw bytes in the cache by the exact URL string
2. On a hit, decode and return
3. On a miss, fetch over HTTP, decode, store the raw bytes, return

One coroutine implements the decision. The future form and the callback
form run that same coroutine on a background event loop thread.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Callable, Coroutine, Optional, Tuple
from urllib.parse import urlparse

from PIL import Image

from .cacher import ImageCacher
from .config import ImageCacheConfig
from .constants import LOG_URL_CHARS
from .decoder import decode_image
from .errors import ImageDecodeError, ImageLoadError, InvalidImageURLError
from .models import LoadResult
from .storage import SQLiteImageCacheStorage
from .transport import HttpxImageTransport, ImageTransport

logger = logging.getLogger(__name__)

LoadImageCompletion = Callable[[LoadResult], None]


def validate_image_url(url_string: str) -> str:
    """
    Check that a string is an absolute http(s) URL.

    Raises:
        InvalidImageURLError: For empty strings, other schemes or a missing host.
    """
    if not url_string:
        raise InvalidImageURLError("Empty image URL", url_string)

    try:
        parsed = urlparse(url_string)
    except ValueError as e:
        raise InvalidImageURLError(f"Invalid URL: {e}", url_string) from e

    if parsed.scheme not in ("http", "https"):
        raise InvalidImageURLError(f"Invalid URL scheme: {parsed.scheme!r}", url_string)
    if not parsed.netloc:
        raise InvalidImageURLError("Invalid URL host", url_string)
    return url_string


async def _drain_tasks() -> None:
    current = asyncio.current_task()
    while True:
        pending = [task for task in asyncio.all_tasks() if task is not current]
        if not pending:
            return
        await asyncio.gather(*pending, return_exceptions=True)


class _BackgroundLoop:
    """Event loop on a daemon thread, started on first use."""

    def __init__(self, name: str = "image-loader"):
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def submit(self, coro: Coroutine) -> Future:
        with self._lock:
            if self._loop is None:
                self._start()
            return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def _start(self) -> None:
        loop = asyncio.new_event_loop()
        ready = threading.Event()

        def run() -> None:
            asyncio.set_event_loop(loop)
            loop.call_soon(ready.set)
            loop.run_forever()

        self._thread = threading.Thread(target=run, name=self._name, daemon=True)
        self._thread.start()
        ready.wait()
        self._loop = loop

    def stop(self) -> None:
        """Let every submitted coroutine finish, then stop and close the loop."""
        with self._lock:
            if self._loop is None:
                return
            asyncio.run_coroutine_threadsafe(_drain_tasks(), self._loop).result()
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join()
            self._loop.close()
            self._loop = None
            self._thread = None


class ImageLoader:
    """
    Loads images from remote URLs through a local cache.

    Usage:
        loader = ImageLoader(cacher=ImageCacher(storage))

        # async form
        image = await loader.load_image("https://example.com/a.png")

        # future form
        image = loader.submit("https://example.com/a.png").result()

        # callback form; completion runs on the loader's background thread
        loader.load_image_with_completion(url, on_done)
    """

    def __init__(
        self,
        cacher: Optional[ImageCacher] = None,
        transport: Optional[ImageTransport] = None,
        decoder: Callable[[bytes], Image.Image] = decode_image,
    ):
        self.cacher = cacher if cacher is not None else ImageCacher()
        self.transport = transport if transport is not None else HttpxImageTransport()
        self.decoder = decoder
        self._background = _BackgroundLoop()

    # ============================================
    # Call forms
    # ============================================

    async def load_image(self, url_string: str) -> Image.Image:
        """
        Load an image, from the cache if possible.

        Raises:
            InvalidImageURLError: Empty or unparsable URL
            ImageFetchError: Network failure or non-success status
            ImageDecodeError: Fetched bytes are not an image
            ImageLoadError: Any other failure, with the original error as __cause__
        """
        image, _ = await self._load(url_string)
        return image

    def submit(self, url_string: str) -> Future:
        """Run ``load_image`` on the background loop; the future holds the image or the error."""
        return self._background.submit(self.load_image(url_string))

    def load_image_with_completion(self, url_string: str, completion: LoadImageCompletion) -> Future:
        """
        Load an image and report the outcome to ``completion``.

        The completion receives a LoadResult on the loader's background
        thread; callers that need another thread must redispatch.
        """
        return self._background.submit(self._load_and_complete(url_string, completion))

    def close(self) -> None:
        """
        Shut the loader down.

        Loads already submitted run to completion first, so every future
        returned by ``submit`` or ``load_image_with_completion`` resolves.
        Then the transport, the cacher's storage and the background loop
        are closed.
        """
        self._background.submit(_drain_tasks()).result()
        self._background.submit(self.transport.aclose()).result()
        self._background.stop()
        self.cacher.close()

    # ============================================
    # Core
    # ============================================

    async def _load(self, url_string: str) -> Tuple[Image.Image, bool]:
        try:
            return await self._cache_or_fetch(url_string)
        except ImageLoadError:
            raise
        except Exception as e:
            logger.exception(f"[ImageLoader] Unexpected error: {url_string[:LOG_URL_CHARS]}...")
            raise ImageLoadError(f"Failed to load image: {e}", url_string) from e

    async def _cache_or_fetch(self, url_string: str) -> Tuple[Image.Image, bool]:
        if not url_string:
            raise InvalidImageURLError("Empty image URL", url_string)

        cached = await asyncio.to_thread(self.cacher.load_image, url_string)
        if cached is not None:
            try:
                image = self.decoder(cached)
                logger.debug(f"[ImageLoader] Cache hit: {url_string[:LOG_URL_CHARS]}...")
                return image, True
            except ImageDecodeError as e:
                logger.warning(
                    f"[ImageLoader] Cached bytes undecodable, refetching: "
                    f"{url_string[:LOG_URL_CHARS]}... ({e.message})"
                )

        url = validate_image_url(url_string)
        data = await self.transport.fetch(url)

        try:
            image = self.decoder(data)
        except ImageDecodeError as e:
            e.url = url_string
            logger.error(f"[ImageLoader] Decode failed: {url_string[:LOG_URL_CHARS]}... ({e.message})")
            raise

        await asyncio.to_thread(self.cacher.save_image, url_string, data)
        logger.info(f"[ImageLoader] Loaded: {url_string[:LOG_URL_CHARS]}... ({len(data)} bytes)")
        return image, False

    async def _load_and_complete(self, url_string: str, completion: LoadImageCompletion) -> LoadResult:
        try:
            image, from_cache = await self._load(url_string)
            result = LoadResult(url=url_string, image=image, from_cache=from_cache)
        except ImageLoadError as e:
            result = LoadResult(url=url_string, error=e)

        completion(result)
        return result


# ============================================
# Composition
# ============================================

def build_loader(config: Optional[ImageCacheConfig] = None) -> ImageLoader:
    """Wire storage, cacher, transport and loader from one config."""
    config = (config or ImageCacheConfig()).validate()

    storage = SQLiteImageCacheStorage(
        config.db_path,
        sweep_batch_size=config.sweep_batch_size,
        max_sweep_rows=config.max_sweep_rows,
    )
    cacher = ImageCacher(storage, ttl_seconds=config.ttl_seconds)
    transport = HttpxImageTransport(
        timeout=config.timeout,
        follow_redirects=config.follow_redirects,
    )
    return ImageLoader(cacher=cacher, transport=transport)


_default_loader: Optional[ImageLoader] = None
_default_loader_lock = threading.Lock()


def default_loader() -> ImageLoader:
    """Shared loader over the default store, created on first use."""
    global _default_loader

    with _default_loader_lock:
        if _default_loader is None:
            _default_loader = ImageLoader()
        return _default_loader
