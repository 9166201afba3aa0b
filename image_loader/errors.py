"""
Image Loader Errors

Every failure of a load degrades to "no image"; these exceptions say why.
Persistence failures never appear here, they stay inside the storage layer.
"""

from typing import Optional


class ImageLoadError(Exception):
    """Base error for a failed image load."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.message = message
        self.url = url


class InvalidImageURLError(ImageLoadError):
    """The URL string is empty or cannot be parsed as an http(s) URL."""


class ImageFetchError(ImageLoadError):
    """The transport failed or the server answered with a non-success status."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message, url)
        self.status_code = status_code


class ImageDecodeError(ImageLoadError):
    """The bytes are not a decodable image."""
