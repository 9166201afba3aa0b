"""
Image Decoding

Turns raw encoded bytes into a Pillow image. Only decodes; the bytes that
get cached are always the original payload, never a re-encoding.
"""

import logging
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from .errors import ImageDecodeError

logger = logging.getLogger(__name__)


def decode_image(data: bytes) -> Image.Image:
    """
    Decode image bytes.

    Raises:
        ImageDecodeError: If the bytes are empty, not a readable image, or
            declare more pixels than Pillow allows.
    """
    if not data:
        raise ImageDecodeError("Empty image data")

    try:
        img = Image.open(BytesIO(data))
        # Force a full decode so truncated payloads fail here, not later
        img.load()
        return img
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise ImageDecodeError(f"Failed to decode image: {e}") from e
