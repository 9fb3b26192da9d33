# ownables/transfer/thumbnail.py
"""
Thumbnail size budgeting.

The thumbnail travels inside the relay message metadata, so it has to fit
in THUMBNAIL_BUDGET bytes. Rungs of the ladder are tried in order until one
fits; if none does, the thumbnail is dropped.
"""

import io
import logging
from typing import Callable, Optional, Sequence, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from ownables.core.errors import ThumbnailError

logger = logging.getLogger(__name__)

THUMBNAIL_BUDGET = 256 * 1024
THUMBNAIL_SIZE = (50, 50)
THUMBNAIL_MIME = "image/webp"

# (quality, (width, height))
THUMBNAIL_LADDER: Tuple[Tuple[int, Tuple[int, int]], ...] = (
    (80, THUMBNAIL_SIZE),
    (60, THUMBNAIL_SIZE),
    (40, THUMBNAIL_SIZE),
)

ResizeAndEncode = Callable[[bytes, int, int, int], bytes]


def pillow_resize_and_encode(data: bytes, width: int, height: int, quality: int) -> bytes:
    """Center-crop to the target box (never enlarging) and encode as WebP."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.width > width or img.height > height:
                img = ImageOps.fit(img, (width, height), centering=(0.5, 0.5))
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            out = io.BytesIO()
            img.save(out, format="WEBP", quality=quality, method=6, lossless=False)
            return out.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ThumbnailError(f"Cannot process thumbnail: {e}") from e


def budget_thumbnail(
    data: bytes,
    resize_and_encode: ResizeAndEncode = pillow_resize_and_encode,
    ladder: Sequence[Tuple[int, Tuple[int, int]]] = THUMBNAIL_LADDER,
    budget: int = THUMBNAIL_BUDGET,
) -> Optional[bytes]:
    """
    Encoded thumbnail no larger than `budget`, or None when the ladder is
    exhausted or the image cannot be processed. Never raises.
    """
    for quality, (width, height) in ladder:
        try:
            encoded = resize_and_encode(data, width, height, quality)
        except Exception as e:
            logger.warning("Failed to process thumbnail, skipping: %s", e)
            return None
        if len(encoded) <= budget:
            logger.debug("Thumbnail encoded at quality %d: %d bytes", quality, len(encoded))
            return encoded
        logger.debug("Thumbnail at quality %d is %d bytes, over budget", quality, len(encoded))

    logger.warning("Thumbnail exceeds %d bytes at every quality, dropping it", budget)
    return None
