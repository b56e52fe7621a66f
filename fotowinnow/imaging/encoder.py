"""Encoder stage: re-encode a resized buffer as WebP.

Settings are fixed per call and nothing random goes into the encoder,
so the same pixels always produce the same bytes. Metadata (EXIF, ICC)
is never written.
"""

from __future__ import annotations

import io
import logging

from PIL import Image

from fotowinnow.errors import ProcessingFailure

logger = logging.getLogger(__name__)

WEBP_QUALITY = 80
WEBP_METHOD = 6


def encode(
    image: Image.Image,
    quality: int = WEBP_QUALITY,
    method: int = WEBP_METHOD,
) -> bytes:
    """Encode ``image`` as lossy WebP.

    RGBA images keep their alpha channel; every other mode is converted
    to RGB first.

    Raises:
        ProcessingFailure: If Pillow cannot encode the pixels.
    """
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGB")

    buf = io.BytesIO()
    try:
        image.save(buf, "WEBP", quality=quality, method=method, lossless=False)
    except (OSError, ValueError) as e:
        raise ProcessingFailure(f"WebP encode failed: {e}") from e

    data = buf.getvalue()
    logger.debug("Encoded %dx%d WebP: %d bytes", image.width, image.height, len(data))
    return data
