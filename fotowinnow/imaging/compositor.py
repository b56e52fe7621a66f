"""Compositor stage: blend the watermark layer over the resized image."""

from __future__ import annotations

import logging

from PIL import Image

from fotowinnow.errors import ProcessingFailure
from fotowinnow.imaging.encoder import WEBP_METHOD, WEBP_QUALITY, encode

logger = logging.getLogger(__name__)


def blend(base: Image.Image, layer: Image.Image) -> Image.Image:
    """Alpha-blend ``layer`` over ``base`` ("over" operator).

    The result keeps an alpha channel only if ``base`` had one.

    Raises:
        ProcessingFailure: If the two images differ in size.
    """
    if base.size != layer.size:
        raise ProcessingFailure(
            f"overlay size {layer.size} does not match image size {base.size}"
        )
    keep_alpha = base.mode == "RGBA"
    if layer.mode != "RGBA":
        layer = layer.convert("RGBA")
    blended = Image.alpha_composite(base.convert("RGBA"), layer)
    return blended if keep_alpha else blended.convert("RGB")


def composite(
    base: Image.Image,
    layer: Image.Image,
    quality: int = WEBP_QUALITY,
    method: int = WEBP_METHOD,
) -> bytes:
    """Blend ``layer`` over ``base`` and encode the result as WebP."""
    try:
        blended = blend(base, layer)
    except (OSError, ValueError) as e:
        raise ProcessingFailure(f"composite failed: {e}") from e
    return encode(blended, quality=quality, method=method)
