"""Resizer stage: scale the source to a quality tier.

Two modes are supported:

- ``fill``: resize to exactly the tier dimensions, upscaling small
  sources. This is the default and matches the watermark pipeline.
- ``fit``: same target, but never enlarge; sources already smaller than
  the tier keep their own size.

Both preserve the source aspect ratio within rounding.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from fotowinnow.errors import InvalidImage, ProcessingFailure
from fotowinnow.imaging.decoder import open_image, require_valid
from fotowinnow.models import ImageMetadata, QualityTier

logger = logging.getLogger(__name__)

RESIZE_MODES = ("fill", "fit")


def round_half_up(value: float) -> int:
    """Round .5 up for positive values (``round(2.5) == 2``, this gives 3)."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class ResizedImage:
    """Pixel buffer produced by the resizer plus its final size."""

    image: Image.Image
    width: int
    height: int
    has_alpha: bool = False


def target_dimensions(
    width: int,
    height: int,
    tier: QualityTier,
    mode: str = "fill",
    max_pixels: Optional[int] = None,
) -> tuple[int, int]:
    """Compute output dimensions for a source of ``width`` x ``height``.

    The tier size is applied to the height of landscape images and to the
    width of portrait/square ones.

    Raises:
        InvalidImage: If either dimension is 0, or the output would exceed
            ``max_pixels``.
        ValueError: If ``mode`` is not fill or fit.
    """
    if width <= 0 or height <= 0:
        raise InvalidImage(f"cannot resize {width}x{height} image")
    if mode not in RESIZE_MODES:
        raise ValueError(f"mode must be one of {RESIZE_MODES}, got '{mode}'")

    target_size = tier.target_size
    aspect_ratio = width / height
    if width > height:
        new_width, new_height = round_half_up(target_size * aspect_ratio), target_size
    else:
        new_width, new_height = target_size, round_half_up(target_size / aspect_ratio)

    if mode == "fit" and (new_width > width or new_height > height):
        new_width, new_height = width, height

    new_width, new_height = max(1, new_width), max(1, new_height)
    if max_pixels and new_width * new_height > max_pixels:
        raise InvalidImage(
            f"{width}x{height} image would resize to {new_width}x{new_height}, "
            f"over the {max_pixels} pixel limit"
        )
    return new_width, new_height


def _normalise_mode(img: Image.Image, keep_alpha: bool) -> Image.Image:
    # CMYK, palette and 16-bit sources all end up as 8-bit RGB(A)
    wanted = "RGBA" if keep_alpha else "RGB"
    if img.mode != wanted:
        img = img.convert(wanted)
    return img


def resize(
    data: bytes,
    metadata: ImageMetadata,
    tier: QualityTier,
    mode: str = "fill",
    max_pixels: Optional[int] = None,
) -> ResizedImage:
    """Decode pixels and resize them for ``tier``.

    Args:
        data: Raw source bytes.
        metadata: Result of ``decoder.decode`` for the same bytes.
        tier: Target quality tier.
        mode: ``fill`` or ``fit``.
        max_pixels: Upper bound on output width * height.

    Returns:
        ResizedImage with an RGB or RGBA Pillow image.

    Raises:
        InvalidImage: If the metadata reports a zero dimension or the output
            is too large.
        ProcessingFailure: If pixel data cannot be read or resampled.
    """
    require_valid(metadata)
    new_width, new_height = target_dimensions(
        metadata.width, metadata.height, tier, mode, max_pixels
    )

    img = open_image(data)
    try:
        img.load()
        img = _normalise_mode(img, metadata.has_alpha)
        if img.size != (new_width, new_height):
            img = img.resize((new_width, new_height), Image.LANCZOS)
    except (OSError, ValueError, MemoryError) as e:
        raise ProcessingFailure(f"resize to {new_width}x{new_height} failed: {e}") from e

    logger.debug(
        "Resized %dx%d -> %dx%d (%s, %s)",
        metadata.width, metadata.height, new_width, new_height, tier.value, mode,
    )
    return ResizedImage(
        image=img,
        width=new_width,
        height=new_height,
        has_alpha=metadata.has_alpha,
    )
