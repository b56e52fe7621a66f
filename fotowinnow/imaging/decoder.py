"""Decoder stage: identify an uploaded image and read its header.

Decoding is deliberately lenient: truncated files are accepted and
missing dimensions come back as 0 so the caller can reject them before
any division happens.
"""

from __future__ import annotations

import io
import logging
from typing import Optional

from PIL import Image, ImageFile, UnidentifiedImageError

from fotowinnow.errors import InvalidImage
from fotowinnow.models import ImageFormat, ImageMetadata

# 300MP hard ceiling; Settings.max_image_pixels is checked per call
Image.MAX_IMAGE_PIXELS = 300_000_000
ImageFile.LOAD_TRUNCATED_IMAGES = True

logger = logging.getLogger(__name__)

ALPHA_MODES = {"RGBA", "LA", "PA", "RGBa", "La"}


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ALPHA_MODES or "transparency" in img.info


def open_image(data: bytes) -> Image.Image:
    """Open ``data`` lazily with Pillow.

    Raises:
        InvalidImage: If the bytes are empty or not a recognised image.
    """
    if not data:
        raise InvalidImage("empty image buffer")
    try:
        return Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise InvalidImage(f"cannot decode image: {e}") from e


def decode(
    data: bytes,
    content_type: Optional[str] = None,
    max_pixels: Optional[int] = None,
) -> ImageMetadata:
    """Extract dimensions, alpha and format from an image buffer.

    Only the header is read. The sniffed format wins over the declared
    content type; a mismatch is logged, not raised.

    Args:
        data: Raw image bytes.
        content_type: MIME type the uploader declared, if any.
        max_pixels: Reject images with more pixels than this.

    Returns:
        ImageMetadata. Width/height are 0 when the header lacks them.

    Raises:
        InvalidImage: If the buffer is not a decodable image or is too large.
    """
    img = open_image(data)
    try:
        width, height = img.size or (0, 0)
    except (TypeError, ValueError):
        width, height = 0, 0

    if max_pixels and width * height > max_pixels:
        raise InvalidImage(f"image has {width * height} pixels, limit is {max_pixels}")

    fmt = ImageFormat.from_pillow(img.format)
    declared = ImageFormat.from_content_type(content_type)
    if content_type and declared != fmt:
        logger.warning(
            "Declared content type %s does not match sniffed format %s",
            content_type, fmt.value,
        )

    return ImageMetadata(
        width=max(int(width or 0), 0),
        height=max(int(height or 0), 0),
        has_alpha=_has_alpha(img),
        format=fmt,
        mode=img.mode,
    )


def require_valid(metadata: ImageMetadata) -> ImageMetadata:
    """Reject metadata with a zero dimension.

    Raises:
        InvalidImage: If width or height is 0.
    """
    if not metadata.is_valid():
        raise InvalidImage(
            f"image reports invalid dimensions {metadata.width}x{metadata.height}"
        )
    return metadata
