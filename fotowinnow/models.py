"""FotoWinnow Pydantic models.

Transient, request-scoped value objects that flow through the image
pipeline. Nothing here is persisted by the pipeline itself.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fotowinnow.errors import InvalidWatermarkSpec

MAX_WATERMARK_LENGTH = 15

# Six monospace families; the first one is the fallback.
FONT_OPTIONS = (
    "Space Mono",
    "Roboto Mono",
    "Source Code Pro",
    "JetBrains Mono",
    "IBM Plex Mono",
    "Cutive Mono",
)

WEBP_CONTENT_TYPE = "image/webp"


class ImageFormat(str, Enum):
    """Raster formats Pillow is expected to hand us."""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    GIF = "gif"
    TIFF = "tiff"
    BMP = "bmp"
    UNKNOWN = "unknown"

    @classmethod
    def from_pillow(cls, name: Optional[str]) -> "ImageFormat":
        """Map a Pillow format name (``JPEG``, ``PNG``...) to the enum."""
        if not name:
            return cls.UNKNOWN
        try:
            return cls(name.lower())
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def from_content_type(cls, content_type: Optional[str]) -> "ImageFormat":
        """Map a declared MIME type (``image/jpeg``) to the enum."""
        if not content_type or "/" not in content_type:
            return cls.UNKNOWN
        subtype = content_type.split(";")[0].split("/", 1)[1].strip().lower()
        if subtype == "jpg":
            subtype = "jpeg"
        try:
            return cls(subtype)
        except ValueError:
            return cls.UNKNOWN


class QualityTier(str, Enum):
    """Named resolution presets."""

    P512 = "512p"
    P1080 = "1080p"
    QHD = "2K"
    UHD = "4K"

    @property
    def target_size(self) -> int:
        """Target long-edge pixel count for this tier."""
        return QUALITY_DIMENSIONS[self]


QUALITY_DIMENSIONS: dict[QualityTier, int] = {
    QualityTier.P512: 512,
    QualityTier.P1080: 1080,
    QualityTier.QHD: 1440,
    QualityTier.UHD: 2160,
}

# Reference resolution the typography constants are tuned for.
BASE_RESOLUTION = 512


class SourceImage(BaseModel):
    """Raw bytes fetched from the object store plus the declared type."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    content_type: Optional[str] = None

    @property
    def declared_format(self) -> ImageFormat:
        return ImageFormat.from_content_type(self.content_type)


class ImageMetadata(BaseModel):
    """Header information extracted by the decoder.

    Missing dimensions default to 0; ``is_valid`` must be checked before
    any arithmetic that divides by them.
    """

    model_config = ConfigDict(frozen=True)

    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    has_alpha: bool = False
    format: ImageFormat = ImageFormat.UNKNOWN
    mode: Optional[str] = None

    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


class WatermarkSpec(BaseModel):
    """Caller-supplied watermark parameters, validated at pipeline entry."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1, max_length=MAX_WATERMARK_LENGTH)
    font_id: str = Field(default=FONT_OPTIONS[0], description="Unknown ids fall back at render time")
    opacity_percent: int = Field(default=30, ge=10, le=90)
    tier: QualityTier = QualityTier.P1080

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """Reject text that would render as nothing."""
        if not v.strip():
            raise ValueError("watermark text must contain a visible character")
        return v

    @property
    def opacity(self) -> float:
        """Opacity as a 0..1 alpha value."""
        return self.opacity_percent / 100

    @classmethod
    def from_request(cls, **values: Any) -> "WatermarkSpec":
        """Build a spec, turning validation errors into InvalidWatermarkSpec.

        ``None`` values are dropped so the model defaults apply.

        Raises:
            InvalidWatermarkSpec: If any field is out of range.
        """
        cleaned = {k: v for k, v in values.items() if v is not None}
        try:
            return cls(**cleaned)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise InvalidWatermarkSpec(problems) from e


class TileLayout(BaseModel):
    """Geometry of the repeated watermark grid before rotation."""

    model_config = ConfigDict(frozen=True)

    canvas_width: int
    canvas_height: int
    scale_factor: float
    font_size_px: int
    char_width: int
    watermark_width: int
    horizontal_spacing: int
    vertical_spacing: int
    total_horizontal_space: int
    total_vertical_space: int
    diagonal_length: int
    num_rows: int = Field(..., ge=1)
    num_cols: int = Field(..., ge=1)

    @property
    def glyph_count(self) -> int:
        return self.num_rows * self.num_cols


class ProcessedImagePair(BaseModel):
    """The pipeline's output: two independently produced variants.

    A variant is ``None`` when its branch failed; the matching
    ``*_error`` field carries the reason.
    """

    optimized_bytes: Optional[bytes] = None
    watermarked_bytes: Optional[bytes] = None
    content_type: str = WEBP_CONTENT_TYPE
    width: int = 0
    height: int = 0
    optimized_error: Optional[str] = None
    watermark_error: Optional[str] = None

    def is_complete(self) -> bool:
        """Both variants were produced."""
        return self.optimized_bytes is not None and self.watermarked_bytes is not None

    def errors(self) -> dict[str, str]:
        out = {}
        if self.optimized_error:
            out["optimized"] = self.optimized_error
        if self.watermark_error:
            out["watermarked"] = self.watermark_error
        return out
