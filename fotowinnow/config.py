"""FotoWinnow configuration module.

Loads all environment variables with type validation using pydantic-settings.
Fails fast with clear error messages on invalid values.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

FONTS_DIR_DEFAULT = str(Path(__file__).resolve().parent / "fonts")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Watermark defaults (used when an album has no value) ──
    default_watermark_text: str = Field(
        default="FotoWinnow",
        min_length=1,
        max_length=15,
        description="Brand text stamped on watermarked variants",
    )
    default_quality: str = Field(default="1080p", description="512p, 1080p, 2K or 4K")
    default_font: str = Field(default="Space Mono", description="Monospace font family id")
    default_opacity: int = Field(
        default=30,
        ge=10,
        le=90,
        description="Watermark opacity in percent",
    )

    # ── Tiling / resizing ──
    tile_spacing_multiplier: int = Field(
        default=4,
        ge=1,
        le=8,
        description="Horizontal gap between repeats, in character widths",
    )
    tile_grid_margin: int = Field(
        default=4,
        ge=0,
        description="Extra rows/columns added beyond the diagonal",
    )
    resize_mode: str = Field(
        default="fill",
        description="fill (exact tier dimensions) or fit (never enlarge)",
    )

    # ── Encoding ──
    webp_quality: int = Field(default=80, ge=1, le=100)
    webp_method: int = Field(default=6, ge=0, le=6, description="WebP compression effort")

    # ── Execution ──
    processing_timeout_seconds: float = Field(default=60.0, gt=0)
    processing_workers: int = Field(default=4, ge=1, le=32)
    max_image_pixels: int = Field(
        default=300_000_000,
        description="Pillow decompression bomb guard",
    )
    fonts_dir: str = Field(
        default=FONTS_DIR_DEFAULT,
        description="Directory holding the monospace TTF files",
    )

    # ── Cloudflare R2 ──
    r2_endpoint: str = Field(default="", description="R2 S3-compatible endpoint URL")
    r2_account_id: str = Field(default="")
    r2_access_key_id: str = Field(default="")
    r2_secret_access_key: str = Field(default="")
    r2_bucket_name: str = Field(default="fotowinnow-photos")
    r2_public_url: str = Field(
        default="/api/images",
        description="Prefix for URLs handed back to the browser",
    )

    # ── General ──
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    db_path: str = Field(
        default="data/fotowinnow.db",
        description="Path to SQLite database file",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}, got '{v}'")
        return upper

    @field_validator("default_quality")
    @classmethod
    def validate_default_quality(cls, v: str) -> str:
        """Ensure the default tier is one we can render."""
        allowed = ("512p", "1080p", "2K", "4K")
        if v not in allowed:
            raise ValueError(f"default_quality must be one of {allowed}, got '{v}'")
        return v

    @field_validator("resize_mode")
    @classmethod
    def validate_resize_mode(cls, v: str) -> str:
        lower = v.lower()
        if lower not in ("fill", "fit"):
            raise ValueError(f"resize_mode must be 'fill' or 'fit', got '{v}'")
        return lower

    @property
    def db_path_resolved(self) -> Path:
        """Return resolved Path object for the database."""
        return Path(self.db_path)

    @property
    def fonts_dir_resolved(self) -> Path:
        return Path(self.fonts_dir)

    def has_r2_config(self) -> bool:
        """Check if R2 credentials are configured."""
        return bool(self.r2_access_key_id and self.r2_secret_access_key)


def get_settings(**overrides: str) -> Settings:
    """Create a Settings instance with optional overrides.

    Args:
        **overrides: Key-value pairs to override env/defaults.

    Returns:
        Validated Settings instance.

    Raises:
        ValidationError: If any value fails validation.
    """
    return Settings(**overrides)
