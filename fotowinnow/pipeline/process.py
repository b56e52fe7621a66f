"""Image pipeline entry point.

Decoder -> Resizer -> {Encoder (optimized), Tile pattern -> Compositor (watermarked)}

The two output branches run off the same resized buffer and fail
independently: a broken watermark still yields the optimized variant.
Only when both branches fail does ``process`` raise.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from fotowinnow.config import Settings, get_settings
from fotowinnow.errors import InvalidWatermarkSpec, ProcessingError, ProcessingFailure
from fotowinnow.imaging import compositor, decoder, encoder, resizer, tiling
from fotowinnow.imaging.fonts import FontRegistry
from fotowinnow.models import ProcessedImagePair, SourceImage, WatermarkSpec
from fotowinnow.pipeline.tracing import PipelineSpan, pipeline_span

logger = logging.getLogger(__name__)

SpecInput = Union[WatermarkSpec, Mapping[str, Any]]


def validate_spec(spec: SpecInput) -> WatermarkSpec:
    """Re-validate a spec (or build one from a mapping).

    Raises:
        InvalidWatermarkSpec: If any field is out of range.
    """
    if isinstance(spec, WatermarkSpec):
        values = spec.model_dump()
    elif isinstance(spec, Mapping):
        values = dict(spec)
    else:
        raise InvalidWatermarkSpec(f"unsupported watermark spec type {type(spec).__name__}")
    return WatermarkSpec.from_request(**values)


def _failure_message(e: Exception) -> str:
    return str(e) or type(e).__name__


class ImagePipeline:
    """Stateless processor; safe to share between threads."""

    def __init__(self, settings: Optional[Settings] = None, fonts: Optional[FontRegistry] = None):
        self.settings = settings or get_settings()
        self.fonts = fonts or FontRegistry(self.settings.fonts_dir_resolved, tiling.tier_font_sizes())

    def process(
        self,
        source_bytes: bytes,
        spec: SpecInput,
        content_type: Optional[str] = None,
    ) -> ProcessedImagePair:
        """Produce the optimized and watermarked WebP variants.

        Args:
            source_bytes: Raw uploaded image.
            spec: Watermark parameters (validated before any pixel work).
            content_type: Declared MIME type of the upload.

        Returns:
            ProcessedImagePair; a variant is None if only its branch failed.

        Raises:
            InvalidWatermarkSpec: Spec out of range.
            InvalidImage: Source undecodable or zero-sized.
            ProcessingFailure: Resize failed, or both branches failed.
        """
        spec = validate_spec(spec)

        with pipeline_span(tier=spec.tier.value, bytes_in=len(source_bytes)) as span:
            with span.step("decode"):
                metadata = decoder.require_valid(decoder.decode(
                    source_bytes, content_type, self.settings.max_image_pixels
                ))
            span.set(width_in=metadata.width, height_in=metadata.height,
                     format=metadata.format.value)

            with span.step("resize", mode=self.settings.resize_mode):
                resized = resizer.resize(
                    source_bytes,
                    metadata,
                    spec.tier,
                    self.settings.resize_mode,
                    self.settings.max_image_pixels,
                )
            span.set(width=resized.width, height=resized.height)

            result = ProcessedImagePair(width=resized.width, height=resized.height)
            result.optimized_bytes, result.optimized_error = self._optimized(resized, span)
            result.watermarked_bytes, result.watermark_error = self._watermarked(resized, spec, span)

            if result.optimized_bytes is None and result.watermarked_bytes is None:
                raise ProcessingFailure(
                    f"optimized: {result.optimized_error}; watermarked: {result.watermark_error}"
                )
            if result.errors():
                span.outcome = "partial"
            return result

    def process_source(self, source: SourceImage, spec: SpecInput) -> ProcessedImagePair:
        return self.process(source.data, spec, source.content_type)

    def _optimized(self, resized: resizer.ResizedImage, span: PipelineSpan):
        try:
            with span.step("encode"):
                data = encoder.encode(
                    resized.image,
                    quality=self.settings.webp_quality,
                    method=self.settings.webp_method,
                )
            return data, None
        except ProcessingError as e:
            logger.warning("Optimized variant failed: %s", e)
            return None, _failure_message(e)
        except Exception as e:
            logger.exception("Unexpected error encoding optimized variant")
            return None, f"unexpected {type(e).__name__}: {e}"

    def _watermarked(self, resized: resizer.ResizedImage, spec: WatermarkSpec, span: PipelineSpan):
        try:
            with span.step("layout"):
                overlay = tiling.build_overlay(
                    spec.text,
                    spec.font_id,
                    spec.tier,
                    resized.width,
                    resized.height,
                    opacity=spec.opacity,
                    spacing_multiplier=self.settings.tile_spacing_multiplier,
                    grid_margin=self.settings.tile_grid_margin,
                )
            span.set(font=overlay.font_family, glyphs=overlay.layout.glyph_count)

            with span.step("render"):
                layer = tiling.render_overlay(overlay, self.fonts)
            with span.step("composite"):
                data = compositor.composite(
                    resized.image,
                    layer,
                    quality=self.settings.webp_quality,
                    method=self.settings.webp_method,
                )
            return data, None
        except ProcessingError as e:
            logger.warning("Watermarked variant failed: %s", e)
            return None, _failure_message(e)
        except Exception as e:
            logger.exception("Unexpected error building watermarked variant")
            return None, f"unexpected {type(e).__name__}: {e}"
