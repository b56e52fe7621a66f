"""Tile-pattern generator: the diagonal repeating watermark.

The watermark text is laid out on a square grid whose side is the canvas
diagonal plus a safety margin, with odd rows shifted by half a cell
(brick offset). The grid is centred on the canvas and rotated 45 degrees,
so it covers the visible rectangle right into the corners.

Typography is tuned at 512px and scaled linearly with the tier:

    scale      = target_size / 512
    font size  = round(24 * scale)
    char width = round(14 * scale)   (monospace advance approximation)

Two renderings of the same geometry exist: SVG markup (built on demand
for callers and debugging) and a Pillow RGBA layer used by the
compositor.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import cached_property
from typing import Iterator
from xml.sax.saxutils import escape

from PIL import Image, ImageDraw, ImageFont

from fotowinnow.errors import InvalidImage, InvalidWatermarkSpec
from fotowinnow.imaging.fonts import FontRegistry, resolve_family
from fotowinnow.imaging.resizer import round_half_up
from fotowinnow.models import BASE_RESOLUTION, QUALITY_DIMENSIONS, QualityTier, TileLayout

logger = logging.getLogger(__name__)

BASE_FONT_SIZE = 24
BASE_CHAR_WIDTH = 14
VERTICAL_SPACING_CHARS = 2
ROTATION_DEGREES = 45

DEFAULT_SPACING_MULTIPLIER = 4
DEFAULT_GRID_MARGIN = 4


def scale_factor(tier: QualityTier) -> float:
    return tier.target_size / BASE_RESOLUTION


def font_size_for(tier: QualityTier) -> int:
    """Pixel font size used for ``tier``."""
    return round_half_up(BASE_FONT_SIZE * scale_factor(tier))


def tier_font_sizes() -> list[int]:
    """Every font size any tier renders at, for registry preloading."""
    return sorted({font_size_for(tier) for tier in QUALITY_DIMENSIONS})


def compute_layout(
    text: str,
    tier: QualityTier,
    width: int,
    height: int,
    spacing_multiplier: int = DEFAULT_SPACING_MULTIPLIER,
    grid_margin: int = DEFAULT_GRID_MARGIN,
) -> TileLayout:
    """Compute the tile grid for ``text`` on a ``width`` x ``height`` canvas.

    Args:
        text: Watermark text (non-empty).
        tier: Quality tier driving the typography scale.
        width: Canvas width after resizing.
        height: Canvas height after resizing.
        spacing_multiplier: Horizontal gap between repeats in char widths.
        grid_margin: Extra rows and columns beyond the diagonal.

    Returns:
        TileLayout with at least one row and one column.

    Raises:
        InvalidWatermarkSpec: If ``text`` is empty.
        InvalidImage: If the canvas has a zero dimension.
    """
    if not text:
        raise InvalidWatermarkSpec("watermark text must not be empty")
    if width <= 0 or height <= 0:
        raise InvalidImage(f"cannot lay out watermark on {width}x{height} canvas")

    scale = scale_factor(tier)
    font_size = round_half_up(BASE_FONT_SIZE * scale)
    char_width = round_half_up(BASE_CHAR_WIDTH * scale)
    watermark_width = len(text) * char_width

    horizontal_spacing = spacing_multiplier * char_width
    vertical_spacing = VERTICAL_SPACING_CHARS * char_width
    total_horizontal = watermark_width + horizontal_spacing
    total_vertical = font_size + vertical_spacing

    diagonal = math.ceil(math.sqrt(width * width + height * height))
    diagonal += 2 * max(total_horizontal, total_vertical)

    num_cols = math.ceil(diagonal / total_horizontal) + grid_margin
    num_rows = math.ceil(diagonal / total_vertical) + grid_margin

    return TileLayout(
        canvas_width=width,
        canvas_height=height,
        scale_factor=scale,
        font_size_px=font_size,
        char_width=char_width,
        watermark_width=watermark_width,
        horizontal_spacing=horizontal_spacing,
        vertical_spacing=vertical_spacing,
        total_horizontal_space=total_horizontal,
        total_vertical_space=total_vertical,
        diagonal_length=diagonal,
        num_rows=num_rows,
        num_cols=num_cols,
    )


def glyph_positions(layout: TileLayout) -> Iterator[tuple[float, float]]:
    """Yield the (x, baseline y) of every glyph in grid coordinates."""
    th = layout.total_horizontal_space
    tv = layout.total_vertical_space
    for row in range(layout.num_rows):
        offset = th / 2 if row % 2 else 0
        for col in range(layout.num_cols):
            yield col * th + offset, row * tv


def _num(value: float) -> str:
    return f"{value:g}" if isinstance(value, float) else str(value)


@dataclass(frozen=True)
class Overlay:
    """Renderable watermark: geometry and styling.

    The SVG markup is built on first access; the raster path never needs it.
    """

    text: str
    font_family: str
    opacity: float
    layout: TileLayout

    @cached_property
    def svg(self) -> str:
        return build_svg(self.text, self.font_family, self.opacity, self.layout)

    @property
    def alpha(self) -> int:
        """Fill alpha on the 0..255 scale."""
        return round_half_up(255 * self.opacity)

    @property
    def transform(self) -> str:
        return group_transform(self.layout)


def group_transform(layout: TileLayout) -> str:
    """SVG transform centring the oversized grid and rotating it."""
    half = layout.diagonal_length / 2
    return (
        f"translate({_num(layout.canvas_width / 2)}, {_num(layout.canvas_height / 2)}) "
        f"rotate({ROTATION_DEGREES}) "
        f"translate({_num(-half)}, {_num(-half)})"
    )


def build_svg(text: str, font_family: str, opacity: float, layout: TileLayout) -> str:
    """Render the layout as standalone SVG markup."""
    safe_text = escape(text)
    glyphs = "".join(
        f'<text x="{_num(x)}" y="{_num(y)}" class="watermark">{safe_text}</text>'
        for x, y in glyph_positions(layout)
    )
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" '
        f'width="{layout.canvas_width}" height="{layout.canvas_height}">'
        f"<style>.watermark {{ font-family: '{escape(font_family)}', monospace; "
        f"font-size: {layout.font_size_px}px; "
        f"fill: rgba(255, 255, 255, {_num(round(opacity, 4))}); }}</style>"
        f'<g transform="{group_transform(layout)}">{glyphs}</g>'
        f"</svg>"
    )


def build_overlay(
    text: str,
    font_id: str,
    tier: QualityTier,
    width: int,
    height: int,
    opacity: float = 0.3,
    spacing_multiplier: int = DEFAULT_SPACING_MULTIPLIER,
    grid_margin: int = DEFAULT_GRID_MARGIN,
) -> Overlay:
    """Lay out and describe the watermark for one canvas.

    Unknown ``font_id`` values resolve to the default family.
    """
    layout = compute_layout(text, tier, width, height, spacing_multiplier, grid_margin)
    family = resolve_family(font_id)
    return Overlay(
        text=text,
        font_family=family,
        opacity=opacity,
        layout=layout,
    )


def render_overlay(overlay: Overlay, fonts: FontRegistry) -> Image.Image:
    """Rasterise ``overlay`` into an RGBA layer the size of the canvas.

    Glyphs are drawn unrotated on a square scratch canvas just large
    enough to hold the canvas diagonal, the scratch canvas is rotated
    clockwise about the point that becomes the canvas centre, and the
    canvas-sized window around that point is cropped out. Glyphs that
    cannot reach the scratch canvas are skipped.
    """
    layout = overlay.layout
    width, height = layout.canvas_width, layout.canvas_height
    side = math.ceil(math.hypot(width, height)) + 2
    left = (side - width) // 2
    top = (side - height) // 2
    centre_x = left + width / 2
    centre_y = top + height / 2

    # Grid coordinate that lands on scratch pixel (0, 0) before rotation
    half = layout.diagonal_length / 2
    shift_x = half - centre_x
    shift_y = half - centre_y

    font = fonts.get(overlay.font_family, layout.font_size_px)
    freetype = isinstance(font, ImageFont.FreeTypeFont)
    fill = (255, 255, 255, overlay.alpha)
    reach = layout.total_horizontal_space + layout.font_size_px

    scratch = Image.new("RGBA", (side, side), (255, 255, 255, 0))
    draw = ImageDraw.Draw(scratch)
    drawn = 0
    for gx, gy in glyph_positions(layout):
        x = gx - shift_x
        y = gy - shift_y
        if x > side or y - reach > side or x + reach < 0 or y + reach < 0:
            continue
        if freetype:
            draw.text((x, y), overlay.text, font=font, fill=fill, anchor="ls")
        else:
            draw.text((x, y - layout.font_size_px), overlay.text, font=font, fill=fill)
        drawn += 1

    rotated = scratch.rotate(
        -ROTATION_DEGREES,
        resample=Image.BICUBIC,
        center=(centre_x, centre_y),
    )
    logger.debug(
        "Rendered overlay %dx%d: %d of %d glyphs visible",
        width, height, drawn, layout.glyph_count,
    )
    return rotated.crop((left, top, left + width, top + height))
