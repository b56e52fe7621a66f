"""Tests for the tile-pattern generator."""

import math

import pytest

from fotowinnow.errors import InvalidImage, InvalidWatermarkSpec
from fotowinnow.imaging.fonts import FontRegistry
from fotowinnow.imaging.tiling import (
    build_overlay,
    compute_layout,
    font_size_for,
    glyph_positions,
    group_transform,
    render_overlay,
    tier_font_sizes,
)
from fotowinnow.models import QualityTier


@pytest.fixture(scope="module")
def fonts(tmp_path_factory):
    # Empty font dir: every family falls back to Pillow's built-in font
    return FontRegistry(tmp_path_factory.mktemp("fonts"), tier_font_sizes())


def test_draft_at_512p():
    layout = compute_layout("DRAFT", QualityTier.P512, 800, 600)
    assert layout.scale_factor == 1
    assert layout.font_size_px == 24
    assert layout.char_width == 14
    assert layout.watermark_width == 70


def test_spacing_and_grid_at_512p():
    layout = compute_layout("DRAFT", QualityTier.P512, 800, 600)
    assert layout.horizontal_spacing == 56
    assert layout.vertical_spacing == 28
    assert layout.total_horizontal_space == 126
    assert layout.total_vertical_space == 52
    # ceil(hypot(800, 600)) = 1000, plus 2 * max(126, 52)
    assert layout.diagonal_length == 1252
    assert layout.num_cols == math.ceil(1252 / 126) + 4
    assert layout.num_rows == math.ceil(1252 / 52) + 4


def test_typography_scales_with_tier():
    layout = compute_layout("DRAFT", QualityTier.P1080, 1440, 1080)
    assert layout.scale_factor == pytest.approx(2.109375)
    assert layout.font_size_px == 51   # 50.625 rounds up
    assert layout.char_width == 30     # 29.53
    assert layout.watermark_width == 150


def test_font_sizes_per_tier():
    assert font_size_for(QualityTier.P512) == 24
    assert font_size_for(QualityTier.UHD) == 101
    assert tier_font_sizes() == [24, 51, 68, 101]


def test_spacing_multiplier_is_configurable():
    tight = compute_layout("DRAFT", QualityTier.P512, 800, 600, spacing_multiplier=2)
    assert tight.horizontal_spacing == 28
    assert tight.total_horizontal_space == 98


def test_grid_margin_is_configurable():
    two = compute_layout("DRAFT", QualityTier.P512, 800, 600, grid_margin=2)
    four = compute_layout("DRAFT", QualityTier.P512, 800, 600, grid_margin=4)
    assert four.num_rows - two.num_rows == 2
    assert four.num_cols - two.num_cols == 2


@pytest.mark.parametrize("text", ["A", "ABCDEFGHIJKLMNO"])
@pytest.mark.parametrize("tier", list(QualityTier))
def test_boundary_text_lengths_are_not_degenerate(text, tier):
    layout = compute_layout(text, tier, 640, 480)
    assert layout.num_cols >= 1
    assert layout.num_rows >= 1
    assert layout.watermark_width == len(text) * layout.char_width


@pytest.mark.parametrize("tier", list(QualityTier))
@pytest.mark.parametrize("width,height", [(512, 512), (3840, 2160), (100, 4000), (4000, 100)])
def test_grid_spans_diagonal(width, height, tier):
    layout = compute_layout("WATERMARK", tier, width, height)
    diagonal = math.hypot(width, height)
    assert layout.diagonal_length >= diagonal
    assert layout.num_cols * layout.total_horizontal_space > layout.diagonal_length
    assert layout.num_rows * layout.total_vertical_space > layout.diagonal_length


def test_empty_text_rejected():
    with pytest.raises(InvalidWatermarkSpec):
        compute_layout("", QualityTier.P512, 100, 100)


def test_zero_canvas_rejected():
    with pytest.raises(InvalidImage):
        compute_layout("DRAFT", QualityTier.P512, 0, 100)


def test_brick_offset_positions():
    layout = compute_layout("DRAFT", QualityTier.P512, 200, 100)
    positions = list(glyph_positions(layout))
    assert len(positions) == layout.num_rows * layout.num_cols
    assert positions[0] == (0, 0)
    assert positions[1] == (126, 0)
    second_row = positions[layout.num_cols]
    assert second_row == (63, 52)


def test_group_transform_centres_grid():
    layout = compute_layout("DRAFT", QualityTier.P512, 800, 600)
    assert group_transform(layout) == "translate(400, 300) rotate(45) translate(-626, -626)"


def test_overlay_svg_markup():
    overlay = build_overlay("A&B", "Roboto Mono", QualityTier.P512, 300, 200, opacity=0.45)
    assert overlay.font_family == "Roboto Mono"
    assert overlay.svg.startswith("<svg")
    assert 'width="300" height="200"' in overlay.svg
    assert "A&amp;B" in overlay.svg
    assert "rgba(255, 255, 255, 0.45)" in overlay.svg
    assert overlay.svg.count("<text") == overlay.layout.glyph_count


def test_unknown_font_falls_back():
    overlay = build_overlay("DRAFT", "Comic Sans", QualityTier.P512, 300, 200)
    assert overlay.font_family == "Space Mono"


def test_alpha_from_opacity():
    overlay = build_overlay("DRAFT", "Space Mono", QualityTier.P512, 300, 200, opacity=0.3)
    assert overlay.alpha == 77


def test_render_overlay_matches_canvas(fonts):
    overlay = build_overlay("DRAFT", "Space Mono", QualityTier.P512, 640, 360)
    layer = render_overlay(overlay, fonts)
    assert layer.size == (640, 360)
    assert layer.mode == "RGBA"
    # Translucent glyphs only
    low, high = layer.getchannel("A").getextrema()
    assert low == 0
    assert 0 < high < 255


@pytest.mark.parametrize("width,height,text", [
    (800, 600, "DRAFT"),
    (600, 900, "A"),
    (1200, 300, "ABCDEFGHIJKLMNO"),
])
def test_rendered_overlay_covers_whole_canvas(fonts, width, height, text):
    """No window of one tile cell (plus a row) is left without a glyph, corners included."""
    overlay = build_overlay(text, "Space Mono", QualityTier.P512, width, height)
    alpha = render_overlay(overlay, fonts).getchannel("A")
    layout = overlay.layout
    block = layout.total_horizontal_space + layout.total_vertical_space
    block = min(block, width, height)
    step = max(block // 2, 1)

    xs = list(range(0, width - block + 1, step)) + [width - block]
    ys = list(range(0, height - block + 1, step)) + [height - block]
    for x in xs:
        for y in ys:
            assert alpha.crop((x, y, x + block, y + block)).getbbox() is not None, (x, y)


def test_svg_markup_is_built_on_demand():
    overlay = build_overlay("DRAFT", "Space Mono", QualityTier.P512, 300, 200)
    assert "svg" not in overlay.__dict__
    markup = overlay.svg
    assert overlay.svg is markup
