"""Tests for the compositor stage."""

import io

import pytest
from PIL import Image

from fotowinnow.errors import ProcessingFailure
from fotowinnow.imaging.compositor import blend, composite


def test_white_overlay_brightens():
    base = Image.new("RGB", (50, 50), (0, 0, 0))
    layer = Image.new("RGBA", (50, 50), (255, 255, 255, 77))
    out = blend(base, layer)
    assert out.mode == "RGB"
    r, g, b = out.getpixel((25, 25))
    assert 70 <= r <= 84
    assert r == g == b


def test_transparent_overlay_is_noop():
    base = Image.new("RGB", (20, 20), (12, 34, 56))
    layer = Image.new("RGBA", (20, 20), (255, 255, 255, 0))
    assert blend(base, layer).getpixel((5, 5)) == (12, 34, 56)


def test_rgba_base_keeps_alpha():
    base = Image.new("RGBA", (20, 20), (0, 0, 0, 128))
    layer = Image.new("RGBA", (20, 20), (255, 255, 255, 77))
    assert blend(base, layer).mode == "RGBA"


def test_size_mismatch_rejected():
    base = Image.new("RGB", (20, 20))
    layer = Image.new("RGBA", (21, 20))
    with pytest.raises(ProcessingFailure, match="does not match"):
        blend(base, layer)


def test_composite_returns_webp():
    base = Image.new("RGB", (64, 48), (30, 30, 30))
    layer = Image.new("RGBA", (64, 48), (255, 255, 255, 60))
    data = composite(base, layer)
    out = Image.open(io.BytesIO(data))
    assert out.format == "WEBP"
    assert out.size == (64, 48)
