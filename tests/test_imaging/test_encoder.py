"""Tests for the WebP encoder stage."""

import io

import pytest
from PIL import Image

from fotowinnow.errors import ProcessingFailure
from fotowinnow.imaging.encoder import encode


def _decode(data):
    return Image.open(io.BytesIO(data))


def test_output_is_webp_of_same_size():
    img = Image.new("RGB", (320, 200), (10, 120, 200))
    out = _decode(encode(img))
    assert out.format == "WEBP"
    assert out.size == (320, 200)


def test_same_pixels_same_bytes():
    img = Image.new("RGB", (128, 96), (200, 40, 40))
    assert encode(img) == encode(img.copy())


def test_alpha_is_kept():
    img = Image.new("RGBA", (64, 64), (0, 0, 255, 100))
    assert _decode(encode(img)).mode == "RGBA"


@pytest.mark.parametrize("mode", ["L", "P", "CMYK"])
def test_other_modes_encode_as_rgb(mode):
    img = Image.new(mode, (40, 30))
    out = _decode(encode(img))
    assert out.mode == "RGB"
    assert out.size == (40, 30)


def test_quality_affects_size():
    img = Image.effect_noise((256, 256), 64).convert("RGB")
    assert len(encode(img, quality=20)) < len(encode(img, quality=95))


def test_encoder_failure_is_processing_failure(monkeypatch):
    img = Image.new("RGB", (8, 8))

    def broken_save(*args, **kwargs):
        raise OSError("encoder error -2")

    monkeypatch.setattr(img, "save", broken_save)
    with pytest.raises(ProcessingFailure, match="WebP encode failed"):
        encode(img)
