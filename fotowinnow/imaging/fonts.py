"""Static font registry for watermark rendering.

Font ids map to TTF files shipped in ``fotowinnow/fonts``. Every font is
loaded once, for every size the tiers need, when the registry is built;
rendering never touches the filesystem.

Resolution order for a requested id:
1. the id itself, if its file loaded;
2. the first family (Space Mono);
3. a monospace system font;
4. Pillow's built-in scalable font.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from PIL import ImageFont

from fotowinnow.models import FONT_OPTIONS

logger = logging.getLogger(__name__)

FontType = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]

# Upstream Google Fonts file names; the [wght] files are variable fonts
# whose default instance is Regular.
FONT_FILES: dict[str, str] = {
    "Space Mono": "SpaceMono-Regular.ttf",
    "Roboto Mono": "RobotoMono[wght].ttf",
    "Source Code Pro": "SourceCodePro[wght].ttf",
    "JetBrains Mono": "JetBrainsMono[wght].ttf",
    "IBM Plex Mono": "IBMPlexMono-Regular.ttf",
    # TODO: ship CutiveMono-Regular.ttf; until then this family renders as Space Mono
    "Cutive Mono": "CutiveMono-Regular.ttf",
}

SYSTEM_MONOSPACE_FONTS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationMono-Regular.ttf",
    "/usr/share/fonts/truetype/freefont/FreeMono.ttf",
    "/System/Library/Fonts/Menlo.ttc",
    "C:/Windows/Fonts/consola.ttf",
)

DEFAULT_FONT = FONT_OPTIONS[0]


def resolve_family(font_id: Optional[str]) -> str:
    """Return a supported family name, falling back to the default.

    Matching ignores case and surrounding whitespace.
    """
    if font_id:
        wanted = font_id.strip().lower()
        for name in FONT_OPTIONS:
            if name.lower() == wanted:
                return name
    logger.debug("Unknown font %r, using %s", font_id, DEFAULT_FONT)
    return DEFAULT_FONT


class FontRegistry:
    """Preloaded FreeType fonts keyed by (family, pixel size)."""

    def __init__(
        self,
        fonts_dir: Union[str, Path],
        sizes: Iterable[int] = (),
        system_fonts: Iterable[str] = SYSTEM_MONOSPACE_FONTS,
    ):
        self.fonts_dir = Path(fonts_dir)
        self.system_fonts = tuple(system_fonts)
        self._paths: dict[str, Path] = {}
        self._fonts: dict[tuple[str, int], FontType] = {}

        for family, filename in FONT_FILES.items():
            path = self.fonts_dir / filename
            if path.is_file():
                self._paths[family] = path
            else:
                logger.warning("Font file missing for %s: %s", family, path)

        for size in sorted(set(sizes)):
            for family in FONT_OPTIONS:
                self._fonts[(family, size)] = self._load(family, size)

        logger.info(
            "Font registry ready: %d/%d families, %d sizes",
            len(self._paths), len(FONT_FILES), len(set(sizes)),
        )

    def _load(self, family: str, size: int) -> FontType:
        for candidate in (family, DEFAULT_FONT):
            path = self._paths.get(candidate)
            if path is None:
                continue
            try:
                return ImageFont.truetype(str(path), size)
            except OSError as e:
                logger.warning("Cannot load %s (%s): %s", candidate, path, e)
        for path in self.system_fonts:
            try:
                return ImageFont.truetype(path, size)
            except OSError:
                continue
        logger.warning("No monospace font available at %dpx, using Pillow default", size)
        return ImageFont.load_default(size=size)

    def has_family(self, family: str) -> bool:
        """True if the family's own TTF file is available."""
        return family in self._paths

    @property
    def available_families(self) -> list[str]:
        return [f for f in FONT_OPTIONS if f in self._paths]

    def get(self, font_id: Optional[str], size: int) -> FontType:
        """Return the font for ``font_id`` at ``size`` pixels.

        Unknown ids fall back to the default family; this never raises.
        """
        family = resolve_family(font_id)
        key = (family, size)
        font = self._fonts.get(key)
        if font is None:
            # Size outside the preloaded tier set (custom layouts in tests/CLI)
            font = self._load(family, size)
            self._fonts[key] = font
        return font
