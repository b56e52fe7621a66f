"""fotowinnow-process: run the image pipeline on a local file.

USAGE:
  fotowinnow-process photo.jpg
  fotowinnow-process photo.jpg --text DRAFT --quality 4K --font "JetBrains Mono"
  fotowinnow-process photo.jpg --mode fit --output-dir previews/

Writes <stem>-optimized.webp and <stem>-watermarked.webp.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from fotowinnow.config import get_settings
from fotowinnow.errors import ProcessingError
from fotowinnow.models import FONT_OPTIONS, QualityTier
from fotowinnow.pipeline.process import ImagePipeline

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fotowinnow-process",
        description="Create optimized and watermarked WebP previews of a photo",
    )
    parser.add_argument("input", type=Path, help="Source image")
    parser.add_argument("--text", help="Watermark text (1-15 chars)")
    parser.add_argument(
        "--quality",
        choices=[t.value for t in QualityTier],
        help="Quality tier (default from settings)",
    )
    parser.add_argument("--font", help=f"Font family, one of: {', '.join(FONT_OPTIONS)}")
    parser.add_argument("--opacity", type=int, help="Watermark opacity percent (10-90)")
    parser.add_argument("--mode", choices=["fill", "fit"], help="Resize mode")
    parser.add_argument("--output-dir", type=Path, help="Where to write (default: beside input)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.mode:
        overrides["resize_mode"] = args.mode
    settings = get_settings(**overrides)
    logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(message)s")

    if not args.input.is_file():
        print(f"ERROR: {args.input} not found", file=sys.stderr)
        return 1

    spec = {
        "text": args.text if args.text is not None else settings.default_watermark_text,
        "tier": args.quality or settings.default_quality,
        "font_id": args.font or settings.default_font,
        "opacity_percent": args.opacity if args.opacity is not None else settings.default_opacity,
    }

    output_dir = args.output_dir or args.input.parent
    output_dir.mkdir(parents=True, exist_ok=True)
    content_type = CONTENT_TYPES.get(args.input.suffix.lower())

    start = time.time()
    try:
        pipeline = ImagePipeline(settings)
        result = pipeline.process(args.input.read_bytes(), spec, content_type)
    except ProcessingError as e:
        print(f"ERROR: {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    stem = args.input.stem
    outputs = [
        ("optimized", result.optimized_bytes, result.optimized_error),
        ("watermarked", result.watermarked_bytes, result.watermark_error),
    ]
    for label, data, error in outputs:
        if data is None:
            print(f"  FAILED {label}: {error}")
            continue
        path = output_dir / f"{stem}-{label}.webp"
        path.write_bytes(data)
        print(f"  ✓ {path.name}  {result.width}x{result.height}  {len(data) // 1024}KB")

    print(f"Done in {time.time() - start:.1f}s")
    return 0 if result.is_complete() else 1


if __name__ == "__main__":
    sys.exit(main())
