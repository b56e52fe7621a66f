"""Background jobs for FotoWinnow.

Huey task definitions. Album-wide watermarking runs here instead of in
the request so a large album doesn't hold an HTTP connection open.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import Any, Optional

from huey import MemoryHuey, SqliteHuey

from fotowinnow import audit
from fotowinnow.albums import build_spec, record_variants
from fotowinnow.errors import ProcessingError
from fotowinnow.models import WEBP_CONTENT_TYPE
from fotowinnow.pipeline.process import ImagePipeline
from fotowinnow.storage import ObjectNotFound, R2ObjectStore, optimized_path, watermarked_path

logger = logging.getLogger(__name__)


def _create_huey():
    """Create the Huey instance with fallback to MemoryHuey."""
    huey_db = os.environ.get("HUEY_DB_PATH", "data/huey.db")
    use_memory = os.environ.get("HUEY_IMMEDIATE", "").lower() == "true"

    if use_memory:
        return MemoryHuey("fotowinnow", immediate=True)

    try:
        Path(huey_db).parent.mkdir(parents=True, exist_ok=True)
        return SqliteHuey("fotowinnow", filename=huey_db, immediate=False)
    except Exception:
        logger.warning("Cannot open huey db at %s, falling back to memory", huey_db)
        return MemoryHuey("fotowinnow")


huey = _create_huey()


def watermark_album(
    conn: sqlite3.Connection,
    pipeline: ImagePipeline,
    store: R2ObjectStore,
    album_id: int,
    photos: list[dict[str, Any]],
    watermark_text: Optional[str] = None,
) -> dict[str, int]:
    """Process every photo of an album, one at a time.

    A failing photo is counted and audited; the batch carries on.

    Args:
        conn: Active database connection.
        pipeline: Image pipeline to run.
        store: Object store holding the originals.
        album_id: Album whose watermark defaults apply.
        photos: ``[{"id": ..., "storage_path": ...}, ...]``.
        watermark_text: Overrides the album's text when given.

    Returns:
        ``{"processed": n, "errors": m}``.

    Raises:
        InvalidWatermarkSpec: If the album/override settings are invalid.
    """
    spec = build_spec(conn, album_id, pipeline.settings, text=watermark_text)
    processed = 0
    errors = 0

    logger.info("Watermarking album %s: %d photos", album_id, len(photos))
    for index, photo in enumerate(photos, start=1):
        photo_id = str(photo.get("id"))
        storage_path = photo.get("storage_path") or ""
        try:
            original = store.get(storage_path)
            result = pipeline.process(original.data, spec, original.content_type)

            wm_key = opt_key = None
            if result.watermarked_bytes is not None:
                wm_key = watermarked_path(storage_path)
                store.put(wm_key, result.watermarked_bytes, WEBP_CONTENT_TYPE)
            if result.optimized_bytes is not None:
                opt_key = optimized_path(storage_path)
                store.put(opt_key, result.optimized_bytes, WEBP_CONTENT_TYPE)

            record_variants(conn, photo_id, opt_key, wm_key, result.width, result.height)

            if wm_key is None:
                raise ProcessingError(result.watermark_error or "watermark failed")

            processed += 1
            audit.log(conn, "batch", "watermark_photo", {
                "album_id": album_id,
                "photo_id": photo_id,
                "key": wm_key,
                "progress": f"{index}/{len(photos)}",
            })
        except (ObjectNotFound, ProcessingError) as e:
            errors += 1
            logger.error("Photo %s failed: %s", photo_id, e)
            audit.log(conn, "batch", "watermark_photo_failed", {
                "album_id": album_id,
                "photo_id": photo_id,
                "storage_path": storage_path,
                "error": f"{type(e).__name__}: {e}",
            }, success=False)

    logger.info("Album %s done: %d processed, %d errors", album_id, processed, errors)
    return {"processed": processed, "errors": errors}


@huey.task()
def watermark_album_task(
    album_id: int,
    photos: list[dict[str, Any]],
    watermark_text: Optional[str] = None,
) -> dict[str, int]:
    """Huey entry point for ``watermark_album``."""
    from fotowinnow.config import get_settings
    from fotowinnow.db import get_initialized_connection

    settings = get_settings()
    conn = get_initialized_connection(settings.db_path_resolved)
    try:
        return watermark_album(
            conn,
            ImagePipeline(settings),
            R2ObjectStore(settings),
            album_id,
            photos,
            watermark_text,
        )
    finally:
        conn.close()
