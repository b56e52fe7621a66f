"""Album-level watermark settings and photographer profile lookup.

Each album may override the watermark text, quality tier, font and
opacity; anything left NULL falls back to the service defaults in
Settings. Request values win over both.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel

from fotowinnow.config import Settings
from fotowinnow.models import WatermarkSpec

logger = logging.getLogger(__name__)


class ProfileNotFound(Exception):
    """No photographer row exists for the external user id."""


class AlbumWatermarkDefaults(BaseModel):
    """Resolved watermark settings for one album."""

    text: str
    quality: str
    font: str
    opacity: int


def watermark_defaults(
    conn: sqlite3.Connection,
    album_id: Optional[int],
    settings: Settings,
) -> AlbumWatermarkDefaults:
    """Look up an album's watermark settings with per-field fallback.

    Unknown or missing albums get the service defaults.
    """
    row = None
    if album_id is not None:
        row = conn.execute(
            """SELECT watermark_text, watermark_quality, watermark_font, watermark_opacity
               FROM albums WHERE id = ?""",
            (album_id,),
        ).fetchone()
        if row is None:
            logger.debug("Album %s not found, using defaults", album_id)

    def pick(column: str, fallback: Any) -> Any:
        if row is None or row[column] in (None, ""):
            return fallback
        return row[column]

    return AlbumWatermarkDefaults(
        text=pick("watermark_text", settings.default_watermark_text),
        quality=pick("watermark_quality", settings.default_quality),
        font=pick("watermark_font", settings.default_font),
        opacity=pick("watermark_opacity", settings.default_opacity),
    )


def build_spec(
    conn: sqlite3.Connection,
    album_id: Optional[int],
    settings: Settings,
    text: Optional[str] = None,
    quality: Optional[str] = None,
    font: Optional[str] = None,
    opacity: Optional[int] = None,
) -> WatermarkSpec:
    """Merge request values over album defaults into a WatermarkSpec.

    Raises:
        InvalidWatermarkSpec: If the merged values are out of range.
    """
    defaults = watermark_defaults(conn, album_id, settings)
    return WatermarkSpec.from_request(
        text=text if text is not None else defaults.text,
        tier=quality or defaults.quality,
        font_id=font or defaults.font,
        opacity_percent=opacity if opacity is not None else defaults.opacity,
    )


def record_variants(
    conn: sqlite3.Connection,
    photo_id: str,
    optimized_path: Optional[str] = None,
    watermarked_path: Optional[str] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> bool:
    """Store variant keys on a photo row. Returns False if the photo is unknown.

    ``None`` values leave the existing column untouched.
    """
    now = datetime.now(timezone.utc).isoformat()
    cursor = conn.execute(
        """UPDATE photos SET
               storage_path_optimized = COALESCE(?, storage_path_optimized),
               storage_path_watermarked = COALESCE(?, storage_path_watermarked),
               width = COALESCE(?, width),
               height = COALESCE(?, height),
               updated_at = ?
           WHERE id = ?""",
        (optimized_path, watermarked_path, width, height, now, photo_id),
    )
    conn.commit()
    return cursor.rowcount > 0


class ProfileCache:
    """Process-wide external-id -> photographer-id map.

    Entries never expire; a redeploy clears them. Photographer ids are
    immutable once provisioned, so stale entries cannot occur.
    """

    def __init__(self) -> None:
        self._entries: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, external_id: str) -> Optional[int]:
        with self._lock:
            return self._entries.get(external_id)

    def put(self, external_id: str, profile_id: int) -> None:
        with self._lock:
            self._entries[external_id] = profile_id

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class ProfileResolver:
    """Resolve an authenticated user id to a photographer profile id."""

    def __init__(self, cache: ProfileCache):
        self.cache = cache

    def resolve(self, conn: sqlite3.Connection, external_id: str) -> int:
        """Return the photographer id for ``external_id``.

        Raises:
            ProfileNotFound: If the user has no photographer profile.
        """
        cached = self.cache.get(external_id)
        if cached is not None:
            return cached

        row = conn.execute(
            "SELECT id FROM photographers WHERE external_id = ?",
            (external_id,),
        ).fetchone()
        if row is None:
            raise ProfileNotFound(external_id)

        self.cache.put(external_id, row["id"])
        return row["id"]

    def owns_album(self, conn: sqlite3.Connection, external_id: str, album_id: int) -> bool:
        """True if the album belongs to the user's photographer profile."""
        profile_id = self.resolve(conn, external_id)
        row = conn.execute(
            "SELECT photographer_id FROM albums WHERE id = ?",
            (album_id,),
        ).fetchone()
        return row is not None and row["photographer_id"] == profile_id
