"""FotoWinnow database module.

SQLite connection management with WAL mode for concurrent reads.
Only the tables the processing service touches live here: album
watermark defaults, photo variant keys, photographer profiles and the
audit log.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS photographers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS albums (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    photographer_id INTEGER REFERENCES photographers(id),
    is_shared INTEGER DEFAULT 0,
    watermark_text TEXT,
    watermark_quality TEXT,
    watermark_font TEXT,
    watermark_opacity INTEGER,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS photos (
    id TEXT PRIMARY KEY,
    album_id INTEGER NOT NULL REFERENCES albums(id),
    storage_path TEXT NOT NULL,
    storage_path_optimized TEXT,
    storage_path_watermarked TEXT,
    width INTEGER,
    height INTEGER,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL,
    component TEXT NOT NULL,
    action TEXT NOT NULL,
    details TEXT,
    success INTEGER DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_albums_photographer ON albums(photographer_id);
CREATE INDEX IF NOT EXISTS idx_photos_album ON photos(album_id);
"""


def get_connection(db_path: str | Path = "data/fotowinnow.db") -> sqlite3.Connection:
    """Create a SQLite connection with WAL mode and recommended pragmas.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        Configured sqlite3.Connection with WAL mode enabled.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Create all tables if they don't exist."""
    conn.executescript(SCHEMA_SQL)
    conn.commit()


def get_initialized_connection(
    db_path: str | Path = "data/fotowinnow.db",
) -> sqlite3.Connection:
    """Get a connection with schema already initialized.

    Convenience function that combines get_connection + init_schema.
    """
    conn = get_connection(db_path)
    init_schema(conn)
    return conn
