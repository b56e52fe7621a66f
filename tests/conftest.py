"""Shared fixtures: in-memory test images and isolated settings."""

import io
import os

# Run huey tasks inline and keep its sqlite file out of the working tree
os.environ.setdefault("HUEY_IMMEDIATE", "true")

import pytest
from PIL import Image

from fotowinnow.config import Settings
from fotowinnow.storage import ObjectNotFound, StoredObject


def encode_image(size, mode="RGB", fmt="JPEG", color=(40, 90, 160)):
    """Return ``fmt`` bytes of a solid image."""
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 128)
    img = Image.new(mode, size, color=color)
    buf = io.BytesIO()
    img.save(buf, fmt)
    return buf.getvalue()


@pytest.fixture
def make_image():
    return encode_image


@pytest.fixture
def settings(tmp_path):
    return Settings(_env_file=None, db_path=str(tmp_path / "test.db"))


@pytest.fixture
def conn(settings):
    from fotowinnow.db import get_initialized_connection

    connection = get_initialized_connection(settings.db_path)
    yield connection
    connection.close()


@pytest.fixture
def seeded(conn):
    """One photographer owning album 1 (custom watermark) and album 2 (defaults)."""
    conn.execute(
        "INSERT INTO photographers (id, external_id, name) VALUES (1, 'user_abc', 'Ada')"
    )
    conn.execute(
        "INSERT INTO photographers (id, external_id, name) VALUES (2, 'user_xyz', 'Bo')"
    )
    conn.execute(
        """INSERT INTO albums (id, title, photographer_id, watermark_text,
               watermark_quality, watermark_font, watermark_opacity)
           VALUES (1, 'Wedding', 1, 'ADA PHOTO', '512p', 'Roboto Mono', 50)"""
    )
    conn.execute("INSERT INTO albums (id, title, photographer_id) VALUES (2, 'Plain', 1)")
    conn.execute(
        """INSERT INTO photos (id, album_id, storage_path)
           VALUES ('p1', 1, 'albums/1/user_abc/a.jpg'),
                  ('p2', 1, 'albums/1/user_abc/b.png')"""
    )
    conn.commit()
    return conn


class FakeStore:
    """In-memory stand-in for R2ObjectStore."""

    def __init__(self, objects=None):
        self.objects = dict(objects or {})
        self.metadata = {}

    def get(self, key):
        if key not in self.objects:
            raise ObjectNotFound(key)
        data, content_type = self.objects[key]
        return StoredObject(data=data, content_type=content_type)

    def put(self, key, data, content_type, metadata=None):
        self.objects[key] = (data, content_type)
        self.metadata[key] = metadata
        return f"/api/images/{key}"


@pytest.fixture
def fake_store():
    return FakeStore
