"""Tests for the album watermarking job."""

import io
import json

import pytest
from huey import MemoryHuey, SqliteHuey
from PIL import Image

from fotowinnow import audit, tasks
from fotowinnow.errors import InvalidWatermarkSpec
from fotowinnow.pipeline.process import ImagePipeline


@pytest.fixture
def store(make_image, fake_store):
    return fake_store({
        "albums/1/user_abc/a.jpg": (make_image((640, 480)), "image/jpeg"),
        "albums/1/user_abc/b.png": (make_image((300, 400), fmt="PNG"), "image/png"),
    })


PHOTOS = [
    {"id": "p1", "storage_path": "albums/1/user_abc/a.jpg"},
    {"id": "p2", "storage_path": "albums/1/user_abc/b.png"},
]


def test_processes_every_photo(seeded, settings, store):
    result = tasks.watermark_album(seeded, ImagePipeline(settings), store, 1, PHOTOS)
    assert result == {"processed": 2, "errors": 0}

    data, content_type = store.objects["albums/1/user_abc/a_watermarked.webp"]
    assert content_type == "image/webp"
    # Album 1 is set to 512p
    assert Image.open(io.BytesIO(data)).size == (683, 512)
    assert "albums/1/user_abc/b_optimized.webp" in store.objects

    row = seeded.execute("SELECT * FROM photos WHERE id = 'p2'").fetchone()
    assert row["storage_path_watermarked"] == "albums/1/user_abc/b_watermarked.webp"
    assert (row["width"], row["height"]) == (512, 683)


def test_missing_original_is_counted_and_audited(seeded, settings, store):
    photos = PHOTOS + [{"id": "p3", "storage_path": "albums/1/user_abc/gone.jpg"}]
    result = tasks.watermark_album(seeded, ImagePipeline(settings), store, 1, photos)
    assert result == {"processed": 2, "errors": 1}

    failed = audit.query(seeded, action="watermark_photo_failed")
    assert len(failed) == 1
    details = json.loads(failed[0]["details"])
    assert details["photo_id"] == "p3"
    assert details["error"].startswith("ObjectNotFound")
    assert len(audit.query(seeded, action="watermark_photo")) == 2


def test_corrupt_original_does_not_stop_batch(seeded, settings, store):
    store.objects["albums/1/user_abc/a.jpg"] = (b"garbage", "image/jpeg")
    result = tasks.watermark_album(seeded, ImagePipeline(settings), store, 1, PHOTOS)
    assert result == {"processed": 1, "errors": 1}
    assert audit.failure_count(seeded, "batch") == 1


def test_watermark_text_override(seeded, settings, store, monkeypatch):
    pipeline = ImagePipeline(settings)
    seen = []
    original = pipeline.process

    def spy(data, spec, content_type=None):
        seen.append(spec.text)
        return original(data, spec, content_type)

    monkeypatch.setattr(pipeline, "process", spy)
    tasks.watermark_album(seeded, pipeline, store, 1, PHOTOS[:1], watermark_text="CLIENT COPY")
    assert seen == ["CLIENT COPY"]


def test_invalid_settings_fail_whole_batch(seeded, settings, store):
    with pytest.raises(InvalidWatermarkSpec):
        tasks.watermark_album(seeded, ImagePipeline(settings), store, 1, PHOTOS,
                              watermark_text="X" * 16)
    assert audit.query(seeded) == []


def test_task_runs_inline(seeded, settings, store, monkeypatch):
    """With HUEY_IMMEDIATE the queued task runs in-process."""
    monkeypatch.setenv("DB_PATH", settings.db_path)
    monkeypatch.setattr(tasks, "R2ObjectStore", lambda _settings: store)
    result = tasks.watermark_album_task(1, PHOTOS)
    assert result.get() == {"processed": 2, "errors": 0}


def test_create_huey_memory(monkeypatch):
    monkeypatch.setenv("HUEY_IMMEDIATE", "true")
    instance = tasks._create_huey()
    assert isinstance(instance, MemoryHuey)
    assert instance.immediate
    assert instance.name == "fotowinnow"


def test_create_huey_sqlite(monkeypatch, tmp_path):
    monkeypatch.setenv("HUEY_IMMEDIATE", "false")
    monkeypatch.setenv("HUEY_DB_PATH", str(tmp_path / "queue" / "huey.db"))
    instance = tasks._create_huey()
    assert isinstance(instance, SqliteHuey)
    assert (tmp_path / "queue").is_dir()
