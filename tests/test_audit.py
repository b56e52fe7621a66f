"""Tests for the audit logger."""

import json
import sqlite3

from fotowinnow.audit import failure_count, log, query


def test_log_returns_id(conn):
    """log() should return an integer ID."""
    entry_id = log(conn, "batch", "watermark_photo")
    assert isinstance(entry_id, int)
    assert entry_id > 0


def test_details_are_json(conn):
    log(conn, "batch", "watermark_photo", {"photo_id": "p1", "progress": "1/3"})
    entry = query(conn)[0]
    assert json.loads(entry["details"]) == {"photo_id": "p1", "progress": "1/3"}


def test_query_filters(conn):
    """Query should filter by component and action."""
    log(conn, "batch", "watermark_photo")
    log(conn, "batch", "watermark_photo_failed", success=False)
    log(conn, "api", "process_image")

    assert len(query(conn, component="batch")) == 2
    assert len(query(conn, action="process_image")) == 1
    assert len(query(conn, success_only=True)) == 2


def test_query_newest_first_and_limit(conn):
    for i in range(5):
        log(conn, "batch", f"step_{i}")
    entries = query(conn, limit=2)
    assert [e["action"] for e in entries] == ["step_4", "step_3"]


def test_failure_count(conn):
    log(conn, "batch", "watermark_photo_failed", success=False)
    log(conn, "batch", "watermark_photo_failed", success=False)
    log(conn, "api", "process_image", success=False)
    log(conn, "batch", "watermark_photo")
    assert failure_count(conn) == 3
    assert failure_count(conn, "batch") == 2


def test_log_never_raises(tmp_path):
    """A broken DB should make log() return None, not raise."""
    conn = sqlite3.connect(str(tmp_path / "empty.db"))
    assert log(conn, "batch", "watermark_photo") is None
    conn.close()
