"""Audit logger for FotoWinnow.

Records every batch processing outcome in the audit_log table.
Provides querying for the dashboard and debugging.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


def log(
    conn: sqlite3.Connection,
    component: str,
    action: str,
    details: Optional[dict[str, Any]] = None,
    success: bool = True,
) -> Optional[int]:
    """Write an entry to the audit log.

    Non-blocking: catches and logs DB errors instead of raising.

    Args:
        conn: Active database connection.
        component: System component (e.g., "batch", "api").
        action: Action performed (e.g., "watermark_photo").
        details: Optional dict of extra context (serialized to JSON).
        success: Whether the action succeeded.

    Returns:
        The audit log entry ID, or None if write failed.
    """
    now = datetime.now(timezone.utc).isoformat()
    details_json = json.dumps(details) if details else None

    try:
        cursor = conn.execute(
            """INSERT INTO audit_log
               (timestamp, component, action, details, success)
               VALUES (?, ?, ?, ?, ?)""",
            (now, component, action, details_json, 1 if success else 0),
        )
        conn.commit()
        return cursor.lastrowid
    except sqlite3.Error as e:
        logger.error("Audit log write failed: %s", e)
        return None


def query(
    conn: sqlite3.Connection,
    component: Optional[str] = None,
    action: Optional[str] = None,
    success_only: bool = False,
    limit: int = 100,
) -> list[dict]:
    """Query audit log entries with optional filters, newest first."""
    conditions = []
    params: list[Any] = []

    if component:
        conditions.append("component = ?")
        params.append(component)
    if action:
        conditions.append("action = ?")
        params.append(action)
    if success_only:
        conditions.append("success = 1")

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    params.append(limit)

    rows = conn.execute(
        f"SELECT * FROM audit_log {where} ORDER BY id DESC LIMIT ?",
        params,
    ).fetchall()

    return [dict(row) for row in rows]


def failure_count(conn: sqlite3.Connection, component: Optional[str] = None) -> int:
    """Number of failed entries, optionally for one component."""
    sql = "SELECT COUNT(*) AS cnt FROM audit_log WHERE success = 0"
    params: list[Any] = []
    if component:
        sql += " AND component = ?"
        params.append(component)
    return conn.execute(sql, params).fetchone()["cnt"]
