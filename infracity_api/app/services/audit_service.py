"""
Audit trail for changes to domain objects.

Services call ``AuditService.record`` after creating, updating or
deleting roads, issues, tasks, plans, sessions, reports and users, and
after seeding.  Entries hold the acting user (``None`` for system
actions), the action verb, the object type and id and an optional JSON
``details`` document.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

from infracity_api.app.core.db import from_json, get_connection, to_json, utcnow

logger = logging.getLogger(__name__)

AUDIT_COLUMNS = ("id", "user_id", "action", "object_type", "object_id", "timestamp", "details")


def _filters(
    user_id: Optional[int],
    object_type: Optional[str],
    action: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
) -> Tuple[str, List[Any]]:
    conditions = [
        ("user_id = ?", user_id),
        ("object_type = ?", object_type or None),
        ("action = ?", action or None),
        ("timestamp >= ?", start_date or None),
        ("timestamp <= ?", end_date or None),
    ]
    active = [(clause, value) for clause, value in conditions if value is not None]
    if not active:
        return "", []
    return " WHERE " + " AND ".join(clause for clause, _ in active), [value for _, value in active]


class AuditService:
    """Writes and queries ``audit_logs``."""

    @classmethod
    async def log(
        cls,
        user_id: Optional[int],
        action: str,
        object_type: str,
        object_id: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Insert one audit entry; database errors propagate."""
        conn = get_connection()
        try:
            conn.execute(
                "INSERT INTO audit_logs (user_id, action, object_type, object_id, timestamp, details) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (user_id, action, object_type, object_id, utcnow(), to_json(details) if details else None),
            )
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def record(
        cls,
        user_id: Optional[int],
        action: str,
        object_type: str,
        object_id: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Same as ``log`` for use after a business change has been committed.

        A failed audit write is logged as a warning and never undoes
        or fails the change itself.
        """
        try:
            await cls.log(user_id, action, object_type, object_id, details)
        except sqlite3.Error as exc:
            logger.warning("Failed to write audit log for %s %s: %s", object_type, object_id, exc)

    @classmethod
    async def list_logs(
        cls,
        user_id: Optional[int] = None,
        object_type: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Audit entries matching every given filter, newest first.

        Parameters
        ----------
        start_date, end_date : Optional[str]
            Inclusive ISO-8601 bounds on the entry timestamp.
        limit, offset : int
            Page window over the sorted entries.
        """
        where, params = _filters(user_id, object_type, action, start_date, end_date)
        query = (
            f"SELECT {', '.join(AUDIT_COLUMNS)} FROM audit_logs{where} "
            "ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?"
        )
        conn = get_connection()
        try:
            rows = conn.execute(query, tuple(params + [limit, offset])).fetchall()
        finally:
            conn.close()
        entries = []
        for row in rows:
            entry = {column: row[column] for column in AUDIT_COLUMNS}
            entry["details"] = from_json(row["details"])
            entries.append(entry)
        return entries
