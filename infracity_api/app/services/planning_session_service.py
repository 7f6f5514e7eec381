"""
Service for collaborative planning sessions.

A session is owned by its creator and shared with collaborators who
hold a ``viewer``, ``editor`` or ``admin`` role.  The creator always
acts as ``admin``.  Users without a role cannot see the session at all,
so lookups for them raise ``NotFoundError`` rather than revealing that
the session exists.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from infracity_api.app.core.db import from_json, get_connection, to_json, utcnow
from infracity_api.app.core.errors import NotFoundError
from infracity_api.app.schemas.planning_session import (
    AnnotationCreate,
    AnnotationRead,
    CollaboratorAdd,
    SessionCreate,
    SessionRead,
)
from infracity_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND = "Planning session not found"

SESSION_COLUMNS = (
    "id, title, description, created_by, status, planning_mode, settings, total_annotations, "
    "last_activity, version, created_at, updated_at"
)

ANNOTATION_COLUMNS = (
    "id, session_id, type, content, position_x, position_y, style, version, is_visible, priority, "
    "created_by, created_at"
)


def _role_for(session: sqlite3.Row, collaborators: List[sqlite3.Row], user_id: int) -> Optional[str]:
    if session["created_by"] == user_id:
        return "admin"
    for collaborator in collaborators:
        if collaborator["user_id"] == user_id:
            return collaborator["role"]
    return None


def _row_to_session(
    row: sqlite3.Row, collaborators: List[sqlite3.Row], user_role: Optional[str] = None
) -> SessionRead:
    return SessionRead(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        created_by=row["created_by"],
        status=row["status"],
        planning_mode=row["planning_mode"],
        settings=from_json(row["settings"], {}),
        metadata={
            "total_annotations": row["total_annotations"],
            "last_activity": row["last_activity"],
            "version": row["version"],
        },
        collaborators=[
            {"user_id": c["user_id"], "role": c["role"], "joined_at": c["joined_at"]} for c in collaborators
        ],
        user_role=user_role,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_annotation(row: sqlite3.Row) -> AnnotationRead:
    return AnnotationRead(
        id=row["id"],
        session_id=row["session_id"],
        type=row["type"],
        content=row["content"],
        position={"x": row["position_x"], "y": row["position_y"]},
        style=from_json(row["style"], {}),
        metadata={
            "version": row["version"],
            "is_visible": bool(row["is_visible"]),
            "priority": row["priority"],
        },
        created_by=row["created_by"],
        created_at=row["created_at"],
    )


def _load_session(cursor: sqlite3.Cursor, session_id: int, user_id: int):
    """Fetch a session with its collaborators and the caller's role.

    Raises ``NotFoundError`` when the session is missing or the caller
    has no role in it.
    """
    row = cursor.execute(f"SELECT {SESSION_COLUMNS} FROM planning_sessions WHERE id = ?", (session_id,)).fetchone()
    if not row:
        raise NotFoundError(SESSION_NOT_FOUND)
    collaborators = cursor.execute(
        "SELECT user_id, role, joined_at FROM planning_collaborators WHERE session_id = ? ORDER BY joined_at",
        (session_id,),
    ).fetchall()
    role = _role_for(row, collaborators, user_id)
    if role is None:
        raise NotFoundError(SESSION_NOT_FOUND)
    return row, collaborators, role


class PlanningSessionService:
    """Service for planning sessions, their collaborators and annotations."""

    @classmethod
    async def create_session(cls, data: SessionCreate, user_id: int) -> SessionRead:
        """Create a session owned by ``user_id``.

        Initial collaborators must reference existing users; the creator
        is never stored as a collaborator.
        """
        now = utcnow()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            for collaborator in data.collaborators:
                if not cursor.execute("SELECT id FROM users WHERE id = ?", (collaborator.user_id,)).fetchone():
                    raise ValueError(f"User {collaborator.user_id} not found")
            cursor.execute(
                """
                INSERT INTO planning_sessions (title, description, created_by, status, planning_mode, settings,
                                               total_annotations, last_activity, version, created_at, updated_at)
                VALUES (?, ?, ?, 'active', ?, ?, 0, ?, 1, ?, ?)
                """,
                (
                    data.title,
                    data.description,
                    user_id,
                    data.planning_mode,
                    to_json(data.settings.model_dump()),
                    now,
                    now,
                    now,
                ),
            )
            session_id = cursor.lastrowid
            for collaborator in data.collaborators:
                if collaborator.user_id == user_id:
                    continue
                cursor.execute(
                    "INSERT OR REPLACE INTO planning_collaborators (session_id, user_id, role, joined_at) "
                    "VALUES (?, ?, ?, ?)",
                    (session_id, collaborator.user_id, collaborator.role, now),
                )
            conn.commit()
            row, collaborators, role = _load_session(cursor, session_id, user_id)
        finally:
            conn.close()
        logger.info("Planning session %s created by user %s", session_id, user_id)
        await AuditService.record(user_id, "create", "planning_session", session_id, {"title": data.title})
        return _row_to_session(row, collaborators, role)

    @classmethod
    async def list_sessions(cls, user_id: int, status: Optional[str] = None) -> List[SessionRead]:
        """Sessions the user created or collaborates on, most recently active first."""
        query = (
            f"SELECT {SESSION_COLUMNS} FROM planning_sessions "
            "WHERE (created_by = ? OR id IN (SELECT session_id FROM planning_collaborators WHERE user_id = ?))"
        )
        params: List[Any] = [user_id, user_id]
        if status:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY last_activity DESC, id DESC"
        conn = get_connection()
        try:
            sessions = []
            for row in conn.execute(query, tuple(params)).fetchall():
                collaborators = conn.execute(
                    "SELECT user_id, role, joined_at FROM planning_collaborators WHERE session_id = ? "
                    "ORDER BY joined_at",
                    (row["id"],),
                ).fetchall()
                sessions.append(_row_to_session(row, collaborators, _role_for(row, collaborators, user_id)))
            return sessions
        finally:
            conn.close()

    @classmethod
    async def get_session(cls, session_id: int, user_id: int) -> SessionRead:
        conn = get_connection()
        try:
            row, collaborators, role = _load_session(conn.cursor(), session_id, user_id)
            return _row_to_session(row, collaborators, role)
        finally:
            conn.close()

    @classmethod
    async def update_session(cls, session_id: int, updates: Dict[str, Any], user_id: int) -> SessionRead:
        """Merge fields into a session; requires the ``admin`` or ``editor`` role.

        Every update bumps the metadata version and the last activity.
        """
        now = utcnow()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row, _, role = _load_session(cursor, session_id, user_id)
            if role not in ("admin", "editor"):
                raise PermissionError("Insufficient permissions to update this session")
            values = dict(updates)
            if "settings" in values:
                merged = from_json(row["settings"], {})
                merged.update(values["settings"] or {})
                values["settings"] = to_json(merged)
            fields = [f"{key} = ?" for key in values]
            fields.extend(["version = version + 1", "last_activity = ?", "updated_at = ?"])
            cursor.execute(
                f"UPDATE planning_sessions SET {', '.join(fields)} WHERE id = ?",
                tuple(list(values.values()) + [now, now, session_id]),
            )
            conn.commit()
            row, collaborators, role = _load_session(cursor, session_id, user_id)
        finally:
            conn.close()
        await AuditService.record(user_id, "update", "planning_session", session_id, {"fields": list(updates)})
        return _row_to_session(row, collaborators, role)

    @classmethod
    async def delete_session(cls, session_id: int, user_id: int) -> None:
        """Delete a session with its annotations; only the creator may do this."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row, _, _ = _load_session(cursor, session_id, user_id)
            if row["created_by"] != user_id:
                raise PermissionError("Only the session creator can delete this session")
            cursor.execute("DELETE FROM planning_annotations WHERE session_id = ?", (session_id,))
            cursor.execute("DELETE FROM planning_sessions WHERE id = ?", (session_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Planning session %s deleted", session_id)
        await AuditService.record(user_id, "delete", "planning_session", session_id)

    @classmethod
    async def add_collaborator(cls, session_id: int, data: CollaboratorAdd, user_id: int) -> SessionRead:
        """Add a collaborator or change an existing collaborator's role.

        Only session admins may manage collaborators.
        """
        now = utcnow()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row, _, role = _load_session(cursor, session_id, user_id)
            if role != "admin":
                raise PermissionError("Only session admins can manage collaborators")
            if not cursor.execute("SELECT id FROM users WHERE id = ?", (data.user_id,)).fetchone():
                raise NotFoundError(f"User {data.user_id} not found")
            if data.user_id == row["created_by"]:
                raise ValueError("The session creator is already a session admin")
            existing = cursor.execute(
                "SELECT joined_at FROM planning_collaborators WHERE session_id = ? AND user_id = ?",
                (session_id, data.user_id),
            ).fetchone()
            if existing:
                cursor.execute(
                    "UPDATE planning_collaborators SET role = ? WHERE session_id = ? AND user_id = ?",
                    (data.role, session_id, data.user_id),
                )
            else:
                cursor.execute(
                    "INSERT INTO planning_collaborators (session_id, user_id, role, joined_at) VALUES (?, ?, ?, ?)",
                    (session_id, data.user_id, data.role, now),
                )
            cursor.execute(
                "UPDATE planning_sessions SET last_activity = ?, updated_at = ? WHERE id = ?",
                (now, now, session_id),
            )
            conn.commit()
            row, collaborators, role = _load_session(cursor, session_id, user_id)
        finally:
            conn.close()
        logger.info("User %s joined planning session %s as %s", data.user_id, session_id, data.role)
        return _row_to_session(row, collaborators, role)

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------
    @classmethod
    async def create_annotation(cls, session_id: int, data: AnnotationCreate, user_id: int) -> AnnotationRead:
        """Place an annotation on the session canvas.

        Viewers may only annotate when the session allows comments.
        """
        now = utcnow()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row, _, role = _load_session(cursor, session_id, user_id)
            settings = from_json(row["settings"], {})
            if role == "viewer" and not settings.get("allow_comments", True):
                raise PermissionError("Insufficient permissions to create annotations in this session")
            cursor.execute(
                """
                INSERT INTO planning_annotations (session_id, type, content, position_x, position_y, style,
                                                  version, is_visible, priority, created_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 1, 1, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    data.type,
                    data.content,
                    data.position.x,
                    data.position.y,
                    to_json(data.style.model_dump()),
                    data.priority,
                    user_id,
                    now,
                    now,
                ),
            )
            annotation_id = cursor.lastrowid
            cursor.execute(
                "UPDATE planning_sessions SET total_annotations = total_annotations + 1, last_activity = ? "
                "WHERE id = ?",
                (now, session_id),
            )
            conn.commit()
            annotation = cursor.execute(
                f"SELECT {ANNOTATION_COLUMNS} FROM planning_annotations WHERE id = ?", (annotation_id,)
            ).fetchone()
        finally:
            conn.close()
        logger.debug("Annotation %s added to planning session %s", annotation_id, session_id)
        return _row_to_annotation(annotation)

    @classmethod
    async def list_annotations(cls, session_id: int, user_id: int) -> List[AnnotationRead]:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            _load_session(cursor, session_id, user_id)
            rows = cursor.execute(
                f"SELECT {ANNOTATION_COLUMNS} FROM planning_annotations "
                "WHERE session_id = ? AND is_visible = 1 ORDER BY created_at DESC, id DESC",
                (session_id,),
            ).fetchall()
            return [_row_to_annotation(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def delete_annotation(cls, session_id: int, annotation_id: int, user_id: int) -> None:
        """Remove an annotation.

        Authors may remove their own annotations; session admins and
        editors may remove any annotation in the session.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            _, _, role = _load_session(cursor, session_id, user_id)
            annotation = cursor.execute(
                "SELECT id, session_id, created_by FROM planning_annotations WHERE id = ?", (annotation_id,)
            ).fetchone()
            if not annotation:
                raise NotFoundError("Annotation not found")
            if annotation["session_id"] != session_id:
                raise NotFoundError("Annotation does not belong to this session")
            if annotation["created_by"] != user_id and role not in ("admin", "editor"):
                raise PermissionError("Insufficient permissions to delete this annotation")
            cursor.execute("DELETE FROM planning_annotations WHERE id = ?", (annotation_id,))
            cursor.execute(
                "UPDATE planning_sessions SET total_annotations = MAX(total_annotations - 1, 0), "
                "last_activity = ? WHERE id = ?",
                (utcnow(), session_id),
            )
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def get_statistics(cls, user_id: int) -> Dict[str, int]:
        """Counts over the sessions the user can access."""
        conn = get_connection()
        try:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       SUM(CASE WHEN status = 'active' THEN 1 ELSE 0 END) AS active,
                       SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) AS completed,
                       SUM(total_annotations) AS annotations
                FROM planning_sessions
                WHERE created_by = ? OR id IN (SELECT session_id FROM planning_collaborators WHERE user_id = ?)
                """,
                (user_id, user_id),
            ).fetchone()
        finally:
            conn.close()
        return {
            "total_sessions": row["total"],
            "active_sessions": row["active"] or 0,
            "completed_sessions": row["completed"] or 0,
            "total_annotations": row["annotations"] or 0,
        }
