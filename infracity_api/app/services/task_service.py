"""
Service for field tasks assigned to maintenance crews.

Tasks are created directly or converted from reported issues.  Besides
CRUD the service offers a simple route planner: selected tasks are
ordered by urgency and then by duration, with a fixed travel time
between consecutive stops.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from infracity_api.app.core.db import from_json, get_connection, to_json, utc_datetime, utcnow
from infracity_api.app.core.errors import NotFoundError
from infracity_api.app.schemas.task import OptimizedRoute, RouteStop, TaskCreate, TaskRead
from infracity_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

PRIORITY_WEIGHTS = {"emergency": 4, "high": 3, "medium": 2, "low": 1}

SEVERITY_TO_PRIORITY = {"Low": "low", "Medium": "medium", "High": "high", "Emergency": "emergency"}

# Minutes of work per issue type when the caller gives no estimate.
ISSUE_TYPE_DURATIONS = {
    "Pothole": 120,
    "Garbage": 30,
    "Road Marker": 90,
    "Traffic Flow": 180,
    "Beautification": 240,
}

TRAVEL_MINUTES_BETWEEN_STOPS = 15
KM_PER_STOP = 2.5

TASK_COLUMNS = (
    "id, title, description, status, priority, assigned_to, due_date, location, coordinates, "
    "issue_type, created_by, issue_id, estimated_duration, actual_duration, completed_at, notes, "
    "created_at, updated_at"
)


def _row_to_task(row: sqlite3.Row) -> TaskRead:
    return TaskRead(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        status=row["status"],
        priority=row["priority"],
        assigned_to=row["assigned_to"],
        due_date=row["due_date"],
        location=row["location"],
        coordinates=from_json(row["coordinates"]),
        issue_type=row["issue_type"],
        created_by=row["created_by"],
        issue_id=row["issue_id"],
        estimated_duration=row["estimated_duration"],
        actual_duration=row["actual_duration"],
        completed_at=row["completed_at"],
        notes=row["notes"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _db_value(key: str, value: Any) -> Any:
    if key == "coordinates":
        return to_json(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class TaskService:
    """Service for creating, querying and scheduling field tasks."""

    @classmethod
    async def list_tasks(
        cls,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[str] = None,
        issue_type: Optional[str] = None,
    ) -> List[TaskRead]:
        """Return tasks matching the filters, newest first.

        ``assigned_to`` matches case-insensitively anywhere in the
        assignee; the other filters are exact.
        """
        conn = get_connection()
        try:
            where_clauses: List[str] = []
            params: List[Any] = []
            if status:
                where_clauses.append("status = ?")
                params.append(status)
            if priority:
                where_clauses.append("priority = ?")
                params.append(priority)
            if assigned_to:
                where_clauses.append("LOWER(assigned_to) LIKE ?")
                params.append(f"%{assigned_to.lower()}%")
            if issue_type:
                where_clauses.append("issue_type = ?")
                params.append(issue_type)
            query = f"SELECT {TASK_COLUMNS} FROM tasks"
            if where_clauses:
                query += " WHERE " + " AND ".join(where_clauses)
            query += " ORDER BY created_at DESC, id DESC"
            rows = conn.execute(query, tuple(params)).fetchall()
            logger.debug("Found %d tasks", len(rows))
            return [_row_to_task(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def create_task(
        cls,
        data: TaskCreate,
        created_by: Optional[int],
        issue_id: Optional[int] = None,
    ) -> TaskRead:
        """Insert a new task in ``pending`` state and return it."""
        now = utcnow()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO tasks (title, description, status, priority, assigned_to, due_date, location,
                                   coordinates, issue_type, created_by, issue_id, estimated_duration, notes,
                                   created_at, updated_at)
                VALUES (?, ?, 'pending', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.title,
                    data.description,
                    data.priority,
                    data.assigned_to,
                    data.due_date.isoformat(),
                    data.location,
                    to_json(data.coordinates),
                    data.issue_type,
                    created_by,
                    issue_id,
                    data.estimated_duration,
                    data.notes,
                    now,
                    now,
                ),
            )
            task_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)).fetchone()
        finally:
            conn.close()
        logger.info("Task %s created: %s", task_id, data.title)
        await AuditService.record(created_by, "create", "task", task_id, {"title": data.title})
        return _row_to_task(row)

    @classmethod
    async def get_task(cls, task_id: int) -> TaskRead:
        """Retrieve a single task; raises ``NotFoundError`` if it does not exist."""
        conn = get_connection()
        try:
            row = conn.execute(f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)).fetchone()
            if not row:
                raise NotFoundError(f"Task {task_id} not found")
            return _row_to_task(row)
        finally:
            conn.close()

    @classmethod
    async def update_task(cls, task_id: int, updates: Dict[str, Any], user_id: Optional[int] = None) -> TaskRead:
        """Merge the given fields into a task and return the result."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM tasks WHERE id = ?", (task_id,)).fetchone():
                raise NotFoundError(f"Task {task_id} not found")
            if updates:
                fields = [f"{key} = ?" for key in updates]
                values = [_db_value(key, value) for key, value in updates.items()]
                values.extend([utcnow(), task_id])
                cursor.execute(
                    f"UPDATE tasks SET {', '.join(fields)}, updated_at = ? WHERE id = ?",
                    tuple(values),
                )
                conn.commit()
            row = cursor.execute(f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)).fetchone()
        finally:
            conn.close()
        await AuditService.record(user_id, "update", "task", task_id, {k: _db_value(k, v) for k, v in updates.items()})
        return _row_to_task(row)

    @classmethod
    async def update_status(cls, task_id: int, status: str, user_id: Optional[int] = None) -> TaskRead:
        """Change a task's status.

        Moving to ``completed`` stamps ``completed_at``; any other status
        clears it.
        """
        completed_at = utcnow() if status == "completed" else None
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM tasks WHERE id = ?", (task_id,)).fetchone():
                raise NotFoundError(f"Task {task_id} not found")
            cursor.execute(
                "UPDATE tasks SET status = ?, completed_at = ?, updated_at = ? WHERE id = ?",
                (status, completed_at, utcnow(), task_id),
            )
            conn.commit()
            row = cursor.execute(f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)).fetchone()
        finally:
            conn.close()
        logger.info("Task %s moved to %s", task_id, status)
        await AuditService.record(user_id, "update", "task", task_id, {"status": status})
        return _row_to_task(row)

    @classmethod
    async def delete_task(cls, task_id: int, user_id: Optional[int] = None) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM tasks WHERE id = ?", (task_id,)).fetchone():
                raise NotFoundError(f"Task {task_id} not found")
            cursor.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Task %s deleted", task_id)
        await AuditService.record(user_id, "delete", "task", task_id)

    @classmethod
    async def convert_issue_to_task(
        cls,
        issue_id: int,
        overrides: Dict[str, Any],
        created_by: Optional[int],
    ) -> TaskRead:
        """Create a task from a reported issue and mark the issue in progress.

        Parameters
        ----------
        issue_id : int
            Issue to convert.
        overrides : dict
            Must contain ``assigned_to`` and ``due_date``.  ``title``,
            ``description``, ``priority`` and ``estimated_duration``
            default to values derived from the issue.
        created_by : Optional[int]
            Acting user.

        Raises
        ------
        NotFoundError
            If the issue does not exist.
        """
        conn = get_connection()
        try:
            issue = conn.execute(
                "SELECT id, type, location, coordinates, severity, description FROM issues WHERE id = ?",
                (issue_id,),
            ).fetchone()
        finally:
            conn.close()
        if not issue:
            raise NotFoundError(f"Issue {issue_id} not found")

        data = TaskCreate(
            title=overrides.get("title") or f"Fix {issue['type']} at {issue['location']}",
            description=overrides.get("description") or issue["description"],
            priority=overrides.get("priority") or SEVERITY_TO_PRIORITY.get(issue["severity"], "medium"),
            assigned_to=overrides["assigned_to"],
            due_date=overrides["due_date"],
            location=issue["location"],
            coordinates=from_json(issue["coordinates"]),
            issue_type=issue["type"],
            estimated_duration=overrides.get("estimated_duration") or ISSUE_TYPE_DURATIONS.get(issue["type"], 60),
        )
        task = await cls.create_task(data, created_by=created_by, issue_id=issue_id)

        conn = get_connection()
        try:
            conn.execute(
                "UPDATE issues SET status = 'In Progress', updated_at = ? WHERE id = ?",
                (utcnow(), issue_id),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Issue %s converted to task %s", issue_id, task.id)
        return task

    @classmethod
    async def optimize_route(cls, task_ids: List[int]) -> OptimizedRoute:
        """Order the given tasks into a visiting sequence.

        Tasks are sorted by priority weight (emergency first) and then
        by estimated duration, shortest first.  Every stop after the
        first adds a fixed travel time; the distance is a flat estimate
        per stop.

        Raises
        ------
        ValueError, NotFoundError
            If ``task_ids`` is empty or none of the ids exist.
        """
        if not task_ids:
            raise ValueError("Task IDs array is required and must not be empty")
        placeholders = ", ".join("?" for _ in task_ids)
        conn = get_connection()
        try:
            rows = conn.execute(
                f"SELECT {TASK_COLUMNS} FROM tasks WHERE id IN ({placeholders})",
                tuple(task_ids),
            ).fetchall()
        finally:
            conn.close()
        if not rows:
            raise NotFoundError("No tasks found")

        tasks = sorted(
            (_row_to_task(row) for row in rows),
            key=lambda t: (-PRIORITY_WEIGHTS.get(t.priority, 0), t.estimated_duration),
        )
        route: List[RouteStop] = []
        for index, task in enumerate(tasks):
            travel = TRAVEL_MINUTES_BETWEEN_STOPS if index > 0 else 0
            route.append(
                RouteStop(
                    task_id=task.id,
                    order=index + 1,
                    estimated_time=task.estimated_duration + travel,
                    title=task.title,
                    location=task.location,
                    priority=task.priority,
                )
            )
        result = OptimizedRoute(
            route=route,
            total_distance=round(len(tasks) * KM_PER_STOP, 1),
            total_time=sum(stop.estimated_time for stop in route),
            optimized_at=utc_datetime(),
        )
        logger.info("Optimized route for %d tasks: %d minutes", len(tasks), result.total_time)
        return result
