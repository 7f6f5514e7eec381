"""
Service for reported infrastructure issues.

Besides CRUD this module builds the issue density heatmap: open issues
are bucketed on a regular lat/lng grid and each cell is scored by its
issue count plus a severity weighting.
"""

from __future__ import annotations

import logging
import math
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from infracity_api.app.core.db import from_json, get_connection, to_json, utc_datetime, utcnow
from infracity_api.app.core.errors import NotFoundError
from infracity_api.app.schemas.issue import HeatmapPoint, IssueCreate, IssueRead
from infracity_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

GRID_SIZE = 0.01  # degrees, roughly 1 km
SEVERITY_WEIGHTS = {"Low": 1, "Medium": 2, "High": 3, "Emergency": 5}

ISSUE_COLUMNS = (
    "id, type, location, coordinates, severity, status, description, reported_by, assigned_to, "
    "road_id, images, resolved_at, created_at, updated_at"
)

JSON_FIELDS = {"coordinates", "images"}


def _row_to_issue(row: sqlite3.Row) -> IssueRead:
    return IssueRead(
        id=row["id"],
        type=row["type"],
        location=row["location"],
        coordinates=from_json(row["coordinates"]),
        severity=row["severity"],
        status=row["status"],
        description=row["description"],
        reported_by=row["reported_by"],
        assigned_to=row["assigned_to"],
        road_id=row["road_id"],
        images=from_json(row["images"], []),
        resolved_at=row["resolved_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def build_heatmap(issues: List[Dict[str, Any]]) -> List[HeatmapPoint]:
    """Bucket issues into grid cells and score each cell.

    Each issue needs ``coordinates`` as ``[lat, lng]`` and a
    ``severity``; issues without a valid coordinate pair are skipped.
    A cell's value is its issue count plus half the summed severity
    weights.  Points are placed at the centre of their cell.
    """
    grid: Dict[tuple, Dict[str, float]] = {}
    for issue in issues:
        coords = issue.get("coordinates")
        if not coords or len(coords) != 2:
            continue
        lat, lng = coords
        cell_lat = math.floor(lat / GRID_SIZE) * GRID_SIZE
        cell_lng = math.floor(lng / GRID_SIZE) * GRID_SIZE
        key = (round(cell_lat, 6), round(cell_lng, 6))
        cell = grid.setdefault(
            key,
            {"lat": cell_lat + GRID_SIZE / 2, "lng": cell_lng + GRID_SIZE / 2, "count": 0, "weight": 0},
        )
        cell["count"] += 1
        cell["weight"] += SEVERITY_WEIGHTS.get(issue.get("severity"), 1)
    return [
        HeatmapPoint(
            lat=round(cell["lat"], 6),
            lng=round(cell["lng"], 6),
            value=cell["count"] + cell["weight"] * 0.5,
        )
        for cell in grid.values()
    ]


class IssueService:
    """Service for creating, querying and mapping reported issues."""

    @classmethod
    async def list_issues(
        cls,
        status: Optional[str] = None,
        severity: Optional[str] = None,
        issue_type: Optional[str] = None,
        road_id: Optional[int] = None,
    ) -> List[IssueRead]:
        conn = get_connection()
        try:
            where_clauses: List[str] = []
            params: List[Any] = []
            for column, value in (("status", status), ("severity", severity), ("type", issue_type), ("road_id", road_id)):
                if value is not None:
                    where_clauses.append(f"{column} = ?")
                    params.append(value)
            query = f"SELECT {ISSUE_COLUMNS} FROM issues"
            if where_clauses:
                query += " WHERE " + " AND ".join(where_clauses)
            query += " ORDER BY created_at DESC, id DESC"
            return [_row_to_issue(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def create_issue(cls, data: IssueCreate, reported_by: Optional[int]) -> IssueRead:
        """Record a new issue with status ``Open``."""
        now = utcnow()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if data.road_id is not None and not cursor.execute(
                "SELECT id FROM roads WHERE id = ?", (data.road_id,)
            ).fetchone():
                raise ValueError(f"Road {data.road_id} does not exist")
            cursor.execute(
                """
                INSERT INTO issues (type, location, coordinates, severity, status, description, reported_by,
                                    assigned_to, road_id, images, created_at, updated_at)
                VALUES (?, ?, ?, ?, 'Open', ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.type,
                    data.location,
                    to_json(data.coordinates),
                    data.severity,
                    data.description,
                    reported_by,
                    data.assigned_to,
                    data.road_id,
                    to_json(data.images),
                    now,
                    now,
                ),
            )
            issue_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(f"SELECT {ISSUE_COLUMNS} FROM issues WHERE id = ?", (issue_id,)).fetchone()
        finally:
            conn.close()
        logger.info("Issue %s reported: %s at %s", issue_id, data.type, data.location)
        await AuditService.record(reported_by, "create", "issue", issue_id, {"type": data.type})
        return _row_to_issue(row)

    @classmethod
    async def get_issue(cls, issue_id: int) -> IssueRead:
        conn = get_connection()
        try:
            row = conn.execute(f"SELECT {ISSUE_COLUMNS} FROM issues WHERE id = ?", (issue_id,)).fetchone()
            if not row:
                raise NotFoundError(f"Issue {issue_id} not found")
            return _row_to_issue(row)
        finally:
            conn.close()

    @classmethod
    async def update_issue(cls, issue_id: int, updates: Dict[str, Any], user_id: Optional[int] = None) -> IssueRead:
        """Merge fields into an issue.

        Resolving an issue stamps ``resolved_at``; moving it out of
        ``Resolved`` clears the stamp again.
        """
        values: Dict[str, Any] = {}
        for key, value in updates.items():
            if key in JSON_FIELDS:
                values[key] = to_json(value)
            elif isinstance(value, datetime):
                values[key] = value.isoformat()
            else:
                values[key] = value
        if "status" in values:
            values["resolved_at"] = utcnow() if values["status"] == "Resolved" else None
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM issues WHERE id = ?", (issue_id,)).fetchone():
                raise NotFoundError(f"Issue {issue_id} not found")
            if values.get("road_id") is not None and not cursor.execute(
                "SELECT id FROM roads WHERE id = ?", (values["road_id"],)
            ).fetchone():
                raise ValueError(f"Road {values['road_id']} does not exist")
            if values:
                fields = [f"{key} = ?" for key in values]
                params = list(values.values()) + [utcnow(), issue_id]
                cursor.execute(
                    f"UPDATE issues SET {', '.join(fields)}, updated_at = ? WHERE id = ?",
                    tuple(params),
                )
                conn.commit()
            row = cursor.execute(f"SELECT {ISSUE_COLUMNS} FROM issues WHERE id = ?", (issue_id,)).fetchone()
        finally:
            conn.close()
        await AuditService.record(user_id, "update", "issue", issue_id, values)
        return _row_to_issue(row)

    @classmethod
    async def delete_issue(cls, issue_id: int, user_id: Optional[int] = None) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM issues WHERE id = ?", (issue_id,)).fetchone():
                raise NotFoundError(f"Issue {issue_id} not found")
            cursor.execute("DELETE FROM issues WHERE id = ?", (issue_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Issue %s deleted", issue_id)
        await AuditService.record(user_id, "delete", "issue", issue_id)

    @classmethod
    async def get_heatmap(cls) -> Dict[str, Any]:
        """Density heatmap over all issues that are not yet resolved."""
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT coordinates, severity FROM issues WHERE status != 'Resolved'"
            ).fetchall()
        finally:
            conn.close()
        points = build_heatmap(
            [{"coordinates": from_json(row["coordinates"]), "severity": row["severity"]} for row in rows]
        )
        values = [p.value for p in points]
        logger.info("Generated %d heatmap points from %d active issues", len(points), len(rows))
        return {
            "data": points,
            "max_value": max(values + [1]),
            "min_value": min(values + [0]),
            "timestamp": utc_datetime().isoformat(),
        }
