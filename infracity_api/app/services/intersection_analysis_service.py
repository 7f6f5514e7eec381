"""
Service for traffic analyses recorded at intersections.

Each analysis belongs to an existing intersection.  Nested measurement
documents (hourly volumes, peak windows, speeds, pedestrian counts) are
stored as JSON columns and validated by the pydantic schemas.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from infracity_api.app.core.db import from_json, get_connection, to_json, utc_datetime, utcnow
from infracity_api.app.core.errors import NotFoundError
from infracity_api.app.schemas.common import CONGESTION_LEVELS, Pagination
from infracity_api.app.schemas.intersection import AnalysisCreate, AnalysisRead
from infracity_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

ANALYSIS_NOT_FOUND = "Intersection analysis not found"

ANALYSIS_SELECT = """
    SELECT a.id, a.intersection_id, a.analysis_date, a.traffic_volume, a.peak_hours, a.average_speed,
           a.congestion_level, a.pedestrian_data, a.weather_conditions, a.analysis_notes, a.created_by,
           a.created_at, a.updated_at, i.name AS intersection_name
    FROM intersection_analyses a
    LEFT JOIN intersections i ON i.id = a.intersection_id
"""

JSON_FIELDS = {"traffic_volume", "peak_hours", "average_speed", "pedestrian_data"}


def _row_to_analysis(row: sqlite3.Row) -> AnalysisRead:
    return AnalysisRead(
        id=row["id"],
        intersection_id=row["intersection_id"],
        intersection_name=row["intersection_name"],
        analysis_date=row["analysis_date"],
        traffic_volume=from_json(row["traffic_volume"]),
        peak_hours=from_json(row["peak_hours"], []),
        average_speed=from_json(row["average_speed"]),
        congestion_level=row["congestion_level"],
        pedestrian_data=from_json(row["pedestrian_data"]),
        weather_conditions=row["weather_conditions"],
        analysis_notes=row["analysis_notes"],
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _date_filters(
    date_from: Optional[datetime], date_to: Optional[datetime], column: str
) -> tuple[List[str], List[Any]]:
    clauses: List[str] = []
    params: List[Any] = []
    if date_from:
        clauses.append(f"{column} >= ?")
        params.append(date_from.isoformat())
    if date_to:
        clauses.append(f"{column} <= ?")
        params.append(date_to.isoformat())
    return clauses, params


def _ensure_intersection(cursor: sqlite3.Cursor, intersection_id: int) -> None:
    if not cursor.execute("SELECT id FROM intersections WHERE id = ?", (intersection_id,)).fetchone():
        raise ValueError("Intersection not found")


class IntersectionAnalysisService:
    """Service for recording, querying and summarising traffic analyses."""

    @classmethod
    async def create_analysis(cls, data: AnalysisCreate, user_id: Optional[int]) -> AnalysisRead:
        """Store a new analysis.

        Raises
        ------
        ValueError
            If the referenced intersection does not exist.
        """
        now = utcnow()
        analysis_date = (data.analysis_date or utc_datetime()).isoformat()
        payload = data.model_dump()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            _ensure_intersection(cursor, data.intersection_id)
            cursor.execute(
                """
                INSERT INTO intersection_analyses (intersection_id, analysis_date, traffic_volume, peak_hours,
                                                   average_speed, congestion_level, pedestrian_data,
                                                   weather_conditions, analysis_notes, created_by,
                                                   created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.intersection_id,
                    analysis_date,
                    to_json(payload["traffic_volume"]),
                    to_json(payload["peak_hours"]),
                    to_json(payload["average_speed"]),
                    data.congestion_level,
                    to_json(payload["pedestrian_data"]),
                    data.weather_conditions,
                    data.analysis_notes,
                    user_id,
                    now,
                    now,
                ),
            )
            analysis_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(f"{ANALYSIS_SELECT} WHERE a.id = ?", (analysis_id,)).fetchone()
        finally:
            conn.close()
        logger.info("Intersection analysis %s created for intersection %s", analysis_id, data.intersection_id)
        await AuditService.record(
            user_id, "create", "intersection_analysis", analysis_id, {"intersection_id": data.intersection_id}
        )
        return _row_to_analysis(row)

    @classmethod
    async def list_analyses(
        cls,
        intersection_id: Optional[int] = None,
        congestion_level: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        created_by: Optional[int] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        """Return one page of analyses, newest analysis date first."""
        where_clauses, params = _date_filters(date_from, date_to, "a.analysis_date")
        for column, value in (
            ("a.intersection_id", intersection_id),
            ("a.congestion_level", congestion_level),
            ("a.created_by", created_by),
        ):
            if value is not None:
                where_clauses.append(f"{column} = ?")
                params.append(value)
        where = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""
        conn = get_connection()
        try:
            total = conn.execute(
                f"SELECT COUNT(*) FROM intersection_analyses a{where}", tuple(params)
            ).fetchone()[0]
            rows = conn.execute(
                f"{ANALYSIS_SELECT}{where} ORDER BY a.analysis_date DESC, a.created_at DESC LIMIT ? OFFSET ?",
                tuple(params + [limit, (page - 1) * limit]),
            ).fetchall()
        finally:
            conn.close()
        logger.debug("Found %d intersection analyses (%d total)", len(rows), total)
        return {
            "analyses": [_row_to_analysis(row) for row in rows],
            "pagination": Pagination.build(page, limit, total),
        }

    @classmethod
    async def get_analysis(cls, analysis_id: int) -> AnalysisRead:
        conn = get_connection()
        try:
            row = conn.execute(f"{ANALYSIS_SELECT} WHERE a.id = ?", (analysis_id,)).fetchone()
            if not row:
                raise NotFoundError(ANALYSIS_NOT_FOUND)
            return _row_to_analysis(row)
        finally:
            conn.close()

    @classmethod
    async def update_analysis(
        cls, analysis_id: int, updates: Dict[str, Any], user_id: Optional[int] = None
    ) -> AnalysisRead:
        """Merge fields into an analysis.

        A changed ``intersection_id`` must reference an existing
        intersection, otherwise ``ValueError`` is raised.
        """
        values: Dict[str, Any] = {}
        for key, value in updates.items():
            if key in JSON_FIELDS:
                values[key] = to_json(value)
            elif isinstance(value, datetime):
                values[key] = value.isoformat()
            else:
                values[key] = value
        conn = get_connection()
        try:
            cursor = conn.cursor()
            existing = cursor.execute(
                "SELECT id, intersection_id FROM intersection_analyses WHERE id = ?", (analysis_id,)
            ).fetchone()
            if not existing:
                raise NotFoundError(ANALYSIS_NOT_FOUND)
            new_intersection = values.get("intersection_id")
            if new_intersection is not None and new_intersection != existing["intersection_id"]:
                _ensure_intersection(cursor, new_intersection)
            if values:
                fields = [f"{key} = ?" for key in values]
                cursor.execute(
                    f"UPDATE intersection_analyses SET {', '.join(fields)}, updated_at = ? WHERE id = ?",
                    tuple(list(values.values()) + [utcnow(), analysis_id]),
                )
                conn.commit()
            row = cursor.execute(f"{ANALYSIS_SELECT} WHERE a.id = ?", (analysis_id,)).fetchone()
        finally:
            conn.close()
        await AuditService.record(user_id, "update", "intersection_analysis", analysis_id, {"fields": list(values)})
        return _row_to_analysis(row)

    @classmethod
    async def delete_analysis(cls, analysis_id: int, user_id: Optional[int] = None) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM intersection_analyses WHERE id = ?", (analysis_id,)).fetchone():
                raise NotFoundError(ANALYSIS_NOT_FOUND)
            cursor.execute("DELETE FROM intersection_analyses WHERE id = ?", (analysis_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Intersection analysis %s deleted", analysis_id)
        await AuditService.record(user_id, "delete", "intersection_analysis", analysis_id)

    @classmethod
    async def get_statistics(
        cls,
        intersection_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Aggregate volume, speed and congestion over matching analyses.

        Every congestion level appears in ``congestion_distribution``,
        with zero where no analysis has it.
        """
        where_clauses, params = _date_filters(date_from, date_to, "analysis_date")
        if intersection_id is not None:
            where_clauses.append("intersection_id = ?")
            params.append(intersection_id)
        where = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""
        conn = get_connection()
        try:
            rows = conn.execute(
                f"SELECT traffic_volume, average_speed, congestion_level FROM intersection_analyses{where}",
                tuple(params),
            ).fetchall()
        finally:
            conn.close()

        volumes: List[float] = []
        speeds: List[float] = []
        distribution = {level: 0 for level in CONGESTION_LEVELS}
        for row in rows:
            volume = from_json(row["traffic_volume"], {})
            if volume.get("total_daily_volume") is not None:
                volumes.append(volume["total_daily_volume"])
            speed = from_json(row["average_speed"]) or {}
            if speed.get("overall") is not None:
                speeds.append(speed["overall"])
            if row["congestion_level"] in distribution:
                distribution[row["congestion_level"]] += 1

        return {
            "total_analyses": len(rows),
            "avg_traffic_volume": round(sum(volumes) / len(volumes)) if volumes else 0,
            "avg_overall_speed": round(sum(speeds) / len(speeds), 1) if speeds else 0,
            "congestion_distribution": distribution,
        }
