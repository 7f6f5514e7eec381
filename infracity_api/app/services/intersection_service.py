"""
Service for the intersection inventory.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from infracity_api.app.core.db import from_json, get_connection, to_json, utcnow
from infracity_api.app.core.errors import NotFoundError
from infracity_api.app.schemas.intersection import IntersectionCreate, IntersectionRead
from infracity_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

INTERSECTION_COLUMNS = (
    "id, name, coordinates, volume, avg_speed, congestion_level, traffic_signals, "
    "pedestrian_crossings, peak_hours, connected_roads, created_at, updated_at"
)

JSON_FIELDS = {"coordinates", "peak_hours", "connected_roads"}


def _row_to_intersection(row: sqlite3.Row) -> IntersectionRead:
    return IntersectionRead(
        id=row["id"],
        name=row["name"],
        coordinates=from_json(row["coordinates"]),
        volume=row["volume"],
        avg_speed=row["avg_speed"],
        congestion_level=row["congestion_level"],
        traffic_signals=row["traffic_signals"],
        pedestrian_crossings=row["pedestrian_crossings"],
        peak_hours=from_json(row["peak_hours"], []),
        connected_roads=from_json(row["connected_roads"], []),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class IntersectionService:
    """CRUD over the ``intersections`` table."""

    @classmethod
    async def list_intersections(cls, congestion_level: Optional[str] = None) -> List[IntersectionRead]:
        conn = get_connection()
        try:
            query = f"SELECT {INTERSECTION_COLUMNS} FROM intersections"
            params: list = []
            if congestion_level:
                query += " WHERE congestion_level = ?"
                params.append(congestion_level)
            query += " ORDER BY name"
            return [_row_to_intersection(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def create_intersection(cls, data: IntersectionCreate, user_id: Optional[int] = None) -> IntersectionRead:
        now = utcnow()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO intersections (name, coordinates, volume, avg_speed, congestion_level,
                                           traffic_signals, pedestrian_crossings, peak_hours, connected_roads,
                                           created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.name,
                    to_json(data.coordinates),
                    data.volume,
                    data.avg_speed,
                    data.congestion_level,
                    data.traffic_signals,
                    data.pedestrian_crossings,
                    to_json(data.peak_hours),
                    to_json(data.connected_roads),
                    now,
                    now,
                ),
            )
            intersection_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(
                f"SELECT {INTERSECTION_COLUMNS} FROM intersections WHERE id = ?", (intersection_id,)
            ).fetchone()
        finally:
            conn.close()
        logger.info("Intersection %s created: %s", intersection_id, data.name)
        await AuditService.record(user_id, "create", "intersection", intersection_id, {"name": data.name})
        return _row_to_intersection(row)

    @classmethod
    async def get_intersection(cls, intersection_id: int) -> IntersectionRead:
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {INTERSECTION_COLUMNS} FROM intersections WHERE id = ?", (intersection_id,)
            ).fetchone()
            if not row:
                raise NotFoundError(f"Intersection {intersection_id} not found")
            return _row_to_intersection(row)
        finally:
            conn.close()

    @classmethod
    async def update_intersection(
        cls, intersection_id: int, updates: Dict[str, Any], user_id: Optional[int] = None
    ) -> IntersectionRead:
        values = {key: to_json(value) if key in JSON_FIELDS else value for key, value in updates.items()}
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM intersections WHERE id = ?", (intersection_id,)).fetchone():
                raise NotFoundError(f"Intersection {intersection_id} not found")
            if values:
                fields = [f"{key} = ?" for key in values]
                cursor.execute(
                    f"UPDATE intersections SET {', '.join(fields)}, updated_at = ? WHERE id = ?",
                    tuple(list(values.values()) + [utcnow(), intersection_id]),
                )
                conn.commit()
            row = cursor.execute(
                f"SELECT {INTERSECTION_COLUMNS} FROM intersections WHERE id = ?", (intersection_id,)
            ).fetchone()
        finally:
            conn.close()
        await AuditService.record(user_id, "update", "intersection", intersection_id, values)
        return _row_to_intersection(row)

    @classmethod
    async def delete_intersection(cls, intersection_id: int, user_id: Optional[int] = None) -> None:
        """Delete an intersection; its analyses and plans go with it."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM intersections WHERE id = ?", (intersection_id,)).fetchone():
                raise NotFoundError(f"Intersection {intersection_id} not found")
            cursor.execute("DELETE FROM intersections WHERE id = ?", (intersection_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Intersection %s deleted", intersection_id)
        await AuditService.record(user_id, "delete", "intersection", intersection_id)
