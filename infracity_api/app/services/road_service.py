"""
Service for road segments.

Covers CRUD on the ``roads`` table plus the segment inspection views:
condition sub-scores, the maintenance event timeline, imagery captured
by survey vehicles and a lane layout recommendation derived from the
measured carriageway width.
"""

from __future__ import annotations

import logging
import random
import sqlite3
from typing import Any, Dict, List, Optional

from infracity_api.app.core.db import from_json, get_connection, to_json, utcnow
from infracity_api.app.core.errors import NotFoundError
from infracity_api.app.schemas.road import (
    LatLng,
    RoadCreate,
    RoadEventCreate,
    RoadEventRead,
    RoadImageCreate,
    RoadImageRead,
    RoadRead,
)
from infracity_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

CLASSIFICATION_NAMES = {
    "highway": "Highway",
    "arterial": "Primary Arterial",
    "collector": "Collector Road",
    "local": "Local Street",
}

STANDARD_LANE_WIDTH = 3.5
WIDENING = 1.5
BIKE_LANE_WIDTH = 2.0
PARKING_WIDTH = 2.5

ROAD_COLUMNS = (
    "id, name, condition, issues, last_inspection, coordinates, width, lanes, classification, "
    "created_at, updated_at"
)

SEGMENT_NOT_FOUND = "Road segment not found"


def _row_to_road(row: sqlite3.Row) -> RoadRead:
    return RoadRead(
        id=row["id"],
        name=row["name"],
        condition=row["condition"],
        issues=row["issues"],
        last_inspection=row["last_inspection"],
        coordinates=from_json(row["coordinates"], []),
        width=row["width"],
        lanes=row["lanes"],
        classification=row["classification"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_event(row: sqlite3.Row) -> RoadEventRead:
    return RoadEventRead(
        id=row["id"],
        road_id=row["road_id"],
        type=row["type"],
        description=row["description"],
        severity=row["severity"],
        date=row["date"],
    )


def _row_to_image(row: sqlite3.Row) -> RoadImageRead:
    coords = from_json(row["coordinates"])
    return RoadImageRead(
        id=row["id"],
        road_id=row["road_id"],
        url=row["url"],
        type=row["type"],
        date_taken=row["date_taken"],
        vehicle_id=row["vehicle_id"],
        confidence=row["confidence"],
        coordinates=LatLng(lat=coords[0], lng=coords[1]) if coords else None,
    )


def lane_config(width: float, lanes: int) -> List[Dict[str, Any]]:
    """Describe the current carriageway split into equal traffic lanes.

    Width beyond standard lanes is reported as parking.
    """
    config = [{"type": "Traffic Lane", "width": round(width / lanes, 1)} for _ in range(lanes)]
    if width > lanes * STANDARD_LANE_WIDTH:
        config.append({"type": "Parking", "width": round(width - lanes * STANDARD_LANE_WIDTH, 1)})
    return config


def recommended_config(width: float, lanes: int) -> List[Dict[str, Any]]:
    """Recommend a layout for the carriageway widened by 1.5 m.

    Traffic lanes get the standard width.  The remainder fits a bike lane
    when at least 2 m are left and additionally a parking lane when at
    least 4.5 m are left.
    """
    config = [{"type": "Traffic Lane", "width": STANDARD_LANE_WIDTH} for _ in range(lanes)]
    remaining = width + WIDENING - lanes * STANDARD_LANE_WIDTH
    if remaining >= BIKE_LANE_WIDTH:
        config.append({"type": "Bike Lane", "width": BIKE_LANE_WIDTH})
    if remaining >= BIKE_LANE_WIDTH + PARKING_WIDTH:
        config.append({"type": "Parking", "width": PARKING_WIDTH})
    return config


def _clamp(value: float) -> int:
    return round(max(0.0, min(100.0, value)))


class RoadService:
    """Service for roads and road segment inspection data."""

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    @classmethod
    async def list_roads(cls, classification: Optional[str] = None) -> List[RoadRead]:
        conn = get_connection()
        try:
            query = f"SELECT {ROAD_COLUMNS} FROM roads"
            params: list = []
            if classification:
                query += " WHERE classification = ?"
                params.append(classification)
            query += " ORDER BY name"
            return [_row_to_road(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def create_road(cls, data: RoadCreate, user_id: Optional[int] = None) -> RoadRead:
        now = utcnow()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO roads (name, condition, issues, last_inspection, coordinates, width, lanes,
                                   classification, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.name,
                    data.condition,
                    data.issues,
                    data.last_inspection.isoformat() if data.last_inspection else None,
                    to_json(data.coordinates),
                    data.width,
                    data.lanes,
                    data.classification,
                    now,
                    now,
                ),
            )
            road_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(f"SELECT {ROAD_COLUMNS} FROM roads WHERE id = ?", (road_id,)).fetchone()
        finally:
            conn.close()
        logger.info("Road %s created: %s", road_id, data.name)
        await AuditService.record(user_id, "create", "road", road_id, {"name": data.name})
        return _row_to_road(row)

    @classmethod
    async def get_road(cls, road_id: int) -> RoadRead:
        conn = get_connection()
        try:
            row = conn.execute(f"SELECT {ROAD_COLUMNS} FROM roads WHERE id = ?", (road_id,)).fetchone()
            if not row:
                raise NotFoundError(SEGMENT_NOT_FOUND)
            return _row_to_road(row)
        finally:
            conn.close()

    @classmethod
    async def update_road(cls, road_id: int, updates: Dict[str, Any], user_id: Optional[int] = None) -> RoadRead:
        values = {}
        for key, value in updates.items():
            if key == "coordinates":
                values[key] = to_json(value)
            elif key == "last_inspection" and value is not None:
                values[key] = value.isoformat()
            else:
                values[key] = value
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM roads WHERE id = ?", (road_id,)).fetchone():
                raise NotFoundError(SEGMENT_NOT_FOUND)
            if values:
                fields = [f"{key} = ?" for key in values]
                cursor.execute(
                    f"UPDATE roads SET {', '.join(fields)}, updated_at = ? WHERE id = ?",
                    tuple(list(values.values()) + [utcnow(), road_id]),
                )
                conn.commit()
            row = cursor.execute(f"SELECT {ROAD_COLUMNS} FROM roads WHERE id = ?", (road_id,)).fetchone()
        finally:
            conn.close()
        await AuditService.record(user_id, "update", "road", road_id, values)
        return _row_to_road(row)

    @classmethod
    async def delete_road(cls, road_id: int, user_id: Optional[int] = None) -> None:
        """Delete a road together with its events and images."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM roads WHERE id = ?", (road_id,)).fetchone():
                raise NotFoundError(SEGMENT_NOT_FOUND)
            cursor.execute("DELETE FROM roads WHERE id = ?", (road_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Road %s deleted", road_id)
        await AuditService.record(user_id, "delete", "road", road_id)

    # ------------------------------------------------------------------
    # Segment inspection views
    # ------------------------------------------------------------------
    @classmethod
    async def get_condition_scores(cls, road_id: int) -> Dict[str, Any]:
        """Overall condition plus surface, structural and drainage sub-scores.

        Sub-scores vary around the overall score by a fixed spread per
        segment, so repeated calls return the same values.
        """
        road = await cls.get_road(road_id)
        rng = random.Random(road.id)
        overall = road.condition
        return {
            "overall": round(overall),
            "surface_quality": _clamp(overall + rng.uniform(-10, 10)),
            "structural_integrity": _clamp(overall + rng.uniform(-7.5, 7.5)),
            "drainage": _clamp(overall + rng.uniform(-12.5, 12.5)),
            "last_updated": road.updated_at or road.created_at,
        }

    @classmethod
    async def list_events(cls, road_id: int) -> List[RoadEventRead]:
        """Event timeline of a segment, most recent first."""
        await cls.get_road(road_id)
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT id, road_id, type, description, severity, date FROM road_segment_events "
                "WHERE road_id = ? ORDER BY date DESC, id DESC",
                (road_id,),
            ).fetchall()
            return [_row_to_event(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def add_event(cls, road_id: int, data: RoadEventCreate, user_id: Optional[int] = None) -> RoadEventRead:
        await cls.get_road(road_id)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO road_segment_events (road_id, type, description, severity, date, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (road_id, data.type, data.description, data.severity, data.date.isoformat(), utcnow()),
            )
            event_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(
                "SELECT id, road_id, type, description, severity, date FROM road_segment_events WHERE id = ?",
                (event_id,),
            ).fetchone()
        finally:
            conn.close()
        await AuditService.record(user_id, "create", "road_event", event_id, {"road_id": road_id, "type": data.type})
        return _row_to_event(row)

    @classmethod
    async def list_images(cls, road_id: int) -> List[RoadImageRead]:
        """Visual evidence of a segment, most recently captured first."""
        await cls.get_road(road_id)
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT id, road_id, url, type, date_taken, vehicle_id, confidence, coordinates "
                "FROM road_segment_images WHERE road_id = ? ORDER BY date_taken DESC, id DESC",
                (road_id,),
            ).fetchall()
            return [_row_to_image(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def add_image(cls, road_id: int, data: RoadImageCreate, user_id: Optional[int] = None) -> RoadImageRead:
        await cls.get_road(road_id)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO road_segment_images (road_id, url, type, date_taken, vehicle_id, confidence,
                                                 coordinates, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    road_id,
                    data.url,
                    data.type,
                    data.date_taken.isoformat(),
                    data.vehicle_id,
                    data.confidence,
                    to_json(data.coordinates),
                    utcnow(),
                ),
            )
            image_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(
                "SELECT id, road_id, url, type, date_taken, vehicle_id, confidence, coordinates "
                "FROM road_segment_images WHERE id = ?",
                (image_id,),
            ).fetchone()
        finally:
            conn.close()
        await AuditService.record(user_id, "create", "road_image", image_id, {"road_id": road_id})
        return _row_to_image(row)

    @classmethod
    async def get_segment_details(cls, road_id: int) -> Dict[str, Any]:
        """Everything the segment inspector shows for one road."""
        road = await cls.get_road(road_id)
        events = await cls.list_events(road_id)
        images = await cls.list_images(road_id)
        return {
            "id": road.id,
            "name": road.name,
            "classification": CLASSIFICATION_NAMES.get(road.classification, "Local Street"),
            "condition_score": road.condition,
            "condition_scores": await cls.get_condition_scores(road_id),
            "events": events,
            "images": images,
            "lidar_data": {
                "current_width": road.width,
                "recommended_width": road.width + WIDENING,
                "lane_config": lane_config(road.width, road.lanes),
                "recommended_config": recommended_config(road.width, road.lanes),
            },
        }
