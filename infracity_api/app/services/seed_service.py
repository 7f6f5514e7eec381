"""
Demo data seeding.

``seed_admin`` is safe to call at any time and only creates the
default administrator if missing.  ``seed_users`` adds one demo account
per non-admin role.  ``seed_infrastructure`` fills an empty database
with a small city: neighborhoods with properties and a year of sales,
roads with their event history and imagery, intersections and a few
open issues.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, Optional

from infracity_api.app.core.db import get_connection, to_json, utc_datetime, utcnow
from infracity_api.app.services.audit_service import AuditService
from infracity_api.app.services.property_analytics_service import months_ago
from infracity_api.app.services.user_service import UserService

logger = logging.getLogger(__name__)

ADMIN_EMAIL = "admin@infracity.com"
ADMIN_PASSWORD = "admin123"
DEMO_PASSWORD = "user123"

DEMO_USERS = [
    {"name": "John Smith", "email": "john.smith@infracity.com", "role": "city_planner", "department": "Planning"},
    {"name": "Jane Doe", "email": "jane.doe@infracity.com", "role": "traffic_engineer", "department": "Traffic"},
    {"name": "Mike Johnson", "email": "mike.johnson@infracity.com", "role": "maintenance_crew", "department": "Public Works"},
    {"name": "Sarah Wilson", "email": "sarah.wilson@infracity.com", "role": "viewer", "department": "Communications"},
]

NEIGHBORHOODS = [
    {
        "name": "Downtown",
        "boundaries": [[40.71, -74.01], [40.71, -74.0], [40.72, -74.0], [40.72, -74.01], [40.71, -74.01]],
        "center": [40.715, -74.005],
        "average_income": 85000,
        "population": 15000,
        "area": 2.5,
        "amenity_score": 85,
        "transport_score": 90,
    },
    {
        "name": "Midtown",
        "boundaries": [[40.75, -73.99], [40.75, -73.98], [40.76, -73.98], [40.76, -73.99], [40.75, -73.99]],
        "center": [40.755, -73.985],
        "average_income": 95000,
        "population": 25000,
        "area": 3.2,
        "amenity_score": 92,
        "transport_score": 95,
    },
    {
        "name": "Upper East Side",
        "boundaries": [[40.77, -73.98], [40.77, -73.97], [40.78, -73.97], [40.78, -73.98], [40.77, -73.98]],
        "center": [40.775, -73.975],
        "average_income": 120000,
        "population": 18000,
        "area": 2.8,
        "amenity_score": 88,
        "transport_score": 85,
    },
]

ROADS = [
    {"name": "Main Street", "condition": 78, "issues": 3, "last_inspection": "2024-01-10T00:00:00",
     "coordinates": [[40.7128, -74.006]], "width": 12.5, "lanes": 2, "classification": "arterial"},
    {"name": "Park Avenue", "condition": 65, "issues": 8, "last_inspection": "2024-01-08T00:00:00",
     "coordinates": [[40.7589, -73.9851]], "width": 10.0, "lanes": 2, "classification": "collector"},
    {"name": "Broadway", "condition": 91, "issues": 1, "last_inspection": "2024-01-12T00:00:00",
     "coordinates": [[40.7505, -73.9934]], "width": 15.0, "lanes": 4, "classification": "arterial"},
    {"name": "Fifth Avenue", "condition": 68, "issues": 12, "last_inspection": "2024-01-05T00:00:00",
     "coordinates": [[40.7614, -73.9776]], "width": 11.5, "lanes": 2, "classification": "local"},
]

# (road index, type, description, severity, date)
ROAD_EVENTS = [
    (0, "Pothole Repair", "Repaired large pothole near intersection", "High", "2024-01-15T00:00:00"),
    (0, "Road Marking", "Refreshed lane markings", "Medium", "2024-01-12T00:00:00"),
    (0, "Inspection", "Routine condition assessment", "Low", "2024-01-10T00:00:00"),
    (0, "Cleaning", "Debris removal and cleaning", "Low", "2024-01-08T00:00:00"),
    (1, "Maintenance", "General maintenance work", "Medium", "2024-01-14T00:00:00"),
    (2, "Construction", "Road widening project", "High", "2024-01-11T00:00:00"),
]

# (road index, url, type, date taken, vehicle, confidence, coordinates)
ROAD_IMAGES = [
    (0, "https://images.unsplash.com/photo-1449824913935-59a10b8d2000?w=400", "Pothole",
     "2024-01-15T10:30:00", "VEH-001", 0.92, [40.7128, -74.006]),
    (0, "https://images.unsplash.com/photo-1486754735734-325b5831c3ad?w=400", "Road Marking",
     "2024-01-14T14:20:00", "VEH-002", 0.87, [40.713, -74.0062]),
    (0, "https://images.unsplash.com/photo-1558618666-fcd25c85cd64?w=400", "Surface Crack",
     "2024-01-13T09:15:00", "VEH-003", 0.78, [40.7125, -74.0058]),
    (1, "https://images.unsplash.com/photo-1449824913935-59a10b8d2000?w=400", "Debris",
     "2024-01-13T11:45:00", "VEH-004", 0.85, [40.7589, -73.9851]),
]

PROPERTIES = [
    {"address": "123 Main Street, Downtown", "coordinates": [40.713, -74.0058], "neighborhood": 0,
     "type": "Condo", "bedrooms": 2, "bathrooms": 2, "square_footage": 1200, "lot_size": 0,
     "year_built": 2010, "current_value": 650000, "amenities": ["AC", "Balcony", "Parking"], "condition": "Good"},
    {"address": "456 Park Avenue, Midtown", "coordinates": [40.759, -73.985], "neighborhood": 1,
     "type": "Single Family", "bedrooms": 3, "bathrooms": 2.5, "square_footage": 1800, "lot_size": 2500,
     "year_built": 1995, "current_value": 850000, "amenities": ["Garage", "Garden", "Fireplace"],
     "condition": "Excellent"},
    {"address": "789 Broadway, Midtown", "coordinates": [40.7506, -73.9935], "neighborhood": 1,
     "type": "Townhouse", "bedrooms": 4, "bathrooms": 3, "square_footage": 2200, "lot_size": 1200,
     "year_built": 2005, "current_value": 1200000, "amenities": ["Pool", "Garage", "AC", "Heating"],
     "condition": "Good"},
    {"address": "321 Fifth Avenue, Upper East Side", "coordinates": [40.7615, -73.9775], "neighborhood": 2,
     "type": "Condo", "bedrooms": 3, "bathrooms": 2, "square_footage": 1500, "lot_size": 0,
     "year_built": 2015, "current_value": 950000, "amenities": ["Balcony", "AC", "Parking"],
     "condition": "Excellent"},
    {"address": "654 Upper East Side Ave", "coordinates": [40.776, -73.974], "neighborhood": 2,
     "type": "Single Family", "bedrooms": 5, "bathrooms": 4, "square_footage": 3000, "lot_size": 4000,
     "year_built": 1985, "current_value": 1500000, "amenities": ["Pool", "Garage", "Garden", "Fireplace", "AC"],
     "condition": "Good"},
]

INTERSECTIONS = [
    {"name": "Main St & 5th Ave", "coordinates": [40.7128, -74.006], "volume": 1250, "avg_speed": 25,
     "congestion_level": "High", "traffic_signals": 4, "pedestrian_crossings": 4, "peak_hours": ["08:00", "17:00"]},
    {"name": "Park & Broadway", "coordinates": [40.7589, -73.9851], "volume": 890, "avg_speed": 35,
     "congestion_level": "Medium", "traffic_signals": 2, "pedestrian_crossings": 2, "peak_hours": ["08:00", "17:00"]},
    {"name": "Times Square", "coordinates": [40.758, -73.9855], "volume": 2100, "avg_speed": 15,
     "congestion_level": "Very High", "traffic_signals": 6, "pedestrian_crossings": 8, "peak_hours": ["08:00", "17:00"]},
]

# (type, location, description, severity, coordinates, status, road index)
ISSUES = [
    ("Pothole", "Main Street", "Large pothole causing vehicle damage", "High", [40.7128, -74.006], "Open", 0),
    ("Garbage", "Park Avenue", "Garbage accumulation on sidewalk", "Medium", [40.7589, -73.9851], "In Progress", 1),
    ("Road Marker", "Fifth Avenue", "Faded road markings need refresh", "Low", [40.7614, -73.9776], "Open", 3),
    ("Traffic Flow", "Times Square", "Traffic congestion during peak hours", "High", [40.758, -73.9855], "Open", None),
]

SALE_MONTHS = 12


class SeedService:
    """Creates demo accounts and a demo city."""

    @classmethod
    async def seed_admin(cls) -> Dict[str, Any]:
        existing = await UserService.get_user_by_email(ADMIN_EMAIL)
        if existing:
            logger.info("Admin user already exists")
            return {"created": False, "message": "Admin user already exists"}
        await UserService.create_user(ADMIN_EMAIL, ADMIN_PASSWORD, name="System Administrator", role="admin")
        logger.info("Admin user seeded")
        return {"created": True, "message": "Admin user created successfully"}

    @classmethod
    async def seed_users(cls) -> Dict[str, Any]:
        created = 0
        for user in DEMO_USERS:
            if await UserService.get_user_by_email(user["email"]):
                continue
            await UserService.create_user(
                user["email"],
                DEMO_PASSWORD,
                name=user["name"],
                role=user["role"],
                department=user["department"],
            )
            created += 1
        logger.info("%d demo users seeded", created)
        return {"created": created, "message": f"{created} demo users created successfully"}

    @classmethod
    async def seed_infrastructure(cls, user_id: Optional[int] = None) -> Dict[str, Any]:
        """Populate the city tables unless roads already exist.

        Sale transactions cover the last twelve months relative to now so
        that trend and prediction endpoints have data to work with.
        Prices vary per property with a fixed random seed.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if cursor.execute("SELECT COUNT(*) FROM roads").fetchone()[0]:
                logger.info("Infrastructure data already present, skipping seed")
                return {"seeded": False, "message": "Infrastructure data already exists"}

            now = utcnow()
            neighborhood_ids = []
            for hood in NEIGHBORHOODS:
                cursor.execute(
                    """
                    INSERT INTO neighborhoods (name, boundaries, center, average_income, population, area,
                                               amenity_score, transport_score, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        hood["name"],
                        to_json(hood["boundaries"]),
                        to_json(hood["center"]),
                        hood["average_income"],
                        hood["population"],
                        hood["area"],
                        hood["amenity_score"],
                        hood["transport_score"],
                        now,
                        now,
                    ),
                )
                neighborhood_ids.append(cursor.lastrowid)

            road_ids = []
            for road in ROADS:
                cursor.execute(
                    """
                    INSERT INTO roads (name, condition, issues, last_inspection, coordinates, width, lanes,
                                       classification, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        road["name"],
                        road["condition"],
                        road["issues"],
                        road["last_inspection"],
                        to_json(road["coordinates"]),
                        road["width"],
                        road["lanes"],
                        road["classification"],
                        now,
                        now,
                    ),
                )
                road_ids.append(cursor.lastrowid)

            cursor.executemany(
                "INSERT INTO road_segment_events (road_id, type, description, severity, date, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [(road_ids[i], kind, text, severity, date, now) for i, kind, text, severity, date in ROAD_EVENTS],
            )
            cursor.executemany(
                """
                INSERT INTO road_segment_images (road_id, url, type, date_taken, vehicle_id, confidence,
                                                 coordinates, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (road_ids[i], url, kind, taken, vehicle, confidence, to_json(coords), now)
                    for i, url, kind, taken, vehicle, confidence, coords in ROAD_IMAGES
                ],
            )

            transactions = 0
            month_start = utc_datetime().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
            for index, prop in enumerate(PROPERTIES):
                cursor.execute(
                    """
                    INSERT INTO properties (address, coordinates, neighborhood_id, type, bedrooms, bathrooms,
                                            square_footage, lot_size, year_built, current_value, amenities,
                                            condition, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        prop["address"],
                        to_json(prop["coordinates"]),
                        neighborhood_ids[prop["neighborhood"]],
                        prop["type"],
                        prop["bedrooms"],
                        prop["bathrooms"],
                        prop["square_footage"],
                        prop["lot_size"],
                        prop["year_built"],
                        prop["current_value"],
                        to_json(prop["amenities"]),
                        prop["condition"],
                        now,
                        now,
                    ),
                )
                property_id = cursor.lastrowid
                rng = random.Random(index)
                for months_back in range(SALE_MONTHS):
                    # the most recent month always has a sale
                    if months_back > 0 and rng.random() > 0.7:
                        continue
                    sale_price = round(prop["current_value"] * (1 + (rng.random() - 0.5) * 0.2))
                    cursor.execute(
                        """
                        INSERT INTO property_transactions (property_id, sale_price, sale_date, transaction_type,
                                                           price_per_square_foot, days_on_market, listing_price,
                                                           agent_id, created_at)
                        VALUES (?, ?, ?, 'Sale', ?, ?, ?, ?, ?)
                        """,
                        (
                            property_id,
                            sale_price,
                            months_ago(month_start, months_back).isoformat(),
                            round(sale_price / prop["square_footage"], 2),
                            rng.randint(10, 99),
                            round(sale_price * (1 + rng.random() * 0.1)),
                            f"AGENT-{rng.randint(1, 100)}",
                            now,
                        ),
                    )
                    transactions += 1

            for intersection in INTERSECTIONS:
                cursor.execute(
                    """
                    INSERT INTO intersections (name, coordinates, volume, avg_speed, congestion_level,
                                               traffic_signals, pedestrian_crossings, peak_hours, connected_roads,
                                               created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        intersection["name"],
                        to_json(intersection["coordinates"]),
                        intersection["volume"],
                        intersection["avg_speed"],
                        intersection["congestion_level"],
                        intersection["traffic_signals"],
                        intersection["pedestrian_crossings"],
                        to_json(intersection["peak_hours"]),
                        to_json([]),
                        now,
                        now,
                    ),
                )

            cursor.executemany(
                """
                INSERT INTO issues (type, location, coordinates, severity, status, description, reported_by,
                                    road_id, images, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        kind,
                        location,
                        to_json(coords),
                        severity,
                        status,
                        description,
                        user_id,
                        road_ids[road] if road is not None else None,
                        to_json([]),
                        now,
                        now,
                    )
                    for kind, location, description, severity, coords, status, road in ISSUES
                ],
            )
            conn.commit()
        finally:
            conn.close()

        counts = {
            "neighborhoods": len(NEIGHBORHOODS),
            "properties": len(PROPERTIES),
            "transactions": transactions,
            "roads": len(ROADS),
            "events": len(ROAD_EVENTS),
            "images": len(ROAD_IMAGES),
            "intersections": len(INTERSECTIONS),
            "issues": len(ISSUES),
        }
        summary = ", ".join(f"{count} {name}" for name, count in counts.items())
        logger.info("Infrastructure data seeded: %s", summary)
        await AuditService.record(user_id, "seed", "infrastructure", None, counts)
        return {"seeded": True, "counts": counts, "message": f"Infrastructure data seeded: {summary}"}
