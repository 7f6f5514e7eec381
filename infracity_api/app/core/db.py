"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), applying migrations on application start
(``init_db``) and small helpers shared by the services for the JSON
text columns that hold nested documents (coordinates, hourly traffic
data, proposed actions and so on).

Applied migration versions are stored in the ``migrations`` table and
new migrations are executed in order.
"""

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from .config import settings


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    If ``settings.database_url`` is an absolute path (or the special
    ``:memory:`` name), use it directly.  Otherwise resolve it relative
    to the project root.
    """
    db_url = settings.database_url
    if db_url == ":memory:" or os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent  # infracity_api/
    return str((base_dir / db_url).resolve())


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` objects keyed by column name.
    Type detection is disabled; timestamps are stored and returned as
    ISO-8601 strings.
    """
    conn = sqlite3.connect(get_database_path())
    conn.row_factory = sqlite3.Row
    # SQLite leaves foreign key enforcement off unless enabled per connection.
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


def utc_datetime() -> datetime:
    """Current UTC time as a naive ``datetime``; stored timestamps carry no offset."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utcnow() -> str:
    """Current UTC time as an ISO-8601 string."""
    return utc_datetime().isoformat()


def to_json(value: Any) -> str | None:
    """Serialise a value for a JSON text column (``None`` stays ``NULL``)."""
    if value is None:
        return None
    return json.dumps(value, default=str)


def from_json(raw: str | None, default: Any = None) -> Any:
    """Parse a JSON text column, returning ``default`` for empty values."""
    if raw is None or raw == "":
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return default


MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        -- Users and the audit trail
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            password TEXT NOT NULL,
            name TEXT,
            first_name TEXT,
            last_name TEXT,
            department TEXT,
            phone TEXT,
            role TEXT NOT NULL DEFAULT 'viewer',
            is_active INTEGER NOT NULL DEFAULT 1,
            last_login_at TIMESTAMP,
            refresh_token TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER,
            action TEXT NOT NULL,
            object_type TEXT NOT NULL,
            object_id INTEGER,
            timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            details TEXT
        );
        """,
    ),
    (
        2,
        """
        -- Road network, reported issues and field tasks
        CREATE TABLE IF NOT EXISTS roads (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            condition REAL NOT NULL,
            issues INTEGER NOT NULL DEFAULT 0,
            last_inspection TIMESTAMP,
            coordinates TEXT,
            width REAL NOT NULL DEFAULT 7.0,
            lanes INTEGER NOT NULL DEFAULT 2,
            classification TEXT NOT NULL DEFAULT 'local',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS road_segment_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            road_id INTEGER NOT NULL,
            type TEXT NOT NULL,
            description TEXT NOT NULL,
            severity TEXT NOT NULL DEFAULT 'Medium',
            date TIMESTAMP NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(road_id) REFERENCES roads(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS road_segment_images (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            road_id INTEGER NOT NULL,
            url TEXT NOT NULL,
            type TEXT NOT NULL,
            date_taken TIMESTAMP NOT NULL,
            vehicle_id TEXT,
            confidence REAL NOT NULL DEFAULT 0.5,
            coordinates TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(road_id) REFERENCES roads(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS issues (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            type TEXT NOT NULL,
            location TEXT NOT NULL,
            coordinates TEXT,
            severity TEXT NOT NULL DEFAULT 'Medium',
            status TEXT NOT NULL DEFAULT 'Open',
            description TEXT NOT NULL,
            reported_by INTEGER,
            assigned_to TEXT,
            road_id INTEGER,
            images TEXT,
            resolved_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(reported_by) REFERENCES users(id) ON DELETE SET NULL,
            FOREIGN KEY(road_id) REFERENCES roads(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            priority TEXT NOT NULL DEFAULT 'medium',
            assigned_to TEXT NOT NULL,
            due_date TIMESTAMP NOT NULL,
            location TEXT NOT NULL,
            coordinates TEXT,
            issue_type TEXT NOT NULL,
            created_by INTEGER,
            issue_id INTEGER,
            estimated_duration INTEGER NOT NULL DEFAULT 60,
            actual_duration INTEGER,
            completed_at TIMESTAMP,
            notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(created_by) REFERENCES users(id) ON DELETE SET NULL,
            FOREIGN KEY(issue_id) REFERENCES issues(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS intersections (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            coordinates TEXT,
            volume INTEGER NOT NULL DEFAULT 0,
            avg_speed REAL NOT NULL DEFAULT 0,
            congestion_level TEXT NOT NULL DEFAULT 'Low',
            traffic_signals INTEGER NOT NULL DEFAULT 0,
            pedestrian_crossings INTEGER NOT NULL DEFAULT 0,
            peak_hours TEXT,
            connected_roads TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE INDEX IF NOT EXISTS idx_issues_status ON issues(status);
        CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);
        """,
    ),
    (
        3,
        """
        -- Traffic analyses and decongestion plans
        CREATE TABLE IF NOT EXISTS intersection_analyses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            intersection_id INTEGER NOT NULL,
            analysis_date TIMESTAMP NOT NULL,
            traffic_volume TEXT NOT NULL,
            peak_hours TEXT,
            average_speed TEXT,
            congestion_level TEXT NOT NULL,
            pedestrian_data TEXT,
            weather_conditions TEXT NOT NULL DEFAULT 'Clear',
            analysis_notes TEXT,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(intersection_id) REFERENCES intersections(id) ON DELETE CASCADE,
            FOREIGN KEY(created_by) REFERENCES users(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS decongestion_plans (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            plan_name TEXT NOT NULL,
            intersection_id INTEGER NOT NULL,
            analysis_id INTEGER NOT NULL,
            current_congestion_level TEXT NOT NULL,
            target_congestion_level TEXT NOT NULL,
            proposed_actions TEXT NOT NULL,
            expected_impact TEXT,
            status TEXT NOT NULL DEFAULT 'Draft',
            start_date TIMESTAMP,
            end_date TIMESTAMP,
            assigned_team TEXT,
            budget_allocated REAL,
            budget_spent REAL NOT NULL DEFAULT 0,
            public_feedback TEXT,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(intersection_id) REFERENCES intersections(id) ON DELETE CASCADE,
            FOREIGN KEY(analysis_id) REFERENCES intersection_analyses(id) ON DELETE CASCADE,
            FOREIGN KEY(created_by) REFERENCES users(id) ON DELETE SET NULL
        );

        CREATE INDEX IF NOT EXISTS idx_analyses_intersection ON intersection_analyses(intersection_id, analysis_date);
        CREATE INDEX IF NOT EXISTS idx_plans_status ON decongestion_plans(status);
        """,
    ),
    (
        4,
        """
        -- Collaborative planning sessions
        CREATE TABLE IF NOT EXISTS planning_sessions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT,
            created_by INTEGER NOT NULL,
            status TEXT NOT NULL DEFAULT 'active',
            planning_mode TEXT NOT NULL DEFAULT 'collaborative',
            settings TEXT,
            total_annotations INTEGER NOT NULL DEFAULT 0,
            last_activity TIMESTAMP,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(created_by) REFERENCES users(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS planning_collaborators (
            session_id INTEGER NOT NULL,
            user_id INTEGER NOT NULL,
            role TEXT NOT NULL DEFAULT 'viewer',
            joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY(session_id, user_id),
            FOREIGN KEY(session_id) REFERENCES planning_sessions(id) ON DELETE CASCADE,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS planning_annotations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id INTEGER NOT NULL,
            type TEXT NOT NULL,
            content TEXT NOT NULL,
            position_x REAL NOT NULL,
            position_y REAL NOT NULL,
            style TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            is_visible INTEGER NOT NULL DEFAULT 1,
            priority TEXT NOT NULL DEFAULT 'medium',
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(session_id) REFERENCES planning_sessions(id) ON DELETE CASCADE,
            FOREIGN KEY(created_by) REFERENCES users(id) ON DELETE SET NULL
        );
        """,
    ),
    (
        5,
        """
        -- Property market data
        CREATE TABLE IF NOT EXISTS neighborhoods (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            boundaries TEXT,
            center TEXT,
            average_income REAL,
            population INTEGER,
            area REAL,
            amenity_score REAL NOT NULL DEFAULT 50,
            transport_score REAL NOT NULL DEFAULT 50,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS properties (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            address TEXT NOT NULL,
            coordinates TEXT,
            neighborhood_id INTEGER NOT NULL,
            type TEXT NOT NULL,
            bedrooms INTEGER NOT NULL,
            bathrooms REAL NOT NULL,
            square_footage REAL NOT NULL,
            lot_size REAL,
            year_built INTEGER NOT NULL,
            current_value REAL,
            amenities TEXT,
            condition TEXT NOT NULL DEFAULT 'Good',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(neighborhood_id) REFERENCES neighborhoods(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS property_transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            property_id INTEGER NOT NULL,
            sale_price REAL NOT NULL,
            sale_date TIMESTAMP NOT NULL,
            transaction_type TEXT NOT NULL DEFAULT 'Sale',
            price_per_square_foot REAL,
            days_on_market INTEGER,
            listing_price REAL,
            agent_id TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(property_id) REFERENCES properties(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_properties_neighborhood ON properties(neighborhood_id);
        CREATE INDEX IF NOT EXISTS idx_transactions_property ON property_transactions(property_id, sale_date);
        """,
    ),
    (
        6,
        """
        -- Generated reports
        CREATE TABLE IF NOT EXISTS reports (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            type TEXT NOT NULL DEFAULT 'comprehensive',
            status TEXT NOT NULL DEFAULT 'generating',
            parameters TEXT,
            data TEXT,
            generation_time INTEGER,
            data_points INTEGER NOT NULL DEFAULT 0,
            download_count INTEGER NOT NULL DEFAULT 0,
            last_accessed TIMESTAMP,
            is_public INTEGER NOT NULL DEFAULT 0,
            share_token TEXT,
            shared_with TEXT,
            created_by INTEGER NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(created_by) REFERENCES users(id) ON DELETE CASCADE
        );
        """,
    ),
]


def init_db() -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version and applies any newer entries of
    ``MIGRATIONS``.  To change the schema, append a migration with an
    incremented version number.
    """
    with get_cursor() as cursor:
        cursor.execute(
            "CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)"
        )
        cursor.execute("SELECT MAX(version) as version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute(
                    "INSERT INTO migrations (version) VALUES (?)", (version,)
                )
                current_version = version
