"""
Business logic for users and their sessions.

Users are stored in SQLite with a PBKDF2 password hash.  Emails are
normalised to lower case so lookups are case insensitive.  The
currently valid refresh token is stored on the user row; rotating or
clearing it invalidates previously issued refresh tokens.
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from infracity_api.app.core.db import get_connection, utcnow
from infracity_api.app.core.errors import NotFoundError
from infracity_api.app.core.security import hash_password, verify_password
from infracity_api.app.schemas.user import UserRead
from infracity_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

USER_COLUMNS = (
    "id, email, name, first_name, last_name, department, phone, role, is_active, "
    "last_login_at, created_at"
)


def _split_name(name: str) -> tuple[str, str]:
    parts = name.strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


def _row_to_user(row: sqlite3.Row) -> UserRead:
    name = row["name"] or " ".join(p for p in (row["first_name"], row["last_name"]) if p) or None
    return UserRead(
        id=row["id"],
        email=row["email"],
        name=name,
        first_name=row["first_name"],
        last_name=row["last_name"],
        department=row["department"],
        phone=row["phone"],
        role=row["role"],
        is_active=bool(row["is_active"]),
        last_login_at=row["last_login_at"],
        created_at=row["created_at"],
    )


class UserService:
    """Service for user accounts, profiles and refresh tokens."""

    @classmethod
    async def create_user(
        cls,
        email: str,
        password: str,
        name: Optional[str] = None,
        role: str = "viewer",
        department: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> UserRead:
        """Create a new user.

        Parameters
        ----------
        email : str
            Login email; stored lower-cased and must be unique.
        password : str
            Plain password, hashed before storage.
        name : Optional[str]
            Display name.  It is split into first and last name.
        role : str
            One of the application roles, ``viewer`` by default.

        Raises
        ------
        ValueError
            If a user with the same email already exists.
        """
        email = email.strip().lower()
        first_name, last_name = _split_name(name or "")
        now = utcnow()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if cursor.execute("SELECT id FROM users WHERE email = ?", (email,)).fetchone():
                raise ValueError("User already exists")
            cursor.execute(
                """
                INSERT INTO users (email, password, name, first_name, last_name, department, phone, role,
                                   created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (email, hash_password(password), name, first_name, last_name, department, phone, role, now, now),
            )
            user_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        logger.info("User %s registered with role %s", email, role)
        await AuditService.record(None, "create", "user", user_id, {"email": email, "role": role})
        return _row_to_user(row)

    @classmethod
    async def authenticate(cls, email: str, password: str) -> Optional[UserRead]:
        """Return the user if the credentials match an active account, else ``None``.

        A successful login updates ``last_login_at``.
        """
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {USER_COLUMNS}, password FROM users WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
            if not row or not row["is_active"] or not verify_password(password, row["password"]):
                logger.warning("Failed login attempt for %s", email)
                return None
            conn.execute(
                "UPDATE users SET last_login_at = ? WHERE id = ?",
                (utcnow(), row["id"]),
            )
            conn.commit()
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (row["id"],)).fetchone()
            return _row_to_user(row)
        finally:
            conn.close()

    @classmethod
    async def get_user(cls, user_id: int) -> UserRead:
        """Retrieve a user by id; raises ``NotFoundError`` if absent."""
        conn = get_connection()
        try:
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
            if not row:
                raise NotFoundError(f"User {user_id} not found")
            return _row_to_user(row)
        finally:
            conn.close()

    @classmethod
    async def get_user_by_email(cls, email: str) -> Optional[UserRead]:
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE email = ?", (email.strip().lower(),)
            ).fetchone()
            return _row_to_user(row) if row else None
        finally:
            conn.close()

    @classmethod
    async def list_users(cls, role: Optional[str] = None) -> List[UserRead]:
        conn = get_connection()
        try:
            query = f"SELECT {USER_COLUMNS} FROM users"
            params: list = []
            if role:
                query += " WHERE role = ?"
                params.append(role)
            query += " ORDER BY id"
            return [_row_to_user(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def update_user(cls, user_id: int, updates: Dict[str, Any], acting_user_id: Optional[int] = None) -> UserRead:
        """Update a user's profile, role or status.

        Only the keys present in ``updates`` are written.  When first or
        last name change, the display name is recomposed.  Raises
        ``NotFoundError`` if the user does not exist.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute(
                "SELECT id, first_name, last_name FROM users WHERE id = ?", (user_id,)
            ).fetchone()
            if not row:
                raise NotFoundError(f"User {user_id} not found")
            if updates:
                values = dict(updates)
                if "first_name" in values or "last_name" in values:
                    first = values.get("first_name", row["first_name"]) or ""
                    last = values.get("last_name", row["last_name"]) or ""
                    values["name"] = f"{first} {last}".strip()
                if "is_active" in values:
                    values["is_active"] = 1 if values["is_active"] else 0
                fields = [f"{key} = ?" for key in values]
                params = list(values.values()) + [utcnow(), user_id]
                cursor.execute(
                    f"UPDATE users SET {', '.join(fields)}, updated_at = ? WHERE id = ?",
                    tuple(params),
                )
                conn.commit()
            updated = cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        await AuditService.record(acting_user_id, "update", "user", user_id, updates)
        return _row_to_user(updated)

    @classmethod
    async def delete_user(cls, user_id: int, acting_user_id: Optional[int] = None) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM users WHERE id = ?", (user_id,)).fetchone():
                raise NotFoundError(f"User {user_id} not found")
            cursor.execute("DELETE FROM users WHERE id = ?", (user_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("User %s deleted", user_id)
        await AuditService.record(acting_user_id, "delete", "user", user_id)

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------
    @classmethod
    async def store_refresh_token(cls, user_id: int, token: Optional[str]) -> None:
        """Persist the currently valid refresh token (``None`` logs the user out)."""
        conn = get_connection()
        try:
            conn.execute("UPDATE users SET refresh_token = ? WHERE id = ?", (token, user_id))
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def get_refresh_token_owner(cls, user_id: int, token: str) -> Optional[UserRead]:
        """Return the active user holding exactly this refresh token, if any."""
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {USER_COLUMNS}, refresh_token FROM users WHERE id = ?", (user_id,)
            ).fetchone()
            if not row or not row["is_active"] or row["refresh_token"] != token:
                return None
            return _row_to_user(row)
        finally:
            conn.close()
