"""
Service for decongestion plans.

A plan references an intersection and one of that intersection's
traffic analyses.  The implementation block (status, dates, team and
budget) is stored in plain columns so that statistics can aggregate
it; actions, impact and public feedback are JSON documents.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from infracity_api.app.core.db import from_json, get_connection, to_json, utcnow
from infracity_api.app.core.errors import NotFoundError
from infracity_api.app.schemas.common import Pagination
from infracity_api.app.schemas.decongestion_plan import (
    PLAN_STATUSES,
    FeedbackCreate,
    PlanCreate,
    PlanRead,
)
from infracity_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

PLAN_NOT_FOUND = "Decongestion plan not found"

PLAN_SELECT = """
    SELECT p.id, p.plan_name, p.intersection_id, p.analysis_id, p.current_congestion_level,
           p.target_congestion_level, p.proposed_actions, p.expected_impact, p.status, p.start_date,
           p.end_date, p.assigned_team, p.budget_allocated, p.budget_spent, p.public_feedback,
           p.created_by, p.created_at, p.updated_at, i.name AS intersection_name
    FROM decongestion_plans p
    LEFT JOIN intersections i ON i.id = p.intersection_id
"""


def _row_to_plan(row: sqlite3.Row) -> PlanRead:
    return PlanRead(
        id=row["id"],
        plan_name=row["plan_name"],
        intersection_id=row["intersection_id"],
        intersection_name=row["intersection_name"],
        analysis_id=row["analysis_id"],
        current_congestion_level=row["current_congestion_level"],
        target_congestion_level=row["target_congestion_level"],
        proposed_actions=from_json(row["proposed_actions"], []),
        expected_impact=from_json(row["expected_impact"], {}),
        implementation={
            "status": row["status"],
            "start_date": row["start_date"],
            "end_date": row["end_date"],
            "assigned_team": row["assigned_team"],
            "budget": {"allocated": row["budget_allocated"], "spent": row["budget_spent"]},
        },
        public_feedback=from_json(row["public_feedback"], []),
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _implementation_columns(implementation: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten an implementation document into column values."""
    columns: Dict[str, Any] = {}
    for key in ("status", "assigned_team"):
        if key in implementation:
            columns[key] = implementation[key]
    for key in ("start_date", "end_date"):
        if key in implementation:
            columns[key] = _iso(implementation[key])
    budget = implementation.get("budget")
    if budget is not None:
        if "allocated" in budget:
            columns["budget_allocated"] = budget["allocated"]
        if "spent" in budget:
            columns["budget_spent"] = budget["spent"]
    return columns


def _validate_references(cursor: sqlite3.Cursor, intersection_id: int, analysis_id: int) -> None:
    if not cursor.execute("SELECT id FROM intersections WHERE id = ?", (intersection_id,)).fetchone():
        raise ValueError("Intersection not found")
    analysis = cursor.execute(
        "SELECT intersection_id FROM intersection_analyses WHERE id = ?", (analysis_id,)
    ).fetchone()
    if not analysis:
        raise ValueError("Intersection analysis not found")
    if analysis["intersection_id"] != intersection_id:
        raise ValueError("Analysis does not belong to the specified intersection")


class DecongestionPlanService:
    """Service for drafting, tracking and summarising decongestion plans."""

    @classmethod
    async def create_plan(cls, data: PlanCreate, user_id: Optional[int]) -> PlanRead:
        """Store a new plan.

        Raises
        ------
        ValueError
            If the intersection or analysis is missing, or the analysis
            belongs to another intersection.
        """
        payload = data.model_dump()
        impl = data.implementation
        now = utcnow()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            _validate_references(cursor, data.intersection_id, data.analysis_id)
            cursor.execute(
                """
                INSERT INTO decongestion_plans (plan_name, intersection_id, analysis_id, current_congestion_level,
                                                target_congestion_level, proposed_actions, expected_impact, status,
                                                start_date, end_date, assigned_team, budget_allocated,
                                                budget_spent, public_feedback, created_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.plan_name,
                    data.intersection_id,
                    data.analysis_id,
                    data.current_congestion_level,
                    data.target_congestion_level,
                    to_json(payload["proposed_actions"]),
                    to_json(payload["expected_impact"]),
                    impl.status,
                    _iso(impl.start_date),
                    _iso(impl.end_date),
                    impl.assigned_team,
                    impl.budget.allocated,
                    impl.budget.spent,
                    to_json([]),
                    user_id,
                    now,
                    now,
                ),
            )
            plan_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(f"{PLAN_SELECT} WHERE p.id = ?", (plan_id,)).fetchone()
        finally:
            conn.close()
        logger.info("Decongestion plan %s created for intersection %s", plan_id, data.intersection_id)
        await AuditService.record(user_id, "create", "decongestion_plan", plan_id, {"plan_name": data.plan_name})
        return _row_to_plan(row)

    @classmethod
    async def list_plans(
        cls,
        intersection_id: Optional[int] = None,
        status: Optional[str] = None,
        current_congestion_level: Optional[str] = None,
        target_congestion_level: Optional[str] = None,
        created_by: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        """Return one page of plans, newest first.  Dates filter on creation time."""
        where_clauses: List[str] = []
        params: List[Any] = []
        for column, value in (
            ("p.intersection_id", intersection_id),
            ("p.status", status),
            ("p.current_congestion_level", current_congestion_level),
            ("p.target_congestion_level", target_congestion_level),
            ("p.created_by", created_by),
        ):
            if value is not None:
                where_clauses.append(f"{column} = ?")
                params.append(value)
        if date_from:
            where_clauses.append("p.created_at >= ?")
            params.append(date_from.isoformat())
        if date_to:
            where_clauses.append("p.created_at <= ?")
            params.append(date_to.isoformat())
        where = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""
        conn = get_connection()
        try:
            total = conn.execute(f"SELECT COUNT(*) FROM decongestion_plans p{where}", tuple(params)).fetchone()[0]
            rows = conn.execute(
                f"{PLAN_SELECT}{where} ORDER BY p.created_at DESC, p.id DESC LIMIT ? OFFSET ?",
                tuple(params + [limit, (page - 1) * limit]),
            ).fetchall()
        finally:
            conn.close()
        return {"plans": [_row_to_plan(row) for row in rows], "pagination": Pagination.build(page, limit, total)}

    @classmethod
    async def get_plan(cls, plan_id: int) -> PlanRead:
        conn = get_connection()
        try:
            row = conn.execute(f"{PLAN_SELECT} WHERE p.id = ?", (plan_id,)).fetchone()
            if not row:
                raise NotFoundError(PLAN_NOT_FOUND)
            return _row_to_plan(row)
        finally:
            conn.close()

    @classmethod
    async def update_plan(cls, plan_id: int, updates: Dict[str, Any], user_id: Optional[int] = None) -> PlanRead:
        """Merge the supplied fields into a plan.

        ``implementation`` is merged key by key, so sending only a new
        team keeps the existing status and budget.
        """
        values: Dict[str, Any] = {}
        for key, value in updates.items():
            if key in ("proposed_actions", "expected_impact"):
                values[key] = to_json(value)
            elif key == "implementation":
                values.update(_implementation_columns(value or {}))
            else:
                values[key] = value
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM decongestion_plans WHERE id = ?", (plan_id,)).fetchone():
                raise NotFoundError(PLAN_NOT_FOUND)
            if values:
                fields = [f"{key} = ?" for key in values]
                cursor.execute(
                    f"UPDATE decongestion_plans SET {', '.join(fields)}, updated_at = ? WHERE id = ?",
                    tuple(list(values.values()) + [utcnow(), plan_id]),
                )
                conn.commit()
            row = cursor.execute(f"{PLAN_SELECT} WHERE p.id = ?", (plan_id,)).fetchone()
        finally:
            conn.close()
        await AuditService.record(user_id, "update", "decongestion_plan", plan_id, {"fields": list(values)})
        return _row_to_plan(row)

    @classmethod
    async def delete_plan(cls, plan_id: int, user_id: Optional[int] = None) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM decongestion_plans WHERE id = ?", (plan_id,)).fetchone():
                raise NotFoundError(PLAN_NOT_FOUND)
            cursor.execute("DELETE FROM decongestion_plans WHERE id = ?", (plan_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Decongestion plan %s deleted", plan_id)
        await AuditService.record(user_id, "delete", "decongestion_plan", plan_id)

    @classmethod
    async def update_status(cls, plan_id: int, status: str, user_id: Optional[int] = None) -> PlanRead:
        """Move a plan to a new implementation status.

        Entering ``In Progress`` stamps the start date and entering
        ``Completed`` stamps the end date, unless already set.
        """
        if status not in PLAN_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(PLAN_STATUSES)}")
        now = utcnow()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute(
                "SELECT id, start_date, end_date FROM decongestion_plans WHERE id = ?", (plan_id,)
            ).fetchone()
            if not row:
                raise NotFoundError(PLAN_NOT_FOUND)
            start_date, end_date = row["start_date"], row["end_date"]
            if status == "In Progress" and not start_date:
                start_date = now
            elif status == "Completed" and not end_date:
                end_date = now
            cursor.execute(
                "UPDATE decongestion_plans SET status = ?, start_date = ?, end_date = ?, updated_at = ? WHERE id = ?",
                (status, start_date, end_date, now, plan_id),
            )
            conn.commit()
            row = cursor.execute(f"{PLAN_SELECT} WHERE p.id = ?", (plan_id,)).fetchone()
        finally:
            conn.close()
        logger.info("Decongestion plan %s moved to %s", plan_id, status)
        await AuditService.record(user_id, "update", "decongestion_plan", plan_id, {"status": status})
        return _row_to_plan(row)

    @classmethod
    async def add_feedback(cls, plan_id: int, feedback: FeedbackCreate) -> PlanRead:
        """Append a public comment with a 1-5 rating."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute("SELECT public_feedback FROM decongestion_plans WHERE id = ?", (plan_id,)).fetchone()
            if not row:
                raise NotFoundError(PLAN_NOT_FOUND)
            entries = from_json(row["public_feedback"], [])
            entries.append({"comment": feedback.comment, "rating": feedback.rating, "submitted_at": utcnow()})
            cursor.execute(
                "UPDATE decongestion_plans SET public_feedback = ?, updated_at = ? WHERE id = ?",
                (to_json(entries), utcnow(), plan_id),
            )
            conn.commit()
            row = cursor.execute(f"{PLAN_SELECT} WHERE p.id = ?", (plan_id,)).fetchone()
        finally:
            conn.close()
        return _row_to_plan(row)

    @classmethod
    async def get_statistics(
        cls, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Cost, budget and impact aggregates plus a zero-filled status distribution."""
        where_clauses: List[str] = []
        params: List[Any] = []
        if date_from:
            where_clauses.append("created_at >= ?")
            params.append(date_from.isoformat())
        if date_to:
            where_clauses.append("created_at <= ?")
            params.append(date_to.isoformat())
        where = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT status, proposed_actions, expected_impact, budget_allocated, budget_spent "
                f"FROM decongestion_plans{where}",
                tuple(params),
            ).fetchall()
        finally:
            conn.close()

        distribution = {status: 0 for status in PLAN_STATUSES}
        plan_costs: List[float] = []
        improvements: List[float] = []
        allocated = spent = 0.0
        for row in rows:
            if row["status"] in distribution:
                distribution[row["status"]] += 1
            actions = from_json(row["proposed_actions"], [])
            plan_costs.append(sum(action.get("estimated_cost") or 0 for action in actions))
            impact = from_json(row["expected_impact"], {})
            if impact.get("traffic_flow_improvement") is not None:
                improvements.append(impact["traffic_flow_improvement"])
            allocated += row["budget_allocated"] or 0
            spent += row["budget_spent"] or 0

        return {
            "total_plans": len(rows),
            "avg_estimated_cost": round(sum(plan_costs) / len(plan_costs)) if plan_costs else 0,
            "total_budget_allocated": round(allocated),
            "total_budget_spent": round(spent),
            "avg_traffic_flow_improvement": round(sum(improvements) / len(improvements), 1) if improvements else 0,
            "status_distribution": distribution,
        }
