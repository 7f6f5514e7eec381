"""
Service for infrastructure reports.

A report is created in ``generating`` state and its data is produced
right away from the live tables: one summary section per requested
metric, charts for the metrics that have one and a list of textual
insights.  Reports are private to their creator unless shared
publicly.
"""

from __future__ import annotations

import logging
import secrets
import sqlite3
import time
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from infracity_api.app.core.db import from_json, get_connection, to_json, utc_datetime, utcnow
from infracity_api.app.core.errors import NotFoundError
from infracity_api.app.schemas.report import ReportCreate, ReportRead
from infracity_api.app.services.audit_service import AuditService
from infracity_api.app.services.infrastructure_service import average_resolution_hours

logger = logging.getLogger(__name__)

REPORT_NOT_FOUND = "Report not found or access denied"
DEFAULT_PERIOD_DAYS = 30

DEFAULT_TITLES = {
    "comprehensive": "Comprehensive Infrastructure Report - {date}",
    "performance": "Performance Analysis Report - {date}",
    "budget": "Budget & Cost Analysis - {date}",
    "public": "Public Progress Report - {date}",
}

REPORT_COLUMNS = (
    "id, title, type, status, parameters, data, generation_time, data_points, download_count, "
    "last_accessed, is_public, share_token, shared_with, created_by, created_at, updated_at"
)


def default_title(report_type: str, today: Optional[datetime] = None) -> str:
    date = (today or utc_datetime()).strftime("%Y-%m-%d")
    return DEFAULT_TITLES.get(report_type, "Infrastructure Report - {date}").format(date=date)


def _row_to_report(row: sqlite3.Row) -> ReportRead:
    return ReportRead(
        id=row["id"],
        title=row["title"],
        type=row["type"],
        status=row["status"],
        parameters=from_json(row["parameters"], {}),
        data=from_json(row["data"], {}),
        metadata={
            "generation_time": row["generation_time"],
            "data_points": row["data_points"],
            "download_count": row["download_count"],
            "last_accessed": row["last_accessed"],
        },
        sharing={
            "is_public": bool(row["is_public"]),
            "share_token": row["share_token"],
            "shared_with": from_json(row["shared_with"], []),
        },
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _rate(part: float, total: float) -> float:
    return round(part / total * 100, 1) if total else 0


def count_data_points(data: Dict[str, Any]) -> int:
    """Number of summary values plus the rows of every chart."""
    count = sum(len(section) for section in data.get("summary", {}).values() if isinstance(section, dict))
    for chart in data.get("charts", {}).values():
        rows = chart.get("data") if isinstance(chart, dict) else None
        if isinstance(rows, list):
            count += len(rows)
    return count


def generate_insights(summary: Dict[str, Any]) -> List[str]:
    insights = []
    issues = summary.get("issues")
    if issues:
        if issues["resolution_rate"] > 80:
            insights.append("Excellent issue resolution rate indicates efficient response teams")
        if issues["average_response_time"] < 3:
            insights.append("Response times are within target parameters")
    performance = summary.get("performance")
    if performance and performance["completion_rate"] > 85:
        insights.append("Task completion rate exceeds performance targets")
    budget = summary.get("budget")
    if budget and budget["utilization_rate"] < 80:
        insights.append("Budget utilization is below target - consider reallocating resources")
    return insights


class ReportBuilder:
    """Computes report sections from the database for one reporting period."""

    def __init__(self, conn: sqlite3.Connection, start: str, end: str):
        self.conn = conn
        self.start = start
        self.end = end

    def _in_period(self, table: str, columns: str, column: str = "created_at") -> List[sqlite3.Row]:
        return self.conn.execute(
            f"SELECT {columns} FROM {table} WHERE {column} >= ? AND {column} <= ?",
            (self.start, self.end),
        ).fetchall()

    def issues(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        rows = self._in_period("issues", "type, status, created_at, resolved_at")
        resolved = [row for row in rows if row["status"] == "Resolved"]
        summary = {
            "total_issues": len(rows),
            "resolved_issues": len(resolved),
            "resolution_rate": _rate(len(resolved), len(rows)),
            "average_response_time": average_resolution_hours(resolved),
            "issues_by_type": dict(Counter(row["type"] for row in rows)),
        }
        daily: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            day = row["created_at"][:10]
            daily.setdefault(day, {"date": day, "issues": 0, "resolved": 0})["issues"] += 1
            if row["resolved_at"]:
                resolved_day = row["resolved_at"][:10]
                daily.setdefault(resolved_day, {"date": resolved_day, "issues": 0, "resolved": 0})["resolved"] += 1
        chart = {"type": "line", "data": [daily[day] for day in sorted(daily)]}
        return summary, chart

    def performance(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        rows = self._in_period("tasks", "status, assigned_to, created_at, completed_at")
        completed = [row for row in rows if row["status"] == "completed"]
        durations = [
            (datetime.fromisoformat(row["completed_at"]) - datetime.fromisoformat(row["created_at"])).total_seconds()
            / 3600
            for row in completed
            if row["completed_at"]
        ]
        teams: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            team = teams.setdefault(row["assigned_to"], {"team": row["assigned_to"], "completed": 0, "pending": 0})
            team["completed" if row["status"] == "completed" else "pending"] += 1
        for team in teams.values():
            team["efficiency"] = round(_rate(team["completed"], team["completed"] + team["pending"]))
        summary = {
            "total_tasks": len(rows),
            "completed_tasks": len(completed),
            "completion_rate": _rate(len(completed), len(rows)),
            "average_completion_time": round(sum(durations) / len(durations), 2) if durations else 0,
            "active_teams": len(teams),
        }
        chart = {"type": "bar", "data": sorted(teams.values(), key=lambda t: t["team"])}
        return summary, chart

    def budget(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        rows = self._in_period("decongestion_plans", "proposed_actions, budget_allocated, budget_spent")
        allocated = sum(row["budget_allocated"] or 0 for row in rows)
        spent = sum(row["budget_spent"] or 0 for row in rows)
        by_category: Counter = Counter()
        for row in rows:
            for action in from_json(row["proposed_actions"], []):
                by_category[action.get("action_type", "Other")] += action.get("estimated_cost") or 0
        planned = sum(by_category.values())
        issue_count = self.conn.execute("SELECT COUNT(*) FROM issues").fetchone()[0]
        summary = {
            "total_budget": round(allocated, 2),
            "spent_amount": round(spent, 2),
            "utilization_rate": _rate(spent, allocated),
            "planned_cost": round(planned, 2),
            "cost_per_issue": round(spent / issue_count, 2) if issue_count else 0,
            "remaining": round(allocated - spent, 2),
        }
        chart = {
            "type": "pie",
            "data": [
                {"category": category, "amount": round(amount, 2), "percentage": round(_rate(amount, planned))}
                for category, amount in sorted(by_category.items())
            ],
        }
        return summary, chart

    def traffic(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        intersections = self.conn.execute("SELECT volume, avg_speed, congestion_level FROM intersections").fetchall()
        analyses = self._in_period("intersection_analyses", "traffic_volume, peak_hours", column="analysis_date")
        levels = Counter(row["congestion_level"] for row in intersections)
        peak_volumes = [
            peak.get("peak_volume", 0) for row in analyses for peak in from_json(row["peak_hours"], [])
        ]
        hourly: Counter = Counter()
        for row in analyses:
            for entry in from_json(row["traffic_volume"], {}).get("hourly_data", []):
                hourly[entry["hour"]] += entry["volume"]
        summary = {
            "total_intersections": len(intersections),
            "congestion_level": levels.most_common(1)[0][0] if levels else "None",
            "average_speed": (
                round(sum(row["avg_speed"] for row in intersections) / len(intersections), 1) if intersections else 0
            ),
            "peak_hour_volume": max(peak_volumes, default=max((row["volume"] for row in intersections), default=0)),
            "analyses": len(analyses),
        }
        chart = {
            "type": "area",
            "data": [{"hour": f"{hour:02d}:00", "volume": hourly[hour]} for hour in sorted(hourly)],
        }
        return summary, chart

    def maintenance(self) -> Dict[str, Any]:
        rows = self._in_period("tasks", "status, due_date")
        now = utc_datetime().isoformat()
        events = self._in_period("road_segment_events", "id", column="date")
        return {
            "scheduled_tasks": sum(1 for row in rows if row["status"] != "completed"),
            "completed_maintenance": sum(1 for row in rows if row["status"] == "completed"),
            "upcoming_maintenance": sum(1 for row in rows if row["status"] != "completed" and row["due_date"] >= now),
            "road_events": len(events),
        }

    def citizen(self) -> Dict[str, Any]:
        issues = self._in_period("issues", "id")
        ratings = [
            entry["rating"]
            for row in self.conn.execute("SELECT public_feedback FROM decongestion_plans").fetchall()
            for entry in from_json(row["public_feedback"], [])
        ]
        return {
            "total_reports": len(issues),
            "feedback_count": len(ratings),
            "average_rating": round(sum(ratings) / len(ratings), 1) if ratings else 0,
        }

    def build(self, metrics: List[str]) -> Dict[str, Any]:
        """Produce the ``data`` document for the given metrics, in order."""
        data: Dict[str, Any] = {"summary": {}, "charts": {}, "tables": {}, "insights": []}
        charted = {
            "issues": ("issues_trend", self.issues),
            "performance": ("performance_chart", self.performance),
            "budget": ("budget_chart", self.budget),
            "traffic": ("traffic_chart", self.traffic),
        }
        for metric in metrics:
            logger.debug("Generating report section %s", metric)
            if metric in charted:
                chart_name, section = charted[metric]
                data["summary"][metric], data["charts"][chart_name] = section()
            elif metric == "maintenance":
                data["summary"][metric] = self.maintenance()
            elif metric == "citizen":
                data["summary"][metric] = self.citizen()
        data["insights"] = generate_insights(data["summary"])
        return data


class ReportService:
    """Service for creating, generating, sharing and reading reports."""

    @classmethod
    async def create_report(cls, data: ReportCreate, user_id: int) -> ReportRead:
        """Create a report and generate its data immediately.

        The period defaults to the last thirty days.  Generation errors
        are logged and leave the report in ``failed`` state.
        """
        parameters = data.parameters.model_dump(mode="json")
        period = parameters["period"]
        now = utc_datetime()
        if not period.get("end_date"):
            period["end_date"] = now.isoformat()
        if not period.get("start_date"):
            period["start_date"] = (now - timedelta(days=DEFAULT_PERIOD_DAYS)).isoformat()
            period["preset"] = period.get("preset") or "month"
        title = data.title or default_title(data.type, now)

        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO reports (title, type, status, parameters, data, data_points, download_count,
                                     is_public, shared_with, created_by, created_at, updated_at)
                VALUES (?, ?, 'generating', ?, ?, 0, 0, 0, ?, ?, ?, ?)
                """,
                (title, data.type, to_json(parameters), to_json({}), to_json([]), user_id, utcnow(), utcnow()),
            )
            report_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Report %s created by user %s", report_id, user_id)
        await AuditService.record(user_id, "create", "report", report_id, {"type": data.type})
        return await cls.generate_report_data(report_id, parameters)

    @classmethod
    async def generate_report_data(cls, report_id: int, parameters: Dict[str, Any]) -> ReportRead:
        started = time.perf_counter()
        period = parameters.get("period") or {}
        conn = get_connection()
        try:
            try:
                builder = ReportBuilder(conn, _normalise(period["start_date"]), _normalise(period["end_date"]))
                report_data = builder.build(parameters.get("metrics") or [])
            except Exception:
                logger.exception("Report %s generation failed", report_id)
                conn.execute(
                    "UPDATE reports SET status = 'failed', updated_at = ? WHERE id = ?", (utcnow(), report_id)
                )
            else:
                generation_time = int((time.perf_counter() - started) * 1000)
                conn.execute(
                    """
                    UPDATE reports SET data = ?, status = 'completed', generation_time = ?, data_points = ?,
                                       updated_at = ?
                    WHERE id = ?
                    """,
                    (to_json(report_data), generation_time, count_data_points(report_data), utcnow(), report_id),
                )
                logger.info("Report %s generated in %d ms", report_id, generation_time)
            conn.commit()
            row = conn.execute(f"SELECT {REPORT_COLUMNS} FROM reports WHERE id = ?", (report_id,)).fetchone()
        finally:
            conn.close()
        return _row_to_report(row)

    @classmethod
    async def list_reports(
        cls,
        user_id: int,
        report_type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> Dict[str, Any]:
        query = f"SELECT {REPORT_COLUMNS} FROM reports WHERE created_by = ?"
        params: List[Any] = [user_id]
        if report_type:
            query += " AND type = ?"
            params.append(report_type)
        if status:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)
        conn = get_connection()
        try:
            reports = [_row_to_report(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()
        return {"reports": reports, "total": len(reports)}

    @classmethod
    async def get_dashboard_summary(cls, user_id: int) -> Dict[str, Any]:
        conn = get_connection()
        try:
            totals = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) AS completed,
                       SUM(CASE WHEN status = 'published' THEN 1 ELSE 0 END) AS published,
                       SUM(download_count) AS downloads
                FROM reports WHERE created_by = ?
                """,
                (user_id,),
            ).fetchone()
            recent = conn.execute(
                "SELECT id, title, type, status, created_at, download_count FROM reports WHERE created_by = ? "
                "ORDER BY created_at DESC, id DESC LIMIT 5",
                (user_id,),
            ).fetchall()
            breakdown = conn.execute(
                "SELECT type, COUNT(*) AS count FROM reports WHERE created_by = ? GROUP BY type", (user_id,)
            ).fetchall()
        finally:
            conn.close()
        return {
            "total_reports": totals["total"],
            "completed_reports": totals["completed"] or 0,
            "published_reports": totals["published"] or 0,
            "total_downloads": totals["downloads"] or 0,
            "recent_reports": [dict(row) for row in recent],
            "type_breakdown": {row["type"]: row["count"] for row in breakdown},
        }

    @classmethod
    async def get_report(cls, report_id: int, user_id: int) -> ReportRead:
        """Return a report owned by the user or shared publicly, touching ``last_accessed``."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute(
                "SELECT id FROM reports WHERE id = ? AND (created_by = ? OR is_public = 1)", (report_id, user_id)
            ).fetchone()
            if not row:
                raise NotFoundError(REPORT_NOT_FOUND)
            cursor.execute("UPDATE reports SET last_accessed = ? WHERE id = ?", (utcnow(), report_id))
            conn.commit()
            row = cursor.execute(f"SELECT {REPORT_COLUMNS} FROM reports WHERE id = ?", (report_id,)).fetchone()
        finally:
            conn.close()
        return _row_to_report(row)

    @classmethod
    async def update_status(cls, report_id: int, status: str, user_id: int) -> ReportRead:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE reports SET status = ?, updated_at = ? WHERE id = ? AND created_by = ?",
                (status, utcnow(), report_id, user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(REPORT_NOT_FOUND)
            conn.commit()
            row = cursor.execute(f"SELECT {REPORT_COLUMNS} FROM reports WHERE id = ?", (report_id,)).fetchone()
        finally:
            conn.close()
        await AuditService.record(user_id, "update", "report", report_id, {"status": status})
        return _row_to_report(row)

    @classmethod
    async def delete_report(cls, report_id: int, user_id: int) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM reports WHERE id = ? AND created_by = ?", (report_id, user_id))
            if cursor.rowcount == 0:
                raise NotFoundError(REPORT_NOT_FOUND)
            conn.commit()
        finally:
            conn.close()
        logger.info("Report %s deleted", report_id)
        await AuditService.record(user_id, "delete", "report", report_id)

    @classmethod
    async def download_report(cls, report_id: int, user_id: int) -> Dict[str, Any]:
        """Count a download and return the report's content."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE reports SET download_count = download_count + 1, last_accessed = ? "
                "WHERE id = ? AND (created_by = ? OR is_public = 1)",
                (utcnow(), report_id, user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(REPORT_NOT_FOUND)
            conn.commit()
            row = cursor.execute(f"SELECT {REPORT_COLUMNS} FROM reports WHERE id = ?", (report_id,)).fetchone()
        finally:
            conn.close()
        report = _row_to_report(row)
        return {
            "id": report.id,
            "title": report.title,
            "type": report.type,
            "format": report.parameters.format,
            "generated_at": report.updated_at,
            "data": report.data,
            "download_count": report.metadata.download_count,
        }

    @classmethod
    async def share_report(
        cls, report_id: int, user_id: int, is_public: bool = True, shared_with: Optional[List[int]] = None
    ) -> ReportRead:
        """Change a report's visibility; a share token is created on first share."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute(
                "SELECT share_token, shared_with FROM reports WHERE id = ? AND created_by = ?", (report_id, user_id)
            ).fetchone()
            if not row:
                raise NotFoundError(REPORT_NOT_FOUND)
            token = row["share_token"] or secrets.token_urlsafe(24)
            recipients = shared_with if shared_with is not None else from_json(row["shared_with"], [])
            cursor.execute(
                "UPDATE reports SET is_public = ?, share_token = ?, shared_with = ?, updated_at = ? WHERE id = ?",
                (1 if is_public else 0, token, to_json(recipients), utcnow(), report_id),
            )
            conn.commit()
            row = cursor.execute(f"SELECT {REPORT_COLUMNS} FROM reports WHERE id = ?", (report_id,)).fetchone()
        finally:
            conn.close()
        logger.info("Report %s sharing updated (public=%s)", report_id, is_public)
        await AuditService.record(user_id, "update", "report", report_id, {"is_public": is_public})
        return _row_to_report(row)


def _normalise(value: str) -> str:
    """Strip a timezone suffix so ISO strings compare with stored naive timestamps."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - (parsed.utcoffset() or timedelta(0))
    return parsed.isoformat()
