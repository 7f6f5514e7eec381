"""
Service computing operational metrics.

Three views are provided: key performance indicators over issues and
roads, host resource usage of the API server itself and a compact
overview of the whole infrastructure inventory.
"""

from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from infracity_api.app.core.db import get_connection, utc_datetime

logger = logging.getLogger(__name__)

GB = 1024 ** 3
ATTENTION_THRESHOLD = 70


def _hours_between(start: str, end: str) -> float:
    delta = datetime.fromisoformat(end) - datetime.fromisoformat(start)
    return delta.total_seconds() / 3600


def average_resolution_hours(rows: List[Any]) -> float:
    """Mean time from report to resolution in hours, 2 decimals; 0 without data."""
    durations = [
        _hours_between(row["created_at"], row["resolved_at"])
        for row in rows
        if row["created_at"] and row["resolved_at"]
    ]
    if not durations:
        return 0
    return round(sum(durations) / len(durations), 2)


def _percentage(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def _cpu_metrics() -> Dict[str, Any]:
    cores = os.cpu_count() or 0
    usage = 0
    if hasattr(os, "getloadavg") and cores:
        try:
            usage = round(min(100.0, os.getloadavg()[0] / cores * 100))
        except OSError:
            usage = 0
    return {"usage": usage, "cores": cores}


def _memory_metrics() -> Dict[str, Any]:
    total = free = 0
    try:
        page_size = os.sysconf("SC_PAGE_SIZE")
        total = os.sysconf("SC_PHYS_PAGES") * page_size
        free = os.sysconf("SC_AVPHYS_PAGES") * page_size
    except (AttributeError, ValueError, OSError):
        logger.debug("Memory statistics not available on this platform")
    used = total - free
    return {
        "total": round(total / GB, 2),
        "used": round(used / GB, 2),
        "free": round(free / GB, 2),
        "usage": _percentage(used, total),
    }


def _disk_metrics(path: str = ".") -> Dict[str, Any]:
    try:
        usage = shutil.disk_usage(path)
    except OSError:
        logger.debug("Disk statistics not available for %s", path)
        return {"total": 0, "used": 0, "free": 0, "usage": 0}
    return {
        "total": round(usage.total / GB, 2),
        "used": round(usage.used / GB, 2),
        "free": round(usage.free / GB, 2),
        "usage": _percentage(usage.used, usage.total),
    }


def _network_metrics(stats_file: str = "/proc/net/dev") -> Dict[str, int]:
    """Sum interface counters from ``/proc/net/dev``, skipping loopback."""
    counters = {"bytes_received": 0, "bytes_sent": 0, "packets_received": 0, "packets_sent": 0}
    try:
        with open(stats_file, "r", encoding="utf-8") as f:
            lines = f.readlines()[2:]
    except OSError:
        return counters
    for line in lines:
        interface, _, data = line.partition(":")
        if interface.strip() == "lo":
            continue
        fields = data.split()
        if len(fields) < 10:
            continue
        counters["bytes_received"] += int(fields[0])
        counters["packets_received"] += int(fields[1])
        counters["bytes_sent"] += int(fields[8])
        counters["packets_sent"] += int(fields[9])
    return counters


class InfrastructureService:
    """Aggregated metrics over issues, roads and the host."""

    @classmethod
    async def get_performance_metrics(cls) -> Dict[str, Any]:
        """Key performance indicators.

        Returns
        -------
        dict
            ``issue_metrics`` (totals, open high-severity issues,
            resolution rate and activity in the last 24 hours),
            ``performance_metrics`` (average resolution time in hours and
            road health), ``timestamp`` and ``period``.
        """
        now = utc_datetime()
        since = (now - timedelta(hours=24)).isoformat()
        conn = get_connection()
        try:
            total = conn.execute("SELECT COUNT(*) FROM issues").fetchone()[0]
            resolved = conn.execute("SELECT COUNT(*) FROM issues WHERE status = 'Resolved'").fetchone()[0]
            high_priority = conn.execute(
                "SELECT COUNT(*) FROM issues WHERE severity IN ('High', 'Emergency') AND status != 'Resolved'"
            ).fetchone()[0]
            reported_24h = conn.execute(
                "SELECT COUNT(*) FROM issues WHERE created_at >= ?", (since,)
            ).fetchone()[0]
            resolved_24h = conn.execute(
                "SELECT COUNT(*) FROM issues WHERE status = 'Resolved' AND resolved_at >= ?", (since,)
            ).fetchone()[0]
            resolution_rows = conn.execute(
                "SELECT created_at, resolved_at FROM issues WHERE status = 'Resolved' AND resolved_at IS NOT NULL"
            ).fetchall()
            road_row = conn.execute(
                "SELECT COUNT(*) AS total, AVG(condition) AS average, "
                "SUM(CASE WHEN condition < ? THEN 1 ELSE 0 END) AS attention FROM roads",
                (ATTENTION_THRESHOLD,),
            ).fetchone()
        finally:
            conn.close()

        metrics = {
            "issue_metrics": {
                "total": total,
                "resolved": resolved,
                "high_priority": high_priority,
                "resolution_rate": _percentage(resolved, total),
                "last_24_hours": {"reported": reported_24h, "resolved": resolved_24h},
            },
            "performance_metrics": {
                "average_resolution_time": average_resolution_hours(resolution_rows),
                "road_health_index": round(road_row["average"], 2) if road_row["total"] else 0,
                "total_roads": road_row["total"],
                "roads_needing_attention": road_row["attention"] or 0,
            },
            "timestamp": now.isoformat(),
            "period": "24h",
        }
        logger.info("Performance metrics calculated for %d issues", total)
        return metrics

    @classmethod
    async def get_system_metrics(cls, disk_path: Optional[str] = None) -> Dict[str, Any]:
        """Resource usage of the host running the API; missing values are 0."""
        return {
            "cpu": _cpu_metrics(),
            "memory": _memory_metrics(),
            "disk": _disk_metrics(disk_path or "."),
            "network": _network_metrics(),
            "timestamp": utc_datetime().isoformat(),
        }

    @classmethod
    async def get_overview(cls) -> Dict[str, Any]:
        """Inventory counts across the infrastructure tables."""
        conn = get_connection()
        try:
            by_status = {
                row["status"]: row["count"]
                for row in conn.execute("SELECT status, COUNT(*) AS count FROM issues GROUP BY status")
            }
            by_type = {
                row["type"]: row["count"]
                for row in conn.execute("SELECT type, COUNT(*) AS count FROM issues GROUP BY type")
            }
            roads = conn.execute("SELECT COUNT(*) FROM roads").fetchone()[0]
            intersections = conn.execute("SELECT COUNT(*) FROM intersections").fetchone()[0]
            tasks_by_status = {
                row["status"]: row["count"]
                for row in conn.execute("SELECT status, COUNT(*) AS count FROM tasks GROUP BY status")
            }
            resolution_rows = conn.execute(
                "SELECT created_at, resolved_at FROM issues WHERE status = 'Resolved' AND resolved_at IS NOT NULL"
            ).fetchall()
        finally:
            conn.close()
        total_issues = sum(by_status.values())
        return {
            "issues": {"total": total_issues, "by_status": by_status, "by_type": by_type},
            "roads": roads,
            "intersections": intersections,
            "tasks": {"total": sum(tasks_by_status.values()), "by_status": tasks_by_status},
            "resolution_rate": _percentage(by_status.get("Resolved", 0), total_issues),
            "average_response_time": average_resolution_hours(resolution_rows),
            "timestamp": utc_datetime().isoformat(),
        }
