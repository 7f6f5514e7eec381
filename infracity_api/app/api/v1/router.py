"""
Top-level router for version 1 of the API.

This router aggregates the domain routers (auth, tasks, issues, road
segments, intersections, plans, planning sessions, analytics, reports)
under a unified prefix.  When a new domain is introduced, include its
router here.
"""

from fastapi import APIRouter

from .endpoints import (
    analytics,
    audit,
    auth,
    decongestion_plans,
    infrastructure,
    intersection_analysis,
    issues,
    metrics,
    planning_sessions,
    reports,
    road_segments,
    seed,
    tasks,
    users,
)

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
router.include_router(issues.router, prefix="/issues", tags=["issues"])
router.include_router(metrics.router, prefix="/metrics", tags=["metrics"])
router.include_router(infrastructure.router, prefix="/infrastructure", tags=["infrastructure"])
router.include_router(road_segments.router, prefix="/road-segments", tags=["road-segments"])
router.include_router(
    intersection_analysis.router,
    prefix="/intersections/analysis",
    tags=["intersection-analysis"],
)
router.include_router(decongestion_plans.router, prefix="/decongestion-plans", tags=["decongestion-plans"])
router.include_router(planning_sessions.router, prefix="/planning-sessions", tags=["planning-sessions"])
router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
router.include_router(reports.router, prefix="/reports", tags=["reports"])
router.include_router(seed.router, prefix="/seed", tags=["seed"])
router.include_router(audit.router, prefix="/audit", tags=["audit"])
