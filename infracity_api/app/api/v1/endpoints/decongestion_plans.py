"""
Decongestion plan endpoints for API v1.

Plans propose actions for one intersection based on one of its
analyses.  Their implementation status moves through ``PATCH
/{id}/status``; the public can leave rated feedback.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from infracity_api.app.api.v1.responses import http_error, ok
from infracity_api.app.core.security import get_current_user
from infracity_api.app.schemas.common import CongestionLevel
from infracity_api.app.schemas.decongestion_plan import (
    FeedbackCreate,
    PlanCreate,
    PlanStatus,
    PlanStatusUpdate,
    PlanUpdate,
)
from infracity_api.app.services.decongestion_plan_service import DecongestionPlanService

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_plan(plan: PlanCreate, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        created = await DecongestionPlanService.create_plan(plan, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(created, "Decongestion plan created successfully")


@router.get("/")
async def list_plans(
    intersection_id: Optional[int] = Query(None),
    status: Optional[PlanStatus] = Query(None),
    current_congestion_level: Optional[CongestionLevel] = Query(None),
    target_congestion_level: Optional[CongestionLevel] = Query(None),
    created_by: Optional[int] = Query(None),
    date_from: Optional[datetime] = Query(None, description="Created on or after (ISO format)"),
    date_to: Optional[datetime] = Query(None, description="Created on or before (ISO format)"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
) -> dict:
    result = await DecongestionPlanService.list_plans(
        intersection_id=intersection_id,
        status=status,
        current_congestion_level=current_congestion_level,
        target_congestion_level=target_congestion_level,
        created_by=created_by,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return ok(result)


@router.get("/statistics")
async def plan_statistics(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    current_user: dict = Depends(get_current_user),
) -> dict:
    return ok(await DecongestionPlanService.get_statistics(date_from=date_from, date_to=date_to))


@router.get("/{plan_id}")
async def get_plan(plan_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await DecongestionPlanService.get_plan(plan_id))
    except ValueError as e:
        raise http_error(e) from e


@router.put("/{plan_id}")
async def update_plan(
    plan_id: int,
    updates: PlanUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        plan = await DecongestionPlanService.update_plan(
            plan_id, updates.model_dump(exclude_unset=True), user_id=current_user["user_id"]
        )
    except ValueError as e:
        raise http_error(e) from e
    return ok(plan, "Decongestion plan updated successfully")


@router.delete("/{plan_id}")
async def delete_plan(plan_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        await DecongestionPlanService.delete_plan(plan_id, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(message="Decongestion plan deleted successfully")


@router.patch("/{plan_id}/status")
async def update_plan_status(
    plan_id: int,
    payload: PlanStatusUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Move a plan to a new implementation status.

    ``In Progress`` and ``Completed`` stamp the start and end dates the
    first time they are reached.
    """
    try:
        plan = await DecongestionPlanService.update_status(plan_id, payload.status, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(plan, "Plan status updated successfully")


@router.post("/{plan_id}/feedback", status_code=status.HTTP_201_CREATED)
async def add_feedback(
    plan_id: int,
    feedback: FeedbackCreate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        plan = await DecongestionPlanService.add_feedback(plan_id, feedback)
    except ValueError as e:
        raise http_error(e) from e
    return ok(plan, "Feedback submitted successfully")
