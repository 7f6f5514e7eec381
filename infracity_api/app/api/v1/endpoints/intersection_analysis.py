"""
Intersection analysis endpoints for API v1.

An analysis is one traffic survey of an intersection: hourly volumes,
peak periods, directional speeds and the observed congestion level.
Lists are paginated and carry a ``pagination`` block.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from infracity_api.app.api.v1.responses import http_error, ok
from infracity_api.app.core.security import get_current_user
from infracity_api.app.schemas.common import CongestionLevel
from infracity_api.app.schemas.intersection import AnalysisCreate, AnalysisUpdate
from infracity_api.app.services.intersection_analysis_service import IntersectionAnalysisService

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_analysis(analysis: AnalysisCreate, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        created = await IntersectionAnalysisService.create_analysis(analysis, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(created, "Intersection analysis created successfully")


@router.get("/")
async def list_analyses(
    intersection_id: Optional[int] = Query(None),
    congestion_level: Optional[CongestionLevel] = Query(None),
    date_from: Optional[datetime] = Query(None, description="Earliest analysis date (ISO format)"),
    date_to: Optional[datetime] = Query(None, description="Latest analysis date (ISO format)"),
    created_by: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
) -> dict:
    result = await IntersectionAnalysisService.list_analyses(
        intersection_id=intersection_id,
        congestion_level=congestion_level,
        date_from=date_from,
        date_to=date_to,
        created_by=created_by,
        page=page,
        limit=limit,
    )
    return ok(result)


@router.get("/statistics")
async def analysis_statistics(
    intersection_id: Optional[int] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Average volume and speed plus the congestion distribution."""
    stats = await IntersectionAnalysisService.get_statistics(
        intersection_id=intersection_id, date_from=date_from, date_to=date_to
    )
    return ok(stats)


@router.get("/{analysis_id}")
async def get_analysis(analysis_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await IntersectionAnalysisService.get_analysis(analysis_id))
    except ValueError as e:
        raise http_error(e) from e


@router.put("/{analysis_id}")
async def update_analysis(
    analysis_id: int,
    updates: AnalysisUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        analysis = await IntersectionAnalysisService.update_analysis(
            analysis_id, updates.model_dump(exclude_unset=True), user_id=current_user["user_id"]
        )
    except ValueError as e:
        raise http_error(e) from e
    return ok(analysis, "Intersection analysis updated successfully")


@router.delete("/{analysis_id}")
async def delete_analysis(analysis_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        await IntersectionAnalysisService.delete_analysis(analysis_id, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(message="Intersection analysis deleted successfully")
