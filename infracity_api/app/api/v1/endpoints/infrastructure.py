"""
Infrastructure endpoints for API v1.

Exposes host metrics, a city-wide overview and the road and
intersection registries.  Road segment details (condition scores,
events and imagery) live in ``road_segments``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from infracity_api.app.api.v1.responses import http_error, ok
from infracity_api.app.core.security import get_current_user
from infracity_api.app.schemas.common import CongestionLevel
from infracity_api.app.schemas.intersection import IntersectionCreate, IntersectionUpdate
from infracity_api.app.schemas.road import Classification, RoadCreate, RoadUpdate
from infracity_api.app.services.infrastructure_service import InfrastructureService
from infracity_api.app.services.intersection_service import IntersectionService
from infracity_api.app.services.road_service import RoadService

router = APIRouter()


@router.get("/metrics")
async def system_metrics(current_user: dict = Depends(get_current_user)) -> dict:
    """CPU, memory, disk and network usage of the host serving the API."""
    return ok(await InfrastructureService.get_system_metrics())


@router.get("/overview")
async def overview(current_user: dict = Depends(get_current_user)) -> dict:
    return ok(await InfrastructureService.get_overview())


# ----------------------------------------------------------------------
# Roads
# ----------------------------------------------------------------------
@router.get("/roads")
async def list_roads(
    classification: Optional[Classification] = Query(None),
    current_user: dict = Depends(get_current_user),
) -> dict:
    return ok(await RoadService.list_roads(classification=classification))


@router.post("/roads", status_code=status.HTTP_201_CREATED)
async def create_road(road: RoadCreate, current_user: dict = Depends(get_current_user)) -> dict:
    created = await RoadService.create_road(road, user_id=current_user["user_id"])
    return ok(created, "Road created successfully")


@router.get("/roads/{road_id}")
async def get_road(road_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await RoadService.get_road(road_id))
    except ValueError as e:
        raise http_error(e) from e


@router.put("/roads/{road_id}")
async def update_road(
    road_id: int,
    updates: RoadUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        road = await RoadService.update_road(
            road_id, updates.model_dump(exclude_unset=True), user_id=current_user["user_id"]
        )
    except ValueError as e:
        raise http_error(e) from e
    return ok(road, "Road updated successfully")


@router.delete("/roads/{road_id}")
async def delete_road(road_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        await RoadService.delete_road(road_id, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(message="Road deleted successfully")


# ----------------------------------------------------------------------
# Intersections
# ----------------------------------------------------------------------
@router.get("/intersections")
async def list_intersections(
    congestion_level: Optional[CongestionLevel] = Query(None),
    current_user: dict = Depends(get_current_user),
) -> dict:
    return ok(await IntersectionService.list_intersections(congestion_level=congestion_level))


@router.post("/intersections", status_code=status.HTTP_201_CREATED)
async def create_intersection(
    intersection: IntersectionCreate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    created = await IntersectionService.create_intersection(intersection, user_id=current_user["user_id"])
    return ok(created, "Intersection created successfully")


@router.get("/intersections/{intersection_id}")
async def get_intersection(intersection_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await IntersectionService.get_intersection(intersection_id))
    except ValueError as e:
        raise http_error(e) from e


@router.put("/intersections/{intersection_id}")
async def update_intersection(
    intersection_id: int,
    updates: IntersectionUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        intersection = await IntersectionService.update_intersection(
            intersection_id, updates.model_dump(exclude_unset=True), user_id=current_user["user_id"]
        )
    except ValueError as e:
        raise http_error(e) from e
    return ok(intersection, "Intersection updated successfully")


@router.delete("/intersections/{intersection_id}")
async def delete_intersection(intersection_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        await IntersectionService.delete_intersection(intersection_id, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(message="Intersection deleted successfully")
