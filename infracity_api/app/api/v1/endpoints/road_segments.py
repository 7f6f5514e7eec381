"""
Road segment endpoints for API v1.

A road segment is a road seen through the inspection tooling: its
condition sub-scores, its event timeline and the imagery collected by
survey vehicles.  Every route answers 404 ``Road segment not found``
for unknown ids.
"""

from fastapi import APIRouter, Depends, status

from infracity_api.app.api.v1.responses import http_error, ok
from infracity_api.app.core.security import get_current_user
from infracity_api.app.schemas.road import RoadEventCreate, RoadImageCreate
from infracity_api.app.services.road_service import RoadService

router = APIRouter()


@router.get("/{road_id}")
async def get_segment(road_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    """Segment details including LiDAR width and lane configurations."""
    try:
        return ok(await RoadService.get_segment_details(road_id))
    except ValueError as e:
        raise http_error(e) from e


@router.get("/{road_id}/condition-scores")
async def get_condition_scores(road_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await RoadService.get_condition_scores(road_id))
    except ValueError as e:
        raise http_error(e) from e


@router.get("/{road_id}/events")
async def list_events(road_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await RoadService.list_events(road_id))
    except ValueError as e:
        raise http_error(e) from e


@router.post("/{road_id}/events", status_code=status.HTTP_201_CREATED)
async def add_event(
    road_id: int,
    event: RoadEventCreate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        created = await RoadService.add_event(road_id, event, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(created, "Event recorded successfully")


@router.get("/{road_id}/visual-evidence")
async def list_visual_evidence(road_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await RoadService.list_images(road_id))
    except ValueError as e:
        raise http_error(e) from e


@router.post("/{road_id}/visual-evidence", status_code=status.HTTP_201_CREATED)
async def add_visual_evidence(
    road_id: int,
    image: RoadImageCreate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        created = await RoadService.add_image(road_id, image, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(created, "Visual evidence added successfully")
