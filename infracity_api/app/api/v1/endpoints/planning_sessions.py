"""
Collaborative planning session endpoints for API v1.

A session is visible to its creator and its collaborators only;
anybody else receives 404 as if the session did not exist.  The
creator acts as session ``admin``; collaborators are ``editor`` or
``viewer``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from infracity_api.app.api.v1.responses import http_error, ok
from infracity_api.app.core.security import get_current_user
from infracity_api.app.schemas.planning_session import (
    AnnotationCreate,
    CollaboratorAdd,
    SessionCreate,
    SessionStatus,
    SessionUpdate,
)
from infracity_api.app.services.planning_session_service import PlanningSessionService

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_session(session: SessionCreate, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        created = await PlanningSessionService.create_session(session, current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(created, "Planning session created successfully")


@router.get("/")
async def list_sessions(
    status: Optional[SessionStatus] = Query(None),
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Sessions the caller owns or collaborates on, most recently active first."""
    return ok(await PlanningSessionService.list_sessions(current_user["user_id"], status=status))


@router.get("/statistics")
async def session_statistics(current_user: dict = Depends(get_current_user)) -> dict:
    return ok(await PlanningSessionService.get_statistics(current_user["user_id"]))


@router.get("/{session_id}")
async def get_session(session_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await PlanningSessionService.get_session(session_id, current_user["user_id"]))
    except ValueError as e:
        raise http_error(e) from e


@router.put("/{session_id}")
async def update_session(
    session_id: int,
    updates: SessionUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        session = await PlanningSessionService.update_session(
            session_id, updates.model_dump(exclude_unset=True), current_user["user_id"]
        )
    except (ValueError, PermissionError) as e:
        raise http_error(e) from e
    return ok(session, "Planning session updated successfully")


@router.delete("/{session_id}")
async def delete_session(session_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        await PlanningSessionService.delete_session(session_id, current_user["user_id"])
    except (ValueError, PermissionError) as e:
        raise http_error(e) from e
    return ok(message="Planning session deleted successfully")


@router.post("/{session_id}/collaborators")
async def add_collaborator(
    session_id: int,
    collaborator: CollaboratorAdd,
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Add a collaborator, or change the role of an existing one."""
    try:
        session = await PlanningSessionService.add_collaborator(session_id, collaborator, current_user["user_id"])
    except (ValueError, PermissionError) as e:
        raise http_error(e) from e
    return ok(session, "Collaborator added successfully")


@router.post("/{session_id}/annotations", status_code=status.HTTP_201_CREATED)
async def create_annotation(
    session_id: int,
    annotation: AnnotationCreate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        created = await PlanningSessionService.create_annotation(session_id, annotation, current_user["user_id"])
    except (ValueError, PermissionError) as e:
        raise http_error(e) from e
    return ok(created, "Annotation created successfully")


@router.get("/{session_id}/annotations")
async def list_annotations(session_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await PlanningSessionService.list_annotations(session_id, current_user["user_id"]))
    except ValueError as e:
        raise http_error(e) from e


@router.delete("/{session_id}/annotations/{annotation_id}")
async def delete_annotation(
    session_id: int,
    annotation_id: int,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        await PlanningSessionService.delete_annotation(session_id, annotation_id, current_user["user_id"])
    except (ValueError, PermissionError) as e:
        raise http_error(e) from e
    return ok(message="Annotation deleted successfully")
