"""
Maintenance task endpoints for API v1.

Tasks are the unit of field work.  Besides CRUD, clients can move a
task through its lifecycle with ``PUT /{id}/status`` and ask for a
visiting order for a batch of tasks with ``POST /optimize-route``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from infracity_api.app.api.v1.responses import http_error, ok
from infracity_api.app.core.security import get_current_user
from infracity_api.app.schemas.common import IssueType
from infracity_api.app.schemas.task import (
    RouteRequest,
    TaskCreate,
    TaskPriority,
    TaskStatus,
    TaskStatusUpdate,
    TaskUpdate,
)
from infracity_api.app.services.task_service import TaskService

router = APIRouter()


@router.get("/")
async def list_tasks(
    status: Optional[TaskStatus] = Query(None),
    priority: Optional[TaskPriority] = Query(None),
    assigned_to: Optional[str] = Query(None, description="Case-insensitive substring of the assignee"),
    issue_type: Optional[IssueType] = Query(None),
    current_user: dict = Depends(get_current_user),
) -> dict:
    tasks = await TaskService.list_tasks(
        status=status,
        priority=priority,
        assigned_to=assigned_to,
        issue_type=issue_type,
    )
    return ok(tasks)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_task(task: TaskCreate, current_user: dict = Depends(get_current_user)) -> dict:
    created = await TaskService.create_task(task, created_by=current_user["user_id"])
    return ok(created, "Task created successfully")


@router.post("/optimize-route")
async def optimize_route(request: RouteRequest, current_user: dict = Depends(get_current_user)) -> dict:
    """Order the requested tasks by priority, then by duration.

    Unknown ids are ignored; if none of them exist the response is 404.
    """
    try:
        return ok(await TaskService.optimize_route(request.task_ids))
    except ValueError as e:
        raise http_error(e) from e


@router.get("/{task_id}")
async def get_task(task_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await TaskService.get_task(task_id))
    except ValueError as e:
        raise http_error(e) from e


@router.put("/{task_id}")
async def update_task(
    task_id: int,
    updates: TaskUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        task = await TaskService.update_task(
            task_id, updates.model_dump(exclude_unset=True), user_id=current_user["user_id"]
        )
    except ValueError as e:
        raise http_error(e) from e
    return ok(task, "Task updated successfully")


@router.put("/{task_id}/status")
async def update_task_status(
    task_id: int,
    payload: TaskStatusUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        task = await TaskService.update_status(task_id, payload.status, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(task, "Task status updated successfully")


@router.delete("/{task_id}")
async def delete_task(task_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        await TaskService.delete_task(task_id, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(message="Task deleted successfully")
