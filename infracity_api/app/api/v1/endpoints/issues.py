"""
Issue endpoints for API v1.

Citizens and crews report infrastructure issues here.  ``/heatmap``
aggregates unresolved issues on a coarse grid for map overlays, and
``/{id}/convert-to-task`` turns a report into scheduled work.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from infracity_api.app.api.v1.responses import http_error, ok
from infracity_api.app.core.security import get_current_user
from infracity_api.app.schemas.common import IssueType, Severity
from infracity_api.app.schemas.issue import (
    ConvertToTaskRequest,
    IssueCreate,
    IssueStatus,
    IssueUpdate,
)
from infracity_api.app.services.issue_service import IssueService
from infracity_api.app.services.task_service import TaskService

router = APIRouter()


@router.get("/")
async def list_issues(
    status: Optional[IssueStatus] = Query(None),
    severity: Optional[Severity] = Query(None),
    type: Optional[IssueType] = Query(None),
    road_id: Optional[int] = Query(None),
    current_user: dict = Depends(get_current_user),
) -> dict:
    issues = await IssueService.list_issues(status=status, severity=severity, issue_type=type, road_id=road_id)
    return ok(issues)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_issue(issue: IssueCreate, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        created = await IssueService.create_issue(issue, reported_by=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(created, "Issue reported successfully")


@router.get("/heatmap")
async def issue_heatmap(current_user: dict = Depends(get_current_user)) -> dict:
    """Weighted density of open issues on a 0.01 degree grid."""
    return ok(await IssueService.get_heatmap())


@router.get("/{issue_id}")
async def get_issue(issue_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await IssueService.get_issue(issue_id))
    except ValueError as e:
        raise http_error(e) from e


@router.put("/{issue_id}")
async def update_issue(
    issue_id: int,
    updates: IssueUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        issue = await IssueService.update_issue(
            issue_id, updates.model_dump(exclude_unset=True), user_id=current_user["user_id"]
        )
    except ValueError as e:
        raise http_error(e) from e
    return ok(issue, "Issue updated successfully")


@router.delete("/{issue_id}")
async def delete_issue(issue_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        await IssueService.delete_issue(issue_id, user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(message="Issue deleted successfully")


@router.post("/{issue_id}/convert-to-task", status_code=status.HTTP_201_CREATED)
async def convert_issue_to_task(
    issue_id: int,
    request: ConvertToTaskRequest,
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Create a task from the issue and move the issue to ``In Progress``.

    Title, description, priority and duration default to values derived
    from the issue when they are not supplied.
    """
    try:
        task = await TaskService.convert_issue_to_task(
            issue_id, request.model_dump(exclude_none=True), created_by=current_user["user_id"]
        )
    except ValueError as e:
        raise http_error(e) from e
    return ok(task, "Issue converted to task successfully")
