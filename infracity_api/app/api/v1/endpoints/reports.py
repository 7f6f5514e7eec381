"""
Report endpoints for API v1.

Reports are generated synchronously when they are created and are
private to their owner unless shared publicly.  Requests for a report
the caller cannot see answer 404.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from infracity_api.app.api.v1.responses import http_error, ok
from infracity_api.app.core.security import get_current_user
from infracity_api.app.schemas.report import (
    ReportCreate,
    ReportShareRequest,
    ReportStatus,
    ReportStatusUpdate,
    ReportType,
)
from infracity_api.app.services.report_service import ReportService

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_report(report: ReportCreate, current_user: dict = Depends(get_current_user)) -> dict:
    """Create a report and generate its data before responding.

    The returned report has status ``completed``, or ``failed`` when
    generation raised.
    """
    try:
        created = await ReportService.create_report(report, current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(created, "Report generated successfully")


@router.get("/")
async def list_reports(
    type: Optional[ReportType] = Query(None),
    status: Optional[ReportStatus] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
) -> dict:
    result = await ReportService.list_reports(
        current_user["user_id"], report_type=type, status=status, limit=limit
    )
    return ok(result)


@router.get("/dashboard/summary")
async def dashboard_summary(current_user: dict = Depends(get_current_user)) -> dict:
    return ok(await ReportService.get_dashboard_summary(current_user["user_id"]))


@router.get("/{report_id}")
async def get_report(report_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await ReportService.get_report(report_id, current_user["user_id"]))
    except ValueError as e:
        raise http_error(e) from e


@router.patch("/{report_id}/status")
async def update_report_status(
    report_id: int,
    payload: ReportStatusUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        report = await ReportService.update_status(report_id, payload.status, current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(report, "Report status updated successfully")


@router.delete("/{report_id}")
async def delete_report(report_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        await ReportService.delete_report(report_id, current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(message="Report deleted successfully")


@router.get("/{report_id}/download")
async def download_report(report_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await ReportService.download_report(report_id, current_user["user_id"]))
    except ValueError as e:
        raise http_error(e) from e


@router.post("/{report_id}/share")
async def share_report(
    report_id: int,
    payload: Optional[ReportShareRequest] = None,
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Publish or unpublish a report; an empty body makes it public."""
    payload = payload or ReportShareRequest()
    try:
        report = await ReportService.share_report(
            report_id,
            current_user["user_id"],
            is_public=payload.is_public,
            shared_with=payload.shared_with,
        )
    except ValueError as e:
        raise http_error(e) from e
    return ok(report, "Report sharing updated successfully")
