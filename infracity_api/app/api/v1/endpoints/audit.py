"""
Audit trail endpoint for API v1 (administrators only).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from infracity_api.app.api.v1.responses import ok
from infracity_api.app.core.security import require_roles
from infracity_api.app.services.audit_service import AuditService

router = APIRouter()


@router.get("/")
async def list_audit_logs(
    user_id: Optional[int] = Query(None, description="Acting user"),
    object_type: Optional[str] = Query(None, description="road, issue, task, report, planning_session, ..."),
    action: Optional[str] = Query(None, description="create, update, delete or seed"),
    start_date: Optional[str] = Query(None, description="Earliest timestamp, ISO-8601"),
    end_date: Optional[str] = Query(None, description="Latest timestamp, ISO-8601"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(require_roles("admin")),
) -> dict:
    """Audit entries newest first."""
    filters = dict(user_id=user_id, object_type=object_type, action=action, start_date=start_date, end_date=end_date)
    return ok(await AuditService.list_logs(limit=limit, offset=offset, **filters))
