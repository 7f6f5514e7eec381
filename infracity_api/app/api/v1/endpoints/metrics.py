"""Performance metrics for API v1."""

from fastapi import APIRouter, Depends

from infracity_api.app.api.v1.responses import ok
from infracity_api.app.core.security import get_current_user
from infracity_api.app.services.infrastructure_service import InfrastructureService

router = APIRouter()


@router.get("/performance")
async def performance_metrics(current_user: dict = Depends(get_current_user)) -> dict:
    """Issue resolution and road health figures for the last 24 hours."""
    return ok(await InfrastructureService.get_performance_metrics())
