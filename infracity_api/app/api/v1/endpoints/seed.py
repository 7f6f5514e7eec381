"""
Demo data endpoints for API v1.

``/admin`` is public so that a fresh installation can bootstrap its
first administrator; the other seeds require that administrator.
"""

from fastapi import APIRouter, Depends

from infracity_api.app.api.v1.responses import ok
from infracity_api.app.core.security import require_roles
from infracity_api.app.services.seed_service import SeedService

router = APIRouter()


@router.post("/admin")
async def seed_admin() -> dict:
    result = await SeedService.seed_admin()
    return ok(result, result["message"])


@router.post("/users")
async def seed_users(current_user: dict = Depends(require_roles("admin"))) -> dict:
    result = await SeedService.seed_users()
    return ok(result, result["message"])


@router.post("/infrastructure")
async def seed_infrastructure(current_user: dict = Depends(require_roles("admin"))) -> dict:
    """Load demo neighborhoods, roads, properties, intersections and issues.

    Does nothing when roads already exist.
    """
    result = await SeedService.seed_infrastructure(user_id=current_user["user_id"])
    return ok(result, result["message"])
