"""
User endpoints for API v1.

Every authenticated user can read and edit their own profile.  The
remaining routes let administrators list, inspect, update and delete
any account.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from infracity_api.app.api.v1.responses import http_error, ok
from infracity_api.app.core.security import get_current_user, require_roles
from infracity_api.app.schemas.user import ProfileUpdate, Role, UserAdminUpdate
from infracity_api.app.services.user_service import UserService

router = APIRouter()


@router.get("/me")
async def read_profile(current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await UserService.get_user(current_user["user_id"]))
    except ValueError as e:
        raise http_error(e) from e


@router.put("/me")
async def update_profile(
    profile: ProfileUpdate,
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Update the caller's name, department and phone."""
    try:
        user = await UserService.update_user(
            current_user["user_id"],
            profile.model_dump(),
            acting_user_id=current_user["user_id"],
        )
    except ValueError as e:
        raise http_error(e) from e
    return ok(user, "Profile updated successfully")


@router.get("/")
async def list_users(
    role: Optional[Role] = Query(None, description="Filter by role"),
    current_user: dict = Depends(require_roles("admin")),
) -> dict:
    return ok(await UserService.list_users(role=role))


@router.get("/{user_id}")
async def get_user(user_id: int, current_user: dict = Depends(require_roles("admin"))) -> dict:
    try:
        return ok(await UserService.get_user(user_id))
    except ValueError as e:
        raise http_error(e) from e


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    updates: UserAdminUpdate,
    current_user: dict = Depends(require_roles("admin")),
) -> dict:
    """Change another user's profile, role or active flag.

    Only fields present in the request body are written.
    """
    try:
        user = await UserService.update_user(
            user_id,
            updates.model_dump(exclude_unset=True),
            acting_user_id=current_user["user_id"],
        )
    except ValueError as e:
        raise http_error(e) from e
    return ok(user, "User updated successfully")


@router.delete("/{user_id}")
async def delete_user(user_id: int, current_user: dict = Depends(require_roles("admin"))) -> dict:
    try:
        await UserService.delete_user(user_id, acting_user_id=current_user["user_id"])
    except ValueError as e:
        raise http_error(e) from e
    return ok(message="User deleted successfully")
