"""
Authentication endpoints for API v1.

Registration and login are public.  Login issues a short-lived access
token together with a refresh token; the refresh token is stored on the
user so that ``/refresh`` can rotate it and ``/logout`` can revoke it.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from infracity_api.app.api.v1.responses import http_error, ok
from infracity_api.app.core.errors import NotFoundError
from infracity_api.app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_current_user,
)
from infracity_api.app.schemas.user import LoginRequest, RefreshRequest, RegisterRequest
from infracity_api.app.services.user_service import UserService

router = APIRouter()


def _token_subject(user) -> dict:
    return {"id": user.id, "email": user.email, "role": user.role}


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest) -> dict:
    """Create an account with the ``viewer`` role and return an access token."""
    try:
        user = await UserService.create_user(payload.email, payload.password, name=payload.name)
    except ValueError as e:
        raise http_error(e) from e
    return ok(
        {"user": user, "access_token": create_access_token(_token_subject(user))},
        "User registered successfully",
    )


@router.post("/login")
async def login(payload: LoginRequest) -> dict:
    user = await UserService.authenticate(payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    subject = _token_subject(user)
    refresh_token = create_refresh_token(subject)
    await UserService.store_refresh_token(user.id, refresh_token)
    return ok(
        {"access_token": create_access_token(subject), "refresh_token": refresh_token, "user": user},
        "Login successful",
    )


@router.post("/refresh")
async def refresh(payload: RefreshRequest) -> dict:
    """Exchange a valid refresh token for a new token pair.

    The presented token must match the one stored for the user; the
    stored token is replaced, so each refresh token works only once.
    """
    claims = decode_refresh_token(payload.refresh_token)
    if not claims:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    user = await UserService.get_refresh_token_owner(int(claims["sub"]), payload.refresh_token)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    subject = _token_subject(user)
    refresh_token = create_refresh_token(subject)
    await UserService.store_refresh_token(user.id, refresh_token)
    return ok({"access_token": create_access_token(subject), "refresh_token": refresh_token})


@router.post("/logout")
async def logout(current_user: dict = Depends(get_current_user)) -> dict:
    await UserService.store_refresh_token(current_user["user_id"], None)
    return ok(message="User logged out successfully")


@router.get("/me")
async def me(current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await UserService.get_user(current_user["user_id"]))
    except NotFoundError as e:
        raise http_error(e) from e
