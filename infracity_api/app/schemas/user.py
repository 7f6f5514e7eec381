"""
Pydantic models for users and authentication.

Password hashes and refresh tokens are never part of ``UserRead``;
they only live in the ``users`` table.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .common import reject_null

Role = Literal["admin", "city_planner", "traffic_engineer", "maintenance_crew", "viewer"]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserRead(BaseModel):
    """Schema for reading a user from the API."""

    id: int
    email: str
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    role: Role = "viewer"
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
    }


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, example="Jane Doe")
    email: str = Field(..., pattern=EMAIL_PATTERN, example="jane@infracity.com")
    password: str = Field(..., min_length=6, example="s3cret-pass")


class LoginRequest(BaseModel):
    email: str = Field(..., example="admin@infracity.com")
    password: str = Field(..., example="admin123")


class RefreshRequest(BaseModel):
    refresh_token: str


class ProfileUpdate(BaseModel):
    """Self-service profile update; first and last name are mandatory."""

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    department: Optional[str] = None
    phone: Optional[str] = None


class UserAdminUpdate(BaseModel):
    """Schema for administrators updating any user.

    All fields are optional; only provided fields will be updated.
    """

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None

    @field_validator("role", "is_active", mode="before")
    @classmethod
    def required_columns_not_null(cls, value):
        return reject_null(value)
