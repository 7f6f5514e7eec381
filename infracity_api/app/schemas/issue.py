"""Pydantic models for reported infrastructure issues."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .common import Coordinates, IssueType, Severity, reject_null
from .task import TaskPriority

IssueStatus = Literal["Open", "In Progress", "Resolved", "Closed"]


class IssueBase(BaseModel):
    type: IssueType = Field(..., example="Pothole")
    location: str = Field(..., min_length=1, example="Broadway & 42nd St")
    description: str = Field(..., min_length=1, example="Deep pothole near the crosswalk")
    coordinates: Optional[Coordinates] = None
    severity: Severity = "Medium"
    assigned_to: Optional[str] = None
    road_id: Optional[int] = None
    images: List[str] = Field(default_factory=list)


class IssueCreate(IssueBase):
    """Schema for reporting an issue."""
    pass


class IssueRead(IssueBase):
    id: int
    status: IssueStatus = "Open"
    reported_by: Optional[int] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
    }


class IssueUpdate(BaseModel):
    """All fields optional; only provided fields are merged."""

    type: Optional[IssueType] = None
    location: Optional[str] = None
    description: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    severity: Optional[Severity] = None
    status: Optional[IssueStatus] = None
    assigned_to: Optional[str] = None
    road_id: Optional[int] = None
    images: Optional[List[str]] = None

    @field_validator("type", "location", "description", "severity", "status", mode="before")
    @classmethod
    def required_columns_not_null(cls, value):
        return reject_null(value)


class ConvertToTaskRequest(BaseModel):
    """Overrides for the task created from an issue.

    ``assigned_to`` and ``due_date`` are required; everything else is
    derived from the issue when omitted.
    """

    assigned_to: str = Field(..., min_length=1)
    due_date: datetime
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    estimated_duration: Optional[int] = Field(None, ge=1)


class HeatmapPoint(BaseModel):
    lat: float
    lng: float
    value: float
