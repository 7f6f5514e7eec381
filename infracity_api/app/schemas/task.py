"""
Pydantic models for field tasks.

A task is a unit of work for a crew, optionally derived from a
reported issue.  ``TaskUpdate`` carries only the fields to merge.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .common import Coordinates, IssueType, reject_null

TaskStatus = Literal["pending", "in-progress", "completed"]
TaskPriority = Literal["low", "medium", "high", "emergency"]


class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, example="Fix pothole on Main Street")
    description: str = Field(..., min_length=1, example="Large pothole in the right lane")
    priority: TaskPriority = Field(..., example="high")
    assigned_to: str = Field(..., min_length=1, example="Crew A")
    due_date: datetime = Field(..., example="2025-09-01T09:00:00")
    location: str = Field(..., min_length=1, example="Main St & 1st Ave")
    issue_type: IssueType = Field(..., example="Pothole")
    coordinates: Optional[Coordinates] = None
    estimated_duration: int = Field(60, ge=1, description="Minutes")
    notes: Optional[str] = None


class TaskCreate(TaskBase):
    """Schema for creating a task."""
    pass


class TaskRead(TaskBase):
    """Schema for reading a task from the API."""

    id: int
    status: TaskStatus = "pending"
    created_by: Optional[int] = None
    issue_id: Optional[int] = None
    actual_duration: Optional[int] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
    }


class TaskUpdate(BaseModel):
    """Schema for updating a task.

    All fields are optional; only provided fields will be updated.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[str] = None
    due_date: Optional[datetime] = None
    location: Optional[str] = None
    issue_type: Optional[IssueType] = None
    coordinates: Optional[Coordinates] = None
    estimated_duration: Optional[int] = Field(None, ge=1)
    actual_duration: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None

    @field_validator(
        "title", "description", "priority", "assigned_to", "due_date", "location", "issue_type",
        "estimated_duration", mode="before",
    )
    @classmethod
    def required_columns_not_null(cls, value):
        return reject_null(value)


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class RouteRequest(BaseModel):
    task_ids: List[int] = Field(..., min_length=1)


class RouteStop(BaseModel):
    task_id: int
    order: int
    estimated_time: int
    title: str
    location: str
    priority: TaskPriority


class OptimizedRoute(BaseModel):
    route: List[RouteStop]
    total_distance: float
    total_time: int
    optimized_at: datetime
