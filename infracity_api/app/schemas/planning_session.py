"""Pydantic models for collaborative planning sessions and their map annotations."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .common import reject_null

CollaboratorRole = Literal["viewer", "editor", "admin"]
SessionStatus = Literal["active", "archived", "completed"]
AnnotationType = Literal["note", "zebra", "separator", "beautification", "garbage", "signal", "marker"]


class SessionSettings(BaseModel):
    is_public: bool = False
    allow_comments: bool = True
    grid_size: int = Field(20, ge=1)


class SessionMetadata(BaseModel):
    total_annotations: int = 0
    last_activity: Optional[datetime] = None
    version: int = 1


class Collaborator(BaseModel):
    user_id: int
    role: CollaboratorRole = "viewer"
    joined_at: Optional[datetime] = None


class CollaboratorAdd(BaseModel):
    user_id: int
    role: CollaboratorRole = "viewer"


class SessionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200, example="Downtown crosswalk review")
    description: Optional[str] = Field(None, max_length=1000)
    planning_mode: str = "collaborative"
    settings: SessionSettings = Field(default_factory=SessionSettings)
    collaborators: List[CollaboratorAdd] = Field(default_factory=list)


class SessionRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    created_by: int
    status: SessionStatus
    planning_mode: str
    settings: SessionSettings
    metadata: SessionMetadata
    collaborators: List[Collaborator] = Field(default_factory=list)
    user_role: Optional[CollaboratorRole] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SessionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    status: Optional[SessionStatus] = None
    planning_mode: Optional[str] = None
    settings: Optional[SessionSettings] = None

    @field_validator("title", "status", "planning_mode", "settings", mode="before")
    @classmethod
    def required_columns_not_null(cls, value):
        return reject_null(value)


class Position(BaseModel):
    x: float = Field(..., ge=0, le=100)
    y: float = Field(..., ge=0, le=100)


class AnnotationStyle(BaseModel):
    color: str = "#3B82F6"
    size: Literal["small", "medium", "large"] = "medium"
    icon: str = "📍"


class AnnotationCreate(BaseModel):
    type: AnnotationType
    content: str = Field(..., min_length=1, max_length=500)
    position: Position
    style: AnnotationStyle = Field(default_factory=AnnotationStyle)
    priority: Literal["low", "medium", "high"] = "medium"


class AnnotationMetadata(BaseModel):
    version: int = 1
    is_visible: bool = True
    priority: Literal["low", "medium", "high"] = "medium"


class AnnotationRead(BaseModel):
    id: int
    session_id: int
    type: AnnotationType
    content: str
    position: Position
    style: AnnotationStyle
    metadata: AnnotationMetadata
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
