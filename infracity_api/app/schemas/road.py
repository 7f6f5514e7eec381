"""
Pydantic models for road segments, their event timeline and the
imagery captured by survey vehicles.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .common import Coordinates, Severity, reject_null

Classification = Literal["highway", "arterial", "collector", "local"]
RoadEventType = Literal[
    "Pothole Repair", "Road Marking", "Inspection", "Cleaning", "Maintenance", "Construction"
]
RoadImageType = Literal["Pothole", "Road Marking", "Surface Crack", "Debris", "General Condition"]


class RoadBase(BaseModel):
    name: str = Field(..., min_length=1, example="Main Street")
    condition: float = Field(..., ge=0, le=100, example=72)
    issues: int = Field(0, ge=0)
    last_inspection: Optional[datetime] = None
    coordinates: List[Coordinates] = Field(default_factory=list)
    width: float = Field(7.0, gt=0, description="Metres")
    lanes: int = Field(2, ge=1)
    classification: Classification = "local"


class RoadCreate(RoadBase):
    pass


class RoadRead(RoadBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
    }


class RoadUpdate(BaseModel):
    name: Optional[str] = None
    condition: Optional[float] = Field(None, ge=0, le=100)
    issues: Optional[int] = Field(None, ge=0)
    last_inspection: Optional[datetime] = None
    coordinates: Optional[List[Coordinates]] = None
    width: Optional[float] = Field(None, gt=0)
    lanes: Optional[int] = Field(None, ge=1)
    classification: Optional[Classification] = None

    @field_validator("name", "condition", "issues", "width", "lanes", "classification", mode="before")
    @classmethod
    def required_columns_not_null(cls, value):
        return reject_null(value)


class RoadEventCreate(BaseModel):
    type: RoadEventType
    description: str = Field(..., min_length=1)
    severity: Severity = "Medium"
    date: datetime


class RoadEventRead(RoadEventCreate):
    id: int
    road_id: int


class RoadImageCreate(BaseModel):
    url: str = Field(..., min_length=1)
    type: RoadImageType
    date_taken: datetime
    vehicle_id: Optional[str] = None
    confidence: float = Field(0.5, ge=0, le=1)
    coordinates: Optional[Coordinates] = None


class LatLng(BaseModel):
    lat: float
    lng: float


class RoadImageRead(BaseModel):
    id: int
    road_id: int
    url: str
    type: RoadImageType
    date_taken: datetime
    vehicle_id: Optional[str] = None
    confidence: float
    coordinates: Optional[LatLng] = None
