"""
Pydantic models for intersections and traffic analyses.

An analysis is a dated snapshot of the traffic at one intersection:
hourly volumes per direction, peak windows, speeds per approach and
pedestrian counts.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .common import CongestionLevel, Coordinates, reject_null

Direction = Literal["N", "S", "E", "W", "NE", "NW", "SE", "SW"]
Weather = Literal["Clear", "Rainy", "Snowy", "Foggy", "Cloudy"]

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class IntersectionBase(BaseModel):
    name: str = Field(..., min_length=1, example="Main St & Broadway")
    coordinates: Coordinates
    volume: int = Field(0, ge=0)
    avg_speed: float = Field(0, ge=0)
    congestion_level: CongestionLevel = "Low"
    traffic_signals: int = Field(0, ge=0)
    pedestrian_crossings: int = Field(0, ge=0)
    peak_hours: List[str] = Field(default_factory=list)
    connected_roads: List[int] = Field(default_factory=list)


class IntersectionCreate(IntersectionBase):
    pass


class IntersectionRead(IntersectionBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
    }


class IntersectionUpdate(BaseModel):
    name: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    volume: Optional[int] = Field(None, ge=0)
    avg_speed: Optional[float] = Field(None, ge=0)
    congestion_level: Optional[CongestionLevel] = None
    traffic_signals: Optional[int] = Field(None, ge=0)
    pedestrian_crossings: Optional[int] = Field(None, ge=0)
    peak_hours: Optional[List[str]] = None
    connected_roads: Optional[List[int]] = None

    @field_validator(
        "name", "volume", "avg_speed", "congestion_level", "traffic_signals", "pedestrian_crossings", mode="before"
    )
    @classmethod
    def required_columns_not_null(cls, value):
        return reject_null(value)


class HourlyVolume(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    volume: int = Field(..., ge=0)
    direction: Direction


class TrafficVolume(BaseModel):
    hourly_data: List[HourlyVolume] = Field(default_factory=list)
    total_daily_volume: int = Field(..., ge=0)


class PeakHour(BaseModel):
    start_time: str = Field(..., pattern=TIME_PATTERN, example="07:30")
    end_time: str = Field(..., pattern=TIME_PATTERN, example="09:00")
    peak_volume: int = Field(..., ge=0)
    congestion_level: CongestionLevel


class DirectionalSpeed(BaseModel):
    direction: Literal["N", "S", "E", "W"]
    speed: float = Field(..., ge=0)


class AverageSpeed(BaseModel):
    by_direction: List[DirectionalSpeed] = Field(default_factory=list)
    overall: float = Field(..., ge=0)


class PedestrianData(BaseModel):
    total_crossings: int = Field(0, ge=0)
    peak_crossing_hours: List[str] = Field(default_factory=list)


class AnalysisCreate(BaseModel):
    intersection_id: int
    analysis_date: Optional[datetime] = None
    traffic_volume: TrafficVolume
    peak_hours: List[PeakHour] = Field(default_factory=list)
    average_speed: Optional[AverageSpeed] = None
    congestion_level: CongestionLevel
    pedestrian_data: Optional[PedestrianData] = None
    weather_conditions: Weather = "Clear"
    analysis_notes: Optional[str] = Field(None, max_length=1000)


class AnalysisRead(AnalysisCreate):
    id: int
    analysis_date: datetime
    intersection_name: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AnalysisUpdate(BaseModel):
    intersection_id: Optional[int] = None
    analysis_date: Optional[datetime] = None
    traffic_volume: Optional[TrafficVolume] = None
    peak_hours: Optional[List[PeakHour]] = None
    average_speed: Optional[AverageSpeed] = None
    congestion_level: Optional[CongestionLevel] = None
    pedestrian_data: Optional[PedestrianData] = None
    weather_conditions: Optional[Weather] = None
    analysis_notes: Optional[str] = Field(None, max_length=1000)

    @field_validator(
        "intersection_id", "analysis_date", "traffic_volume", "congestion_level", "weather_conditions", mode="before"
    )
    @classmethod
    def required_columns_not_null(cls, value):
        return reject_null(value)
