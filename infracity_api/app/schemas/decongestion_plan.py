"""
Pydantic models for decongestion plans.

A plan proposes one or more interventions for an intersection, based
on a specific traffic analysis, and tracks their implementation and
the public's feedback.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .common import CongestionLevel, Coordinates, Severity, reject_null

ActionType = Literal[
    "Traffic Signal Optimization",
    "Lane Reconfiguration",
    "Zebra Crossing Addition",
    "Road Marking Update",
    "Speed Limit Change",
    "Turn Restriction",
    "Roundabout Installation",
    "Traffic Light Installation",
]
PlanStatus = Literal["Draft", "Under Review", "Approved", "In Progress", "Completed", "Cancelled"]

PLAN_STATUSES = ("Draft", "Under Review", "Approved", "In Progress", "Completed", "Cancelled")


class ProposedAction(BaseModel):
    action_type: ActionType
    description: str = Field(..., min_length=1, max_length=500)
    estimated_cost: float = Field(0, ge=0)
    estimated_duration: int = Field(1, ge=1, description="Days")
    priority: Severity = "Medium"
    coordinates: Optional[Coordinates] = None


class ExpectedImpact(BaseModel):
    traffic_flow_improvement: float = Field(0, ge=0, le=100, description="Percent")
    time_savings: float = Field(0, ge=0, description="Minutes per trip")
    safety_improvement: Literal["Low", "Medium", "High"] = "Medium"
    environmental_impact: Literal["Positive", "Neutral", "Negative"] = "Neutral"


class Budget(BaseModel):
    allocated: Optional[float] = Field(None, ge=0)
    spent: float = Field(0, ge=0)


class Implementation(BaseModel):
    status: PlanStatus = "Draft"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    assigned_team: Optional[str] = None
    budget: Budget = Field(default_factory=Budget)


class FeedbackCreate(BaseModel):
    comment: str = Field(..., min_length=1, max_length=1000)
    rating: int = Field(..., ge=1, le=5)


class Feedback(FeedbackCreate):
    submitted_at: datetime


class PlanCreate(BaseModel):
    plan_name: str = Field(..., min_length=1, max_length=200)
    intersection_id: int
    analysis_id: int
    current_congestion_level: CongestionLevel
    target_congestion_level: CongestionLevel
    proposed_actions: List[ProposedAction] = Field(..., min_length=1)
    expected_impact: ExpectedImpact = Field(default_factory=ExpectedImpact)
    implementation: Implementation = Field(default_factory=Implementation)


class PlanRead(PlanCreate):
    id: int
    intersection_name: Optional[str] = None
    public_feedback: List[Feedback] = Field(default_factory=list)
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PlanUpdate(BaseModel):
    """All fields optional; only provided fields are merged."""

    plan_name: Optional[str] = Field(None, min_length=1, max_length=200)
    current_congestion_level: Optional[CongestionLevel] = None
    target_congestion_level: Optional[CongestionLevel] = None
    proposed_actions: Optional[List[ProposedAction]] = Field(None, min_length=1)
    expected_impact: Optional[ExpectedImpact] = None
    implementation: Optional[Implementation] = None

    @field_validator(
        "plan_name", "current_congestion_level", "target_congestion_level", "proposed_actions", mode="before"
    )
    @classmethod
    def required_columns_not_null(cls, value):
        return reject_null(value)


class PlanStatusUpdate(BaseModel):
    status: PlanStatus
