"""Pydantic models for generated infrastructure reports."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

ReportType = Literal["comprehensive", "performance", "budget", "public"]
ReportStatus = Literal["generating", "completed", "failed", "draft", "published"]
ReportMetric = Literal["issues", "performance", "budget", "traffic", "maintenance", "citizen"]


class ReportPeriod(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    preset: Optional[str] = Field(None, example="last_30_days")


class ReportParameters(BaseModel):
    period: ReportPeriod = Field(default_factory=ReportPeriod)
    metrics: List[ReportMetric] = Field(default_factory=lambda: ["issues", "performance"])
    filters: Dict[str, Any] = Field(default_factory=dict)
    format: Literal["pdf", "excel", "json"] = "json"


class ReportCreate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    type: ReportType = "comprehensive"
    parameters: ReportParameters = Field(default_factory=ReportParameters)


class ReportData(BaseModel):
    summary: Dict[str, Any] = Field(default_factory=dict)
    charts: Dict[str, Any] = Field(default_factory=dict)
    tables: Dict[str, Any] = Field(default_factory=dict)
    insights: List[str] = Field(default_factory=list)


class ReportMetadata(BaseModel):
    generation_time: Optional[int] = None
    data_points: int = 0
    download_count: int = 0
    last_accessed: Optional[datetime] = None


class ReportSharing(BaseModel):
    is_public: bool = False
    share_token: Optional[str] = None
    shared_with: List[int] = Field(default_factory=list)


class ReportRead(BaseModel):
    id: int
    title: str
    type: ReportType
    status: ReportStatus
    parameters: ReportParameters
    data: ReportData
    metadata: ReportMetadata
    sharing: ReportSharing
    created_by: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReportStatusUpdate(BaseModel):
    status: ReportStatus


class ReportShareRequest(BaseModel):
    is_public: bool = True
    shared_with: Optional[List[int]] = None
