"""
Pydantic models for neighborhoods, properties, sale transactions and
the analytics requests built on top of them.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.db import utc_datetime
from .common import Coordinates

PropertyType = Literal["Single Family", "Condo", "Townhouse", "Multi-Family", "Commercial"]
Amenity = Literal["Pool", "Garage", "Garden", "Balcony", "Fireplace", "AC", "Heating", "Parking"]
PropertyCondition = Literal["Excellent", "Good", "Fair", "Poor"]
TransactionType = Literal["Sale", "Rent", "Lease"]
TimeRange = Literal["6m", "12m", "24m", "5y"]

DEFAULT_COMPARISON_METRICS = ["average_price", "median_price", "price_per_sq_ft", "sales_volume"]
COMPARISON_METRICS = DEFAULT_COMPARISON_METRICS + ["average_size", "amenity_score", "transport_score"]


def max_year_built() -> int:
    return utc_datetime().year + 5


class NeighborhoodRead(BaseModel):
    id: int
    name: str
    boundaries: List[Coordinates] = Field(default_factory=list)
    center: Optional[Coordinates] = None
    average_income: Optional[float] = None
    population: Optional[int] = None
    area: Optional[float] = None
    amenity_score: float = 50
    transport_score: float = 50


class PropertyRead(BaseModel):
    id: int
    address: str
    coordinates: Optional[Coordinates] = None
    neighborhood_id: int
    type: PropertyType
    bedrooms: int
    bathrooms: float
    square_footage: float
    lot_size: Optional[float] = None
    year_built: int
    current_value: Optional[float] = None
    amenities: List[Amenity] = Field(default_factory=list)
    condition: PropertyCondition = "Good"


class TransactionRead(BaseModel):
    id: int
    property_id: int
    sale_price: float
    sale_date: datetime
    transaction_type: TransactionType
    price_per_square_foot: Optional[float] = None
    days_on_market: Optional[int] = None
    listing_price: Optional[float] = None
    agent_id: Optional[str] = None


class ComparisonRequest(BaseModel):
    neighborhood_ids: List[int] = Field(..., min_length=1, max_length=10)
    metrics: List[str] = Field(default_factory=lambda: list(DEFAULT_COMPARISON_METRICS))


class PredictionRequest(BaseModel):
    neighborhood_id: int
    type: PropertyType
    bedrooms: int = Field(..., ge=0)
    bathrooms: float = Field(..., ge=0)
    square_footage: float = Field(..., gt=0)
    year_built: int = Field(..., ge=1800)
    condition: PropertyCondition = "Good"
    amenities: List[Amenity] = Field(default_factory=list)

    @field_validator("year_built")
    @classmethod
    def _year_not_in_far_future(cls, value: int) -> int:
        if value > max_year_built():
            raise ValueError(f"Year built must be between 1800 and {max_year_built()}")
        return value
