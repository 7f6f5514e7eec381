"""
Shared schema building blocks.

Coordinates are ``[lat, lng]`` pairs throughout the API.  List
endpoints that page their results return a ``Pagination`` block next
to the items.
"""

from typing import Annotated, List, Literal

from pydantic import BaseModel, Field

Coordinates = Annotated[List[float], Field(min_length=2, max_length=2, example=[40.7128, -74.006])]

Severity = Literal["Low", "Medium", "High", "Emergency"]
IssueType = Literal["Pothole", "Garbage", "Road Marker", "Traffic Flow", "Beautification"]
CongestionLevel = Literal["Low", "Medium", "High", "Very High"]

CONGESTION_LEVELS = ("Low", "Medium", "High", "Very High")


def reject_null(value):
    """Before-validator for update fields whose column cannot be cleared."""
    if value is None:
        raise ValueError("may not be null")
    return value


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_records: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        """Compute page counts for ``total`` records split into pages of ``limit``."""
        total_pages = (total + limit - 1) // limit if limit else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_records=total,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
