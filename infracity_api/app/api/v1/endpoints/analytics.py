"""
Property analytics endpoints for API v1.

Market views over neighborhoods: monthly price trends, side-by-side
comparisons and a comparable-sales value estimate for a property.
"""

from fastapi import APIRouter, Depends, Query

from infracity_api.app.api.v1.responses import http_error, ok
from infracity_api.app.core.security import get_current_user
from infracity_api.app.schemas.property import ComparisonRequest, PredictionRequest
from infracity_api.app.services.property_analytics_service import DEFAULT_TIME_RANGE, PropertyAnalyticsService

router = APIRouter()


@router.get("/neighborhoods")
async def list_neighborhoods(current_user: dict = Depends(get_current_user)) -> dict:
    return ok(await PropertyAnalyticsService.list_neighborhoods())


@router.get("/neighborhoods/{neighborhood_id}")
async def get_neighborhood(neighborhood_id: int, current_user: dict = Depends(get_current_user)) -> dict:
    try:
        return ok(await PropertyAnalyticsService.get_neighborhood(neighborhood_id))
    except ValueError as e:
        raise http_error(e) from e


@router.get("/neighborhood-trends/{neighborhood_id}")
async def neighborhood_trends(
    neighborhood_id: int,
    time_range: str = Query(DEFAULT_TIME_RANGE, description="6m, 12m, 24m or 5y"),
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Monthly sale price aggregates; unknown ranges fall back to 12 months."""
    try:
        return ok(await PropertyAnalyticsService.get_neighborhood_trends(neighborhood_id, time_range))
    except ValueError as e:
        raise http_error(e) from e


@router.post("/neighborhood-comparison")
async def compare_neighborhoods(
    request: ComparisonRequest,
    current_user: dict = Depends(get_current_user),
) -> dict:
    try:
        result = await PropertyAnalyticsService.compare_neighborhoods(request.neighborhood_ids, request.metrics)
    except ValueError as e:
        raise http_error(e) from e
    return ok(result)


@router.post("/property-prediction")
async def predict_property_value(
    request: PredictionRequest,
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Estimate a property's value from recent comparable sales."""
    try:
        return ok(await PropertyAnalyticsService.predict_property_value(request))
    except ValueError as e:
        raise http_error(e) from e
