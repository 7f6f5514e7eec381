"""
Property market analytics per neighborhood.

All figures are derived from recorded ``Sale`` transactions: monthly
price trends, side by side neighborhood comparisons and a comparable
sales estimate for a hypothetical property.
"""

from __future__ import annotations

import calendar
import logging
import sqlite3
import statistics
from datetime import datetime
from typing import Any, Dict, List

from infracity_api.app.core.db import from_json, get_connection, utc_datetime
from infracity_api.app.core.errors import NotFoundError
from infracity_api.app.schemas.property import (
    COMPARISON_METRICS,
    NeighborhoodRead,
    PredictionRequest,
)

logger = logging.getLogger(__name__)

TIME_RANGE_MONTHS = {"6m": 6, "12m": 12, "24m": 24, "5y": 60}
DEFAULT_TIME_RANGE = "12m"

CONDITION_MULTIPLIERS = {"Excellent": 1.15, "Good": 1.0, "Fair": 0.9, "Poor": 0.8}

AMENITY_VALUES = {
    "Pool": 0.05,
    "Garage": 0.03,
    "Garden": 0.02,
    "Balcony": 0.01,
    "Fireplace": 0.02,
    "AC": 0.02,
    "Heating": 0.01,
    "Parking": 0.03,
}

MAX_COMPARABLES = 10


def months_ago(moment: datetime, months: int) -> datetime:
    """Shift ``moment`` back by whole calendar months, clamping the day."""
    month_index = moment.year * 12 + moment.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def prediction_confidence(transaction_count: int, comparable_sizes: List[float], square_footage: float) -> float:
    """Confidence in a prediction, rising by 0.05 per sale up to 0.95.

    It is cut by a fifth when the comparables differ from the subject by
    more than 20 percent in size on average.
    """
    confidence = min(0.95, 0.5 + transaction_count * 0.05)
    size_difference = statistics.mean(abs(size - square_footage) / square_footage for size in comparable_sizes)
    if size_difference > 0.2:
        confidence *= 0.8
    return round(confidence, 2)


def _row_to_neighborhood(row: sqlite3.Row) -> NeighborhoodRead:
    return NeighborhoodRead(
        id=row["id"],
        name=row["name"],
        boundaries=from_json(row["boundaries"], []),
        center=from_json(row["center"]),
        average_income=row["average_income"],
        population=row["population"],
        area=row["area"],
        amenity_score=row["amenity_score"],
        transport_score=row["transport_score"],
    )


def _fetch_neighborhood(conn: sqlite3.Connection, neighborhood_id: int) -> sqlite3.Row:
    row = conn.execute("SELECT * FROM neighborhoods WHERE id = ?", (neighborhood_id,)).fetchone()
    if not row:
        raise NotFoundError("Neighborhood not found")
    return row


def _sales_since(conn: sqlite3.Connection, neighborhood_id: int, since: datetime) -> List[sqlite3.Row]:
    return conn.execute(
        """
        SELECT t.sale_price, t.sale_date, t.price_per_square_foot
        FROM property_transactions t
        JOIN properties p ON p.id = t.property_id
        WHERE p.neighborhood_id = ? AND t.transaction_type = 'Sale' AND t.sale_date >= ? AND t.sale_date <= ?
        ORDER BY t.sale_date
        """,
        (neighborhood_id, since.isoformat(), utc_datetime().isoformat()),
    ).fetchall()


def monthly_trends(sales: List[sqlite3.Row]) -> List[Dict[str, Any]]:
    """Group sales by calendar month and summarise prices, oldest month first."""
    months: Dict[str, List[sqlite3.Row]] = {}
    for sale in sales:
        months.setdefault(sale["sale_date"][:7], []).append(sale)
    trends = []
    for month in sorted(months):
        group = months[month]
        prices = [sale["sale_price"] for sale in group]
        per_sq_ft = [sale["price_per_square_foot"] for sale in group if sale["price_per_square_foot"] is not None]
        trends.append(
            {
                "date": f"{month}-01",
                "average_price": round(statistics.mean(prices)),
                "median_price": round(statistics.median(prices)),
                "total_sales": len(group),
                "min_price": round(min(prices)),
                "max_price": round(max(prices)),
                "avg_price_per_sq_ft": round(statistics.mean(per_sq_ft), 2) if per_sq_ft else 0,
            }
        )
    return trends


def _median(values: List[float]) -> float:
    if not values:
        return 0
    return round(statistics.median(values))


class PropertyAnalyticsService:
    """Neighborhood listings and market analytics."""

    @classmethod
    async def list_neighborhoods(cls) -> List[NeighborhoodRead]:
        conn = get_connection()
        try:
            return [_row_to_neighborhood(row) for row in conn.execute("SELECT * FROM neighborhoods ORDER BY name")]
        finally:
            conn.close()

    @classmethod
    async def get_neighborhood(cls, neighborhood_id: int) -> NeighborhoodRead:
        conn = get_connection()
        try:
            return _row_to_neighborhood(_fetch_neighborhood(conn, neighborhood_id))
        finally:
            conn.close()

    @classmethod
    async def get_neighborhood_trends(cls, neighborhood_id: int, time_range: str = DEFAULT_TIME_RANGE) -> Dict[str, Any]:
        """Monthly sale price trends for a neighborhood.

        Parameters
        ----------
        neighborhood_id : int
            Neighborhood to analyse.
        time_range : str
            ``6m``, ``12m``, ``24m`` or ``5y``; unknown values fall back
            to twelve months.

        Returns
        -------
        dict
            ``trends`` per month plus a ``summary`` with the transaction
            count, latest average price, month over month growth and the
            overall price range.
        """
        months = TIME_RANGE_MONTHS.get(time_range, TIME_RANGE_MONTHS[DEFAULT_TIME_RANGE])
        conn = get_connection()
        try:
            neighborhood = _fetch_neighborhood(conn, neighborhood_id)
            sales = _sales_since(conn, neighborhood_id, months_ago(utc_datetime(), months))
        finally:
            conn.close()

        trends = monthly_trends(sales)
        current = trends[-1] if trends else None
        previous = trends[-2] if len(trends) > 1 else None
        growth_rate = 0.0
        if current and previous and previous["average_price"] > 0:
            growth_rate = (current["average_price"] - previous["average_price"]) / previous["average_price"] * 100
        positive_minimums = [t["min_price"] for t in trends if t["min_price"] > 0]

        logger.info("Property trends for neighborhood %s: %d data points", neighborhood_id, len(trends))
        return {
            "neighborhood_id": neighborhood_id,
            "neighborhood_name": neighborhood["name"],
            "time_range": time_range,
            "trends": trends,
            "summary": {
                "total_transactions": sum(t["total_sales"] for t in trends),
                "current_average_price": current["average_price"] if current else 0,
                "growth_rate": round(growth_rate, 2),
                "price_range": {
                    "min": min(positive_minimums) if positive_minimums else 0,
                    "max": max((t["max_price"] for t in trends), default=0),
                },
            },
        }

    @classmethod
    async def compare_neighborhoods(cls, neighborhood_ids: List[int], metrics: List[str]) -> Dict[str, Any]:
        """Compute the requested metrics side by side over the last twelve months.

        Raises
        ------
        ValueError
            For an unknown metric name.
        NotFoundError
            If any neighborhood does not exist.
        """
        invalid = [metric for metric in metrics if metric not in COMPARISON_METRICS]
        if invalid:
            raise ValueError(f"Invalid metrics: {', '.join(invalid)}. Valid metrics: {', '.join(COMPARISON_METRICS)}")

        since = months_ago(utc_datetime(), 12)
        comparisons = []
        conn = get_connection()
        try:
            neighborhoods = {}
            for neighborhood_id in neighborhood_ids:
                row = conn.execute("SELECT * FROM neighborhoods WHERE id = ?", (neighborhood_id,)).fetchone()
                if not row:
                    raise NotFoundError("One or more neighborhoods not found")
                neighborhoods[neighborhood_id] = row

            for neighborhood_id in neighborhood_ids:
                neighborhood = neighborhoods[neighborhood_id]
                sales = _sales_since(conn, neighborhood_id, since)
                prices = [sale["sale_price"] for sale in sales]
                per_sq_ft = [
                    sale["price_per_square_foot"] for sale in sales if (sale["price_per_square_foot"] or 0) > 0
                ]
                sizes = [
                    row["square_footage"]
                    for row in conn.execute(
                        "SELECT square_footage FROM properties WHERE neighborhood_id = ? AND square_footage > 0",
                        (neighborhood_id,),
                    )
                ]
                available = {
                    "average_price": lambda: round(statistics.mean(prices)) if prices else 0,
                    "median_price": lambda: _median(prices),
                    "price_per_sq_ft": lambda: round(statistics.mean(per_sq_ft), 2) if per_sq_ft else 0,
                    "sales_volume": lambda: len(sales),
                    "average_size": lambda: round(statistics.mean(sizes)) if sizes else 0,
                    "amenity_score": lambda: neighborhood["amenity_score"] or 0,
                    "transport_score": lambda: neighborhood["transport_score"] or 0,
                }
                comparisons.append(
                    {
                        "neighborhood_id": neighborhood_id,
                        "name": neighborhood["name"],
                        "metrics": {metric: available[metric]() for metric in metrics},
                    }
                )
        finally:
            conn.close()

        logger.info("Compared %d neighborhoods on %s", len(neighborhood_ids), ", ".join(metrics))
        return {
            "neighborhoods": comparisons,
            "requested_metrics": metrics,
            "comparison_date": utc_datetime().isoformat(),
        }

    @classmethod
    async def predict_property_value(cls, data: PredictionRequest) -> Dict[str, Any]:
        """Estimate a property's value from comparable recent sales.

        Comparables share the neighborhood and type, have a similar
        number of rooms and a size within 20 percent.  Their sales from
        the last six months give the base price, which is then adjusted
        for age, condition and amenities.

        Raises
        ------
        NotFoundError
            If the neighborhood does not exist or no comparable sale is
            found.
        """
        conn = get_connection()
        try:
            neighborhood = _fetch_neighborhood(conn, data.neighborhood_id)
            comparables = conn.execute(
                """
                SELECT id, address, type, bedrooms, bathrooms, square_footage, current_value
                FROM properties
                WHERE neighborhood_id = ? AND type = ?
                  AND bedrooms BETWEEN ? AND ?
                  AND bathrooms BETWEEN ? AND ?
                  AND square_footage BETWEEN ? AND ?
                ORDER BY id
                LIMIT ?
                """,
                (
                    data.neighborhood_id,
                    data.type,
                    data.bedrooms - 1,
                    data.bedrooms + 1,
                    data.bathrooms - 0.5,
                    data.bathrooms + 0.5,
                    data.square_footage * 0.8,
                    data.square_footage * 1.2,
                    MAX_COMPARABLES,
                ),
            ).fetchall()
            transactions: List[sqlite3.Row] = []
            if comparables:
                placeholders = ", ".join("?" for _ in comparables)
                transactions = conn.execute(
                    f"""
                    SELECT t.sale_price, t.sale_date, t.days_on_market, p.address, p.square_footage
                    FROM property_transactions t
                    JOIN properties p ON p.id = t.property_id
                    WHERE t.property_id IN ({placeholders}) AND t.transaction_type = 'Sale' AND t.sale_date >= ?
                    ORDER BY t.sale_date DESC
                    """,
                    tuple([row["id"] for row in comparables] + [months_ago(utc_datetime(), 6).isoformat()]),
                ).fetchall()
        finally:
            conn.close()

        if not transactions:
            raise NotFoundError("Insufficient comparable properties for prediction")

        average_price = statistics.mean(t["sale_price"] for t in transactions)
        adjusted = average_price

        age = utc_datetime().year - data.year_built
        if age < 5:
            adjusted *= 1.1
            age_adjustment = "+10%"
        elif age > 30:
            adjusted *= 0.95
            age_adjustment = "-5%"
        else:
            age_adjustment = "0%"

        condition_multiplier = CONDITION_MULTIPLIERS.get(data.condition, 1.0)
        adjusted *= condition_multiplier

        amenity_bonus = sum(AMENITY_VALUES.get(amenity, 0) for amenity in data.amenities)
        adjusted *= 1 + amenity_bonus

        confidence = prediction_confidence(
            len(transactions), [row["square_footage"] for row in comparables], data.square_footage
        )

        prediction = {
            "predicted_value": round(adjusted),
            "confidence": confidence,
            "price_range": {"low": round(adjusted * 0.9), "high": round(adjusted * 1.1)},
            "price_per_square_foot": round(average_price / data.square_footage, 2),
            "comparable_properties": [
                {
                    "id": row["id"],
                    "address": row["address"],
                    "type": row["type"],
                    "bedrooms": row["bedrooms"],
                    "bathrooms": row["bathrooms"],
                    "square_footage": row["square_footage"],
                    "current_value": row["current_value"],
                }
                for row in comparables
            ],
            "recent_transactions": [
                {
                    "sale_price": t["sale_price"],
                    "sale_date": t["sale_date"],
                    "days_on_market": t["days_on_market"],
                    "property": {"address": t["address"], "square_footage": t["square_footage"]},
                }
                for t in transactions
            ],
            "factors": {
                "base_price": round(average_price),
                "age_adjustment": age_adjustment,
                "condition_adjustment": f"{round((condition_multiplier - 1) * 100)}%",
                "amenity_adjustment": f"+{round(amenity_bonus * 100)}%",
            },
            "neighborhood": {
                "name": neighborhood["name"],
                "amenity_score": neighborhood["amenity_score"],
                "transport_score": neighborhood["transport_score"],
            },
        }
        logger.info(
            "Predicted value %s with confidence %s from %d sales",
            prediction["predicted_value"],
            prediction["confidence"],
            len(transactions),
        )
        return prediction
