"""
Tests for neighborhood property analytics
"""
from datetime import timedelta

import pytest

from infracity_api.app.core.db import get_cursor, utc_datetime
from infracity_api.app.services.property_analytics_service import prediction_confidence


@pytest.fixture
def neighborhoods(client, admin_headers):
    response = client.post("/api/seed/infrastructure", headers=admin_headers)
    assert response.status_code == 200
    listing = client.get("/api/analytics/neighborhoods", headers=admin_headers).json()["data"]
    return {hood["name"]: hood for hood in listing}


@pytest.fixture
def market():
    """A small neighborhood with known recent sales averaging 320,000."""
    now = utc_datetime()
    recent = (now - timedelta(days=30)).isoformat()
    with get_cursor() as cursor:
        cursor.execute(
            "INSERT INTO neighborhoods (name, amenity_score, transport_score) VALUES ('Riverside', 70, 60)"
        )
        neighborhood_id = cursor.lastrowid

        def add_property(address, property_type, square_footage):
            cursor.execute(
                """
                INSERT INTO properties (address, neighborhood_id, type, bedrooms, bathrooms, square_footage,
                                        year_built, condition)
                VALUES (?, ?, ?, 2, 2, ?, 2000, 'Good')
                """,
                (address, neighborhood_id, property_type, square_footage),
            )
            return cursor.lastrowid

        def add_sale(property_id, price, sale_date):
            cursor.execute(
                "INSERT INTO property_transactions (property_id, sale_price, sale_date, transaction_type) "
                "VALUES (?, ?, ?, 'Sale')",
                (property_id, price, sale_date),
            )

        first = add_property("1 River Road", "Condo", 1000)
        second = add_property("2 River Road", "Condo", 1100)
        house = add_property("3 River Road", "Single Family", 1000)
        add_sale(first, 300000, recent)
        add_sale(first, 340000, recent)
        add_sale(second, 320000, recent)
        add_sale(first, 900000, (now - timedelta(days=300)).isoformat())
        add_sale(house, 750000, recent)
    return neighborhood_id


def test_list_neighborhoods(neighborhoods):
    assert sorted(neighborhoods) == ["Downtown", "Midtown", "Upper East Side"]
    assert neighborhoods["Midtown"]["transport_score"] == 95


def test_get_missing_neighborhood(client, auth_headers):
    response = client.get("/api/analytics/neighborhoods/999", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["error"] == "Neighborhood not found"


class TestTrends:
    def test_monthly_trends(self, client, neighborhoods, auth_headers):
        downtown = neighborhoods["Downtown"]

        response = client.get(f"/api/analytics/neighborhood-trends/{downtown['id']}", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["neighborhood_name"] == "Downtown"
        assert data["time_range"] == "12m"
        trends = data["trends"]
        assert trends
        assert [t["date"] for t in trends] == sorted(t["date"] for t in trends)
        assert data["summary"]["total_transactions"] == sum(t["total_sales"] for t in trends)
        assert data["summary"]["current_average_price"] == trends[-1]["average_price"]
        assert data["summary"]["price_range"]["min"] <= data["summary"]["price_range"]["max"]

    def test_shorter_range_has_fewer_points(self, client, neighborhoods, auth_headers):
        midtown = neighborhoods["Midtown"]["id"]

        year = client.get(f"/api/analytics/neighborhood-trends/{midtown}", headers=auth_headers).json()["data"]
        half = client.get(
            f"/api/analytics/neighborhood-trends/{midtown}", params={"time_range": "6m"}, headers=auth_headers
        ).json()["data"]

        assert len(half["trends"]) <= len(year["trends"])
        assert half["summary"]["total_transactions"] <= year["summary"]["total_transactions"]

    def test_unknown_neighborhood(self, client, auth_headers):
        response = client.get("/api/analytics/neighborhood-trends/999", headers=auth_headers)

        assert response.status_code == 404


class TestComparison:
    def test_default_metrics(self, client, neighborhoods, auth_headers):
        ids = [neighborhoods["Downtown"]["id"], neighborhoods["Upper East Side"]["id"]]

        response = client.post(
            "/api/analytics/neighborhood-comparison", json={"neighborhood_ids": ids}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["requested_metrics"] == ["average_price", "median_price", "price_per_sq_ft", "sales_volume"]
        assert [n["neighborhood_id"] for n in data["neighborhoods"]] == ids
        for entry in data["neighborhoods"]:
            assert set(entry["metrics"]) == set(data["requested_metrics"])
            assert entry["metrics"]["sales_volume"] > 0

    def test_score_metrics(self, client, neighborhoods, auth_headers):
        response = client.post(
            "/api/analytics/neighborhood-comparison",
            json={"neighborhood_ids": [neighborhoods["Midtown"]["id"]], "metrics": ["amenity_score", "average_size"]},
            headers=auth_headers,
        )

        metrics = response.json()["data"]["neighborhoods"][0]["metrics"]
        assert metrics == {"amenity_score": 92, "average_size": 2000}

    def test_invalid_metric(self, client, neighborhoods, auth_headers):
        response = client.post(
            "/api/analytics/neighborhood-comparison",
            json={"neighborhood_ids": [neighborhoods["Downtown"]["id"]], "metrics": ["crime_rate"]},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert "crime_rate" in response.json()["error"]

    def test_missing_neighborhood(self, client, neighborhoods, auth_headers):
        response = client.post(
            "/api/analytics/neighborhood-comparison",
            json={"neighborhood_ids": [neighborhoods["Downtown"]["id"], 999]},
            headers=auth_headers,
        )

        assert response.status_code == 404
        assert response.json()["error"] == "One or more neighborhoods not found"

    def test_empty_selection(self, client, auth_headers):
        response = client.post(
            "/api/analytics/neighborhood-comparison", json={"neighborhood_ids": []}, headers=auth_headers
        )

        assert response.status_code == 400


class TestPrediction:
    def payload(self, neighborhood_id, **overrides):
        payload = {
            "neighborhood_id": neighborhood_id,
            "type": "Condo",
            "bedrooms": 2,
            "bathrooms": 2,
            "square_footage": 1200,
            "year_built": 2010,
            "condition": "Good",
            "amenities": ["Pool"],
        }
        payload.update(overrides)
        return payload

    def test_prediction_from_comparables(self, client, neighborhoods, auth_headers):
        response = client.post(
            "/api/analytics/property-prediction",
            json=self.payload(neighborhoods["Downtown"]["id"]),
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert [p["address"] for p in data["comparable_properties"]] == ["123 Main Street, Downtown"]
        assert data["recent_transactions"]
        assert data["factors"]["age_adjustment"] == "0%"
        assert data["factors"]["condition_adjustment"] == "0%"
        assert data["factors"]["amenity_adjustment"] == "+5%"
        assert data["price_range"]["low"] < data["predicted_value"] < data["price_range"]["high"]
        assert 0.5 < data["confidence"] <= 0.95
        assert data["neighborhood"]["name"] == "Downtown"

    def test_no_comparables(self, client, neighborhoods, auth_headers):
        response = client.post(
            "/api/analytics/property-prediction",
            json=self.payload(neighborhoods["Downtown"]["id"], type="Commercial"),
            headers=auth_headers,
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Insufficient comparable properties for prediction"

    def test_year_built_validation(self, client, neighborhoods, auth_headers):
        response = client.post(
            "/api/analytics/property-prediction",
            json=self.payload(neighborhoods["Downtown"]["id"], year_built=1700),
            headers=auth_headers,
        )

        assert response.status_code == 400

    @pytest.mark.parametrize(
        "age, condition, amenities, expected",
        [
            (10, "Good", [], {"value": 320000, "age": "0%", "condition": "0%", "amenities": "+0%"}),
            (2, "Excellent", [], {"value": 404800, "age": "+10%", "condition": "15%", "amenities": "+0%"}),
            (40, "Fair", [], {"value": 273600, "age": "-5%", "condition": "-10%", "amenities": "+0%"}),
            (10, "Poor", ["Pool", "Garage"], {"value": 276480, "age": "0%", "condition": "-20%", "amenities": "+8%"}),
        ],
    )
    def test_adjusts_recent_comparable_sales(self, client, auth_headers, market, age, condition, amenities, expected):
        payload = self.payload(
            market,
            square_footage=1000,
            year_built=utc_datetime().year - age,
            condition=condition,
            amenities=amenities,
        )

        response = client.post("/api/analytics/property-prediction", json=payload, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["predicted_value"] == expected["value"]
        assert data["confidence"] == 0.65
        assert data["price_per_square_foot"] == 320.0
        assert data["factors"] == {
            "base_price": 320000,
            "age_adjustment": expected["age"],
            "condition_adjustment": expected["condition"],
            "amenity_adjustment": expected["amenities"],
        }
        assert [p["address"] for p in data["comparable_properties"]] == ["1 River Road", "2 River Road"]
        assert sorted(t["sale_price"] for t in data["recent_transactions"]) == [300000, 320000, 340000]

    def test_price_range_brackets_prediction(self, client, auth_headers, market):
        payload = self.payload(market, square_footage=1000, amenities=[])

        data = client.post("/api/analytics/property-prediction", json=payload, headers=auth_headers).json()["data"]

        assert data["predicted_value"] == 320000
        assert data["price_range"] == {"low": 288000, "high": 352000}


@pytest.mark.parametrize(
    "sales, sizes, expected",
    [
        (3, [1000, 1100], 0.65),
        (12, [1000], 0.95),
        (3, [800, 1200], 0.65),
        (3, [1300, 1300], 0.52),
        (10, [600, 1500], 0.76),
    ],
)
def test_prediction_confidence(sales, sizes, expected):
    assert prediction_confidence(sales, sizes, 1000) == expected


def test_requires_authentication(client):
    assert client.get("/api/analytics/neighborhoods").status_code == 401
