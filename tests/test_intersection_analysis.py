"""
Tests for intersection traffic analyses
"""
import pytest


def analysis_payload(intersection_id, **overrides):
    payload = {
        "intersection_id": intersection_id,
        "analysis_date": "2025-05-01T08:00:00",
        "traffic_volume": {
            "hourly_data": [{"hour": 8, "volume": 1400, "direction": "N"}],
            "total_daily_volume": 15000,
        },
        "peak_hours": [
            {"start_time": "07:30", "end_time": "09:00", "peak_volume": 1400, "congestion_level": "High"}
        ],
        "average_speed": {"by_direction": [{"direction": "N", "speed": 22.5}], "overall": 20.0},
        "congestion_level": "High",
        "weather_conditions": "Clear",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_analysis(client, auth_headers, intersection):
    def _create(**overrides):
        response = client.post(
            "/api/intersections/analysis/",
            json=analysis_payload(intersection["id"], **overrides),
            headers=auth_headers,
        )
        assert response.status_code == 201
        return response.json()["data"]

    return _create


def test_create_analysis(client, auth_headers, viewer, intersection):
    response = client.post(
        "/api/intersections/analysis/", json=analysis_payload(intersection["id"]), headers=auth_headers
    )

    assert response.status_code == 201
    analysis = response.json()["data"]
    assert analysis["created_by"] == viewer.id
    assert analysis["intersection_name"] == intersection["name"]
    assert analysis["traffic_volume"]["total_daily_volume"] == 15000


def test_unknown_intersection(client, auth_headers):
    response = client.post("/api/intersections/analysis/", json=analysis_payload(999), headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "Intersection not found"


def test_requires_traffic_volume(client, auth_headers, intersection):
    payload = analysis_payload(intersection["id"])
    del payload["traffic_volume"]

    response = client.post("/api/intersections/analysis/", json=payload, headers=auth_headers)

    assert response.status_code == 400


def test_invalid_peak_time(client, auth_headers, intersection):
    payload = analysis_payload(intersection["id"])
    payload["peak_hours"][0]["start_time"] = "25:00"

    response = client.post("/api/intersections/analysis/", json=payload, headers=auth_headers)

    assert response.status_code == 400


def test_list_paginates_newest_first(client, auth_headers, create_analysis):
    for day in range(1, 4):
        create_analysis(analysis_date=f"2025-05-0{day}T08:00:00")

    response = client.get("/api/intersections/analysis/", params={"limit": 2}, headers=auth_headers)

    data = response.json()["data"]
    assert [a["analysis_date"][:10] for a in data["analyses"]] == ["2025-05-03", "2025-05-02"]
    assert data["pagination"] == {
        "current_page": 1,
        "total_pages": 2,
        "total_records": 3,
        "has_next": True,
        "has_prev": False,
    }

    second = client.get(
        "/api/intersections/analysis/", params={"limit": 2, "page": 2}, headers=auth_headers
    ).json()["data"]
    assert len(second["analyses"]) == 1
    assert second["pagination"]["has_prev"] is True
    assert second["pagination"]["has_next"] is False


def test_list_filters(client, auth_headers, create_analysis):
    create_analysis(congestion_level="Low", analysis_date="2025-01-15T08:00:00")
    create_analysis(congestion_level="Very High", analysis_date="2025-06-15T08:00:00")

    by_level = client.get(
        "/api/intersections/analysis/", params={"congestion_level": "Very High"}, headers=auth_headers
    ).json()["data"]
    by_date = client.get(
        "/api/intersections/analysis/",
        params={"date_from": "2025-01-01T00:00:00", "date_to": "2025-02-01T00:00:00"},
        headers=auth_headers,
    ).json()["data"]

    assert [a["congestion_level"] for a in by_level["analyses"]] == ["Very High"]
    assert [a["congestion_level"] for a in by_date["analyses"]] == ["Low"]


def test_statistics(client, auth_headers, create_analysis):
    create_analysis(congestion_level="High")
    create_analysis(
        congestion_level="Low",
        traffic_volume={"hourly_data": [], "total_daily_volume": 10000},
        average_speed={"by_direction": [], "overall": 35.0},
    )

    response = client.get("/api/intersections/analysis/statistics", headers=auth_headers)

    stats = response.json()["data"]
    assert stats["total_analyses"] == 2
    assert stats["avg_traffic_volume"] == 12500
    assert stats["avg_overall_speed"] == 27.5
    assert stats["congestion_distribution"] == {"Low": 1, "Medium": 0, "High": 1, "Very High": 0}


def test_statistics_empty(client, auth_headers):
    stats = client.get("/api/intersections/analysis/statistics", headers=auth_headers).json()["data"]

    assert stats["total_analyses"] == 0
    assert stats["avg_traffic_volume"] == 0
    assert stats["congestion_distribution"]["Very High"] == 0


def test_update_revalidates_intersection(client, auth_headers, create_analysis):
    analysis = create_analysis()

    response = client.put(
        f"/api/intersections/analysis/{analysis['id']}", json={"intersection_id": 999}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Intersection not found"


def test_update_merges(client, auth_headers, create_analysis):
    analysis = create_analysis()

    response = client.put(
        f"/api/intersections/analysis/{analysis['id']}",
        json={"analysis_notes": "Signal timing looks off", "weather_conditions": "Rainy"},
        headers=auth_headers,
    )

    updated = response.json()["data"]
    assert updated["analysis_notes"] == "Signal timing looks off"
    assert updated["weather_conditions"] == "Rainy"
    assert updated["congestion_level"] == analysis["congestion_level"]


def test_delete_and_missing(client, auth_headers, create_analysis):
    analysis = create_analysis()

    client.delete(f"/api/intersections/analysis/{analysis['id']}", headers=auth_headers)

    response = client.get(f"/api/intersections/analysis/{analysis['id']}", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "Intersection analysis not found"
