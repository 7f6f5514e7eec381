"""
Tests for metrics, the infrastructure overview and the road and
intersection registries
"""
import pytest

from infracity_api.app.services import infrastructure_service
from infracity_api.app.services.infrastructure_service import average_resolution_hours


def report_issue(client, headers, **overrides):
    payload = {
        "type": "Pothole",
        "location": "Main St",
        "description": "Crack",
        "severity": "Medium",
    }
    payload.update(overrides)
    return client.post("/api/issues/", json=payload, headers=headers).json()["data"]


class TestPerformanceMetrics:
    def test_empty_database(self, client, auth_headers):
        response = client.get("/api/metrics/performance", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["period"] == "24h"
        assert data["issue_metrics"]["total"] == 0
        assert data["issue_metrics"]["resolution_rate"] == 0
        assert data["performance_metrics"]["road_health_index"] == 0
        assert data["performance_metrics"]["average_resolution_time"] == 0

    def test_counts_issues_and_roads(self, client, auth_headers, road):
        report_issue(client, auth_headers, severity="High")
        report_issue(client, auth_headers, severity="Emergency")
        fixed = report_issue(client, auth_headers, severity="High")
        client.put(f"/api/issues/{fixed['id']}", json={"status": "Resolved"}, headers=auth_headers)
        client.post(
            "/api/infrastructure/roads",
            json={"name": "Old Lane", "condition": 51},
            headers=auth_headers,
        )

        data = client.get("/api/metrics/performance", headers=auth_headers).json()["data"]

        issues = data["issue_metrics"]
        assert issues["total"] == 3
        assert issues["resolved"] == 1
        assert issues["high_priority"] == 2
        assert issues["resolution_rate"] == 33
        assert issues["last_24_hours"] == {"reported": 3, "resolved": 1}
        performance = data["performance_metrics"]
        assert performance["total_roads"] == 2
        assert performance["roads_needing_attention"] == 1
        assert performance["road_health_index"] == pytest.approx(61.5)


def test_average_resolution_hours():
    rows = [
        {"created_at": "2025-01-01T00:00:00", "resolved_at": "2025-01-01T03:00:00"},
        {"created_at": "2025-01-01T00:00:00", "resolved_at": "2025-01-01T02:00:00"},
        {"created_at": "2025-01-01T00:00:00", "resolved_at": None},
    ]

    assert average_resolution_hours(rows) == 2.5
    assert average_resolution_hours([]) == 0


def test_system_metrics_shape(client, auth_headers):
    data = client.get("/api/infrastructure/metrics", headers=auth_headers).json()["data"]

    assert set(data) == {"cpu", "memory", "disk", "network", "timestamp"}
    assert data["cpu"]["cores"] >= 0
    assert 0 <= data["disk"]["usage"] <= 100
    assert set(data["network"]) == {"bytes_received", "bytes_sent", "packets_received", "packets_sent"}


def test_network_metrics_without_proc(tmp_path):
    counters = infrastructure_service._network_metrics(str(tmp_path / "missing"))

    assert counters == {"bytes_received": 0, "bytes_sent": 0, "packets_received": 0, "packets_sent": 0}


def test_network_metrics_skip_loopback(tmp_path):
    stats = tmp_path / "dev"
    stats.write_text(
        "Inter-|   Receive\n"
        " face |bytes packets errs drop fifo frame compressed multicast|bytes packets\n"
        "    lo: 100 1 0 0 0 0 0 0 100 1 0 0 0 0 0 0\n"
        "  eth0: 2000 20 0 0 0 0 0 0 3000 30 0 0 0 0 0 0\n"
    )

    counters = infrastructure_service._network_metrics(str(stats))

    assert counters == {"bytes_received": 2000, "bytes_sent": 3000, "packets_received": 20, "packets_sent": 30}


def test_overview(client, auth_headers, road, intersection):
    report_issue(client, auth_headers, type="Garbage")
    done = report_issue(client, auth_headers)
    client.put(f"/api/issues/{done['id']}", json={"status": "Resolved"}, headers=auth_headers)

    data = client.get("/api/infrastructure/overview", headers=auth_headers).json()["data"]

    assert data["issues"]["total"] == 2
    assert data["issues"]["by_status"] == {"Open": 1, "Resolved": 1}
    assert data["issues"]["by_type"] == {"Garbage": 1, "Pothole": 1}
    assert data["roads"] == 1
    assert data["intersections"] == 1
    assert data["tasks"]["total"] == 0
    assert data["resolution_rate"] == 50


class TestRoads:
    def test_list_sorted_by_name(self, client, auth_headers):
        for name in ("Park Avenue", "Broadway", "Main Street"):
            client.post("/api/infrastructure/roads", json={"name": name, "condition": 80}, headers=auth_headers)

        roads = client.get("/api/infrastructure/roads", headers=auth_headers).json()["data"]

        assert [r["name"] for r in roads] == ["Broadway", "Main Street", "Park Avenue"]

    def test_condition_out_of_range(self, client, auth_headers):
        response = client.post(
            "/api/infrastructure/roads", json={"name": "Bad", "condition": 140}, headers=auth_headers
        )

        assert response.status_code == 400

    def test_update_merges(self, client, auth_headers, road):
        response = client.put(
            f"/api/infrastructure/roads/{road['id']}", json={"condition": 40}, headers=auth_headers
        )

        updated = response.json()["data"]
        assert updated["condition"] == 40
        assert updated["name"] == road["name"]
        assert updated["width"] == road["width"]

    @pytest.mark.parametrize("field", ["name", "condition", "lanes"])
    def test_update_rejects_null(self, client, auth_headers, road, field):
        response = client.put(
            f"/api/infrastructure/roads/{road['id']}", json={field: None}, headers=auth_headers
        )

        assert response.status_code == 400
        assert field in response.json()["error"]

    def test_delete(self, client, auth_headers, road):
        client.delete(f"/api/infrastructure/roads/{road['id']}", headers=auth_headers)

        response = client.get(f"/api/infrastructure/roads/{road['id']}", headers=auth_headers)
        assert response.status_code == 404


class TestIntersections:
    def test_filter_by_congestion(self, client, auth_headers, intersection):
        client.post(
            "/api/infrastructure/intersections",
            json={"name": "Quiet Corner", "coordinates": [40.7, -74.0], "congestion_level": "Low"},
            headers=auth_headers,
        )

        high = client.get(
            "/api/infrastructure/intersections", params={"congestion_level": "High"}, headers=auth_headers
        ).json()["data"]

        assert [i["name"] for i in high] == [intersection["name"]]

    def test_update_peak_hours(self, client, auth_headers, intersection):
        response = client.put(
            f"/api/infrastructure/intersections/{intersection['id']}",
            json={"peak_hours": ["07:00-08:00"]},
            headers=auth_headers,
        )

        updated = response.json()["data"]
        assert updated["peak_hours"] == ["07:00-08:00"]
        assert updated["volume"] == intersection["volume"]

    def test_missing(self, client, auth_headers):
        response = client.get("/api/infrastructure/intersections/77", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "Intersection 77 not found"
