"""
Tests for issue reporting, heatmap and conversion to tasks
"""
import pytest

from infracity_api.app.services.issue_service import build_heatmap


def issue_payload(**overrides):
    payload = {
        "type": "Pothole",
        "location": "Broadway & 42nd St",
        "description": "Deep pothole near the crosswalk",
        "severity": "High",
        "coordinates": [40.7128, -74.006],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_issue(client, auth_headers):
    def _create(**overrides):
        response = client.post("/api/issues/", json=issue_payload(**overrides), headers=auth_headers)
        assert response.status_code == 201
        return response.json()["data"]

    return _create


def test_create_issue_sets_reporter(client, auth_headers, viewer):
    response = client.post("/api/issues/", json=issue_payload(), headers=auth_headers)

    assert response.status_code == 201
    issue = response.json()["data"]
    assert issue["status"] == "Open"
    assert issue["reported_by"] == viewer.id


def test_create_issue_unknown_type(client, auth_headers):
    response = client.post("/api/issues/", json=issue_payload(type="Volcano"), headers=auth_headers)

    assert response.status_code == 400


def test_list_issues_filters(client, auth_headers, create_issue):
    create_issue(severity="Low")
    create_issue(severity="Emergency", type="Traffic Flow")

    response = client.get("/api/issues/", params={"severity": "Emergency"}, headers=auth_headers)

    issues = response.json()["data"]
    assert len(issues) == 1
    assert issues[0]["type"] == "Traffic Flow"


def test_resolving_sets_resolved_at(client, auth_headers, create_issue):
    issue = create_issue()

    response = client.put(f"/api/issues/{issue['id']}", json={"status": "Resolved"}, headers=auth_headers)

    resolved = response.json()["data"]
    assert resolved["status"] == "Resolved"
    assert resolved["resolved_at"] is not None
    assert resolved["description"] == issue["description"]


def test_get_missing_issue(client, auth_headers):
    response = client.get("/api/issues/4242", headers=auth_headers)

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Issue 4242 not found"}


def test_delete_issue(client, auth_headers, create_issue):
    issue = create_issue()

    assert client.delete(f"/api/issues/{issue['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/issues/{issue['id']}", headers=auth_headers).status_code == 404


def test_update_links_existing_road(client, auth_headers, create_issue, road):
    issue = create_issue()

    response = client.put(f"/api/issues/{issue['id']}", json={"road_id": road["id"]}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["data"]["road_id"] == road["id"]


def test_update_unknown_road(client, auth_headers, create_issue):
    issue = create_issue()

    response = client.put(f"/api/issues/{issue['id']}", json={"road_id": 9999}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Road 9999 does not exist"}
    assert client.get(f"/api/issues/{issue['id']}", headers=auth_headers).json()["data"]["road_id"] is None


@pytest.mark.parametrize("field", ["status", "severity", "type", "location", "description"])
def test_update_rejects_null_required_field(client, auth_headers, create_issue, field):
    issue = create_issue()

    response = client.put(f"/api/issues/{issue['id']}", json={field: None}, headers=auth_headers)

    assert response.status_code == 400
    assert field in response.json()["error"]


class TestHeatmap:
    def test_groups_open_issues_into_cells(self, client, auth_headers, create_issue):
        create_issue(severity="High", coordinates=[40.7128, -74.006])
        create_issue(severity="Low", coordinates=[40.7131, -74.0062])
        resolved = create_issue(severity="Emergency", coordinates=[40.7129, -74.0061])
        client.put(f"/api/issues/{resolved['id']}", json={"status": "Resolved"}, headers=auth_headers)

        response = client.get("/api/issues/heatmap", headers=auth_headers)

        assert response.status_code == 200
        heatmap = response.json()["data"]
        assert len(heatmap["data"]) == 1
        point = heatmap["data"][0]
        assert point["lat"] == pytest.approx(40.715)
        assert point["lng"] == pytest.approx(-74.005)
        # two issues plus half of the severity weights 3 and 1
        assert point["value"] == pytest.approx(4.0)
        assert heatmap["max_value"] == pytest.approx(4.0)
        assert heatmap["min_value"] == 0

    def test_empty_heatmap(self, client, auth_headers):
        heatmap = client.get("/api/issues/heatmap", headers=auth_headers).json()["data"]

        assert heatmap["data"] == []
        assert heatmap["max_value"] == 1
        assert heatmap["min_value"] == 0

    def test_unknown_severity_weighs_one(self):
        points = build_heatmap(
            [
                {"coordinates": [10.001, 20.001], "severity": "Odd"},
                {"coordinates": None, "severity": "High"},
            ]
        )

        assert len(points) == 1
        assert points[0].value == pytest.approx(1.5)


class TestConvertToTask:
    def test_defaults_derived_from_issue(self, client, auth_headers, create_issue):
        issue = create_issue(type="Garbage", severity="Emergency", location="Pier 5")

        response = client.post(
            f"/api/issues/{issue['id']}/convert-to-task",
            json={"assigned_to": "Sanitation", "due_date": "2030-01-15T08:00:00"},
            headers=auth_headers,
        )

        assert response.status_code == 201
        task = response.json()["data"]
        assert task["title"] == "Fix Garbage at Pier 5"
        assert task["description"] == issue["description"]
        assert task["priority"] == "emergency"
        assert task["estimated_duration"] == 30
        assert task["issue_type"] == "Garbage"
        assert task["location"] == "Pier 5"
        assert task["coordinates"] == issue["coordinates"]
        assert task["issue_id"] == issue["id"]

        updated = client.get(f"/api/issues/{issue['id']}", headers=auth_headers).json()["data"]
        assert updated["status"] == "In Progress"

    def test_overrides_win(self, client, auth_headers, create_issue):
        issue = create_issue()

        response = client.post(
            f"/api/issues/{issue['id']}/convert-to-task",
            json={
                "assigned_to": "Crew B",
                "due_date": "2030-01-15T08:00:00",
                "title": "Patch asphalt",
                "priority": "low",
                "estimated_duration": 15,
            },
            headers=auth_headers,
        )

        task = response.json()["data"]
        assert task["title"] == "Patch asphalt"
        assert task["priority"] == "low"
        assert task["estimated_duration"] == 15

    def test_requires_assignee(self, client, auth_headers, create_issue):
        issue = create_issue()

        response = client.post(
            f"/api/issues/{issue['id']}/convert-to-task",
            json={"due_date": "2030-01-15T08:00:00"},
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_missing_issue(self, client, auth_headers):
        response = client.post(
            "/api/issues/999/convert-to-task",
            json={"assigned_to": "Crew B", "due_date": "2030-01-15T08:00:00"},
            headers=auth_headers,
        )

        assert response.status_code == 404
