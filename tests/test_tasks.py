"""
Tests for maintenance task endpoints
"""
import pytest


def task_payload(**overrides):
    payload = {
        "title": "Fix pothole on Main Street",
        "description": "Large pothole in the right lane",
        "priority": "medium",
        "assigned_to": "Crew A",
        "due_date": "2030-09-01T09:00:00",
        "location": "Main St & 1st Ave",
        "issue_type": "Pothole",
        "estimated_duration": 60,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_task(client, auth_headers):
    def _create(**overrides):
        response = client.post("/api/tasks/", json=task_payload(**overrides), headers=auth_headers)
        assert response.status_code == 201
        return response.json()["data"]

    return _create


def test_create_task(client, auth_headers, viewer):
    response = client.post("/api/tasks/", json=task_payload(), headers=auth_headers)

    assert response.status_code == 201
    task = response.json()["data"]
    assert task["status"] == "pending"
    assert task["created_by"] == viewer.id
    assert task["completed_at"] is None


def test_create_task_missing_fields(client, auth_headers):
    payload = task_payload()
    del payload["location"]

    response = client.post("/api/tasks/", json=payload, headers=auth_headers)

    assert response.status_code == 400
    assert "location" in response.json()["error"]


def test_list_tasks_filters(client, auth_headers, create_task):
    create_task(assigned_to="North Crew", priority="high")
    create_task(assigned_to="South Crew", priority="low", issue_type="Garbage")

    by_assignee = client.get("/api/tasks/", params={"assigned_to": "north"}, headers=auth_headers).json()["data"]
    by_type = client.get("/api/tasks/", params={"issue_type": "Garbage"}, headers=auth_headers).json()["data"]

    assert [t["assigned_to"] for t in by_assignee] == ["North Crew"]
    assert [t["priority"] for t in by_type] == ["low"]


def test_list_tasks_newest_first(client, auth_headers, create_task):
    first = create_task(title="First")
    second = create_task(title="Second")

    tasks = client.get("/api/tasks/", headers=auth_headers).json()["data"]

    assert [t["id"] for t in tasks] == [second["id"], first["id"]]


def test_update_merges_fields(client, auth_headers, create_task):
    task = create_task()

    response = client.put(f"/api/tasks/{task['id']}", json={"notes": "Bring cones"}, headers=auth_headers)

    updated = response.json()["data"]
    assert updated["notes"] == "Bring cones"
    assert updated["title"] == task["title"]
    assert updated["priority"] == task["priority"]


@pytest.mark.parametrize("field", ["title", "priority", "assigned_to", "due_date", "estimated_duration"])
def test_update_rejects_null_required_field(client, auth_headers, create_task, field):
    task = create_task()

    response = client.put(f"/api/tasks/{task['id']}", json={field: None}, headers=auth_headers)

    assert response.status_code == 400
    assert field in response.json()["error"]
    assert client.get(f"/api/tasks/{task['id']}", headers=auth_headers).json()["data"][field] == task[field]


def test_update_clears_notes(client, auth_headers, create_task):
    task = create_task(notes="Bring cones")

    response = client.put(f"/api/tasks/{task['id']}", json={"notes": None}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["data"]["notes"] is None


def test_status_completed_sets_and_clears_timestamp(client, auth_headers, create_task):
    task = create_task()

    completed = client.put(
        f"/api/tasks/{task['id']}/status", json={"status": "completed"}, headers=auth_headers
    ).json()["data"]
    reopened = client.put(
        f"/api/tasks/{task['id']}/status", json={"status": "in-progress"}, headers=auth_headers
    ).json()["data"]

    assert completed["completed_at"] is not None
    assert reopened["status"] == "in-progress"
    assert reopened["completed_at"] is None


def test_invalid_status(client, auth_headers, create_task):
    task = create_task()

    response = client.put(f"/api/tasks/{task['id']}/status", json={"status": "done"}, headers=auth_headers)

    assert response.status_code == 400


def test_delete_then_get_is_404(client, auth_headers, create_task):
    task = create_task()

    assert client.delete(f"/api/tasks/{task['id']}", headers=auth_headers).status_code == 200

    response = client.get(f"/api/tasks/{task['id']}", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"] == f"Task {task['id']} not found"


class TestOptimizeRoute:
    def test_orders_by_priority_then_duration(self, client, auth_headers, create_task):
        low = create_task(priority="low", estimated_duration=30)
        long_high = create_task(priority="high", estimated_duration=120)
        short_high = create_task(priority="high", estimated_duration=45)
        emergency = create_task(priority="emergency", estimated_duration=200)

        response = client.post(
            "/api/tasks/optimize-route",
            json={"task_ids": [low["id"], long_high["id"], short_high["id"], emergency["id"]]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        result = response.json()["data"]
        assert [stop["task_id"] for stop in result["route"]] == [
            emergency["id"],
            short_high["id"],
            long_high["id"],
            low["id"],
        ]
        assert [stop["order"] for stop in result["route"]] == [1, 2, 3, 4]
        assert [stop["estimated_time"] for stop in result["route"]] == [200, 60, 135, 45]
        assert result["total_time"] == 440
        assert result["total_distance"] == 10.0
        assert result["optimized_at"]

    def test_empty_ids(self, client, auth_headers):
        response = client.post("/api/tasks/optimize-route", json={"task_ids": []}, headers=auth_headers)

        assert response.status_code == 400

    def test_unknown_ids(self, client, auth_headers):
        response = client.post("/api/tasks/optimize-route", json={"task_ids": [999]}, headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "No tasks found"
