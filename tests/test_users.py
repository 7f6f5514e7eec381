"""
Tests for profile and admin user management endpoints
"""


def test_update_own_profile(client, auth_headers):
    response = client.put(
        "/api/users/me",
        json={"first_name": "Ada", "last_name": "Lovelace", "department": "Planning"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    user = response.json()["data"]
    assert user["name"] == "Ada Lovelace"
    assert user["department"] == "Planning"


def test_update_profile_requires_names(client, auth_headers):
    response = client.put("/api/users/me", json={"department": "Planning"}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_viewer_cannot_list_users(client, auth_headers):
    response = client.get("/api/users/", headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["error"] == "Insufficient permissions"


def test_admin_lists_users_by_role(client, admin_headers, user_factory):
    user_factory("traffic_engineer")
    user_factory("viewer")

    response = client.get("/api/users/", params={"role": "traffic_engineer"}, headers=admin_headers)

    assert response.status_code == 200
    users = response.json()["data"]
    assert len(users) == 1
    assert users[0]["role"] == "traffic_engineer"


def test_admin_changes_role(client, admin_headers, viewer):
    response = client.put(f"/api/users/{viewer.id}", json={"role": "city_planner"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["role"] == "city_planner"
    assert response.json()["data"]["email"] == viewer.email


def test_admin_rejects_unknown_role(client, admin_headers, viewer):
    response = client.put(f"/api/users/{viewer.id}", json={"role": "mayor"}, headers=admin_headers)

    assert response.status_code == 400


def test_admin_rejects_null_role(client, admin_headers, viewer):
    response = client.put(f"/api/users/{viewer.id}", json={"role": None}, headers=admin_headers)

    assert response.status_code == 400
    assert "role" in response.json()["error"]


def test_admin_deletes_user(client, admin_headers, viewer):
    assert client.delete(f"/api/users/{viewer.id}", headers=admin_headers).status_code == 200

    response = client.get(f"/api/users/{viewer.id}", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["error"] == f"User {viewer.id} not found"
