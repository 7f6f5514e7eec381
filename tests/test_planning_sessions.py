"""
Tests for collaborative planning sessions and annotations
"""
import pytest


@pytest.fixture
def owner(user_factory):
    return user_factory("city_planner")


@pytest.fixture
def owner_headers(owner, headers):
    return headers(owner)


@pytest.fixture
def session(client, owner_headers):
    response = client.post(
        "/api/planning-sessions/",
        json={"title": "Downtown crosswalk review", "settings": {"allow_comments": True}},
        headers=owner_headers,
    )
    assert response.status_code == 201
    return response.json()["data"]


def add_collaborator(client, session_id, owner_headers, user, role):
    return client.post(
        f"/api/planning-sessions/{session_id}/collaborators",
        json={"user_id": user.id, "role": role},
        headers=owner_headers,
    )


def annotate(client, session_id, headers, content="Add zebra crossing here"):
    return client.post(
        f"/api/planning-sessions/{session_id}/annotations",
        json={"type": "zebra", "content": content, "position": {"x": 45.5, "y": 60}},
        headers=headers,
    )


def test_creator_is_admin(session, owner):
    assert session["created_by"] == owner.id
    assert session["user_role"] == "admin"
    assert session["status"] == "active"
    assert session["metadata"] == {
        "total_annotations": 0,
        "last_activity": session["metadata"]["last_activity"],
        "version": 1,
    }


def test_outsider_gets_404(client, session, auth_headers):
    response = client.get(f"/api/planning-sessions/{session['id']}", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["error"] == "Planning session not found"


def test_list_only_accessible_sessions(client, session, owner_headers, auth_headers, viewer):
    assert client.get("/api/planning-sessions/", headers=auth_headers).json()["data"] == []

    add_collaborator(client, session["id"], owner_headers, viewer, "viewer")

    sessions = client.get("/api/planning-sessions/", headers=auth_headers).json()["data"]
    assert [s["id"] for s in sessions] == [session["id"]]
    assert sessions[0]["user_role"] == "viewer"


def test_update_bumps_version(client, session, owner_headers):
    response = client.put(
        f"/api/planning-sessions/{session['id']}",
        json={"title": "Downtown review v2", "settings": {"grid_size": 40}},
        headers=owner_headers,
    )

    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["title"] == "Downtown review v2"
    assert updated["metadata"]["version"] == 2
    assert updated["settings"]["grid_size"] == 40
    assert updated["settings"]["allow_comments"] is True


def test_viewer_cannot_update(client, session, owner_headers, viewer, auth_headers):
    add_collaborator(client, session["id"], owner_headers, viewer, "viewer")

    response = client.put(f"/api/planning-sessions/{session['id']}", json={"title": "Mine"}, headers=auth_headers)

    assert response.status_code == 403


def test_editor_can_update_but_not_delete(client, session, owner_headers, viewer, auth_headers):
    add_collaborator(client, session["id"], owner_headers, viewer, "editor")

    updated = client.put(
        f"/api/planning-sessions/{session['id']}", json={"status": "completed"}, headers=auth_headers
    )
    deleted = client.delete(f"/api/planning-sessions/{session['id']}", headers=auth_headers)

    assert updated.status_code == 200
    assert deleted.status_code == 403


def test_only_admin_manages_collaborators(client, session, owner_headers, viewer, auth_headers, user_factory):
    add_collaborator(client, session["id"], owner_headers, viewer, "editor")
    newcomer = user_factory("viewer")

    response = add_collaborator(client, session["id"], auth_headers, newcomer, "viewer")

    assert response.status_code == 403


def test_collaborator_must_exist(client, session, owner_headers):
    response = client.post(
        f"/api/planning-sessions/{session['id']}/collaborators",
        json={"user_id": 9999, "role": "viewer"},
        headers=owner_headers,
    )

    assert response.status_code == 404


def test_collaborator_role_change(client, session, owner_headers, viewer):
    add_collaborator(client, session["id"], owner_headers, viewer, "viewer")

    response = add_collaborator(client, session["id"], owner_headers, viewer, "editor")

    collaborators = response.json()["data"]["collaborators"]
    assert [(c["user_id"], c["role"]) for c in collaborators] == [(viewer.id, "editor")]


class TestAnnotations:
    def test_create_and_list(self, client, session, owner_headers):
        first = annotate(client, session["id"], owner_headers, "First")
        second = annotate(client, session["id"], owner_headers, "Second")

        assert first.status_code == 201
        assert first.json()["data"]["position"] == {"x": 45.5, "y": 60}
        annotations = client.get(
            f"/api/planning-sessions/{session['id']}/annotations", headers=owner_headers
        ).json()["data"]
        assert [a["id"] for a in annotations] == [second.json()["data"]["id"], first.json()["data"]["id"]]
        refreshed = client.get(f"/api/planning-sessions/{session['id']}", headers=owner_headers).json()["data"]
        assert refreshed["metadata"]["total_annotations"] == 2

    def test_position_out_of_canvas(self, client, session, owner_headers):
        response = client.post(
            f"/api/planning-sessions/{session['id']}/annotations",
            json={"type": "note", "content": "Off canvas", "position": {"x": 120, "y": 10}},
            headers=owner_headers,
        )

        assert response.status_code == 400

    def test_viewer_blocked_without_comments(self, client, owner_headers, viewer, auth_headers):
        closed = client.post(
            "/api/planning-sessions/",
            json={"title": "Closed review", "settings": {"allow_comments": False}},
            headers=owner_headers,
        ).json()["data"]
        add_collaborator(client, closed["id"], owner_headers, viewer, "viewer")

        response = annotate(client, closed["id"], auth_headers)

        assert response.status_code == 403

    def test_viewer_cannot_delete_others(self, client, session, owner_headers, viewer, auth_headers):
        add_collaborator(client, session["id"], owner_headers, viewer, "viewer")
        annotation = annotate(client, session["id"], owner_headers).json()["data"]

        response = client.delete(
            f"/api/planning-sessions/{session['id']}/annotations/{annotation['id']}", headers=auth_headers
        )

        assert response.status_code == 403

    def test_author_deletes_own(self, client, session, owner_headers, viewer, auth_headers):
        add_collaborator(client, session["id"], owner_headers, viewer, "viewer")
        annotation = annotate(client, session["id"], auth_headers).json()["data"]

        response = client.delete(
            f"/api/planning-sessions/{session['id']}/annotations/{annotation['id']}", headers=auth_headers
        )

        assert response.status_code == 200
        refreshed = client.get(f"/api/planning-sessions/{session['id']}", headers=owner_headers).json()["data"]
        assert refreshed["metadata"]["total_annotations"] == 0

    def test_annotation_from_other_session(self, client, session, owner_headers):
        other = client.post(
            "/api/planning-sessions/", json={"title": "Other"}, headers=owner_headers
        ).json()["data"]
        annotation = annotate(client, other["id"], owner_headers).json()["data"]

        response = client.delete(
            f"/api/planning-sessions/{session['id']}/annotations/{annotation['id']}", headers=owner_headers
        )

        assert response.status_code == 404


def test_delete_session(client, session, owner_headers):
    annotate(client, session["id"], owner_headers)

    assert client.delete(f"/api/planning-sessions/{session['id']}", headers=owner_headers).status_code == 200
    assert client.get(f"/api/planning-sessions/{session['id']}", headers=owner_headers).status_code == 404


def test_statistics(client, session, owner_headers):
    annotate(client, session["id"], owner_headers)
    done = client.post("/api/planning-sessions/", json={"title": "Done"}, headers=owner_headers).json()["data"]
    client.put(f"/api/planning-sessions/{done['id']}", json={"status": "completed"}, headers=owner_headers)

    stats = client.get("/api/planning-sessions/statistics", headers=owner_headers).json()["data"]

    assert stats == {
        "total_sessions": 2,
        "active_sessions": 1,
        "completed_sessions": 1,
        "total_annotations": 1,
    }
