"""
Tests for demo data seeding and the audit trail
"""
import asyncio
import sqlite3
from datetime import datetime, timezone

from infracity_api.app.core.db import utc_datetime
from infracity_api.app.services.audit_service import AuditService
from infracity_api.app.services.seed_service import ADMIN_EMAIL, ADMIN_PASSWORD, DEMO_PASSWORD, DEMO_USERS


class TestSeed:
    def test_seed_admin_is_idempotent(self, client):
        first = client.post("/api/seed/admin")
        second = client.post("/api/seed/admin")

        assert first.json()["data"]["created"] is True
        assert second.json()["data"] == {"created": False, "message": "Admin user already exists"}

        login = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert login.status_code == 200
        assert login.json()["data"]["user"]["role"] == "admin"

    def test_seed_users_requires_admin(self, client, auth_headers):
        assert client.post("/api/seed/users", headers=auth_headers).status_code == 403
        assert client.post("/api/seed/users").status_code == 401

    def test_seed_users(self, client, admin_headers):
        first = client.post("/api/seed/users", headers=admin_headers).json()
        second = client.post("/api/seed/users", headers=admin_headers).json()

        assert first["data"]["created"] == len(DEMO_USERS)
        assert first["message"] == f"{len(DEMO_USERS)} demo users created successfully"
        assert second["data"]["created"] == 0
        login = client.post("/api/auth/login", json={"email": DEMO_USERS[0]["email"], "password": DEMO_PASSWORD})
        assert login.json()["data"]["user"]["role"] == DEMO_USERS[0]["role"]

    def test_seed_infrastructure(self, client, admin_headers):
        response = client.post("/api/seed/infrastructure", headers=admin_headers)

        result = response.json()["data"]
        assert result["seeded"] is True
        assert result["counts"]["roads"] == 4
        assert result["counts"]["intersections"] == 3
        assert result["counts"]["transactions"] >= result["counts"]["properties"]

        roads = client.get("/api/infrastructure/roads", headers=admin_headers).json()["data"]
        assert len(roads) == 4
        issues = client.get("/api/issues/", headers=admin_headers).json()["data"]
        assert len(issues) == 4

    def test_seed_infrastructure_skips_populated_database(self, client, admin_headers, road):
        response = client.post("/api/seed/infrastructure", headers=admin_headers)

        assert response.json()["data"] == {"seeded": False, "message": "Infrastructure data already exists"}


class TestAudit:
    def test_requires_admin(self, client, auth_headers):
        assert client.get("/api/audit/", headers=auth_headers).status_code == 403

    def test_actions_are_recorded(self, client, admin_headers, viewer, road):
        client.put(f"/api/infrastructure/roads/{road['id']}", json={"condition": 40}, headers=admin_headers)

        logs = client.get("/api/audit/", params={"object_type": "road"}, headers=admin_headers).json()["data"]

        assert [log["action"] for log in logs] == ["update", "create"]
        assert logs[1]["user_id"] == viewer.id
        assert logs[1]["details"] == {"name": "Main Street"}
        assert logs[0]["object_id"] == road["id"]

    def test_filters_and_pagination(self, client, admin_headers, admin_user):
        for index in range(3):
            asyncio.run(AuditService.log(admin_user.id, "delete", "widget", index))

        deletes = client.get(
            "/api/audit/", params={"action": "delete", "object_type": "widget"}, headers=admin_headers
        ).json()["data"]
        page = client.get(
            "/api/audit/", params={"object_type": "widget", "limit": 1, "offset": 1}, headers=admin_headers
        ).json()["data"]
        future = client.get("/api/audit/", params={"start_date": "2999-01-01"}, headers=admin_headers).json()["data"]

        assert [log["object_id"] for log in deletes] == [2, 1, 0]
        assert [log["object_id"] for log in page] == [1]
        assert future == []

    def test_record_never_raises(self, monkeypatch):
        def broken_connection():
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr("infracity_api.app.services.audit_service.get_connection", broken_connection)

        asyncio.run(AuditService.record(1, "create", "task", 1))

    def test_timestamps_are_naive_utc(self, client, admin_headers, admin_user):
        before = datetime.now(timezone.utc).replace(tzinfo=None)
        asyncio.run(AuditService.log(admin_user.id, "create", "widget", 1))
        after = datetime.now(timezone.utc).replace(tzinfo=None)

        logs = client.get("/api/audit/", params={"object_type": "widget"}, headers=admin_headers).json()["data"]

        stamped = datetime.fromisoformat(logs[0]["timestamp"])
        assert stamped.tzinfo is None
        assert before <= stamped <= after
        assert utc_datetime().tzinfo is None
