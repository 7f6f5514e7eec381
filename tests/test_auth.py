"""
Tests for registration, login and token handling
"""
from faker import Faker

fake = Faker()


def register(client, email=None, password="s3cret-pass", name="Jane Doe"):
    return client.post(
        "/api/auth/register",
        json={"name": name, "email": email or fake.unique.email(), "password": password},
    )


def login(client, email, password="s3cret-pass"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


class TestRegister:
    def test_register_creates_viewer(self, client):
        email = fake.unique.email()
        response = register(client, email=email, name="Jane Doe")

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        user = body["data"]["user"]
        assert user["email"] == email.lower()
        assert user["role"] == "viewer"
        assert user["first_name"] == "Jane"
        assert user["last_name"] == "Doe"
        assert body["data"]["access_token"]

    def test_register_duplicate_email(self, client):
        email = fake.unique.email()
        register(client, email=email)

        response = register(client, email=email)

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "User already exists"}

    def test_register_requires_name(self, client):
        response = client.post(
            "/api/auth/register", json={"email": fake.unique.email(), "password": "s3cret-pass"}
        )

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "name" in response.json()["error"]


class TestLogin:
    def test_login_returns_token_pair(self, client):
        email = fake.unique.email()
        register(client, email=email)

        response = login(client, email)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["email"] == email.lower()
        assert data["user"]["last_login_at"] is not None

    def test_login_wrong_password(self, client):
        email = fake.unique.email()
        register(client, email=email)

        response = login(client, email, password="wrong-password")

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"

    def test_login_inactive_user(self, client, user_factory, admin_headers):
        user = user_factory("viewer", password="s3cret-pass")
        client.put(f"/api/users/{user.id}", json={"is_active": False}, headers=admin_headers)

        response = login(client, user.email)

        assert response.status_code == 401


class TestTokens:
    def test_me_requires_token(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_me_rejects_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.token"})

        assert response.status_code == 401

    def test_me_returns_profile(self, client, viewer, auth_headers):
        response = client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["data"]["id"] == viewer.id

    def test_refresh_rotates_tokens(self, client):
        email = fake.unique.email()
        register(client, email=email)
        tokens = login(client, email).json()["data"]

        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

        assert response.status_code == 200
        rotated = response.json()["data"]
        assert rotated["refresh_token"] != tokens["refresh_token"]
        # The old refresh token is no longer stored.
        reused = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert reused.status_code == 401

    def test_refresh_rejects_access_token(self, client):
        email = fake.unique.email()
        register(client, email=email)
        tokens = login(client, email).json()["data"]

        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})

        assert response.status_code == 401

    def test_logout_revokes_refresh_token(self, client):
        email = fake.unique.email()
        register(client, email=email)
        tokens = login(client, email).json()["data"]
        headers = {"Authorization": f"Bearer {tokens['access_token']}"}

        assert client.post("/api/auth/logout", headers=headers).status_code == 200

        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401

    def test_deleted_user_loses_access(self, client, user_factory, headers, admin_headers):
        user = user_factory("maintenance_crew")
        user_headers = headers(user)
        client.delete(f"/api/users/{user.id}", headers=admin_headers)

        response = client.get("/api/auth/me", headers=user_headers)

        assert response.status_code == 401
