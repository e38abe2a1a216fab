"""
API tests for registration, sessions, profile and user administration.
"""

from uuid import uuid4

from conftest import VALID_API_KEY, auth_headers, register


class TestRegistration:
    def test_register_returns_tokens_on_free_plan(self, client):
        body = register(client)
        assert body["token_type"] == "bearer"
        assert body["plan_type"] == "free"
        assert body["expires_in"] > 0
        assert body["access_token"] != body["refresh_token"]

    def test_email_is_normalized(self, client):
        register(client, email="Alice@Example.COM")
        response = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "s3cret-pass"})
        assert response.status_code == 200

    def test_duplicate_email_is_409(self, client):
        register(client)
        response = client.post("/api/v1/auth/register", json={
            "email": "alice@example.com", "username": "other", "password": "s3cret-pass",
            "api_key": VALID_API_KEY, "api_secret": "s", "passphrase": "p",
        })
        assert response.status_code == 409
        assert response.json()["detail"] == "Email already registered"

    def test_duplicate_username_is_409(self, client):
        register(client)
        response = client.post("/api/v1/auth/register", json={
            "email": "bob@example.com", "username": "alice", "password": "s3cret-pass",
            "api_key": VALID_API_KEY, "api_secret": "s", "passphrase": "p",
        })
        assert response.status_code == 409

    def test_rejected_exchange_keys_are_400(self, client):
        response = client.post("/api/v1/auth/register", json={
            "email": "bob@example.com", "username": "bob", "password": "s3cret-pass",
            "api_key": "bad-key", "api_secret": "s", "passphrase": "p",
        })
        assert response.status_code == 400

    def test_unknown_coupon_is_404(self, client):
        response = client.post("/api/v1/auth/register", json={
            "email": "bob@example.com", "username": "bob", "password": "s3cret-pass",
            "api_key": VALID_API_KEY, "api_secret": "s", "passphrase": "p", "coupon_code": "NOPE",
        })
        assert response.status_code == 404

    def test_short_password_is_400(self, client):
        response = client.post("/api/v1/auth/register", json={
            "email": "bob@example.com", "username": "bob", "password": "short",
            "api_key": VALID_API_KEY, "api_secret": "s", "passphrase": "p",
        })
        assert response.status_code == 400
        assert "password" in response.json()["detail"]


class TestSessions:
    def test_login_with_wrong_password_is_401(self, client):
        register(client)
        response = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_login_unknown_email_is_401(self, client):
        response = client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": "whatever"})
        assert response.status_code == 401

    def test_me_returns_profile(self, client, user_headers):
        response = client.get("/api/v1/auth/me", headers=user_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["email"] == "alice@example.com"
        assert body["has_exchange_credentials"] is True
        assert body["is_admin"] is False
        assert "password_hash" not in body

    def test_garbage_token_is_401(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    def test_refresh_issues_new_access_token(self, client):
        tokens = register(client)
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["refresh_token"] == tokens["refresh_token"]
        assert client.get("/api/v1/auth/me", headers=auth_headers(response.json())).status_code == 200

    def test_access_token_cannot_refresh(self, client):
        tokens = register(client)
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
        assert response.status_code == 401

    def test_logout_ends_refresh(self, client):
        tokens = register(client)
        response = client.post("/api/v1/auth/logout", headers=auth_headers(tokens))
        assert response.status_code == 200
        assert response.json() == {"message": "Logged out"}

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401

    def test_username_availability(self, client):
        register(client)
        taken = client.get("/api/v1/auth/username-available", params={"username": "ALICE"})
        free = client.get("/api/v1/auth/username-available", params={"username": "carol"})
        assert taken.json() == {"username": "ALICE", "available": False}
        assert free.json()["available"] is True


class TestProfile:
    def test_update_username(self, client, user_headers):
        response = client.patch("/api/v1/users/me", json={"username": "alice_2"}, headers=user_headers)
        assert response.status_code == 200
        assert response.json()["username"] == "alice_2"

    def test_update_username_to_taken_is_409(self, client, user_headers):
        register(client, email="bob@example.com", username="bob")
        response = client.patch("/api/v1/users/me", json={"username": "bob"}, headers=user_headers)
        assert response.status_code == 409

    def test_replace_credentials(self, client, user_headers):
        body = {"api_key": VALID_API_KEY, "api_secret": "new", "passphrase": "new", "testnet": True}
        response = client.put("/api/v1/users/me/credentials", json=body, headers=user_headers)
        assert response.status_code == 200
        assert response.json()["testnet"] is True

    def test_rejected_credentials_are_400(self, client, user_headers):
        body = {"api_key": "bad-key", "api_secret": "new", "passphrase": "new"}
        response = client.put("/api/v1/users/me/credentials", json=body, headers=user_headers)
        assert response.status_code == 400


class TestAdministration:
    def test_non_admin_is_403(self, client, user_headers):
        response = client.get("/api/v1/admin/users", headers=user_headers)
        assert response.status_code == 403

    def test_list_users(self, client, admin_headers):
        register(client)
        response = client.get("/api/v1/admin/users", headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert {u["username"] for u in body["items"]} == {"admin", "alice"}

    def test_deactivated_user_cannot_log_in(self, client, admin_headers):
        user_id = register(client)["user_id"]
        response = client.patch(f"/api/v1/admin/users/{user_id}/active", json={"is_active": False}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        response = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "s3cret-pass"})
        assert response.status_code == 403

    def test_change_plan(self, client, admin_headers):
        user_id = register(client)["user_id"]
        response = client.patch(f"/api/v1/admin/users/{user_id}/plan", json={"plan_type": "pro"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["plan_type"] == "pro"

    def test_unknown_user_is_404(self, client, admin_headers):
        response = client.patch(f"/api/v1/admin/users/{uuid4()}/plan", json={"plan_type": "pro"}, headers=admin_headers)
        assert response.status_code == 404
