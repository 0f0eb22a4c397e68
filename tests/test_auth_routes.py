"""
tests/test_auth_routes.py -- Integration tests for /api/auth/*.

Covers:
  - sign-up: 201, public user in body, httpOnly session cookie, no password echoed
  - sign-up: 409 on a taken email, 400 with per-field details on bad input
  - sign-up: passwords over 72 UTF-8 bytes are refused; a longer one never signs in
  - sign-in: 200 with cookie; identical 401 for unknown email and wrong password
  - sign-out: 200 and the cookie is expired
  - the cookie from sign-up / sign-in opens the protected routes
  - Cache-Control: no-store on responses that set a session cookie
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient

if TYPE_CHECKING:
    from conftest import SeededApi


def _sign_up(client: TestClient, email: str, **overrides) -> object:
    body = {"name": "Alice Example", "email": email, "password": "secret123"}
    body.update(overrides)
    return client.post("/api/auth/sign-up", json=body)


class TestSignUp:
    def test_created(self, client: TestClient) -> None:
        resp = _sign_up(client, "signup-created@example.com")
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["message"] == "User registered"
        user = data["user"]
        assert set(user) == {"id", "name", "email", "role"}
        assert user["email"] == "signup-created@example.com"
        assert user["name"] == "Alice Example"
        assert user["role"] == "user"
        assert isinstance(user["id"], int) and user["id"] > 0

    def test_body_never_contains_password_or_token(self, client: TestClient) -> None:
        resp = _sign_up(client, "signup-nosecret@example.com")
        assert "password" not in resp.text
        assert "secret123" not in resp.text
        assert "token" not in resp.json()

    def test_sets_session_cookie(self, client: TestClient) -> None:
        resp = _sign_up(client, "signup-cookie@example.com")
        header = resp.headers["set-cookie"].lower()
        assert header.startswith("token=")
        assert "httponly" in header
        assert "samesite=lax" in header
        assert "path=/" in header
        assert "max-age=86400" in header
        assert resp.headers["cache-control"] == "no-store"

    def test_name_and_email_are_trimmed(self, client: TestClient) -> None:
        resp = _sign_up(client, "  signup-trim@example.com ", name="  Trim Me  ")
        assert resp.status_code == 201, resp.text
        assert resp.json()["user"]["email"] == "signup-trim@example.com"
        assert resp.json()["user"]["name"] == "Trim Me"

    def test_admin_role_may_be_requested(self, client: TestClient) -> None:
        resp = _sign_up(client, "signup-admin@example.com", role="admin")
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "admin"

    def test_duplicate_email(self, client: TestClient, api: SeededApi) -> None:
        before = len(api.store.list_all())
        resp = _sign_up(client, "user@example.com")
        assert resp.status_code == 409
        assert resp.json() == {"error": "Email already exist"}
        assert "set-cookie" not in resp.headers
        assert len(api.store.list_all()) == before

    def test_validation_details(self, client: TestClient) -> None:
        resp = client.post("/api/auth/sign-up", json={"name": "A", "email": "not-an-email", "password": "123"})
        assert resp.status_code == 400
        data = resp.json()
        assert data["error"] == "Validation failed"
        fields = {d["field"] for d in data["details"]}
        assert fields == {"name", "email", "password"}
        assert all(d["message"] for d in data["details"])

    def test_missing_fields(self, client: TestClient) -> None:
        resp = client.post("/api/auth/sign-up", json={})
        assert resp.status_code == 400
        assert {d["field"] for d in resp.json()["details"]} >= {"name", "email", "password"}

    def test_unknown_role_rejected(self, client: TestClient) -> None:
        resp = _sign_up(client, "signup-role@example.com", role="superuser")
        assert resp.status_code == 400
        assert [d["field"] for d in resp.json()["details"]] == ["role"]

    def test_password_too_long(self, client: TestClient) -> None:
        resp = _sign_up(client, "signup-long@example.com", password="x" * 129)
        assert resp.status_code == 400

    @pytest.mark.parametrize("password", ["x" * 73, "é" * 37, "密" * 25])
    def test_password_over_72_bytes(self, client: TestClient, password: str) -> None:
        resp = _sign_up(client, "signup-bytes@example.com", password=password)
        assert resp.status_code == 400
        assert resp.json()["details"] == [{"field": "password", "message": "Value error, Password must be at most 72 bytes"}]

    def test_password_of_72_bytes_signs_in(self, client: TestClient) -> None:
        assert _sign_up(client, "signup-72@example.com", password="x" * 72).status_code == 201
        body = {"email": "signup-72@example.com"}
        assert client.post("/api/auth/sign-in", json={**body, "password": "x" * 72}).status_code == 200
        assert client.post("/api/auth/sign-in", json={**body, "password": "x" * 73}).status_code == 401

    def test_cookie_opens_protected_route(self, client: TestClient) -> None:
        user_id = _sign_up(client, "signup-session@example.com").json()["user"]["id"]
        resp = client.get(f"/api/users/{user_id}")
        assert resp.status_code == 200, resp.text
        assert resp.json()["user"]["email"] == "signup-session@example.com"


class TestSignIn:
    def test_success(self, client: TestClient, api: SeededApi) -> None:
        resp = client.post("/api/auth/sign-in", json={"email": "admin@example.com", "password": api.admin_password})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["message"] == "User logged in"
        assert data["user"] == {
            "id": api.admin.id,
            "name": "Ada Admin",
            "email": "admin@example.com",
            "role": "admin",
        }
        assert "httponly" in resp.headers["set-cookie"].lower()
        assert resp.headers["cache-control"] == "no-store"

    def test_issued_token_carries_identity(self, client: TestClient, api: SeededApi) -> None:
        client.post("/api/auth/sign-in", json={"email": "user@example.com", "password": api.user_password})
        token = client.cookies.get("token")
        assert token
        assert api.tokens.verify(token) == api.user

    def test_unknown_email_and_wrong_password_look_the_same(self, client: TestClient, api: SeededApi) -> None:
        unknown = client.post("/api/auth/sign-in", json={"email": "ghost@example.com", "password": api.user_password})
        wrong = client.post("/api/auth/sign-in", json={"email": "user@example.com", "password": "not-it"})
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json() == {"error": "Invalid email or password"}
        assert "set-cookie" not in unknown.headers
        assert "set-cookie" not in wrong.headers

    def test_empty_password_is_validation_error(self, client: TestClient) -> None:
        resp = client.post("/api/auth/sign-in", json={"email": "user@example.com", "password": ""})
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "password"

    def test_malformed_json(self, client: TestClient) -> None:
        resp = client.post(
            "/api/auth/sign-in",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validation failed"


class TestSignOut:
    def test_clears_cookie(self, client: TestClient, api: SeededApi) -> None:
        client.post("/api/auth/sign-in", json={"email": "user@example.com", "password": api.user_password})
        assert client.cookies.get("token")

        resp = client.post("/api/auth/sign-out")
        assert resp.status_code == 200
        assert resp.json() == {"message": "User logged out"}
        assert "max-age=0" in resp.headers["set-cookie"].lower()
        assert not client.cookies.get("token")

    def test_without_session(self, client: TestClient) -> None:
        resp = client.post("/api/auth/sign-out")
        assert resp.status_code == 200

    def test_token_copy_survives_sign_out(self, client: TestClient, api: SeededApi) -> None:
        """Sessions are stateless: sign-out drops the cookie but cannot revoke a copied token."""
        client.post("/api/auth/sign-out", headers=api.cookie(api.user_token))
        resp = client.get(f"/api/users/{api.user.id}", headers=api.cookie(api.user_token))
        assert resp.status_code == 200
