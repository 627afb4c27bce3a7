"""
tests/test_auth_api.py -- Integration tests for the /api/v1/auth routes.

Coverage:
  - register: 201 with token, default USER role, token works on /me
  - register: unknown role 400, ADMIN self-assignment 400, duplicate
    username/email 409, malformed body 400
  - login: 200 with token and no-store, wrong password and unknown user both
    401 bad_credentials
  - me: returns the principal; 401 without token
  - users: 403 for USER, 200 for ADMIN without password hashes
  - users/{id}: ADMIN deactivates and reactivates; 403 for USER, 404 for an
    unknown id, 400 when an admin targets their own account

Fixtures used (from conftest.py):
  - api: ApiContext; alice and bob are USERs with password "secret123",
    root is an ADMIN.
"""

from __future__ import annotations

from conftest import ApiContext, make_user

from auth.models import Role

REGISTER = "/api/v1/auth/register"
LOGIN = "/api/v1/auth/login"
ME = "/api/v1/auth/me"
USERS = "/api/v1/auth/users"


class TestRegister:
    def test_register_defaults_to_user(self, api: ApiContext) -> None:
        resp = api.client.post(REGISTER, json={"username": "erin", "email": "erin@example.com", "password": "hunter22"})
        assert resp.status_code == 201, resp.text
        assert resp.headers["Cache-Control"] == "no-store"
        data = resp.json()
        assert data["roles"] == ["USER"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] > 0

        me = api.client.get(ME, headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["username"] == "erin"
        assert me.json()["roles"] == ["USER"]

        login = api.client.post(LOGIN, json={"username": "erin", "password": "hunter22"})
        assert login.status_code == 200
        again = api.client.get(ME, headers={"Authorization": f"Bearer {login.json()['access_token']}"})
        assert again.json() == me.json()

    def test_unknown_role(self, api: ApiContext) -> None:
        resp = api.client.post(
            REGISTER,
            json={"username": "frank", "email": "frank@example.com", "password": "hunter22", "roles": ["OWNER"]},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_role"

    def test_admin_not_self_assignable(self, api: ApiContext) -> None:
        resp = api.client.post(
            REGISTER,
            json={"username": "mallory", "email": "mallory@example.com", "password": "hunter22", "roles": ["ADMIN"]},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "role_not_assignable"
        assert api.client.post(LOGIN, json={"username": "mallory", "password": "hunter22"}).status_code == 401

    def test_duplicate_username(self, api: ApiContext) -> None:
        body = {"username": "alice", "email": "other@example.com", "password": "hunter22"}
        resp = api.client.post(REGISTER, json=body)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_duplicate_email(self, api: ApiContext) -> None:
        body = {"username": "alice2", "email": "alice@example.com", "password": "hunter22"}
        resp = api.client.post(REGISTER, json=body)
        assert resp.status_code == 409

    def test_malformed_email(self, api: ApiContext) -> None:
        resp = api.client.post(REGISTER, json={"username": "grace", "email": "not-an-email", "password": "hunter22"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_short_password(self, api: ApiContext) -> None:
        resp = api.client.post(REGISTER, json={"username": "heidi", "email": "heidi@example.com", "password": "123"})
        assert resp.status_code == 400


class TestLogin:
    def test_valid_credentials(self, api: ApiContext) -> None:
        resp = api.client.post(LOGIN, json={"username": "alice", "password": "secret123"})
        assert resp.status_code == 200, resp.text
        assert resp.headers["Cache-Control"] == "no-store"
        data = resp.json()
        assert data["username"] == "alice"
        assert data["email"] == "alice@example.com"
        assert data["roles"] == ["USER"]

        tasks = api.client.get("/api/v1/tasks", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert tasks.status_code == 200

    def test_wrong_password(self, api: ApiContext) -> None:
        resp = api.client.post(LOGIN, json={"username": "alice", "password": "wrong-password"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "bad_credentials"

    def test_unknown_user_same_error(self, api: ApiContext) -> None:
        resp = api.client.post(LOGIN, json={"username": "nobody", "password": "secret123"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "bad_credentials"


class TestMe:
    def test_me(self, api: ApiContext) -> None:
        resp = api.client.get(ME, headers=api.headers(api.root))
        assert resp.status_code == 200
        assert resp.json() == {"user_id": api.root.user_id, "username": "root", "roles": ["ADMIN"]}

    def test_me_without_token(self, api: ApiContext) -> None:
        assert api.client.get(ME).status_code == 401


class TestListUsers:
    def test_user_forbidden(self, api: ApiContext) -> None:
        resp = api.client.get(USERS, headers=api.headers(api.bob))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_admin_lists_users(self, api: ApiContext) -> None:
        resp = api.client.get(USERS, headers=api.headers(api.root))
        assert resp.status_code == 200
        users = {u["username"]: u for u in resp.json()}
        assert {"alice", "bob", "root"} <= set(users)
        assert users["root"]["roles"] == ["ADMIN"]
        assert all("hashed_password" not in u for u in users.values())


class TestUpdateUserStatus:
    def test_admin_deactivates_and_reactivates(self, api: ApiContext) -> None:
        ivan = make_user(api.users, "ivan", Role.USER)
        url = f"{USERS}/{ivan.user_id}"

        resp = api.client.patch(url, json={"is_active": False}, headers=api.headers(api.root))
        assert resp.status_code == 200, resp.text
        assert resp.json()["is_active"] is False
        assert api.client.post(LOGIN, json={"username": "ivan", "password": "secret123"}).status_code == 401

        resp = api.client.patch(url, json={"is_active": True}, headers=api.headers(api.root))
        assert resp.json()["is_active"] is True
        assert api.client.post(LOGIN, json={"username": "ivan", "password": "secret123"}).status_code == 200

    def test_user_forbidden(self, api: ApiContext) -> None:
        resp = api.client.patch(f"{USERS}/{api.bob.user_id}", json={"is_active": False}, headers=api.headers(api.alice))
        assert resp.status_code == 403
        assert api.client.get(ME, headers=api.headers(api.bob)).status_code == 200

    def test_unknown_user(self, api: ApiContext) -> None:
        resp = api.client.patch(f"{USERS}/999999", json={"is_active": False}, headers=api.headers(api.root))
        assert resp.status_code == 404

    def test_admin_cannot_deactivate_self(self, api: ApiContext) -> None:
        resp = api.client.patch(f"{USERS}/{api.root.user_id}", json={"is_active": False}, headers=api.headers(api.root))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "self_deactivation"
        assert api.client.get(ME, headers=api.headers(api.root)).status_code == 200
