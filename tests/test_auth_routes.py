"""
tests/test_auth_routes.py -- Integration tests for the registration and session lifecycle.

These tests exercise the full stack: FastAPI routing -> AuthFlow ->
IdentityStore / OTP / mailer -> response model serialization.

Coverage:
  - register -> verify -> login -> refresh -> me, end to end
  - pending accounts: soft login denial, 401 on protected routes
  - duplicate email / phone, unknown region, non self-registrable role, body validation
  - wrong OTP, unknown email, wrong password
  - refresh token misuse and refresh picking up a role change

Fixtures used (from conftest.py):
  - api_client: (client, admin_token, admin_id)
  - mailer: RecordingMailer holding every OTP sent
"""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from auth.flow import NOT_VERIFIED_MESSAGE, REGISTERED_MESSAGE, VERIFIED_MESSAGE


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_payload(**overrides) -> dict:
    n = uuid.uuid4().int
    payload = {
        "email": f"reg{n % 10**12}@example.com",
        "phone": f"+998{n % 10**9:09d}",
        "password": "secret123",
        "full_name": "Ali Valiyev",
        "role": "user",
    }
    payload.update(overrides)
    return payload


def other_code(code: str) -> str:
    return str((int(code) + 1) % 10 ** len(code)).zfill(len(code))


def _register(client: TestClient, **overrides) -> dict:
    payload = register_payload(**overrides)
    resp = client.post("/auth/register", json=payload)
    assert resp.status_code == 200, resp.text
    return payload


def _activate(client: TestClient, mailer, payload: dict) -> None:
    code = mailer.last_code_for(payload["email"])
    resp = client.post("/auth/verify", json={"email": payload["email"], "otp": code})
    assert resp.status_code == 200, resp.text


def _login(client: TestClient, payload: dict) -> dict:
    resp = client.post("/auth/login", json={"email": payload["email"], "password": payload["password"]})
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestLifecycle:
    def test_full_session(self, api_client, mailer) -> None:
        client, _, _ = api_client
        payload = _register(client)
        resp = client.post("/auth/verify", json={"email": payload["email"], "otp": mailer.last_code_for(payload["email"])})
        assert resp.json() == {"message": VERIFIED_MESSAGE}

        tokens = _login(client, payload)
        assert set(tokens) == {"access_token", "refresh_token"}

        me = client.get("/auth/me", headers=bearer(tokens["access_token"]))
        assert me.status_code == 200
        body = me.json()
        assert body["email"] == payload["email"]
        assert body["status"] == "active"
        assert body["last_login"]
        assert "hashed_password" not in body

        refreshed = client.post("/auth/access-token", json={"refresh_token": tokens["refresh_token"]})
        assert refreshed.status_code == 200
        assert client.get("/auth/me", headers=bearer(refreshed.json()["access_token"])).status_code == 200

    def test_register_acknowledges_without_code(self, api_client, mailer) -> None:
        client, _, _ = api_client
        payload = register_payload()
        resp = client.post("/auth/register", json=payload)
        assert resp.status_code == 200
        assert resp.json() == {"message": REGISTERED_MESSAGE}
        code = mailer.last_code_for(payload["email"])
        assert code is not None
        assert code not in resp.text

    def test_login_sets_no_store(self, api_client, mailer) -> None:
        client, _, _ = api_client
        payload = _register(client)
        _activate(client, mailer, payload)
        resp = client.post("/auth/login", json={"email": payload["email"], "password": payload["password"]})
        assert resp.headers["Cache-Control"] == "no-store"

    def test_verify_twice_is_a_noop(self, api_client, mailer) -> None:
        client, _, _ = api_client
        payload = _register(client)
        _activate(client, mailer, payload)
        resp = client.post("/auth/verify", json={"email": payload["email"], "otp": mailer.last_code_for(payload["email"])})
        assert resp.status_code == 200
        assert resp.json() == {"message": VERIFIED_MESSAGE}

    def test_email_is_case_insensitive(self, api_client, mailer) -> None:
        client, _, _ = api_client
        payload = _register(client)
        _activate(client, mailer, payload)
        resp = client.post("/auth/login", json={"email": payload["email"].upper(), "password": payload["password"]})
        assert resp.status_code == 200
        assert "access_token" in resp.json()


class TestPendingAccount:
    def test_login_is_soft_denied(self, api_client) -> None:
        client, _, _ = api_client
        payload = _register(client)
        tokens = _login(client, payload)
        assert tokens == {"message": NOT_VERIFIED_MESSAGE}

    def test_pending_token_is_rejected(self, api_client, make_user) -> None:
        client, _, _ = api_client
        _, headers = make_user("user", status="pending")
        resp = client.get("/auth/me", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["message"] == "Account is not verified"


class TestRegistrationErrors:
    def test_duplicate_email(self, api_client) -> None:
        client, _, _ = api_client
        payload = _register(client)
        clash = register_payload(email=payload["email"])
        resp = client.post("/auth/register", json=clash)
        assert resp.status_code == 400
        assert resp.json()["code"] == "duplicate_identity"

    def test_duplicate_phone(self, api_client) -> None:
        client, _, _ = api_client
        payload = _register(client)
        clash = register_payload(phone=payload["phone"])
        resp = client.post("/auth/register", json=clash)
        assert resp.status_code == 400
        assert resp.json()["code"] == "duplicate_identity"

    def test_admin_role_cannot_self_register(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/auth/register", json=register_payload(role="admin"))
        assert resp.status_code == 403

    def test_ceo_may_self_register(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/auth/register", json=register_payload(role="ceo"))
        assert resp.status_code == 200

    def test_unknown_region_is_404(self, api_client, mailer) -> None:
        client, _, _ = api_client
        payload = register_payload(region_id=987654)
        resp = client.post("/auth/register", json=payload)
        assert resp.status_code == 404
        assert mailer.last_code_for(payload["email"]) is None

    def test_existing_region_is_accepted(self, api_client, admin_headers) -> None:
        client, _, _ = api_client
        region = client.post("/regions", json={"name": f"Region {uuid.uuid4().hex[:8]}"}, headers=admin_headers).json()
        resp = client.post("/auth/register", json=register_payload(region_id=region["id"]))
        assert resp.status_code == 200

    def test_bad_phone_is_400(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/auth/register", json=register_payload(phone="901234567"))
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert body["message"].startswith("phone")

    def test_missing_field_is_400(self, api_client) -> None:
        client, _, _ = api_client
        payload = register_payload()
        del payload["password"]
        assert client.post("/auth/register", json=payload).status_code == 400


class TestVerifyAndLoginErrors:
    def test_wrong_code(self, api_client, mailer) -> None:
        client, _, _ = api_client
        payload = _register(client)
        wrong = other_code(mailer.last_code_for(payload["email"]))
        resp = client.post("/auth/verify", json={"email": payload["email"], "otp": wrong})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Code is not valid or expired"

    def test_non_ascii_digits_are_an_invalid_code(self, api_client) -> None:
        client, _, _ = api_client
        payload = _register(client)
        resp = client.post("/auth/verify", json={"email": payload["email"], "otp": "١٢٣٤٥٦"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Code is not valid or expired"

    def test_verify_unknown_email(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/auth/verify", json={"email": "nobody@example.com", "otp": "123456"})
        assert resp.status_code == 404
        assert resp.json()["message"] == "User not found"

    def test_login_unknown_email(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/auth/login", json={"email": "nobody@example.com", "password": "whatever1"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "User not found"

    def test_login_wrong_password(self, api_client, mailer) -> None:
        client, _, _ = api_client
        payload = _register(client)
        _activate(client, mailer, payload)
        resp = client.post("/auth/login", json={"email": payload["email"], "password": "not-the-password"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Password is incorrect"


class TestRefresh:
    def test_garbage_refresh_token(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/auth/access-token", json={"refresh_token": "garbage"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid refresh token"

    def test_access_token_cannot_refresh(self, api_client) -> None:
        client, token, _ = api_client
        resp = client.post("/auth/access-token", json={"refresh_token": token})
        assert resp.status_code == 401

    def test_refresh_token_is_not_a_bearer(self, api_client, mailer) -> None:
        client, _, _ = api_client
        payload = _register(client)
        _activate(client, mailer, payload)
        tokens = _login(client, payload)
        resp = client.get("/auth/me", headers=bearer(tokens["refresh_token"]))
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid token"

    def test_refresh_picks_up_role_change(self, api_client, mailer, admin_headers) -> None:
        client, _, _ = api_client
        payload = _register(client)
        _activate(client, mailer, payload)
        tokens = _login(client, payload)
        uid = client.get("/auth/me", headers=bearer(tokens["access_token"])).json()["id"]

        assert client.patch(f"/users/{uid}", json={"role": "ceo"}, headers=admin_headers).status_code == 200
        region = client.post("/regions", json={"name": f"Region {uid}"}, headers=admin_headers).json()
        fresh = client.post("/auth/access-token", json={"refresh_token": tokens["refresh_token"]}).json()
        # a ceo may create centers; a plain user may not
        resp = client.post(
            "/centers",
            json={"name": "Fresh Center", "region_id": region["id"], "location": "Somewhere 1", "phone": "+998901112233"},
            headers=bearer(fresh["access_token"]),
        )
        assert resp.status_code == 201

    def test_refresh_for_deleted_identity(self, api_client, mailer, admin_headers) -> None:
        client, _, _ = api_client
        payload = _register(client)
        _activate(client, mailer, payload)
        tokens = _login(client, payload)
        uid = client.get("/auth/me", headers=bearer(tokens["access_token"])).json()["id"]
        assert client.delete(f"/users/{uid}", headers=admin_headers).status_code == 204
        resp = client.post("/auth/access-token", json={"refresh_token": tokens["refresh_token"]})
        assert resp.status_code == 401


class TestProfile:
    def test_update_own_profile(self, api_client, make_user) -> None:
        client, _, _ = api_client
        _, headers = make_user()
        resp = client.patch("/auth/me", json={"full_name": "New Name", "year": 2002}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["full_name"] == "New Name"
        assert resp.json()["year"] == 2002

    def test_role_is_not_self_editable(self, api_client, make_user) -> None:
        client, _, _ = api_client
        _, headers = make_user()
        resp = client.patch("/auth/me", json={"role": "admin"}, headers=headers)
        assert resp.status_code == 400

    def test_phone_clash(self, api_client, make_user) -> None:
        client, _, _ = api_client
        other, _ = make_user()
        _, headers = make_user()
        resp = client.patch("/auth/me", json={"phone": other.phone}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == "duplicate_identity"

    def test_empty_patch(self, api_client, make_user) -> None:
        client, _, _ = api_client
        _, headers = make_user()
        assert client.patch("/auth/me", json={}, headers=headers).status_code == 400

    def test_unknown_region(self, api_client, make_user) -> None:
        client, _, _ = api_client
        _, headers = make_user()
        assert client.patch("/auth/me", json={"region_id": 987654}, headers=headers).status_code == 404

    def test_null_clears_image(self, api_client, make_user) -> None:
        client, _, _ = api_client
        _, headers = make_user()
        client.patch("/auth/me", json={"image": "me.png"}, headers=headers)
        resp = client.patch("/auth/me", json={"image": None}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["image"] is None

    def test_null_full_name_is_rejected(self, api_client, make_user) -> None:
        client, _, _ = api_client
        _, headers = make_user()
        assert client.patch("/auth/me", json={"full_name": None}, headers=headers).status_code == 400
