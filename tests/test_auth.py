import pytest

from viking.api import app
from viking.auth import get_caller, get_optional_caller
from viking.directory import UserDirectory
from viking.schemas import UserCreate
from viking.security import PasswordEncoder, create_refresh_token


@pytest.fixture
def real_auth(client):
    """Use bearer tokens instead of the admin caller override."""
    app.dependency_overrides.pop(get_caller, None)
    app.dependency_overrides.pop(get_optional_caller, None)
    return client


def login(client, payload):
    resp = client.post(
        "/api/auth/login", json={"email": payload["email"], "password": payload["password"]}
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["tokenType"] == "bearer"
    return {"Authorization": f"Bearer {data['accessToken']}"}


def register_and_login(client, payload):
    resp = client.post("/api/user/save", json=payload)
    assert resp.status_code == 200, resp.text
    return login(client, payload)


def test_password_encoder_salts_and_matches():
    encoder = PasswordEncoder()
    first = encoder.encode("secret")
    second = encoder.encode("secret")

    assert first != second
    assert encoder.matches("secret", first)
    assert encoder.matches("secret", second)
    assert not encoder.matches("Secret", first)
    assert not encoder.matches("secret", "no-separator")


def test_login_rejects_bad_password(real_auth, roles, make_user_payload):
    payload = make_user_payload(roles["client"].id)
    real_auth.post("/api/user/save", json=payload)

    resp = real_auth.post(
        "/api/auth/login", json={"email": payload["email"], "password": "wrong"}
    )
    assert resp.status_code == 401


def test_search_requires_token(real_auth):
    resp = real_auth.get("/api/user/search", params={"query": "all"})
    assert resp.status_code == 401

    resp = real_auth.get(
        "/api/user/search",
        params={"query": "all"},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert resp.status_code == 401


def test_refresh_token_is_not_an_access_token(real_auth, roles, make_user_payload):
    payload = make_user_payload(roles["client"].id)
    user_id = real_auth.post("/api/user/save", json=payload).json()["id"]

    headers = {"Authorization": f"Bearer {create_refresh_token(user_id)}"}
    resp = real_auth.get("/api/user/search", params={"query": "all"}, headers=headers)
    assert resp.status_code == 401


def test_client_can_update_self_but_not_delete(real_auth, roles, make_user_payload):
    payload = make_user_payload(roles["client"].id)
    headers = register_and_login(real_auth, payload)
    me = real_auth.get(
        "/api/user/search",
        params={"query": "by-email", "email": payload["email"]},
        headers=headers,
    ).json()

    update = dict(payload, id=me["id"], address="2 Quay Lane")
    resp = real_auth.put(f"/api/user/update/{me['id']}", json=update, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["address"] == "2 Quay Lane"

    promote = dict(update, roleId=str(roles["admin"].id))
    resp = real_auth.put(f"/api/user/update/{me['id']}", json=promote, headers=headers)
    assert resp.status_code == 403

    resp = real_auth.delete(f"/api/user/delete/{me['id']}", headers=headers)
    assert resp.status_code == 403


def test_anonymous_cannot_register_as_admin(real_auth, roles, make_user_payload):
    payload = make_user_payload(roles["admin"].id)

    resp = real_auth.post("/api/user/save", json=payload)
    assert resp.status_code == 403
    assert "administrator" in resp.json()["detail"]

    resp = real_auth.post(
        "/api/auth/login", json={"email": payload["email"], "password": payload["password"]}
    )
    assert resp.status_code == 401


def test_non_admin_token_cannot_register_admin(real_auth, roles, make_user_payload):
    headers = register_and_login(real_auth, make_user_payload(roles["staff"].id))

    resp = real_auth.post(
        "/api/user/save", json=make_user_payload(roles["admin"].id), headers=headers
    )
    assert resp.status_code == 403


def test_admin_token_can_register_admin_and_delete(real_auth, session, roles, make_user_payload, admin_caller):
    payload = make_user_payload(roles["admin"].id)
    UserDirectory(session).create(UserCreate.model_validate(payload), caller=admin_caller)
    admin_headers = login(real_auth, payload)

    resp = real_auth.post(
        "/api/user/save", json=make_user_payload(roles["admin"].id), headers=admin_headers
    )
    assert resp.status_code == 200

    victim = real_auth.post(
        "/api/user/save", json=make_user_payload(roles["client"].id)
    ).json()["id"]
    resp = real_auth.delete(f"/api/user/delete/{victim}", headers=admin_headers)
    assert resp.status_code == 204
