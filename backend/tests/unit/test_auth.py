from __future__ import annotations

import base64

import pytest

from disperse.core.dependencies import AUTH_COOKIE_NAME, check_credentials, parse_basic_auth
from tests.conftest import TEST_PASSWORD, TEST_USERNAME, basic_auth_header


def test_missing_credentials_returns_401(client):
    response = client.get("/api/v1/health/protected")
    assert response.status_code == 401
    assert "Not authenticated" in response.json()["detail"]
    assert response.headers["www-authenticate"].startswith("Basic")


def test_valid_basic_auth_returns_user(client):
    response = client.get("/api/v1/health/protected", headers=basic_auth_header())
    assert response.status_code == 200
    data = response.json()
    assert data["user"]["name"] == TEST_USERNAME
    assert data["user"]["method"] == "basic"


def test_wrong_password_returns_401(client):
    response = client.get("/api/v1/health/protected", headers=basic_auth_header(password="wrong"))
    assert response.status_code == 401


def test_bearer_scheme_is_rejected(client):
    response = client.get("/api/v1/health/protected", headers={"Authorization": "Bearer some-token"})
    assert response.status_code == 401


def test_login_sets_cookie_that_authenticates(client):
    response = client.post("/api/v1/auth/login", json={"username": TEST_USERNAME, "password": TEST_PASSWORD})
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert AUTH_COOKIE_NAME in response.cookies
    set_cookie = response.headers["set-cookie"].lower()
    assert "httponly" in set_cookie
    assert "samesite=strict" in set_cookie

    protected = client.get("/api/v1/health/protected")
    assert protected.status_code == 200
    assert protected.json()["user"]["method"] == "cookie"


def test_login_with_bad_credentials_returns_401(client):
    response = client.post("/api/v1/auth/login", json={"username": TEST_USERNAME, "password": "nope"})
    assert response.status_code == 401
    assert AUTH_COOKIE_NAME not in response.cookies


def test_logout_clears_cookie(client):
    client.post("/api/v1/auth/login", json={"username": TEST_USERNAME, "password": TEST_PASSWORD})

    response = client.post("/api/v1/auth/logout")

    assert response.status_code == 200
    assert client.get("/api/v1/health/protected").status_code == 401


def test_check_credentials_rejects_when_password_unset():
    from disperse.core.config import settings

    settings.BASIC_AUTH_PASSWORD = ""
    assert check_credentials(TEST_USERNAME, "") is False


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Basic " + base64.b64encode(b"alice:s3cret:with:colons").decode(), ("alice", "s3cret:with:colons")),
        ("Basic " + base64.b64encode(b"no-separator").decode(), None),
        ("Basic !!!not-base64!!!", None),
        ("Bearer abc", None),
    ],
)
def test_parse_basic_auth(header, expected):
    assert parse_basic_auth(header) == expected
