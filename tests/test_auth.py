from fastapi.testclient import TestClient

from services.auth_sessions import SESSION_COOKIE, AuthSessionStore
from utils.auth_middleware import is_public_path


def test_unauthenticated_api_request_is_rejected(auth_client: TestClient) -> None:
    response = auth_client.get("/api/logs")
    assert response.status_code == 401


def test_unauthenticated_page_redirects_to_login(auth_client: TestClient) -> None:
    response = auth_client.get("/some/page", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/login"


def test_public_paths_are_reachable(auth_client: TestClient) -> None:
    assert auth_client.get("/health").status_code == 200
    assert auth_client.get("/login").status_code == 200


def test_invalid_credentials(auth_client: TestClient) -> None:
    response = auth_client.post("/login", data={"email": "inspector@example.com", "password": "wrong"})
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid email or password."}


def test_login_sets_cookie_and_grants_access(auth_client: TestClient) -> None:
    response = auth_client.post(
        "/login",
        data={"email": "inspector@example.com", "password": "s3cret"},
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert response.headers["location"] == "/dashboard"
    set_cookie = response.headers["set-cookie"]
    assert SESSION_COOKIE in set_cookie
    assert "Max-Age=28800" in set_cookie
    assert auth_client.get("/api/logs").status_code == 200

    auth_client.post("/logout", follow_redirects=False)
    auth_client.cookies.clear()
    assert auth_client.get("/api/logs").status_code == 401


def test_session_store_expires_tokens() -> None:
    sessions = AuthSessionStore("u", "p", ttl_seconds=-1)
    token = sessions.create()

    assert sessions.is_valid(token) is False
    assert sessions.is_valid(None) is False


def test_unconfigured_credentials_never_match() -> None:
    assert AuthSessionStore("", "").check_credentials("", "") is False


def test_public_path_matching() -> None:
    assert is_public_path("/")
    assert is_public_path("/login")
    assert is_public_path("/health")
    assert not is_public_path("/api/images/x")
    assert not is_public_path("/loginx")
