from pokemaker.core.config import settings


def test_login_returns_bearer_token(client, user):
    r = client.post(
        f"{settings.API_V1_STR}/login/access-token",
        data={"username": "ash", "password": "pikachu123"},
    )
    assert r.status_code == 200
    tokens = r.json()
    assert tokens["token_type"] == "bearer"
    assert tokens["access_token"]


def test_login_with_wrong_password(client, user):
    r = client.post(
        f"{settings.API_V1_STR}/login/access-token",
        data={"username": "ash", "password": "not-the-password"},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Incorrect username or password"


def test_read_me(client, user_headers):
    r = client.get(f"{settings.API_V1_STR}/users/me", headers=user_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["username"] == "ash"
    assert "hashed_password" not in body


def test_routes_require_a_token(client):
    assert client.get(f"{settings.API_V1_STR}/creatures/").status_code == 401
    assert client.post(f"{settings.API_V1_STR}/drafts/").status_code == 401
    r = client.get(
        f"{settings.API_V1_STR}/users/me", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert r.status_code == 403


def test_health_check_is_public(client):
    r = client.get(f"{settings.API_V1_STR}/utils/health-check/")
    assert r.status_code == 200
    assert r.json() is True
