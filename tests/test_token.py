import jwt

from conftest import TEST_SECRET


def _decode(token):
    return jwt.decode(token, TEST_SECRET, algorithms=["HS256"])


def test_create_user_returns_short_token(client, coordinator):
    r = client.post("/token/user", json={"username": "cy", "email": "cy@example.com", "password": "secret1"})
    assert r.status_code == 201
    body = r.get_json()
    assert body["message"] == "User created successfully"
    assert body["expiresIn"] == "1h"
    assert body["user"] == {"username": "cy", "email": "cy@example.com"}
    claims = _decode(body["token"])
    assert claims["exp"] - claims["iat"] == 3600
    assert coordinator.relational.find_user_by_email("cy@example.com") is not None


def test_create_user_missing_fields(client):
    r = client.post("/token/user", json={"email": "cy@example.com", "password": "secret1"})
    assert r.status_code == 400
    assert r.get_json() == {"error": "Username, email and password are required"}


def test_create_user_duplicate(client, register):
    register()
    r = client.post("/token/user", json={"username": "ana", "email": "x@example.com", "password": "secret1"})
    assert r.status_code == 400
    assert r.get_json() == {"error": "User already exists"}


def test_generate_token(client, register):
    register()
    r = client.post("/token/generate", json={"email": "ana@example.com", "password": "secret1"})
    assert r.status_code == 200
    body = r.get_json()
    assert body["message"] == "Token generated successfully"
    assert body["expiresIn"] == "1h"
    assert body["user"] == {"email": "ana@example.com", "username": "ana"}
    claims = _decode(body["token"])
    assert claims["exp"] - claims["iat"] == 3600
    assert claims["dbType"] == "mongodb"

    # sirve para las rutas protegidas
    r = client.get("/auth/profile", headers={"Authorization": f"Bearer {body['token']}"})
    assert r.status_code == 200


def test_generate_token_bad_credentials(client, register):
    register()
    r = client.post("/token/generate", json={"email": "ana@example.com", "password": "wrong-pass"})
    assert r.status_code == 401
    assert r.get_json() == {"error": "Invalid credentials"}


def test_token_ttl_is_configurable(app_factory):
    client = app_factory(TOKEN_EXPIRES_IN="30m").test_client()
    r = client.post("/token/user", json={"username": "dd", "email": "dd@example.com", "password": "secret1"})
    assert r.get_json()["expiresIn"] == "30m"
    claims = _decode(r.get_json()["token"])
    assert claims["exp"] - claims["iat"] == 1800
