def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_register(register, coordinator):
    r = register()
    assert r.status_code == 201
    body = r.get_json()
    assert body["message"] == "User registered successfully"
    assert body["token"]
    assert body["user"]["username"] == "ana"
    assert body["user"]["email"] == "ana@example.com"
    assert "password" not in body["user"]

    # dual: mismo usuario en los dos stores, mismo hash
    doc = coordinator.document.find_user_by_email("ana@example.com")
    rel = coordinator.relational.find_user_by_email("ana@example.com")
    assert doc and rel
    assert doc["password"] == rel["password"] != "secret1"


def test_register_short_password(register):
    r = register(password="123")
    assert r.status_code == 400
    assert r.get_json() == {"error": "Password must be at least 6 characters"}


def test_register_missing_fields(client):
    r = client.post("/auth/register", json={"username": "ana", "email": "ana@example.com"})
    assert r.status_code == 400
    assert r.get_json() == {"error": "All fields are required"}


def test_register_duplicate(register):
    assert register().status_code == 201
    r = register(username="someone-else")
    assert r.status_code == 400
    assert r.get_json() == {"error": "User already exists"}
    r = register(email="other@example.com")
    assert r.status_code == 400


def test_register_duplicate_in_relational_store_only(client, coordinator, register):
    coordinator.relational.insert_user("ana", "ana@example.com", "x")
    r = register()
    assert r.status_code == 400
    assert r.get_json() == {"error": "User already exists"}
    assert coordinator.document.find_user_by_email("ana@example.com") is None


def test_login(client, register):
    register()
    r = client.post("/auth/login", json={"email": "ANA@example.com", "password": "secret1"})
    assert r.status_code == 200
    body = r.get_json()
    assert body["message"] == "Login successful"
    assert body["user"]["username"] == "ana"
    assert body["token"]


def test_login_accepts_form_body(client, register):
    register()
    r = client.post("/auth/login", data={"email": "ana@example.com", "password": "secret1"})
    assert r.status_code == 200


def test_login_bad_password(client, register):
    register()
    r = client.post("/auth/login", json={"email": "ana@example.com", "password": "nope-nope"})
    assert r.status_code == 401
    assert r.get_json() == {"error": "Invalid credentials"}


def test_login_unknown_user(client):
    r = client.post("/auth/login", json={"email": "ghost@example.com", "password": "secret1"})
    assert r.status_code == 401
    assert r.get_json() == {"error": "Invalid credentials"}


def test_login_missing_fields(client):
    r = client.post("/auth/login", json={"email": "ana@example.com"})
    assert r.status_code == 400
    assert r.get_json() == {"error": "Email and password are required"}


def test_profile(client, register):
    token = register().get_json()["token"]
    r = client.get("/auth/profile", headers=_bearer(token))
    assert r.status_code == 200
    user = r.get_json()["user"]
    assert user["email"] == "ana@example.com"
    assert user["store"] == "mongodb"
    assert "password" not in user


def test_profile_without_token(client):
    r = client.get("/auth/profile")
    assert r.status_code == 401
    assert r.get_json() == {"error": "No token provided"}


def test_profile_with_bad_tokens(client, coordinator):
    expired = coordinator.credentials.issue_token("1", ttl=-5)
    for token in ("garbage", expired):
        r = client.get("/auth/profile", headers=_bearer(token))
        assert r.status_code == 401
        assert r.get_json() == {"error": "Invalid or expired token"}


def test_profile_of_deleted_user(client, coordinator):
    token = coordinator.credentials.issue_token("64b7f0c2e4b0a1a2b3c4d5e6", {"dbType": "mongodb"})
    r = client.get("/auth/profile", headers=_bearer(token))
    assert r.status_code == 404
    assert r.get_json() == {"error": "User not found"}


def test_profile_from_relational_only_mode(app_factory):
    client = app_factory(DATABASE_MODE="relational-only").test_client()
    token = client.post(
        "/auth/register", json={"username": "bo", "email": "bo@example.com", "password": "secret1"}
    ).get_json()["token"]
    user = client.get("/auth/profile", headers=_bearer(token)).get_json()["user"]
    assert user["store"] == "postgres"
    assert user["username"] == "bo"
