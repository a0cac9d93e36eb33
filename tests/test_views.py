def _titles(coordinator):
    tasks = coordinator.list_tasks()
    return {store: sorted(t["title"] for t in items) for store, items in tasks.items()}


def test_index_renders(client):
    r = client.get("/")
    assert r.status_code == 200
    assert b"Todo List" in r.data
    assert r.headers["Cache-Control"].startswith("no-store")
    assert r.headers["X-Content-Type-Options"] == "nosniff"


def test_add_task_writes_both_stores(client, coordinator):
    r = client.post("/tasks/add", data={"title": "Walk the dog"})
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/")
    assert _titles(coordinator) == {"mongodb": ["Walk the dog"], "postgres": ["Walk the dog"]}

    page = client.get("/").data.decode()
    assert page.count("Walk the dog") == 2


def test_add_task_without_title_just_redirects(client, coordinator):
    r = client.post("/tasks/add", data={"title": "  "})
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/")
    assert _titles(coordinator) == {"mongodb": [], "postgres": []}


def test_delete_removes_same_titled_tasks_everywhere(client, coordinator):
    client.post("/tasks/add", data={"title": "dup"})
    client.post("/tasks/add", data={"title": "keep"})
    coordinator.relational.insert_task("dup")

    doc_id = next(t["_id"] for t in coordinator.document.list_tasks() if t["title"] == "dup")
    r = client.post(f"/tasks/delete/{doc_id}", data={"store": "mongodb"})
    assert r.status_code == 302
    assert _titles(coordinator) == {"mongodb": ["keep"], "postgres": ["keep"]}


def test_delete_addressing_relational_store(client, coordinator):
    client.post("/tasks/add", data={"title": "pg first"})
    row_id = coordinator.relational.list_tasks()[0]["id"]
    r = client.post(f"/tasks/delete/{row_id}", data={"store": "postgres"})
    assert r.status_code == 302
    assert _titles(coordinator) == {"mongodb": [], "postgres": []}


def test_delete_unknown_task_rerenders_with_error(client):
    r = client.post("/tasks/delete/does-not-exist", data={"store": "mongodb"})
    assert r.status_code == 404
    assert b"Task not found" in r.data


def test_delete_id_beyond_bigint_rerenders_with_error(client, coordinator):
    client.post("/tasks/add", data={"title": "keep me"})
    r = client.post("/tasks/delete/99999999999999999999", data={"store": "postgres"})
    assert r.status_code == 404
    assert b"Task not found" in r.data
    assert _titles(coordinator) == {"mongodb": ["keep me"], "postgres": ["keep me"]}


def test_single_store_mode_view(app_factory):
    app = app_factory(DATABASE_MODE="mongodb")
    client = app.test_client()
    client.post("/tasks/add", data={"title": "mongo only"})
    coordinator = app.extensions["dualtodo"]
    assert coordinator.relational.list_tasks() == []
    assert b"mongo only" in client.get("/").data


def test_login_page(client):
    r = client.get("/login?message=logged_out")
    assert r.status_code == 200
    assert b"logged out" in r.data
    r = client.get("/login?error=oauth_failed")
    assert b"Google sign-in failed" in r.data


def test_form_login_sets_cookie(client, register):
    register()
    r = client.post("/login", data={"email": "ana@example.com", "password": "secret1"})
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/")
    cookie = client.get_cookie("token")
    assert cookie is not None and cookie.http_only


def test_form_login_failure_rerenders(client, register):
    register()
    r = client.post("/login", data={"email": "ana@example.com", "password": "bad-password"})
    assert r.status_code == 401
    assert b"Invalid credentials" in r.data
    assert client.get_cookie("token") is None


def test_web_auth_required(app_factory):
    client = app_factory(WEB_AUTH_REQUIRED=True).test_client()
    r = client.get("/")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/login")
    r = client.post("/tasks/add", data={"title": "sneaky"})
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/login")

    client.post("/auth/register", json={"username": "ana", "email": "ana@example.com", "password": "secret1"})
    client.post("/login", data={"email": "ana@example.com", "password": "secret1"})
    r = client.get("/")
    assert r.status_code == 200
    assert b"ana" in r.data


def test_web_auth_bad_cookie_is_cleared(app_factory):
    client = app_factory(WEB_AUTH_REQUIRED=True).test_client()
    client.set_cookie("token", "garbage")
    r = client.get("/")
    assert r.status_code == 302
    assert client.get_cookie("token") is None
