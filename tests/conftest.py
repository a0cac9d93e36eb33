import os
import sys

import mongomock
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from dualtodo import create_app
from dualtodo.extensions import EXTENSION_KEY

TEST_SECRET = "test-secret"

_ENV_KEYS = (
    "DATABASE_URL", "PG_HOST", "MONGODB_URI", "MONGODB_DB", "DATABASE_MODE",
    "WEB_AUTH_REQUIRED", "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET",
    "JWT_SECRET", "JWT_EXPIRES_IN", "TOKEN_EXPIRES_IN", "RATELIMIT_ENABLED",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_KEYS:
        monkeypatch.delenv(name, raising=False)
    # evita crear ./data/*.db al cargar la config
    monkeypatch.setenv("SQLITE_PATH", "sqlite:///:memory:")


def make_app(**overrides):
    config = {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "MONGO_CLIENT": mongomock.MongoClient(),
        "MONGODB_DB": "todolist_test",
        "RATELIMIT_ENABLED": False,
        "JWT_SECRET": TEST_SECRET,
        "SECRET_KEY": TEST_SECRET,
    }
    config.update(overrides)
    return create_app(config)


@pytest.fixture
def app_factory():
    built = []

    def _make(**overrides):
        app = make_app(**overrides)
        built.append(app)
        return app

    yield _make
    for app in built:
        app.extensions[EXTENSION_KEY].close()


@pytest.fixture
def app(app_factory):
    return app_factory()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def coordinator(app):
    return app.extensions[EXTENSION_KEY]


@pytest.fixture
def register(client):
    def _register(username="ana", email="ana@example.com", password="secret1"):
        return client.post("/auth/register", json={"username": username, "email": email, "password": password})

    return _register
