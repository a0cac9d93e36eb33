from __future__ import annotations

import logging
from urllib.parse import urlparse

from flask import Flask, jsonify, request
from flask_cors import CORS
from pymongo import MongoClient
from werkzeug.exceptions import HTTPException

from .config import load_config, normalize_mode, parse_duration
from .errors import DomainError, StoreUnavailableError
from .extensions import EXTENSION_KEY, OAUTH_KEY, db, get_coordinator, limiter
from .rate_limit import setup_rate_limit
from .repos.document import DocumentStore
from .repos.relational import RelationalStore
from .services.coordinator import DualWriteCoordinator
from .services.credentials import CredentialService
from .services.oauth import GoogleOAuthClient

__all__ = ["create_app", "db", "limiter"]

# Rutas JSON (los formularios /tasks/add y /tasks/delete/* son HTML)
API_PREFIXES = ("/tasks", "/auth/", "/token/", "/oauth/status", "/api-docs.json", "/health")
FORM_PREFIXES = ("/tasks/add", "/tasks/delete/")


def _is_api_path(path: str) -> bool:
    return path.startswith(API_PREFIXES) and not path.startswith(FORM_PREFIXES)


def _mongo_database(app: Flask):
    uri = app.config["MONGODB_URI"]
    client = app.config.get("MONGO_CLIENT")
    if client is None:
        client = MongoClient(uri, serverSelectionTimeoutMS=app.config["MONGO_SERVER_SELECTION_TIMEOUT_MS"])
    name = app.config.get("MONGODB_DB") or urlparse(uri).path.lstrip("/") or "todolist"
    return client[name]


def _build_coordinator(app: Flask) -> DualWriteCoordinator:
    with app.app_context():
        engine = db.engine

    document = DocumentStore(_mongo_database(app))
    relational = RelationalStore(
        engine,
        retry_attempts=app.config["DB_RETRY_ATTEMPTS"],
        retry_base_delay=app.config["DB_RETRY_BASE_DELAY"],
    )
    for store in (document, relational):
        try:
            store.ensure_schema()
        except StoreUnavailableError as exc:
            # arrancar igual: las rutas devolverán 500 hasta que vuelva
            app.logger.warning("[startup] %s schema setup failed: %s", store.tag, exc)

    credentials = CredentialService(
        app.config["JWT_SECRET"],
        default_ttl=app.config["JWT_EXPIRES_IN"],
        algorithm=app.config["JWT_ALGORITHM"],
    )
    return DualWriteCoordinator(
        app.config["DATABASE_MODE"],
        credentials=credentials,
        document=document,
        relational=relational,
    )


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def _domain_error(exc):
        if exc.store:
            app.logger.info("[error] %s (%s): %s", type(exc).__name__, exc.store, exc)
        if _is_api_path(request.path):
            return jsonify(error=str(exc)), exc.status_code
        return str(exc), exc.status_code

    # --- Respuestas de error JSON uniformes para rutas de API ---
    @app.errorhandler(404)
    def _json_404(err):
        if _is_api_path(request.path):
            return jsonify(error="Not found"), 404
        return "Not Found", 404

    @app.errorhandler(405)
    def _json_405(err):
        if _is_api_path(request.path):
            resp = jsonify(error="Method not allowed")
            allow = getattr(err, "valid_methods", None)
            if allow:
                resp.headers["Allow"] = ", ".join(allow)
            return resp, 405
        return "Method Not Allowed", 405

    @app.errorhandler(Exception)
    def _unexpected(exc):
        if isinstance(exc, HTTPException):
            return exc
        app.logger.exception("[error] unhandled on %s %s", request.method, request.path)
        if _is_api_path(request.path):
            return jsonify(error="Internal server error"), 500
        return "Internal Server Error", 500


def _register_headers(app: Flask) -> None:
    @app.after_request
    def _security_headers(resp):
        h = resp.headers
        h.setdefault("X-Content-Type-Options", "nosniff")
        h.setdefault("X-Frame-Options", "DENY")
        h.setdefault("Referrer-Policy", "same-origin")
        if resp.mimetype == "text/html":
            h["Cache-Control"] = "no-store, max-age=0"
        return resp


def create_app(config=None) -> Flask:
    """
    Build the application.

    `config` is applied on top of the environment-derived settings, e.g.
    ``create_app({"SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})``.
    """
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    if config:
        app.config.from_mapping(config)
    app.config["DATABASE_MODE"] = normalize_mode(app.config["DATABASE_MODE"])
    for key, default in (("JWT_EXPIRES_IN", 7 * 86400), ("TOKEN_EXPIRES_IN", 3600)):
        app.config[key] = parse_duration(app.config[key], default)

    logging.getLogger(__name__).setLevel(app.config["LOG_LEVEL"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    setup_rate_limit(app)
    CORS(
        app,
        resources={r"/(tasks|tasks-pg|auth|token)(/.*)?": {}, r"/api-docs.json": {}},
        origins=app.config["CORS_ORIGINS"],
    )

    app.extensions[EXTENSION_KEY] = _build_coordinator(app)
    app.extensions[OAUTH_KEY] = GoogleOAuthClient(
        app.config["GOOGLE_CLIENT_ID"],
        app.config["GOOGLE_CLIENT_SECRET"],
        app.config["GOOGLE_CALLBACK_URL"],
    )

    from .docs import docs_bp
    from .routes_auth import auth_bp
    from .routes_oauth import oauth_bp
    from .routes_tasks import tasks_bp, tasks_pg_bp
    from .routes_token import token_bp
    from .views import views_bp

    for bp in (tasks_bp, tasks_pg_bp, auth_bp, token_bp, oauth_bp, views_bp, docs_bp):
        app.register_blueprint(bp)

    @app.get("/health")
    @limiter.exempt
    def health():
        coordinator = get_coordinator()
        stores = coordinator.health()
        ok = all(stores[s.tag] for s in coordinator.active_stores)
        return jsonify(ok=ok, mode=coordinator.mode.value, stores=stores), (200 if ok else 503)

    _register_error_handlers(app)
    _register_headers(app)
    app.logger.info("[startup] mode=%s stores=%s", app.config["DATABASE_MODE"],
                    [s.tag for s in app.extensions[EXTENSION_KEY].active_stores])
    return app
