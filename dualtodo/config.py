from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote_plus

_FALLBACK_SQLITE = "./data/dualtodo.db"

# DATABASE_MODE acepta los nombres históricos (mongodb/postgresql/both)
MODE_ALIASES = {
    "document-only": "document-only",
    "document": "document-only",
    "mongodb": "document-only",
    "mongo": "document-only",
    "relational-only": "relational-only",
    "relational": "relational-only",
    "postgresql": "relational-only",
    "postgres": "relational-only",
    "dual": "dual",
    "both": "dual",
}

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(raw: Any, default: int) -> int:
    """
    Convert "45s", "30m", "1h", "7d" or a bare number of seconds into seconds.
    Anything unparseable falls back to `default`.
    """
    if raw is None or raw == "":
        return default
    if isinstance(raw, (int, float)):
        return int(raw)
    m = _DURATION_RE.match(str(raw))
    if not m:
        return default
    return int(m.group(1)) * _DURATION_UNITS[m.group(2).lower()]


def normalize_mode(raw: Optional[str]) -> str:
    key = (raw or "dual").strip().lower()
    try:
        return MODE_ALIASES[key]
    except KeyError:
        raise ValueError(f"unknown DATABASE_MODE: {raw!r}") from None


def _normalize_path(raw: str) -> Path:
    """
    Expand ~ and relative paths for SQLite files to an absolute Path.
    """
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


def resolve_sqlite_target() -> Tuple[str, Optional[Path]]:
    """
    Return a tuple (uri, path) based on SQLITE_PATH.
    - If SQLITE_PATH already looks like a sqlite:// URI, it is returned as-is and
      the path component is None (because parsing may be ambiguous).
    - Otherwise, ensure the parent directory exists and return the absolute path.
    """
    raw = (os.environ.get("SQLITE_PATH") or _FALLBACK_SQLITE).strip()
    if raw.startswith("sqlite:"):
        return raw, None
    path = _normalize_path(raw)
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path.as_posix()}", path


def resolve_database_uri() -> str:
    """
    Relational store URI, in order of preference:
      1) DATABASE_URL (legacy postgres:// is normalized)
      2) PG_HOST/PG_USER/PG_PASSWORD/PG_PORT/PG_DATABASE
      3) local SQLite file (dev only)
    """
    url = (os.environ.get("DATABASE_URL") or "").strip()
    if url:
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url

    host = os.environ.get("PG_HOST")
    if host:
        user = quote_plus(os.environ.get("PG_USER", "postgres"))
        password = quote_plus(os.environ.get("PG_PASSWORD", ""))
        port = os.environ.get("PG_PORT", "5432")
        name = os.environ.get("PG_DATABASE", "todolist")
        auth = f"{user}:{password}@" if password else f"{user}@"
        return f"postgresql+psycopg2://{auth}{host}:{port}/{name}"

    uri, _ = resolve_sqlite_target()
    return uri


def engine_options(uri: str) -> Dict[str, Any]:
    if uri.startswith("postgresql"):
        # Pool chico: evita agotar conexiones del servidor
        return {"pool_pre_ping": True, "pool_recycle": 280, "pool_size": 5, "max_overflow": 5}
    return {"pool_pre_ping": True}


def _flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> Dict[str, Any]:
    """Build the Flask config mapping from the process environment."""
    uri = resolve_database_uri()
    secret = os.environ.get("SECRET_KEY") or os.environ.get("JWT_SECRET") or "dev-secret-change-me"
    return {
        "SECRET_KEY": secret,
        "JWT_SECRET": os.environ.get("JWT_SECRET") or secret,
        "JWT_ALGORITHM": "HS256",
        "JWT_EXPIRES_IN": parse_duration(os.environ.get("JWT_EXPIRES_IN"), 7 * 86400),
        "TOKEN_EXPIRES_IN": parse_duration(os.environ.get("TOKEN_EXPIRES_IN"), 3600),
        "DATABASE_MODE": normalize_mode(os.environ.get("DATABASE_MODE")),
        "MONGODB_URI": os.environ.get("MONGODB_URI", "mongodb://localhost:27017/todolist"),
        "MONGODB_DB": os.environ.get("MONGODB_DB") or None,
        "MONGO_SERVER_SELECTION_TIMEOUT_MS": int(os.environ.get("MONGO_SERVER_SELECTION_TIMEOUT_MS", "3000")),
        "MONGO_CLIENT": None,
        "SQLALCHEMY_DATABASE_URI": uri,
        "SQLALCHEMY_ENGINE_OPTIONS": engine_options(uri),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "DB_RETRY_ATTEMPTS": int(os.environ.get("DB_RETRY_ATTEMPTS", "5")),
        "DB_RETRY_BASE_DELAY": float(os.environ.get("DB_RETRY_BASE_DELAY", "0.05")),
        "GOOGLE_CLIENT_ID": os.environ.get("GOOGLE_CLIENT_ID"),
        "GOOGLE_CLIENT_SECRET": os.environ.get("GOOGLE_CLIENT_SECRET"),
        "GOOGLE_CALLBACK_URL": os.environ.get(
            "GOOGLE_CALLBACK_URL", "http://localhost:3000/oauth/google/callback"
        ),
        "RATELIMIT_ENABLED": _flag("RATELIMIT_ENABLED", True),
        "RATELIMIT_STORAGE_URI": os.environ.get("RATELIMIT_STORAGE_URI", "memory://"),
        "RATELIMIT_HEADERS_ENABLED": True,
        "RATELIMIT_GENERAL": os.environ.get("RATELIMIT_GENERAL", "100 per 15 minutes"),
        "RATELIMIT_AUTH": os.environ.get("RATELIMIT_AUTH", "5 per 15 minutes"),
        "RATELIMIT_TOKEN": os.environ.get("RATELIMIT_TOKEN", "10 per hour"),
        "RATELIMIT_API": os.environ.get("RATELIMIT_API", "50 per 10 minutes"),
        "RATELIMIT_STRICT": os.environ.get("RATELIMIT_STRICT", "3 per 5 minutes"),
        "CORS_ORIGINS": os.environ.get("CORS_ORIGINS", "*"),
        "WEB_AUTH_REQUIRED": _flag("WEB_AUTH_REQUIRED", False),
        "COOKIE_SECURE": _flag("COOKIE_SECURE", os.environ.get("FLASK_ENV") == "production"),
        "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO").upper(),
    }


def format_duration(seconds: int) -> str:
    """Inverse of parse_duration for whole units: 3600 -> "1h", 604800 -> "7d"."""
    for unit, size in (("d", 86400), ("h", 3600), ("m", 60)):
        if seconds and seconds % size == 0:
            return f"{seconds // size}{unit}"
    return f"{seconds}s"
