"""Application-wide Flask extensions."""

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_sqlalchemy import SQLAlchemy


# Engine is configured in :func:`dualtodo.create_app` from the environment.
db = SQLAlchemy()

# Keyed by client address; limits per route class live in rate_limit.py
limiter = Limiter(key_func=get_remote_address)

EXTENSION_KEY = "dualtodo"
OAUTH_KEY = "dualtodo.oauth"


def get_coordinator():
    """The DualWriteCoordinator built by create_app() for the current app."""
    return current_app.extensions[EXTENSION_KEY]


def get_oauth_client():
    return current_app.extensions[OAUTH_KEY]
