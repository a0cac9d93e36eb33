"""Request guards: bearer tokens for the JSON API, the ``token`` cookie for HTML views."""
from __future__ import annotations

from functools import wraps

from flask import current_app, g, redirect, request

from .errors import AuthenticationError, InvalidTokenError
from .extensions import get_coordinator

COOKIE_NAME = "token"


def bearer_token():
    header = request.headers.get("Authorization", "")
    parts = header.split(" ")
    return parts[1].strip() if len(parts) > 1 and parts[1].strip() else None


def token_required(view):
    """401 unless a valid ``Authorization: Bearer <jwt>`` header is present."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        token = bearer_token()
        if not token:
            raise AuthenticationError("No token provided")
        claims = get_coordinator().credentials.verify_token(token)
        g.user_id = claims["id"]
        g.token_claims = claims
        return view(*args, **kwargs)

    return wrapped


def cookie_claims():
    """Claims of the ``token`` cookie, or None if absent/invalid."""
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None
    try:
        return get_coordinator().credentials.verify_token(token)
    except InvalidTokenError:
        return None


def web_login_required(view):
    """Redirect to /login when WEB_AUTH_REQUIRED is on and the cookie is missing or bad."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_app.config.get("WEB_AUTH_REQUIRED"):
            return view(*args, **kwargs)
        claims = cookie_claims()
        if claims is None:
            resp = redirect("/login")
            resp.delete_cookie(COOKIE_NAME)
            return resp
        g.user_id = claims["id"]
        g.token_claims = claims
        return view(*args, **kwargs)

    return wrapped


def set_token_cookie(resp, token: str, max_age: int):
    resp.set_cookie(
        COOKIE_NAME,
        token,
        max_age=max_age,
        httponly=True,
        secure=bool(current_app.config.get("COOKIE_SECURE")),
        samesite="Lax",
    )
    return resp
