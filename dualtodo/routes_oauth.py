"""
Google sign-in for the HTML side. The session token ends up in the
``token`` cookie; ``?db=mongodb|postgres`` picks the store the user lives in.
"""
from __future__ import annotations

import logging
import secrets

from flask import Blueprint, current_app, jsonify, redirect, request, session

from .auth import COOKIE_NAME, cookie_claims, set_token_cookie
from .errors import DomainError
from .extensions import get_coordinator, get_oauth_client
from .rate_limit import auth_limit

log = logging.getLogger(__name__)

oauth_bp = Blueprint("oauth", __name__, url_prefix="/oauth")


@oauth_bp.get("/google")
@auth_limit
def google_start():
    client = get_oauth_client()
    if not client.configured:
        return redirect("/login?error=oauth_not_configured")
    state = secrets.token_urlsafe(16)
    session["oauth_state"] = state
    session["oauth_db"] = request.args.get("db") or None
    return redirect(client.authorization_url(state))


@oauth_bp.get("/google/callback")
def google_callback():
    expected = session.pop("oauth_state", None)
    store = session.pop("oauth_db", None)
    if request.args.get("error") or not expected or request.args.get("state") != expected:
        log.warning("[oauth] callback rejected (error=%s)", request.args.get("error"))
        return redirect("/login?error=oauth_failed")

    coordinator = get_coordinator()
    try:
        profile = get_oauth_client().complete(request.args.get("code"))
        user = coordinator.oauth_login(profile, store=store)
    except DomainError as exc:
        log.warning("[oauth] login failed: %s", exc)
        return redirect("/login?error=oauth_failed")

    ttl = current_app.config["TOKEN_EXPIRES_IN"]
    token = coordinator.issue_session(user, ttl=ttl)
    return set_token_cookie(redirect("/?oauth_success=true"), token, ttl)


@oauth_bp.get("/status")
def status():
    claims = cookie_claims()
    if claims is None:
        return jsonify(authenticated=False), 200
    try:
        user = get_coordinator().find_user(claims["id"], store=claims.get("dbType"))
    except DomainError:
        return jsonify(authenticated=False), 200
    return jsonify(
        authenticated=True,
        user={"id": user["id"], "username": user["username"], "email": user["email"], "dbType": user["store"]},
    ), 200


@oauth_bp.get("/logout")
def logout():
    get_coordinator().credentials.revoke(request.cookies.get(COOKIE_NAME))
    resp = redirect("/login?message=logged_out")
    resp.delete_cookie(COOKIE_NAME)
    return resp
