"""
Server-rendered pages. Creates and deletes from the form go through the
dual-write coordinator, unlike the JSON task routes.
"""
from __future__ import annotations

from flask import Blueprint, current_app, g, redirect, render_template, request

from .auth import cookie_claims, set_token_cookie, web_login_required
from .errors import DomainError, StoreUnavailableError
from .extensions import get_coordinator, get_oauth_client
from .rate_limit import auth_limit

views_bp = Blueprint("views", __name__)

LOGIN_ERRORS = {
    "oauth_failed": "Google sign-in failed, try again.",
    "oauth_not_configured": "Google sign-in is not configured on this server.",
}
LOGIN_MESSAGES = {"logged_out": "You have been logged out."}


def _render_index(error=None, status=200):
    coordinator = get_coordinator()
    try:
        tasks = coordinator.list_tasks()
    except StoreUnavailableError as exc:
        current_app.logger.warning("[views] list_tasks failed: %s", exc)
        tasks = {}
        error = error or str(exc)
    return render_template(
        "index.html",
        tasks=tasks,
        mode=coordinator.mode.value,
        user=getattr(g, "token_claims", None) or cookie_claims(),
        oauth_success=request.args.get("oauth_success") == "true",
        error=error,
    ), status


@views_bp.get("/")
@web_login_required
def index():
    return _render_index()


@views_bp.post("/tasks/add")
@web_login_required
def add_task():
    title = (request.form.get("title") or "").strip()
    if not title:
        return redirect("/")
    try:
        get_coordinator().create_task(title)
    except DomainError as exc:
        return _render_index(error=str(exc), status=exc.status_code)
    return redirect("/")


@views_bp.post("/tasks/delete/<task_id>")
@web_login_required
def delete_task(task_id):
    try:
        get_coordinator().delete_task(task_id, store=request.form.get("store") or None)
    except DomainError as exc:
        return _render_index(error=str(exc), status=exc.status_code)
    return redirect("/")


@views_bp.get("/login")
def login_page():
    return render_template(
        "login.html",
        error=LOGIN_ERRORS.get(request.args.get("error", "")),
        message=LOGIN_MESSAGES.get(request.args.get("message", "")),
        oauth_enabled=get_oauth_client().configured,
    )


@views_bp.post("/login")
@auth_limit
def login_submit():
    coordinator = get_coordinator()
    try:
        user = coordinator.authenticate(request.form.get("email"), request.form.get("password"))
    except DomainError as exc:
        return render_template(
            "login.html",
            error=str(exc),
            message=None,
            email=request.form.get("email", ""),
            oauth_enabled=get_oauth_client().configured,
        ), exc.status_code
    ttl = current_app.config["TOKEN_EXPIRES_IN"]
    return set_token_cookie(redirect("/"), coordinator.issue_session(user, ttl=ttl), ttl)
