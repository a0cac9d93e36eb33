"""
Alternate token surface: short-lived tokens (TOKEN_EXPIRES_IN, 1h by default)
for scripts and API clients. Same user logic as /auth.
"""
from flask import Blueprint, current_app, jsonify

from .config import format_duration
from .extensions import get_coordinator
from .rate_limit import strict_limit, token_limit
from .utils.payload import request_data

token_bp = Blueprint("token", __name__, url_prefix="/token")


def _ttl():
    return current_app.config["TOKEN_EXPIRES_IN"]


@token_bp.post("/generate")
@token_limit
def generate_token():
    data = request_data()
    coordinator = get_coordinator()
    user = coordinator.authenticate(data.get("email"), data.get("password"))
    token = coordinator.issue_session(user, ttl=_ttl())
    return jsonify(
        message="Token generated successfully",
        token=token,
        expiresIn=format_duration(_ttl()),
        user={"email": user["email"], "username": user["username"]},
    ), 200


@token_bp.post("/user")
@token_limit
@strict_limit
def create_user():
    data = request_data()
    reg = get_coordinator().register_user(
        data.get("username"),
        data.get("email"),
        data.get("password"),
        ttl=_ttl(),
        missing_message="Username, email and password are required",
    )
    return jsonify(
        message="User created successfully",
        token=reg.token,
        expiresIn=format_duration(_ttl()),
        user={"username": reg.user["username"], "email": reg.user["email"]},
    ), 201
