from flask import Blueprint, current_app, g, jsonify

from .auth import token_required
from .extensions import get_coordinator
from .rate_limit import auth_limit
from .utils.payload import request_data

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.post("/register")
@auth_limit
def register():
    data = request_data()
    reg = get_coordinator().register_user(
        data.get("username"),
        data.get("email"),
        data.get("password"),
        ttl=current_app.config["JWT_EXPIRES_IN"],
    )
    return jsonify(message="User registered successfully", token=reg.token, user=reg.user), 201


@auth_bp.post("/login")
@auth_limit
def login():
    data = request_data()
    coordinator = get_coordinator()
    user = coordinator.authenticate(data.get("email"), data.get("password"))
    token = coordinator.issue_session(user, ttl=current_app.config["JWT_EXPIRES_IN"])
    return jsonify(message="Login successful", token=token, user=user), 200


@auth_bp.get("/profile")
@token_required
def profile():
    user = get_coordinator().find_user(g.user_id, store=g.token_claims.get("dbType"))
    return jsonify(user=user), 200
