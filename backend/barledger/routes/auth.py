# backend/barledger/routes/auth.py
"""
Authentication API routes.

Self-registration is disabled: staff accounts are created by an admin
(POST /api/auth/users) or via the CLI (flask users create).
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..context import current_context
from ..decorators import bearer_token, require_auth, require_role, session_ttl
from ..errors import BarError
from ..models.auth import ROLE_ADMIN
from ..services import auth_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """Authenticate and return a bearer token for protected routes."""
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")
        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        user, token = auth_service.login(current_context(), username, password, ttl=session_ttl())
        return jsonify({"user": user.to_dict(), "token": token, "message": "Login successful"}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not auth_service.logout(current_context(), token):
            return jsonify({"error": "Invalid or expired token"}), 401
        return jsonify({"message": "Logout successful"}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.get("/users")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    users = auth_service.list_users(current_context())
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@auth_bp.post("/users")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            current_context(),
            username=data.get("username"),
            password=data.get("password"),
            role=data.get("role"),
            name=data.get("name"),
        )
        return jsonify({"user": user.to_dict()}), 201

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500
